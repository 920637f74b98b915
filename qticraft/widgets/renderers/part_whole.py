"""
Deterministic SVG renderers for part-whole models.

pieChart: sectors proportional to value, with a legend on the right.
probabilitySpinner: equal sectors with a pointer at a fixed angle.
tapeDiagram: one or two horizontal tapes split into labelled segments.

All positions are mathematically derived. No randomness.
"""

from __future__ import annotations

import math

from qticraft.core.errors import InvalidDimensions
from qticraft.widgets.geometry import (
    Extents,
    arc_path,
    check_canvas,
    compute_dynamic_width,
    fmt,
    svg_circle,
    svg_line,
    svg_rect,
    svg_text,
    wrap_svg,
)

# ─── Shared constants ────────────────────────────────────────────────
PAD = 20
TITLE_H = 22
LEGEND_SWATCH = 12
LEGEND_ROW_H = 18
LABEL_FONT = 12
BORDER_COLOR = "#333333"

PALETTE = (
    "#4285F4", "#EA4335", "#FBBC05", "#34A853",
    "#FF6D01", "#46BDC6", "#7E57C2", "#F06292",
)


def _color(i: int, override: str | None) -> str:
    return override or PALETTE[i % len(PALETTE)]


def _finish(parts: list[str], width: float, height: float, extents: Extents) -> str:
    min_x, w = compute_dynamic_width(extents, width)
    return wrap_svg(parts, w, height, min_x)


def _sectors(cx: float, cy: float, r: float, fractions: list[float], colors: list[str]) -> list[str]:
    if len(fractions) == 1:
        return [svg_circle(cx, cy, r, colors[0], BORDER_COLOR, 1)]
    parts = []
    angle = 0.0
    for frac, color in zip(fractions, colors):
        end = angle + frac * 2 * math.pi
        parts.append(
            f'<path d="{arc_path(cx, cy, r, angle, end)}" fill="{color}" '
            f'stroke="{BORDER_COLOR}" stroke-width="1"/>'
        )
        angle = end
    return parts


# ─── pieChart ────────────────────────────────────────────────────────

def render_pie_chart(widget) -> str:
    check_canvas(widget.width, widget.height)
    extents = Extents()
    extents.include(0, widget.width)
    parts: list[str] = []
    top = PAD + (TITLE_H if widget.title else 0)
    if widget.title:
        parts.append(svg_text(widget.width / 2, PAD + 4, widget.title, size=14, weight="bold"))
        extents.include_text(widget.width / 2, widget.title, "middle", 14)

    r = min(widget.width * 0.6, widget.height - top) / 2 - PAD / 2
    if r <= 0:
        raise InvalidDimensions(f"canvas {widget.width}x{widget.height} leaves no room for the pie")
    cx = PAD + r
    cy = top + r

    total = sum(s.value for s in widget.slices)
    colors = [_color(i, s.color) for i, s in enumerate(widget.slices)]
    parts += _sectors(cx, cy, r, [s.value / total for s in widget.slices], colors)
    extents.include(cx - r, cx + r)

    lx = cx + r + PAD
    for i, (s, color) in enumerate(zip(widget.slices, colors)):
        ly = top + i * LEGEND_ROW_H
        parts.append(svg_rect(lx, ly, LEGEND_SWATCH, LEGEND_SWATCH, color, BORDER_COLOR, 1))
        parts.append(svg_text(lx + LEGEND_SWATCH + 6, ly + LEGEND_SWATCH - 1, s.label,
                              size=LABEL_FONT, anchor="start"))
        extents.include_text(lx + LEGEND_SWATCH + 6, s.label, "start", LABEL_FONT)
    return _finish(parts, widget.width, widget.height, extents)


# ─── probabilitySpinner ──────────────────────────────────────────────

def render_probability_spinner(widget) -> str:
    check_canvas(widget.width, widget.height)
    extents = Extents()
    extents.include(0, widget.width)
    r = min(widget.width, widget.height) / 2 - PAD
    if r <= 0:
        raise InvalidDimensions(f"canvas {widget.width}x{widget.height} leaves no room for the spinner")
    cx, cy = widget.width / 2, widget.height / 2
    n = len(widget.sectors)
    colors = [_color(i, s.color) for i, s in enumerate(widget.sectors)]
    parts = _sectors(cx, cy, r, [1 / n] * n, colors)

    for i, s in enumerate(widget.sectors):
        mid = (i + 0.5) * 2 * math.pi / n
        tx = cx + r * 0.62 * math.sin(mid)
        ty = cy - r * 0.62 * math.cos(mid) + 4
        parts.append(svg_text(tx, ty, s.label, size=LABEL_FONT, weight="bold"))
        extents.include_text(tx, s.label, "middle", LABEL_FONT)

    theta = math.radians(widget.pointerAngle)
    px = cx + r * 0.8 * math.sin(theta)
    py = cy - r * 0.8 * math.cos(theta)
    parts.append(svg_line(cx, cy, px, py, BORDER_COLOR, 3))
    parts.append(svg_circle(cx, cy, 5, BORDER_COLOR))
    parts.append(f'<polygon points="{_pointer_tip(cx, cy, r * 0.8, theta)}" fill="{BORDER_COLOR}"/>')
    return _finish(parts, widget.width, widget.height, extents)


def _pointer_tip(cx: float, cy: float, length: float, theta: float) -> str:
    tip = (cx + length * math.sin(theta), cy - length * math.cos(theta))
    back = length - 10
    left = (cx + back * math.sin(theta - 0.08), cy - back * math.cos(theta - 0.08))
    right = (cx + back * math.sin(theta + 0.08), cy - back * math.cos(theta + 0.08))
    return " ".join(f"{fmt(x)},{fmt(y)}" for x, y in (tip, left, right))


# ─── tapeDiagram ─────────────────────────────────────────────────────

def _tape(tape, y: float, x0: float, unit: float, h: float, extents: Extents) -> list[str]:
    parts = []
    if tape.label:
        parts.append(svg_text(x0 - 8, y + h / 2 + 4, tape.label, size=LABEL_FONT, anchor="end", weight="bold"))
        extents.include_text(x0 - 8, tape.label, "end", LABEL_FONT)
    x = x0
    for seg in tape.segments:
        w = seg.length * unit
        parts.append(svg_rect(x, y, w, h, tape.color, BORDER_COLOR, 1.5))
        if seg.label:
            parts.append(svg_text(x + w / 2, y + h / 2 + 4, seg.label, size=LABEL_FONT))
            extents.include_text(x + w / 2, seg.label, "middle", LABEL_FONT)
        x += w
    extents.include(x0, x)
    return parts


def render_tape_diagram(widget) -> str:
    check_canvas(widget.width, widget.height)
    extents = Extents()
    extents.include(0, widget.width)
    x0 = PAD + 60
    avail = widget.width - x0 - PAD
    if avail <= 0:
        raise InvalidDimensions(f"canvas width {widget.width} leaves no room for the tape")

    tapes = [widget.topTape] + ([widget.bottomTape] if widget.bottomTape else [])
    longest = max(sum(s.length for s in t.segments) for t in tapes)
    unit = avail / longest
    rows = len(tapes)
    bracket_h = 24 if widget.totalLabel else 0
    h = min(40, (widget.height - 2 * PAD - bracket_h - (rows - 1) * 12) / rows)
    if h <= 0:
        raise InvalidDimensions(f"canvas height {widget.height} leaves no room for the tape")

    parts: list[str] = []
    y = PAD
    for tape in tapes:
        parts += _tape(tape, y, x0, unit, h, extents)
        y += h + 12

    if widget.totalLabel:
        right = x0 + longest * unit
        by = y - 12 + 8
        parts.append(svg_line(x0, by, x0, by + 8, BORDER_COLOR, 1.5))
        parts.append(svg_line(x0, by + 8, right, by + 8, BORDER_COLOR, 1.5))
        parts.append(svg_line(right, by, right, by + 8, BORDER_COLOR, 1.5))
        mx = (x0 + right) / 2
        parts.append(svg_text(mx, by + 22, widget.totalLabel, size=LABEL_FONT, weight="bold"))
        extents.include_text(mx, widget.totalLabel, "middle", LABEL_FONT)
    return _finish(parts, widget.width, widget.height, extents)
