"""
Deterministic SVG renderers for the number-line widgets.

  1. numberLine: major/minor ticks with labelled points
  2. inequalityNumberLine: shaded solution ranges with open/closed ends
  3. fractionNumberLine: ticks every 1/denominator with highlighted segments
  4. doubleNumberLine: two aligned lines sharing tick positions

All tick positions are mathematically derived through the kernel scale.
"""

from __future__ import annotations

from fractions import Fraction

from qticraft.core.errors import InvalidDimensions
from qticraft.widgets.geometry import (
    Extents,
    LinearScale,
    check_canvas,
    check_range,
    compute_dynamic_width,
    fmt,
    format_number,
    svg_circle,
    svg_line,
    svg_rect,
    svg_text,
    text_width,
    tick_values,
    wrap_svg,
)

# Canvas constants
H_PAD = 30
TICK_LEN = 12
MINOR_TICK_LEN = 6
MARKER_R = 6
ARROW = 8
LABEL_FONT_SIZE = 11

# Colors
LINE_COLOR = "#333333"
TICK_COLOR = "#333333"
ALIGN_COLOR = "#cccccc"

DOUBLE_PAD_X = 20
DOUBLE_PAD_Y = 40


def _baseline(height: float) -> float:
    return round(height * 0.55, 2)


def _axis(width: float, height: float, lo: float, hi: float, extents: Extents):
    check_canvas(width, height)
    check_range(lo, hi, "number line")
    if width <= 2 * H_PAD:
        raise InvalidDimensions(f"number line width {width} leaves no room for the axis")
    scale = LinearScale(lo, hi, H_PAD, width - H_PAD)
    y = _baseline(height)
    parts = [
        svg_line(H_PAD - ARROW, y, width - H_PAD + ARROW, y, LINE_COLOR, 2),
        _arrowhead(H_PAD - ARROW, y, -1),
        _arrowhead(width - H_PAD + ARROW, y, 1),
    ]
    extents.include(H_PAD - 2 * ARROW, width - H_PAD + 2 * ARROW)
    return scale, y, parts


def _arrowhead(x: float, y: float, direction: int, color: str = LINE_COLOR) -> str:
    tip = x + direction * ARROW
    return f'<polygon points="{fmt(x)},{fmt(y - 4)} {fmt(tip)},{fmt(y)} {fmt(x)},{fmt(y + 4)}" fill="{color}"/>'


def _major_ticks(scale: LinearScale, y: float, lo: float, hi: float, interval: float,
                 show_labels: bool, extents: Extents) -> list[str]:
    parts = []
    for v in tick_values(lo, hi, interval):
        x = scale(v)
        parts.append(svg_line(x, y - TICK_LEN / 2, x, y + TICK_LEN / 2, TICK_COLOR, 1.5))
        if show_labels:
            label = format_number(v)
            parts.append(svg_text(x, y + TICK_LEN / 2 + 14, label, size=LABEL_FONT_SIZE))
            extents.include_text(x, label, "middle", LABEL_FONT_SIZE)
    return parts


def _marker(x: float, y: float, color: str, style: str) -> str:
    if style == "open":
        return svg_circle(x, y, MARKER_R, "white", color, 2)
    return svg_circle(x, y, MARKER_R, color, color, 1)


def _finish(parts: list[str], width: float, height: float, extents: Extents) -> str:
    min_x, w = compute_dynamic_width(extents, width)
    return wrap_svg(parts, w, height, min_x)


def render_number_line(widget) -> str:
    extents = Extents()
    scale, y, parts = _axis(widget.width, widget.height, widget.min, widget.max, extents)
    parts += _major_ticks(scale, y, widget.min, widget.max, widget.tickInterval,
                          widget.showTickLabels, extents)

    n = widget.minorTicksPerInterval
    if n:
        step = widget.tickInterval / (n + 1)
        for v in tick_values(widget.min, widget.max, widget.tickInterval):
            for k in range(1, n + 1):
                mv = v + k * step
                if mv > widget.max + 1e-9:
                    break
                x = scale(mv)
                parts.append(svg_line(x, y - MINOR_TICK_LEN / 2, x, y + MINOR_TICK_LEN / 2, TICK_COLOR, 1))

    for p in widget.points:
        x = scale(p.value)
        parts.append(_marker(x, y, p.color, p.style))
        if p.label:
            parts.append(svg_text(x, y - MARKER_R - 8, p.label, size=LABEL_FONT_SIZE,
                                  color=p.color, weight="bold"))
            extents.include_text(x, p.label, "middle", LABEL_FONT_SIZE)
    return _finish(parts, widget.width, widget.height, extents)


def render_inequality_number_line(widget) -> str:
    extents = Extents()
    scale, y, parts = _axis(widget.width, widget.height, widget.min, widget.max, extents)
    parts += _major_ticks(scale, y, widget.min, widget.max, widget.tickInterval, True, extents)

    left_edge = H_PAD - ARROW
    right_edge = widget.width - H_PAD + ARROW
    for r in widget.ranges:
        x1 = scale(r.start.value) if r.start else left_edge
        x2 = scale(r.end.value) if r.end else right_edge
        parts.append(svg_line(x1, y, x2, y, r.color, 5))
        if r.start is None:
            parts.append(_arrowhead(left_edge, y, -1, r.color))
        if r.end is None:
            parts.append(_arrowhead(right_edge, y, 1, r.color))
        for boundary in (r.start, r.end):
            if boundary is not None:
                parts.append(_marker(scale(boundary.value), y, r.color, boundary.type))
    return _finish(parts, widget.width, widget.height, extents)


def render_fraction_number_line(widget) -> str:
    extents = Extents()
    scale, y, parts = _axis(widget.width, widget.height, widget.min, widget.max, extents)
    d = widget.denominator

    for seg in widget.segments:
        x1, x2 = sorted((scale(seg.start), scale(seg.end)))
        parts.append(svg_rect(x1, y - 8, x2 - x1, 16, seg.color))

    for k in range(widget.min * d, widget.max * d + 1):
        x = scale(k / d)
        whole = k % d == 0
        tlen = TICK_LEN + 4 if whole else TICK_LEN
        parts.append(svg_line(x, y - tlen / 2, x, y + tlen / 2, TICK_COLOR, 1.5))
        if whole:
            label = str(k // d)
        elif widget.showFractionLabels:
            label = f"{k}/{d}"
        else:
            continue
        parts.append(svg_text(x, y + tlen / 2 + 14, label, size=LABEL_FONT_SIZE))
        extents.include_text(x, label, "middle", LABEL_FONT_SIZE)

    for p in widget.points:
        x = scale(p.value)
        parts.append(_marker(x, y, p.color, p.style))
        label = p.label or str(Fraction(p.value).limit_denominator(d * 4))
        parts.append(svg_text(x, y - MARKER_R - 8, label, size=LABEL_FONT_SIZE,
                              color=p.color, weight="bold"))
        extents.include_text(x, label, "middle", LABEL_FONT_SIZE)
    return _finish(parts, widget.width, widget.height, extents)


def _tick_label(value) -> str:
    return value if isinstance(value, str) else format_number(value)


def render_double_number_line(widget) -> str:
    check_canvas(widget.width, widget.height)
    top, bottom = widget.topLine, widget.bottomLine
    n = len(top.ticks)
    if n < 2:
        return wrap_svg([], widget.width, widget.height)

    extents = Extents()
    extents.include(0, widget.width)
    label_w = max(text_width(line.label, LABEL_FONT_SIZE) if line.label else 0 for line in (top, bottom))
    left = DOUBLE_PAD_X + (label_w + 10 if label_w else 0)
    right = widget.width - DOUBLE_PAD_X
    y_top, y_bottom = DOUBLE_PAD_Y, widget.height - DOUBLE_PAD_Y
    if right <= left or y_bottom <= y_top:
        raise InvalidDimensions(f"canvas {widget.width}x{widget.height} leaves no room for the lines")

    parts = [
        svg_line(left, y_top, right, y_top, LINE_COLOR, 2),
        svg_line(left, y_bottom, right, y_bottom, LINE_COLOR, 2),
    ]
    for line, y in ((top, y_top), (bottom, y_bottom)):
        if line.label:
            parts.append(svg_text(left - 10, y + 4, line.label, size=LABEL_FONT_SIZE,
                                  anchor="end", weight="bold"))
            extents.include_text(left - 10, line.label, "end", LABEL_FONT_SIZE)

    step = (right - left) / (n - 1)
    half = TICK_LEN / 2
    for i, (upper, lower) in enumerate(zip(top.ticks, bottom.ticks)):
        x = left + i * step
        parts.append(svg_line(x, y_top + half, x, y_bottom - half, ALIGN_COLOR, 1, "2"))
        parts.append(svg_line(x, y_top - half, x, y_top + half, TICK_COLOR, 1.5))
        parts.append(svg_line(x, y_bottom - half, x, y_bottom + half, TICK_COLOR, 1.5))
        upper_text, lower_text = _tick_label(upper), _tick_label(lower)
        parts.append(svg_text(x, y_top - half - 6, upper_text, size=LABEL_FONT_SIZE))
        parts.append(svg_text(x, y_bottom + half + 14, lower_text, size=LABEL_FONT_SIZE))
        extents.include_text(x, upper_text, "middle", LABEL_FONT_SIZE)
        extents.include_text(x, lower_text, "middle", LABEL_FONT_SIZE)
    return _finish(parts, widget.width, widget.height, extents)
