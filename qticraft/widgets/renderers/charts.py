"""
Deterministic SVG renderers for statistical charts.

barChart and histogram share one vertical frame (value axis on the left,
categories along the bottom). lineGraph reuses that frame with evenly
spaced category points and an optional right-hand axis. dotPlot and
boxPlot share one horizontal value axis.
"""

from __future__ import annotations

from qticraft.core.errors import InvalidDimensions
from qticraft.widgets.geometry import (
    Extents,
    LinearScale,
    check_canvas,
    check_range,
    compute_dynamic_width,
    content_id,
    fmt,
    format_number,
    points_attr,
    svg_circle,
    svg_line,
    svg_rect,
    svg_text,
    text_width,
    tick_values,
    wrap_svg,
)

# Canvas constants
PAD_LEFT = 55
PAD_RIGHT = 20
PAD_TOP = 30
PAD_BOTTOM = 50
TITLE_H = 20
H_PAD = 30
BAR_FILL_RATIO = 0.7
LABEL_FONT_SIZE = 11
DOT_GAP = 2
DOT_BASE_GAP = 3
DOT_TOP_MARGIN = 10
LEGEND_ROW_H = 18
MARKER_R = 4
SERIES_DASH = {"dashed": "8 4", "dotted": "2 6"}

# Colors
AXIS_COLOR = "#333333"
GRID_COLOR = "#e0e0e0"
MEDIAN_WIDTH = 3


def _too_small(width: float, height: float) -> InvalidDimensions:
    return InvalidDimensions(f"canvas {width}x{height} leaves no room for the chart")


def _finish(parts: list[str], width: float, height: float, extents: Extents) -> str:
    min_x, w = compute_dynamic_width(extents, width)
    return wrap_svg(parts, w, height, min_x)


def _vertical_frame(widget, extents: Extents, x_label: str | None = None,
                    pad_right: float = PAD_RIGHT, pad_bottom: float = PAD_BOTTOM):
    """Value axis, grid, title and axis labels for bar and line charts."""
    check_canvas(widget.width, widget.height)
    check_range(widget.yAxis.min, widget.yAxis.max, "yAxis")
    top = PAD_TOP + (TITLE_H if widget.title else 0)
    bottom = widget.height - pad_bottom
    right = widget.width - pad_right
    if bottom <= top or right <= PAD_LEFT:
        raise _too_small(widget.width, widget.height)
    y_scale = LinearScale(widget.yAxis.min, widget.yAxis.max, bottom, top)

    parts: list[str] = []
    if widget.title:
        parts.append(svg_text(widget.width / 2, PAD_TOP, widget.title, size=14, weight="bold"))
        extents.include_text(widget.width / 2, widget.title, "middle", 14)
    for v in tick_values(widget.yAxis.min, widget.yAxis.max, widget.yAxis.tickInterval):
        py = y_scale(v)
        if widget.yAxis.showGridLines and v != widget.yAxis.min:
            parts.append(svg_line(PAD_LEFT, py, right, py, GRID_COLOR, 1))
        label = format_number(v)
        parts.append(svg_line(PAD_LEFT - 4, py, PAD_LEFT, py, AXIS_COLOR, 1))
        parts.append(svg_text(PAD_LEFT - 8, py + 4, label, size=LABEL_FONT_SIZE, anchor="end"))
        extents.include_text(PAD_LEFT - 8, label, "end", LABEL_FONT_SIZE)
    parts.append(svg_line(PAD_LEFT, top, PAD_LEFT, bottom, AXIS_COLOR, 1.5))
    parts.append(svg_line(PAD_LEFT, bottom, right, bottom, AXIS_COLOR, 1.5))

    if x_label:
        cx = (PAD_LEFT + right) / 2
        parts.append(svg_text(cx, widget.height - 8, x_label, weight="bold"))
        extents.include_text(cx, x_label)
    if widget.yAxis.label:
        cy = (top + bottom) / 2
        lx = 14
        parts.append(
            f'<g transform="rotate(-90 {fmt(lx)} {fmt(cy)})">'
            + svg_text(lx, cy, widget.yAxis.label, weight="bold")
            + "</g>"
        )
    return y_scale, top, bottom, right, parts



def _clamp(v: float, lo: float, hi: float) -> float:
    return min(max(v, lo), hi)


def _bars(widget, values: list[tuple[str, float, str]], gap_ratio: float) -> str:
    extents = Extents()
    extents.include(0, widget.width)
    y_scale, top, bottom, right, parts = _vertical_frame(widget, extents, widget.xAxisLabel)
    band = (right - PAD_LEFT) / len(values)
    bar_w = band * (1 - gap_ratio)
    base = y_scale(_clamp(0, widget.yAxis.min, widget.yAxis.max))
    for i, (label, value, color) in enumerate(values):
        x = PAD_LEFT + i * band + (band - bar_w) / 2
        py = y_scale(_clamp(value, widget.yAxis.min, widget.yAxis.max))
        parts.append(svg_rect(x, min(py, base), bar_w, abs(base - py), color, AXIS_COLOR, 1))
        cx = PAD_LEFT + (i + 0.5) * band
        parts.append(svg_text(cx, bottom + 16, label, size=LABEL_FONT_SIZE))
        extents.include_text(cx, label, "middle", LABEL_FONT_SIZE)
    return _finish(parts, widget.width, widget.height, extents)


def render_bar_chart(widget) -> str:
    values = [(d.label, d.value, d.color or widget.barColor) for d in widget.data]
    return _bars(widget, values, 1 - BAR_FILL_RATIO)


def render_histogram(widget) -> str:
    values = [(b.label, b.frequency, widget.barColor) for b in widget.bins]
    return _bars(widget, values, 0.0)


def _horizontal_axis(widget, y: float, extents: Extents):
    check_canvas(widget.width, widget.height)
    check_range(widget.axis.min, widget.axis.max, "axis")
    if widget.width <= 2 * H_PAD:
        raise _too_small(widget.width, widget.height)
    scale = LinearScale(widget.axis.min, widget.axis.max, H_PAD, widget.width - H_PAD)
    parts = [svg_line(H_PAD, y, widget.width - H_PAD, y, AXIS_COLOR, 1.5)]
    for v in tick_values(widget.axis.min, widget.axis.max, widget.axis.tickInterval):
        x = scale(v)
        label = format_number(v)
        parts.append(svg_line(x, y - 5, x, y + 5, AXIS_COLOR, 1))
        parts.append(svg_text(x, y + 20, label, size=LABEL_FONT_SIZE))
        extents.include_text(x, label, "middle", LABEL_FONT_SIZE)
    if widget.axis.label:
        parts.append(svg_text(widget.width / 2, widget.height - 6, widget.axis.label, weight="bold"))
        extents.include_text(widget.width / 2, widget.axis.label)
    return scale, parts


def render_dot_plot(widget) -> str:
    extents = Extents()
    extents.include(0, widget.width)
    y = widget.height - 45
    scale, parts = _horizontal_axis(widget, y, extents)
    r, gap, base = widget.dotRadius, DOT_GAP, DOT_BASE_GAP
    # shrink every stack together when the tallest would leave the canvas
    tallest = max(d.count for d in widget.data)
    natural = base + tallest * (2 * r + gap)
    available = y - DOT_TOP_MARGIN
    if available <= 0:
        raise _too_small(widget.width, widget.height)
    if natural > available:
        factor = available / natural
        r, gap, base = r * factor, gap * factor, base * factor
    for d in widget.data:
        x = scale(d.value)
        for i in range(d.count):
            parts.append(svg_circle(x, y - base - r - i * (2 * r + gap), r, widget.dotColor))
    return _finish(parts, widget.width, widget.height, extents)


def render_box_plot(widget) -> str:
    extents = Extents()
    extents.include(0, widget.width)
    y = widget.height - 45
    scale, parts = _horizontal_axis(widget, y, extents)
    s = widget.summary
    box_h = 40
    mid = (y - 15) - box_h / 2
    x_min, x_q1, x_med, x_q3, x_max = (scale(v) for v in (s.min, s.q1, s.median, s.q3, s.max))

    parts.append(svg_line(x_min, mid, x_q1, mid, AXIS_COLOR, 1.5))
    parts.append(svg_line(x_q3, mid, x_max, mid, AXIS_COLOR, 1.5))
    parts.append(svg_line(x_min, mid - box_h / 4, x_min, mid + box_h / 4, AXIS_COLOR, 1.5))
    parts.append(svg_line(x_max, mid - box_h / 4, x_max, mid + box_h / 4, AXIS_COLOR, 1.5))
    parts.append(svg_rect(x_q1, mid - box_h / 2, x_q3 - x_q1, box_h, widget.boxColor, AXIS_COLOR, 1.5))
    parts.append(svg_line(x_med, mid - box_h / 2, x_med, mid + box_h / 2, widget.medianColor, MEDIAN_WIDTH))
    return _finish(parts, widget.width, widget.height, extents)


def _right_axis(axis, scale: LinearScale, x: float, top: float, bottom: float,
                width: float, extents: Extents) -> list[str]:
    parts = [svg_line(x, top, x, bottom, AXIS_COLOR, 1.5)]
    for v in tick_values(axis.min, axis.max, axis.tickInterval):
        py = scale(v)
        label = format_number(v)
        parts.append(svg_line(x, py, x + 4, py, AXIS_COLOR, 1))
        parts.append(svg_text(x + 8, py + 4, label, size=LABEL_FONT_SIZE, anchor="start"))
        extents.include_text(x + 8, label, "start", LABEL_FONT_SIZE)
    if axis.label:
        cy = (top + bottom) / 2
        lx = width - 14
        parts.append(
            f'<g transform="rotate(90 {fmt(lx)} {fmt(cy)})">'
            + svg_text(lx, cy, axis.label, weight="bold")
            + "</g>"
        )
    return parts


def _marker(shape: str, x: float, y: float, color: str) -> str:
    if shape == "square":
        return svg_rect(x - MARKER_R, y - MARKER_R, 2 * MARKER_R, 2 * MARKER_R, color)
    return svg_circle(x, y, MARKER_R, color)


def render_line_graph(widget) -> str:
    extents = Extents()
    extents.include(0, widget.width)
    right_axis = widget.yAxisRight
    if right_axis is not None:
        check_range(right_axis.min, right_axis.max, "yAxisRight")
    y_scale, top, bottom, right, parts = _vertical_frame(
        widget, extents, widget.xAxis.label,
        pad_right=PAD_LEFT if right_axis else PAD_RIGHT,
        pad_bottom=PAD_BOTTOM + (LEGEND_ROW_H if widget.showLegend else 0),
    )
    scales = {"left": y_scale}
    if right_axis is not None:
        scales["right"] = LinearScale(right_axis.min, right_axis.max, bottom, top)
        parts += _right_axis(right_axis, scales["right"], right, top, bottom, widget.width, extents)

    categories = widget.xAxis.categories
    step = (right - PAD_LEFT) / (len(categories) - 1)
    xs = [PAD_LEFT + i * step for i in range(len(categories))]
    for x, label in zip(xs, categories):
        parts.append(svg_line(x, bottom, x, bottom + 4, AXIS_COLOR, 1))
        parts.append(svg_text(x, bottom + 16, label, size=LABEL_FONT_SIZE))
        extents.include_text(x, label, "middle", LABEL_FONT_SIZE)

    clip_id = content_id("clip", widget.model_dump_json())
    parts.append(
        f'<defs><clipPath id="{clip_id}">'
        + svg_rect(PAD_LEFT, top, right - PAD_LEFT, bottom - top, "none")
        + "</clipPath></defs>"
    )
    lines, markers = [], []
    for s in widget.series:
        scale = scales[s.yAxis]
        coords = [(x, scale(v)) for x, v in zip(xs, s.values)]
        dash = SERIES_DASH.get(s.style)
        dash_attr = f' stroke-dasharray="{dash}"' if dash else ""
        lines.append(
            f'<polyline points="{points_attr(coords)}" '
            f'fill="none" stroke="{s.color}" stroke-width="2"{dash_attr}/>'
        )
        markers += [_marker(s.pointShape, x, y, s.color) for x, y in coords if top <= y <= bottom]
    parts.append(f'<g clip-path="url(#{clip_id})">' + "".join(lines) + "</g>")
    parts += markers

    if widget.showLegend:
        ly = bottom + 34
        lx = PAD_LEFT
        for s in widget.series:
            dash = SERIES_DASH.get(s.style)
            parts.append(svg_line(lx, ly - 4, lx + 20, ly - 4, s.color, 2, dash))
            parts.append(svg_text(lx + 26, ly, s.name, size=LABEL_FONT_SIZE, anchor="start"))
            end = lx + 26 + text_width(s.name, LABEL_FONT_SIZE)
            extents.include(lx, end)
            lx = end + 16
    return _finish(parts, widget.width, widget.height, extents)
