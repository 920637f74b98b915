"""
Shared 2D geometry kernel for every diagram widget.

All coordinate math lives here: linear scales, the plot-area transform,
grid/tick rendering, point, line, polygon, polyline and distance
rendering, angle marks, and canvas sizing: dynamic width from accumulated
extents for plotted charts, or a viewBox fitted to 2D bounds for
pixel-space diagrams.

Everything is deterministic. Numbers are written through ``fmt`` so the
same input always produces byte-identical markup, and no state survives a
render: each plane carries its own ``Extents``.
"""

from __future__ import annotations

import hashlib
import html
import math
from dataclasses import dataclass, field
from fractions import Fraction

from qticraft.core.errors import InvalidDimensions, UnknownPointReference
from qticraft.models.geometry import (
    AxisOptions,
    Distance,
    Line,
    PlotPoint,
    PointSlopeEquation,
    Polygon,
    Polyline,
    SlopeInterceptEquation,
)

SVG_NS = "http://www.w3.org/2000/svg"

# Plot padding (pixels between canvas edge and plot rectangle)
PAD_TOP = 30
PAD_RIGHT = 30
PAD_BOTTOM = 40
PAD_LEFT = 50
AXIS_VIEWBOX_PADDING = 10

POINT_RADIUS = 4
POINT_LABEL_DX = 6
POINT_LABEL_DY = -6

# Colors
AXIS_COLOR = "black"
GRID_COLOR = "#e0e0e0"
LABEL_COLOR = "#333333"
QUADRANT_COLOR = "#9e9e9e"

# Label sizing
LABEL_FONT_SIZE = 12
TICK_FONT_SIZE = 10
LABEL_CHAR_W = 6.6  # approximate width per char at font size 11
FONT_FAMILY = "Arial, Helvetica, sans-serif"

LINE_DASH = "5 3"
DISTANCE_DASH = "4 3"
DOTTED_DASH = "2 4"
RIGHT_ANGLE_SIZE = 15

_EPS = 1e-9


# ── Number formatting ────────────────────────────────────────────────────────

def fmt(value: float) -> str:
    """Format a coordinate with at most two decimals and no trailing zeros."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def format_number(value: float) -> str:
    """Format a model-space value for a human-readable label."""
    if abs(value - round(value)) < _EPS:
        return str(int(round(value)))
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def format_pi_label(value: float) -> str:
    """Label multiples of π/12 as π fractions, everything else as a number."""
    if abs(value) < _EPS:
        return "0"
    if abs(value - round(value)) < _EPS:
        return format_number(value)
    ratio = Fraction(value / math.pi).limit_denominator(12)
    if ratio == 0 or abs(float(ratio) * math.pi - value) > 1e-6:
        return format_number(value)
    num, den = ratio.numerator, ratio.denominator
    sign = "-" if num < 0 else ""
    coeff = "" if abs(num) == 1 else str(abs(num))
    if den == 1:
        return f"{sign}{coeff}π"
    return f"{sign}{coeff}π/{den}"


def tick_values(axis_min: float, axis_max: float, interval: float) -> list[float]:
    """Multiples of ``interval`` inside ``[axis_min, axis_max]``, ascending."""
    if interval <= 0:
        raise InvalidDimensions(f"tick interval must be positive, got {interval}")
    first = math.ceil(axis_min / interval - _EPS)
    last = math.floor(axis_max / interval + _EPS)
    return [round(k * interval, 10) for k in range(first, last + 1)]


def text_width(text: str, size: float = LABEL_FONT_SIZE) -> float:
    return len(text) * LABEL_CHAR_W * size / 11


def content_id(prefix: str, payload: str) -> str:
    """Stable element id derived from content rather than a global counter."""
    return f"{prefix}-{hashlib.sha256(payload.encode('utf-8')).hexdigest()[:10]}"


# ── SVG primitives ───────────────────────────────────────────────────────────

def _dash_attr(dash: str | None) -> str:
    return f' stroke-dasharray="{dash}"' if dash else ""


def svg_line(x1, y1, x2, y2, color=AXIS_COLOR, sw=1, dash=None):
    return (
        f'<line x1="{fmt(x1)}" y1="{fmt(y1)}" x2="{fmt(x2)}" y2="{fmt(y2)}" '
        f'stroke="{color}" stroke-width="{fmt(sw)}"{_dash_attr(dash)}/>'
    )


def svg_circle(cx, cy, r, fill, stroke="none", sw=0):
    return (
        f'<circle cx="{fmt(cx)}" cy="{fmt(cy)}" r="{fmt(r)}" fill="{fill}" '
        f'stroke="{stroke}" stroke-width="{fmt(sw)}"/>'
    )


def svg_text(x, y, text, size=LABEL_FONT_SIZE, color=LABEL_COLOR, anchor="middle", weight="normal"):
    escaped = html.escape(str(text))
    return (
        f'<text x="{fmt(x)}" y="{fmt(y)}" font-size="{fmt(size)}" fill="{color}" '
        f'text-anchor="{anchor}" font-weight="{weight}" '
        f'font-family="{FONT_FAMILY}">{escaped}</text>'
    )


def svg_rect(x, y, w, h, fill, stroke="none", sw=0, opacity=1.0):
    attrs = (
        f'x="{fmt(x)}" y="{fmt(y)}" width="{fmt(w)}" height="{fmt(h)}" '
        f'fill="{fill}" stroke="{stroke}" stroke-width="{fmt(sw)}"'
    )
    if opacity < 1.0:
        attrs += f' opacity="{fmt(opacity)}"'
    return f"<rect {attrs}/>"


def points_attr(coords: list[tuple[float, float]]) -> str:
    return " ".join(f"{fmt(x)},{fmt(y)}" for x, y in coords)


def arc_path(cx, cy, r, start_angle, end_angle) -> str:
    """SVG path for a pie sector. Angles in radians, 0 = 12 o'clock, clockwise."""
    x1 = cx + r * math.sin(start_angle)
    y1 = cy - r * math.cos(start_angle)
    x2 = cx + r * math.sin(end_angle)
    y2 = cy - r * math.cos(end_angle)
    large_arc = 1 if (end_angle - start_angle) > math.pi else 0
    return (
        f"M {fmt(cx)} {fmt(cy)} L {fmt(x1)} {fmt(y1)} "
        f"A {fmt(r)} {fmt(r)} 0 {large_arc} 1 {fmt(x2)} {fmt(y2)} Z"
    )


# ── Extents and scales ───────────────────────────────────────────────────────

@dataclass
class Extents:
    """Horizontal pixel bounds touched by rendered elements."""

    min_x: float = math.inf
    max_x: float = -math.inf

    def include(self, *xs: float) -> None:
        for x in xs:
            if x < self.min_x:
                self.min_x = x
            if x > self.max_x:
                self.max_x = x

    def include_text(self, x: float, text: str, anchor: str = "middle", size: float = LABEL_FONT_SIZE) -> None:
        w = text_width(text, size)
        if anchor == "start":
            self.include(x, x + w)
        elif anchor == "end":
            self.include(x - w, x)
        else:
            self.include(x - w / 2, x + w / 2)


def check_canvas(width: float, height: float) -> None:
    if width <= 0 or height <= 0:
        raise InvalidDimensions(f"canvas must be positive, got {width}x{height}")


def check_range(lo: float, hi: float, name: str = "axis") -> None:
    if not (math.isfinite(lo) and math.isfinite(hi)) or lo >= hi:
        raise InvalidDimensions(f"{name} range must satisfy min < max, got [{lo}, {hi}]")


@dataclass(frozen=True)
class LinearScale:
    """Affine map from a model-space domain onto a pixel range."""

    domain_min: float
    domain_max: float
    range_start: float
    range_end: float

    def __call__(self, value: float) -> float:
        frac = (value - self.domain_min) / (self.domain_max - self.domain_min)
        return self.range_start + frac * (self.range_end - self.range_start)


@dataclass
class CoordinatePlane:
    """Canvas, plot rectangle and per-axis transforms for one render."""

    width: float
    height: float
    x_axis: AxisOptions
    y_axis: AxisOptions
    clip_id: str
    pad_left: float = PAD_LEFT
    pad_top: float = PAD_TOP
    pad_right: float = PAD_RIGHT
    pad_bottom: float = PAD_BOTTOM
    extents: Extents = field(default_factory=Extents)

    @property
    def plot_width(self) -> float:
        return self.width - self.pad_left - self.pad_right

    @property
    def plot_height(self) -> float:
        return self.height - self.pad_top - self.pad_bottom

    @property
    def plot_right(self) -> float:
        return self.pad_left + self.plot_width

    @property
    def plot_bottom(self) -> float:
        return self.pad_top + self.plot_height

    def to_svg_x(self, x: float) -> float:
        return self.pad_left + (x - self.x_axis.min) / (self.x_axis.max - self.x_axis.min) * self.plot_width

    def to_svg_y(self, y: float) -> float:
        return self.pad_top + (1 - (y - self.y_axis.min) / (self.y_axis.max - self.y_axis.min)) * self.plot_height

    def to_svg(self, x: float, y: float) -> tuple[float, float]:
        return self.to_svg_x(x), self.to_svg_y(y)

    def axis_origin(self) -> tuple[float, float]:
        """Pixel position of the axes: zero when in range, else the nearest edge."""
        x0 = min(max(0.0, self.x_axis.min), self.x_axis.max)
        y0 = min(max(0.0, self.y_axis.min), self.y_axis.max)
        return self.to_svg_x(x0), self.to_svg_y(y0)


def build_plane(width: float, height: float, x_axis: AxisOptions, y_axis: AxisOptions,
                clip_id: str, **padding: float) -> CoordinatePlane:
    """Validate dimensions and create the plane for one diagram render."""
    check_canvas(width, height)
    check_range(x_axis.min, x_axis.max, "xAxis")
    check_range(y_axis.min, y_axis.max, "yAxis")
    plane = CoordinatePlane(width, height, x_axis, y_axis, clip_id, **padding)
    if plane.plot_width <= 0 or plane.plot_height <= 0:
        raise InvalidDimensions(f"canvas {width}x{height} leaves no room for the plot area")
    plane.extents.include(0, width)
    return plane


# ── Background: grid, axes, ticks, quadrants ─────────────────────────────────

def render_clip_defs(plane: CoordinatePlane) -> str:
    return (
        f'<defs><clipPath id="{plane.clip_id}">'
        + svg_rect(plane.pad_left, plane.pad_top, plane.plot_width, plane.plot_height, "none")
        + "</clipPath></defs>"
    )


def render_grid(plane: CoordinatePlane) -> str:
    """Grid lines at every tick, skipping zero where the axis itself is drawn."""
    parts: list[str] = []
    if plane.x_axis.showGridLines:
        for v in tick_values(plane.x_axis.min, plane.x_axis.max, plane.x_axis.tickInterval):
            if abs(v) < _EPS:
                continue
            px = plane.to_svg_x(v)
            parts.append(svg_line(px, plane.pad_top, px, plane.plot_bottom, GRID_COLOR, 1))
    if plane.y_axis.showGridLines:
        for v in tick_values(plane.y_axis.min, plane.y_axis.max, plane.y_axis.tickInterval):
            if abs(v) < _EPS:
                continue
            py = plane.to_svg_y(v)
            parts.append(svg_line(plane.pad_left, py, plane.plot_right, py, GRID_COLOR, 1))
    return "".join(parts)


def render_axes(plane: CoordinatePlane) -> str:
    """Axis lines, tick marks, tick labels and axis titles."""
    ox, oy = plane.axis_origin()
    ext = plane.extents
    parts = [
        svg_line(plane.pad_left, oy, plane.plot_right, oy, AXIS_COLOR, 1.5),
        svg_line(ox, plane.pad_top, ox, plane.plot_bottom, AXIS_COLOR, 1.5),
    ]

    for v in tick_values(plane.x_axis.min, plane.x_axis.max, plane.x_axis.tickInterval):
        if abs(v) < _EPS:
            continue
        px = plane.to_svg_x(v)
        label = format_pi_label(v)
        parts.append(svg_line(px, oy - 4, px, oy + 4, AXIS_COLOR, 1))
        parts.append(svg_text(px, oy + 16, label, size=TICK_FONT_SIZE))
        ext.include_text(px, label, "middle", TICK_FONT_SIZE)

    for v in tick_values(plane.y_axis.min, plane.y_axis.max, plane.y_axis.tickInterval):
        if abs(v) < _EPS:
            continue
        py = plane.to_svg_y(v)
        label = format_pi_label(v)
        parts.append(svg_line(ox - 4, py, ox + 4, py, AXIS_COLOR, 1))
        parts.append(svg_text(ox - 8, py + 4, label, size=TICK_FONT_SIZE, anchor="end"))
        ext.include_text(ox - 8, label, "end", TICK_FONT_SIZE)

    if plane.x_axis.label:
        lx = plane.pad_left + plane.plot_width / 2
        parts.append(svg_text(lx, plane.height - 8, plane.x_axis.label, weight="bold"))
        ext.include_text(lx, plane.x_axis.label)
    if plane.y_axis.label:
        ly = plane.pad_top + plane.plot_height / 2
        lx = plane.pad_left - 36
        parts.append(
            f'<g transform="rotate(-90 {fmt(lx)} {fmt(ly)})">'
            + svg_text(lx, ly, plane.y_axis.label, weight="bold")
            + "</g>"
        )
        ext.include(lx - LABEL_FONT_SIZE)
    return "".join(parts)


def render_quadrant_labels(plane: CoordinatePlane) -> str:
    """Roman numerals centred in each quadrant that is visible."""
    ox, oy = plane.axis_origin()
    qw = plane.plot_width / 4
    qh = plane.plot_height / 4
    parts = []
    for label, px, py in (
        ("I", ox + qw, oy - qh),
        ("II", ox - qw, oy - qh),
        ("III", ox - qw, oy + qh),
        ("IV", ox + qw, oy + qh),
    ):
        if plane.pad_left <= px <= plane.plot_right and plane.pad_top <= py <= plane.plot_bottom:
            parts.append(svg_text(px, py, label, size=16, color=QUADRANT_COLOR))
    return "".join(parts)


def render_background(plane: CoordinatePlane, show_quadrant_labels: bool = False) -> str:
    parts = [render_clip_defs(plane), render_grid(plane), render_axes(plane)]
    if show_quadrant_labels:
        parts.append(render_quadrant_labels(plane))
    return "".join(parts)


# ── Points ───────────────────────────────────────────────────────────────────

def build_point_map(plane: CoordinatePlane, points: list[PlotPoint]) -> dict[str, tuple[float, float]]:
    """Point id -> pixel coordinate, built once per diagram."""
    return {p.id: plane.to_svg(p.x, p.y) for p in points}


def resolve_point(point_map: dict[str, tuple[float, float]], point_id: str, context: str) -> tuple[float, float]:
    try:
        return point_map[point_id]
    except KeyError:
        raise UnknownPointReference(point_id, context) from None


def render_points(plane: CoordinatePlane, points: list[PlotPoint]) -> str:
    parts = []
    for p in points:
        px, py = plane.to_svg(p.x, p.y)
        if p.style == "open":
            parts.append(svg_circle(px, py, POINT_RADIUS, "none", p.color, 2))
        else:
            parts.append(svg_circle(px, py, POINT_RADIUS, p.color, p.color, 1))
        plane.extents.include(px - POINT_RADIUS, px + POINT_RADIUS)
        if p.label:
            lx, ly = px + POINT_LABEL_DX, py + POINT_LABEL_DY
            parts.append(svg_text(lx, ly, p.label, anchor="start"))
            plane.extents.include_text(lx, p.label, "start")
    return "".join(parts)


# ── Lines ────────────────────────────────────────────────────────────────────

def general_form(equation) -> tuple[float, float, float]:
    """Normalize any line equation to a·x + b·y = c."""
    if isinstance(equation, SlopeInterceptEquation):
        return -equation.slope, 1.0, equation.yIntercept
    if isinstance(equation, PointSlopeEquation):
        return -equation.slope, 1.0, equation.y1 - equation.slope * equation.x1
    return equation.A, equation.B, equation.C


def line_endpoints(equation, x_axis: AxisOptions, y_axis: AxisOptions) -> tuple[tuple[float, float], tuple[float, float]] | None:
    """Intersect a line with the visible rectangle.

    Returns the two boundary points in model space, or None when the line
    misses the rectangle or only touches a corner.
    """
    a, b, c = general_form(equation)
    candidates: set[tuple[float, float]] = set()
    if abs(b) > _EPS:
        for x in (x_axis.min, x_axis.max):
            y = (c - a * x) / b
            if y_axis.min - _EPS <= y <= y_axis.max + _EPS:
                candidates.add((round(x, 9), round(min(max(y, y_axis.min), y_axis.max), 9)))
    if abs(a) > _EPS:
        for y in (y_axis.min, y_axis.max):
            x = (c - b * y) / a
            if x_axis.min - _EPS <= x <= x_axis.max + _EPS:
                candidates.add((round(min(max(x, x_axis.min), x_axis.max), 9), round(y, 9)))
    if len(candidates) < 2:
        return None
    ordered = sorted(candidates)
    return ordered[0], ordered[-1]


def render_lines(plane: CoordinatePlane, lines: list[Line]) -> str:
    """Draw each line between its boundary intersections inside the plot clip."""
    parts = []
    for line in lines:
        ends = line_endpoints(line.equation, plane.x_axis, plane.y_axis)
        if ends is None:
            continue
        (x1, y1), (x2, y2) = ends
        px1, py1 = plane.to_svg(x1, y1)
        px2, py2 = plane.to_svg(x2, y2)
        dash = LINE_DASH if line.style == "dashed" else None
        parts.append(svg_line(px1, py1, px2, py2, line.color, 2, dash))
    if not parts:
        return ""
    return f'<g clip-path="url(#{plane.clip_id})">' + "".join(parts) + "</g>"


# ── Polygons and polylines ───────────────────────────────────────────────────

def render_polygons(plane: CoordinatePlane, polygons: list[Polygon],
                    point_map: dict[str, tuple[float, float]]) -> str:
    parts = []
    for i, poly in enumerate(polygons):
        coords = [resolve_point(point_map, vid, f"polygon {i}") for vid in poly.vertices]
        attr = points_attr(coords)
        if poly.isClosed:
            parts.append(
                f'<polygon points="{attr}" fill="{poly.fillColor}" '
                f'stroke="{poly.strokeColor}" stroke-width="2"/>'
            )
        else:
            parts.append(
                f'<polyline points="{attr}" fill="none" '
                f'stroke="{poly.strokeColor}" stroke-width="2"/>'
            )
        plane.extents.include(*(x for x, _ in coords))
        if poly.label:
            cx = sum(x for x, _ in coords) / len(coords)
            cy = sum(y for _, y in coords) / len(coords)
            parts.append(svg_text(cx, cy + 4, poly.label, color=poly.strokeColor, weight="bold"))
            plane.extents.include_text(cx, poly.label)
    return "".join(parts)


def render_polylines(plane: CoordinatePlane, polylines: list[Polyline]) -> str:
    parts = []
    for pl in polylines:
        coords = [plane.to_svg(p.x, p.y) for p in pl.points]
        dash = LINE_DASH if pl.style == "dashed" else None
        parts.append(
            f'<polyline points="{points_attr(coords)}" fill="none" '
            f'stroke="{pl.color}" stroke-width="2"{_dash_attr(dash)}/>'
        )
    if not parts:
        return ""
    return f'<g clip-path="url(#{plane.clip_id})">' + "".join(parts) + "</g>"


# ── Distances ────────────────────────────────────────────────────────────────

def render_distances(plane: CoordinatePlane, distances: list[Distance],
                     point_map: dict[str, tuple[float, float]],
                     model_points: dict[str, PlotPoint]) -> str:
    """Hypotenuse between two points, optional right-triangle legs and labels."""
    parts = []
    for i, d in enumerate(distances):
        context = f"distance {i}"
        x1, y1 = resolve_point(point_map, d.pointId1, context)
        x2, y2 = resolve_point(point_map, d.pointId2, context)
        dash = DISTANCE_DASH if d.style == "dashed" else None
        if d.showLegs:
            parts.append(svg_line(x1, y1, x2, y1, d.color, 1.5, DISTANCE_DASH))
            parts.append(svg_line(x2, y1, x2, y2, d.color, 1.5, DISTANCE_DASH))
            if d.showLegLabels:
                p1, p2 = model_points[d.pointId1], model_points[d.pointId2]
                run = format_number(abs(p2.x - p1.x))
                rise = format_number(abs(p2.y - p1.y))
                mx = (x1 + x2) / 2
                below = 16 if y1 >= y2 else -8
                parts.append(svg_text(mx, y1 + below, run, size=TICK_FONT_SIZE, color=d.color))
                parts.append(svg_text(x2 + 8, (y1 + y2) / 2 + 4, rise, size=TICK_FONT_SIZE,
                                      color=d.color, anchor="start"))
                plane.extents.include_text(mx, run, "middle", TICK_FONT_SIZE)
                plane.extents.include_text(x2 + 8, rise, "start", TICK_FONT_SIZE)
        parts.append(svg_line(x1, y1, x2, y2, d.color, 2, dash))
        plane.extents.include(x1, x2)
        if d.hypotenuseLabel:
            mx, my = (x1 + x2) / 2, (y1 + y2) / 2
            parts.append(svg_text(mx - 6, my - 6, d.hypotenuseLabel, color=d.color, anchor="end"))
            plane.extents.include_text(mx - 6, d.hypotenuseLabel, "end")
    return "".join(parts)


# ── Canvas sizing ────────────────────────────────────────────────────────────

def compute_dynamic_width(extents: Extents, nominal_width: float,
                          pad: float = AXIS_VIEWBOX_PADDING) -> tuple[float, float]:
    """Return (viewBox min-x, width) covering every touched pixel plus padding."""
    lo = min(0.0, extents.min_x - pad) if math.isfinite(extents.min_x) else 0.0
    hi = max(nominal_width, extents.max_x + pad) if math.isfinite(extents.max_x) else nominal_width
    return lo, hi - lo


def wrap_svg(parts: list[str], width: float, height: float, min_x: float = 0.0) -> str:
    head = (
        f'<svg xmlns="{SVG_NS}" width="{fmt(width)}" height="{fmt(height)}" '
        f'viewBox="{fmt(min_x)} 0 {fmt(width)} {fmt(height)}">'
    )
    return head + "".join(parts) + "</svg>"


def finalize_plane(plane: CoordinatePlane, parts: list[str]) -> str:
    min_x, width = compute_dynamic_width(plane.extents, plane.width)
    return wrap_svg(parts, width, plane.height, min_x)


# ── Pixel-space diagrams ─────────────────────────────────────────────────────

@dataclass
class Bounds:
    """2D pixel bounds for diagrams whose viewBox is fitted to their content."""

    min_x: float = math.inf
    min_y: float = math.inf
    max_x: float = -math.inf
    max_y: float = -math.inf

    def include(self, x: float, y: float, margin: float = 0.0) -> None:
        self.min_x = min(self.min_x, x - margin)
        self.min_y = min(self.min_y, y - margin)
        self.max_x = max(self.max_x, x + margin)
        self.max_y = max(self.max_y, y + margin)

    def include_text(self, x: float, y: float, text: str, anchor: str = "middle",
                     size: float = LABEL_FONT_SIZE) -> None:
        w = text_width(text, size)
        left = {"start": x, "end": x - w}.get(anchor, x - w / 2)
        self.include(left, y - size)
        self.include(left + w, y + size / 3)


def wrap_fitted(parts: list[str], width: float, height: float, bounds: Bounds, pad: float) -> str:
    """Wrap at the nominal size with a viewBox covering ``bounds`` plus padding."""
    check_canvas(width, height)
    if not math.isfinite(bounds.min_x):
        return wrap_svg(parts, width, height)
    x0, y0 = bounds.min_x - pad, bounds.min_y - pad
    w = bounds.max_x - bounds.min_x + 2 * pad
    h = bounds.max_y - bounds.min_y + 2 * pad
    head = (
        f'<svg xmlns="{SVG_NS}" width="{fmt(width)}" height="{fmt(height)}" '
        f'viewBox="{fmt(x0)} {fmt(y0)} {fmt(w)} {fmt(h)}">'
    )
    return head + "".join(parts) + "</svg>"


def unit_vector(origin: tuple[float, float], target: tuple[float, float]) -> tuple[float, float]:
    dx, dy = target[0] - origin[0], target[1] - origin[1]
    length = math.hypot(dx, dy)
    if length < _EPS:
        raise InvalidDimensions(f"points {origin} and {target} coincide")
    return dx / length, dy / length


def angle_marker(vertex, first, second, radius: float, color: str, right_angle: bool) -> str:
    """Square corner for right angles, otherwise the minor arc between the two arms."""
    u1 = unit_vector(vertex, first)
    u2 = unit_vector(vertex, second)
    vx, vy = vertex
    if right_angle:
        s = RIGHT_ANGLE_SIZE
        a = (vx + u1[0] * s, vy + u1[1] * s)
        b = (vx + (u1[0] + u2[0]) * s, vy + (u1[1] + u2[1]) * s)
        c = (vx + u2[0] * s, vy + u2[1] * s)
        d = f"M {fmt(a[0])} {fmt(a[1])} L {fmt(b[0])} {fmt(b[1])} L {fmt(c[0])} {fmt(c[1])}"
    else:
        start = (vx + u1[0] * radius, vy + u1[1] * radius)
        end = (vx + u2[0] * radius, vy + u2[1] * radius)
        # +y is down, so a positive cross product is a clockwise turn
        sweep = 1 if u1[0] * u2[1] - u1[1] * u2[0] > 0 else 0
        d = (
            f"M {fmt(start[0])} {fmt(start[1])} "
            f"A {fmt(radius)} {fmt(radius)} 0 0 {sweep} {fmt(end[0])} {fmt(end[1])}"
        )
    return f'<path d="{d}" fill="none" stroke="{color}" stroke-width="2"/>'


def bisector_point(vertex, first, second, distance: float) -> tuple[float, float]:
    """Point ``distance`` along the bisector of the angle first-vertex-second."""
    u1 = unit_vector(vertex, first)
    u2 = unit_vector(vertex, second)
    bx, by = u1[0] + u2[0], u1[1] + u2[1]
    length = math.hypot(bx, by)
    if length < _EPS:
        # straight angle: go perpendicular to the arms
        bx, by, length = -u1[1], u1[0], 1.0
    return vertex[0] + bx / length * distance, vertex[1] + by / length * distance
