"""
Deterministic SVG renderers for pixel-space geometry diagrams.

angleDiagram: points joined by rays, with arc or right-angle marks.
triangleDiagram: outline, side labels and tick marks, angle marks,
    internal lines and shaded regions.
circleDiagram: circle, semicircle or quarter circle with radii,
    diameters, sectors and arcs.
treeDiagram: labelled nodes joined by solid or dashed edges.

Angle, triangle and tree diagrams place points in canvas pixels and fit
the viewBox to what they draw. The circle diagram scales its model
radius to the canvas.
"""

from __future__ import annotations

import math

from qticraft.core.errors import InvalidDimensions
from qticraft.widgets.geometry import (
    DOTTED_DASH,
    LINE_DASH,
    Bounds,
    angle_marker,
    bisector_point,
    check_canvas,
    fmt,
    points_attr,
    resolve_point,
    svg_circle,
    svg_line,
    svg_text,
    unit_vector,
    wrap_fitted,
    wrap_svg,
)

# ─── Shared constants ────────────────────────────────────────────────
VIEW_PAD = 20
POINT_R = 4
STROKE = "black"
LABEL_FONT = 14
LABEL_COLOR = "#333333"
LABEL_GAP = 15
TICK_HALF = 5
TICK_SPACING = 4
RIGHT_ANGLE_LABEL_DISTANCE = 20
CIRCLE_MARGIN = 10


def _point_map(points) -> dict[str, tuple[float, float]]:
    return {p.id: (p.x, p.y) for p in points}


def _labelled_points(points, bounds: Bounds, away_from: tuple[float, float] | None = None) -> list[str]:
    """Black dots with labels, pushed away from ``away_from`` when given."""
    parts = []
    for p in points:
        parts.append(svg_circle(p.x, p.y, POINT_R, STROKE))
        bounds.include(p.x, p.y, POINT_R)
        if not p.label:
            continue
        if away_from is not None and (p.x, p.y) != away_from:
            ux, uy = unit_vector(away_from, (p.x, p.y))
            lx, ly = p.x + ux * LABEL_GAP, p.y + uy * LABEL_GAP + LABEL_FONT / 3
            anchor = "middle"
        else:
            lx, ly, anchor = p.x + 5, p.y - 5, "start"
        parts.append(svg_text(lx, ly, p.label, size=LABEL_FONT, anchor=anchor, weight="bold"))
        bounds.include_text(lx, ly, p.label, anchor, LABEL_FONT)
    return parts


def _angle_label(vertex, first, second, label: str, distance: float, color: str, bounds: Bounds) -> str:
    lx, ly = bisector_point(vertex, first, second, distance)
    ly += LABEL_FONT / 3
    bounds.include_text(lx, ly, label, "middle", LABEL_FONT)
    return svg_text(lx, ly, label, size=LABEL_FONT, color=color)


# ─── angleDiagram ────────────────────────────────────────────────────

def render_angle_diagram(widget) -> str:
    check_canvas(widget.width, widget.height)
    pm = _point_map(widget.points)
    bounds = Bounds()
    parts: list[str] = []

    for i, ray in enumerate(widget.rays):
        x1, y1 = resolve_point(pm, ray.start, f"ray {i}")
        x2, y2 = resolve_point(pm, ray.end, f"ray {i}")
        parts.append(svg_line(x1, y1, x2, y2, STROKE, 2))

    for i, angle in enumerate(widget.angles):
        first, vertex, second = (resolve_point(pm, pid, f"angle {i}") for pid in angle.vertices)
        parts.append(angle_marker(vertex, first, second, angle.radius, angle.color, angle.isRightAngle))
        if angle.label:
            distance = RIGHT_ANGLE_LABEL_DISTANCE if angle.isRightAngle else angle.radius * 1.3
            parts.append(_angle_label(vertex, first, second, angle.label, distance, angle.color, bounds))

    parts += _labelled_points(widget.points, bounds)
    return wrap_fitted(parts, widget.width, widget.height, bounds, VIEW_PAD)


# ─── triangleDiagram ─────────────────────────────────────────────────

def _tick_marks(p1, p2, count: int) -> list[str]:
    """Congruence ticks across the midpoint of a side."""
    ux, uy = unit_vector(p1, p2)
    nx, ny = -uy, ux
    mx, my = (p1[0] + p2[0]) / 2, (p1[1] + p2[1]) / 2
    parts = []
    for k in range(count):
        offset = (k - (count - 1) / 2) * TICK_SPACING
        cx, cy = mx + ux * offset, my + uy * offset
        parts.append(svg_line(cx - nx * TICK_HALF, cy - ny * TICK_HALF,
                              cx + nx * TICK_HALF, cy + ny * TICK_HALF, STROKE, 1.5))
    return parts


def render_triangle_diagram(widget) -> str:
    check_canvas(widget.width, widget.height)
    pm = _point_map(widget.points)
    # the first three points are the triangle; the rest are extra marks
    corners = [(p.x, p.y) for p in widget.points[:3]]
    centroid = (sum(x for x, _ in corners) / 3, sum(y for _, y in corners) / 3)
    bounds = Bounds()
    parts: list[str] = []

    for i, region in enumerate(widget.shadedRegions):
        coords = [resolve_point(pm, pid, f"shaded region {i}") for pid in region.vertices]
        parts.append(f'<polygon points="{points_attr(coords)}" fill="{region.color}" stroke="none"/>')

    parts.append(f'<polygon points="{points_attr(corners)}" fill="none" stroke="{STROKE}" stroke-width="2"/>')

    for i, line in enumerate(widget.internalLines):
        x1, y1 = resolve_point(pm, line.start, f"internal line {i}")
        x2, y2 = resolve_point(pm, line.end, f"internal line {i}")
        dash = {"dashed": LINE_DASH, "dotted": DOTTED_DASH}.get(line.style)
        parts.append(svg_line(x1, y1, x2, y2, STROKE, 1.5, dash))

    for i, side in enumerate(widget.sides):
        p1 = resolve_point(pm, side.vertex1, f"side {i}")
        p2 = resolve_point(pm, side.vertex2, f"side {i}")
        parts += _tick_marks(p1, p2, side.tickMarks)
        if side.label:
            mid = ((p1[0] + p2[0]) / 2, (p1[1] + p2[1]) / 2)
            if mid == centroid:
                lx, ly = mid
            else:
                ux, uy = unit_vector(centroid, mid)
                lx, ly = mid[0] + ux * LABEL_GAP, mid[1] + uy * LABEL_GAP
            ly += LABEL_FONT / 3
            parts.append(svg_text(lx, ly, side.label, size=LABEL_FONT, color=LABEL_COLOR))
            bounds.include_text(lx, ly, side.label, "middle", LABEL_FONT)

    for i, angle in enumerate(widget.angles):
        context = f"angle {i}"
        first = resolve_point(pm, angle.pointOnFirstRay, context)
        vertex = resolve_point(pm, angle.vertex, context)
        second = resolve_point(pm, angle.pointOnSecondRay, context)
        if angle.isRightAngle or angle.showArc:
            parts.append(angle_marker(vertex, first, second, angle.radius, angle.color, angle.isRightAngle))
        if angle.label:
            distance = RIGHT_ANGLE_LABEL_DISTANCE if angle.isRightAngle else angle.radius * 1.3
            parts.append(_angle_label(vertex, first, second, angle.label, distance, angle.color, bounds))

    parts += _labelled_points(widget.points, bounds, away_from=centroid)
    return wrap_fitted(parts, widget.width, widget.height, bounds, VIEW_PAD)


# ─── circleDiagram ───────────────────────────────────────────────────

def render_circle_diagram(widget) -> str:
    check_canvas(widget.width, widget.height)
    cx, cy = widget.width / 2, widget.height / 2
    r = min(cx, cy) - CIRCLE_MARGIN
    if r <= 0:
        raise InvalidDimensions(f"canvas {widget.width}x{widget.height} leaves no room for the circle")
    scale = r / widget.radius

    def on_circle(angle_deg: float, radius: float) -> tuple[float, float]:
        t = math.radians(angle_deg)
        return cx + radius * math.cos(t), cy + radius * math.sin(t)

    def clamp_label(x: float, y: float) -> tuple[float, float]:
        return (min(max(x, LABEL_GAP), widget.width - LABEL_GAP),
                min(max(y, LABEL_GAP), widget.height - LABEL_GAP))

    def arc(start: float, end: float) -> tuple[str, tuple[float, float]]:
        (x1, y1), (x2, y2) = on_circle(start, r), on_circle(end, r)
        large = 1 if abs(end - start) > 180 else 0
        return f"A {fmt(r)} {fmt(r)} 0 {large} 1 {fmt(x2)} {fmt(y2)}", (x1, y1)

    parts: list[str] = []
    inner = widget.innerRadius * scale if widget.innerRadius and widget.shape == "circle" else None

    if inner and widget.annulusFillColor:
        parts.append(
            f'<path d="M {fmt(cx - r)} {fmt(cy)} a {fmt(r)} {fmt(r)} 0 1 0 {fmt(2 * r)} 0 '
            f'a {fmt(r)} {fmt(r)} 0 1 0 {fmt(-2 * r)} 0 '
            f'M {fmt(cx - inner)} {fmt(cy)} a {fmt(inner)} {fmt(inner)} 0 1 0 {fmt(2 * inner)} 0 '
            f'a {fmt(inner)} {fmt(inner)} 0 1 0 {fmt(-2 * inner)} 0" '
            f'fill="{widget.annulusFillColor}" fill-rule="evenodd"/>'
        )

    for sector in widget.sectors:
        arc_cmd, (x1, y1) = arc(sector.startAngle, sector.endAngle)
        parts.append(
            f'<path d="M {fmt(cx)} {fmt(cy)} L {fmt(x1)} {fmt(y1)} {arc_cmd} Z" '
            f'fill="{sector.fillColor}" stroke="none"/>'
        )
        if sector.showRightAngleMarker and abs(abs(sector.endAngle - sector.startAngle) - 90) < 0.1:
            size = min(r, 20) * 0.8
            p1 = on_circle(sector.startAngle, size)
            p2 = on_circle(sector.startAngle + 45, size * math.sqrt(2))
            p3 = on_circle(sector.endAngle, size)
            parts.append(
                f'<path d="M {fmt(p1[0])} {fmt(p1[1])} L {fmt(p2[0])} {fmt(p2[1])} '
                f'L {fmt(p3[0])} {fmt(p3[1])}" fill="none" stroke="{STROKE}" stroke-width="1.5"/>'
            )
        if sector.label:
            lx, ly = on_circle((sector.startAngle + sector.endAngle) / 2, r * 0.6)
            parts.append(svg_text(lx, ly + 4, sector.label, size=12, color=LABEL_COLOR))

    outline = f'fill="{widget.fillColor}" stroke="{widget.strokeColor}" stroke-width="2"'
    if widget.shape == "semicircle":
        arc_cmd, (x1, y1) = arc(widget.rotation, widget.rotation + 180)
        parts.append(f'<path d="M {fmt(x1)} {fmt(y1)} {arc_cmd} Z" {outline}/>')
    elif widget.shape == "quarter-circle":
        arc_cmd, (x1, y1) = arc(widget.rotation, widget.rotation + 90)
        parts.append(f'<path d="M {fmt(cx)} {fmt(cy)} L {fmt(x1)} {fmt(y1)} {arc_cmd} Z" {outline}/>')
    else:
        parts.append(f'<circle cx="{fmt(cx)}" cy="{fmt(cy)}" r="{fmt(r)}" {outline}/>')
    if inner:
        parts.append(svg_circle(cx, cy, inner, "white", STROKE, 2))

    for a in widget.arcs:
        arc_cmd, (x1, y1) = arc(a.startAngle, a.endAngle)
        parts.append(f'<path d="M {fmt(x1)} {fmt(y1)} {arc_cmd}" fill="none" stroke="{a.strokeColor}" stroke-width="3"/>')
        if a.label:
            lx, ly = clamp_label(*on_circle((a.startAngle + a.endAngle) / 2, r + LABEL_GAP))
            parts.append(svg_text(lx, ly + 4, a.label, size=LABEL_FONT, color=LABEL_COLOR, weight="bold"))

    for seg in widget.segments:
        x2, y2 = on_circle(seg.angle, r)
        x1, y1 = on_circle(seg.angle + 180, r) if seg.type == "diameter" else (cx, cy)
        parts.append(svg_line(x1, y1, x2, y2, seg.color, 2))
        if seg.label:
            start = inner or 0.0
            mx, my = on_circle(seg.angle, start + (r - start) / 2)
            t = math.radians(seg.angle)
            lx, ly = clamp_label(mx - math.sin(t) * 10, my + math.cos(t) * 10)
            parts.append(svg_text(lx, ly + 4, seg.label, size=13, color=LABEL_COLOR))

    if widget.showCenterDot:
        parts.append(svg_circle(cx, cy, 3, STROKE))
    if widget.areaLabel:
        parts.append(svg_text(cx, cy - 6, widget.areaLabel, size=16, color=LABEL_COLOR, weight="bold"))
    return wrap_svg(parts, widget.width, widget.height)


# ─── treeDiagram ─────────────────────────────────────────────────────

def render_tree_diagram(widget) -> str:
    check_canvas(widget.width, widget.height)
    positions = {n.id: (n.position.x, n.position.y) for n in widget.nodes}
    r = widget.nodeRadius
    bounds = Bounds()
    parts: list[str] = []

    for i, edge in enumerate(widget.edges):
        x1, y1 = resolve_point(positions, edge.start, f"edge {i}")
        x2, y2 = resolve_point(positions, edge.end, f"edge {i}")
        dash = LINE_DASH if edge.style == "dashed" else None
        parts.append(svg_line(x1, y1, x2, y2, STROKE, 2, dash))

    for node in widget.nodes:
        x, y = node.position.x, node.position.y
        if node.style == "circled":
            parts.append(svg_circle(x, y, r, "white", node.color, 2))
        else:
            parts.append(svg_circle(x, y, r, "white"))
        parts.append(svg_text(x, y + widget.nodeFontSize / 3, node.label,
                              size=widget.nodeFontSize, color=node.color))
        bounds.include(x, y, r)
    return wrap_fitted(parts, widget.width, widget.height, bounds, VIEW_PAD)
