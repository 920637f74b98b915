"""
Coordinate-plane family renderers.

Every widget in this family shares one paint order so markers are never
hidden: background (grid, axes, ticks) -> polygons -> distances -> lines
-> polylines -> points.
"""

from __future__ import annotations

from qticraft.models.geometry import Coordinate, Polyline
from qticraft.widgets.geometry import (
    build_plane,
    build_point_map,
    content_id,
    finalize_plane,
    render_background,
    render_distances,
    render_lines,
    render_points,
    render_polygons,
    render_polylines,
)


def _render_plane(widget, *, lines=(), polygons=(), polylines=(), distances=()) -> str:
    plane = build_plane(
        widget.width,
        widget.height,
        widget.xAxis,
        widget.yAxis,
        clip_id=content_id("clip", widget.model_dump_json()),
    )
    point_map = build_point_map(plane, widget.points)
    model_points = {p.id: p for p in widget.points}

    parts = [render_background(plane, widget.showQuadrantLabels)]
    parts.append(render_polygons(plane, list(polygons), point_map))
    parts.append(render_distances(plane, list(distances), point_map, model_points))
    parts.append(render_lines(plane, list(lines)))
    parts.append(render_polylines(plane, list(polylines)))
    parts.append(render_points(plane, widget.points))
    return finalize_plane(plane, parts)


def render_coordinate_plane(widget) -> str:
    return _render_plane(
        widget,
        lines=widget.lines,
        polygons=widget.polygons,
        polylines=widget.polylines,
        distances=widget.distances,
    )


def render_point_plot_graph(widget) -> str:
    return _render_plane(widget)


def render_line_equation_graph(widget) -> str:
    return _render_plane(widget, lines=widget.lines)


def render_polygon_graph(widget) -> str:
    return _render_plane(widget, polygons=widget.polygons)


def render_distance_formula_graph(widget) -> str:
    return _render_plane(widget, distances=widget.distances)


def render_function_plot_graph(widget) -> str:
    return _render_plane(widget, polylines=widget.polylines)


def render_scatter_plot(widget) -> str:
    """Scatter points with optional trend lines drawn beneath them."""
    return _render_plane(widget, lines=widget.trendLines)


PARABOLA_STEPS = 200


def parabola_points(widget) -> list[Coordinate]:
    """Sample y = a(x - h)^2 + k across the x range, keeping the first quadrant."""
    p = widget.parabola
    h, k = p.vertex.x, p.vertex.y
    a = (p.yIntercept - k) / (h * h)
    lo, hi = widget.xAxis.min, widget.xAxis.max
    coords = []
    for i in range(PARABOLA_STEPS + 1):
        x = lo + (hi - lo) * i / PARABOLA_STEPS
        y = a * (x - h) ** 2 + k
        if x >= 0 and y >= 0:
            coords.append(Coordinate(x=x, y=y))
    return coords


def render_parabola_graph(widget) -> str:
    coords = parabola_points(widget)
    curves = []
    if len(coords) >= 2:
        p = widget.parabola
        curves.append(Polyline(id="parabola", points=coords, color=p.color, style=p.style))
    return _render_plane(widget, polylines=curves)
