"""Tests for the geometry kernel: transforms, ticks, lines, clipping, sizing."""
import math
import re

import pytest

from qticraft.core.errors import InvalidDimensions, UnknownPointReference
from qticraft.models.geometry import AxisOptions, Line, PlotPoint, Polygon
from qticraft.models.widgets import parse_widget
from qticraft.widgets.geometry import (
    Extents,
    LinearScale,
    build_plane,
    build_point_map,
    compute_dynamic_width,
    fmt,
    format_pi_label,
    line_endpoints,
    render_lines,
    render_polygons,
    tick_values,
)
from qticraft.widgets.registry import render_widget


# ── Helper builders ───────────────────────────────────────────────────────────

def _axis(lo=-10, hi=10, tick=1, **kw) -> AxisOptions:
    return AxisOptions(min=lo, max=hi, tickInterval=tick, **kw)


def _plane(width=400, height=400, x=None, y=None):
    return build_plane(width, height, x or _axis(), y or _axis(), clip_id="clip-test")


def _line(equation: dict, **kw) -> Line:
    return Line.model_validate({"id": "l1", "equation": equation, **kw})


# ── Axis transform ────────────────────────────────────────────────────────────

class TestAxisTransform:
    def test_midpoint_maps_to_half_plot_width(self):
        plane = _plane(x=_axis(0, 10), y=_axis(0, 10))
        assert plane.to_svg_x(5) == plane.pad_left + 0.5 * plane.plot_width

    def test_y_axis_is_inverted(self):
        plane = _plane(x=_axis(0, 10), y=_axis(0, 10))
        assert plane.to_svg_y(10) == plane.pad_top
        assert plane.to_svg_y(0) == plane.pad_top + plane.plot_height

    def test_in_range_points_stay_inside_plot(self):
        plane = _plane(width=420, height=300, x=_axis(-3, 7), y=_axis(-50, 25, 5))
        for i in range(11):
            for j in range(11):
                x = -3 + i * 1.0
                y = -50 + j * 7.5
                px, py = plane.to_svg(x, y)
                assert plane.pad_left - 1e-9 <= px <= plane.pad_left + plane.plot_width + 1e-9
                assert plane.pad_top - 1e-9 <= py <= plane.pad_top + plane.plot_height + 1e-9

    def test_linear_scale_maps_endpoints(self):
        scale = LinearScale(0, 4, 30, 430)
        assert scale(0) == 30
        assert scale(4) == 430
        assert scale(1) == 130


# ── Dimension checks ──────────────────────────────────────────────────────────

class TestDimensions:
    def test_zero_width_rejected(self):
        with pytest.raises(InvalidDimensions):
            _plane(width=0)

    def test_negative_height_rejected(self):
        with pytest.raises(InvalidDimensions):
            _plane(height=-10)

    def test_inverted_axis_rejected(self):
        with pytest.raises(InvalidDimensions):
            _plane(x=_axis(5, -5))

    def test_degenerate_axis_rejected(self):
        with pytest.raises(InvalidDimensions):
            _plane(y=_axis(3, 3))

    def test_canvas_smaller_than_padding_rejected(self):
        with pytest.raises(InvalidDimensions):
            _plane(width=60, height=60)

    def test_widget_render_raises_invalid_dimensions(self):
        widget = parse_widget({
            "type": "pointPlotGraph",
            "xAxis": {"min": 10, "max": 0, "tickInterval": 1},
            "yAxis": {"min": 0, "max": 10, "tickInterval": 1},
        })
        with pytest.raises(InvalidDimensions):
            render_widget(widget)


# ── Ticks and labels ──────────────────────────────────────────────────────────

class TestTicks:
    def test_half_steps(self):
        assert tick_values(-1, 1, 0.5) == [-1.0, -0.5, 0.0, 0.5, 1.0]

    def test_range_not_aligned_to_interval(self):
        assert tick_values(0.3, 2.9, 1) == [1.0, 2.0]

    def test_non_positive_interval_rejected(self):
        with pytest.raises(InvalidDimensions):
            tick_values(0, 1, 0)

    @pytest.mark.parametrize("value, label", [
        (math.pi, "π"),
        (-math.pi, "-π"),
        (math.pi / 2, "π/2"),
        (3 * math.pi / 4, "3π/4"),
        (2 * math.pi, "2π"),
        (2, "2"),
        (0.5, "0.5"),
        (0, "0"),
    ])
    def test_pi_labels(self, value, label):
        assert format_pi_label(value) == label

    def test_fmt_is_compact_and_stable(self):
        assert fmt(210.0) == "210"
        assert fmt(2.5) == "2.5"
        assert fmt(3.14159) == "3.14"
        assert fmt(-0.001) == "0"


# ── Line normalization ────────────────────────────────────────────────────────

class TestLineEndpoints:
    def test_diagonal_slope_intercept(self):
        eq = _line({"type": "slopeIntercept", "slope": 1, "yIntercept": 0}).equation
        assert line_endpoints(eq, _axis(), _axis()) == ((-10, -10), (10, 10))

    def test_steep_line_hits_top_and_bottom(self):
        eq = _line({"type": "slopeIntercept", "slope": 2, "yIntercept": 1}).equation
        assert line_endpoints(eq, _axis(), _axis()) == ((-5.5, -10), (4.5, 10))

    def test_vertical_standard_form(self):
        eq = _line({"type": "standard", "A": 1, "B": 0, "C": 3}).equation
        assert line_endpoints(eq, _axis(), _axis()) == ((3, -10), (3, 10))

    def test_horizontal_point_slope(self):
        eq = _line({"type": "pointSlope", "x1": 2, "y1": 3, "slope": 0}).equation
        assert line_endpoints(eq, _axis(), _axis()) == ((-10, 3), (10, 3))

    def test_line_outside_window_is_none(self):
        eq = _line({"type": "slopeIntercept", "slope": 1, "yIntercept": 100}).equation
        assert line_endpoints(eq, _axis(), _axis()) is None

    def test_degenerate_standard_form_rejected_by_schema(self):
        with pytest.raises(ValueError):
            _line({"type": "standard", "A": 0, "B": 0, "C": 1})


# ── Line clipping ─────────────────────────────────────────────────────────────

class TestLineClip:
    def test_lines_are_inside_clip_group(self):
        plane = _plane()
        svg = render_lines(plane, [_line({"type": "slopeIntercept", "slope": 5, "yIntercept": 2})])
        assert svg.startswith('<g clip-path="url(#clip-test)">')
        assert svg.endswith("</g>")

    def test_visible_segment_stays_in_plot_rectangle(self):
        plane = _plane()
        lines = [
            _line({"type": "slopeIntercept", "slope": 5, "yIntercept": 2}),
            _line({"type": "standard", "A": 3, "B": -7, "C": 40}),
            _line({"type": "pointSlope", "x1": -30, "y1": 40, "slope": -1.5}),
        ]
        svg = render_lines(plane, lines)
        coords = re.findall(r'x1="([-\d.]+)" y1="([-\d.]+)" x2="([-\d.]+)" y2="([-\d.]+)"', svg)
        assert len(coords) == 3
        for x1, y1, x2, y2 in coords:
            for px in (float(x1), float(x2)):
                assert plane.pad_left - 0.01 <= px <= plane.plot_right + 0.01
            for py in (float(y1), float(y2)):
                assert plane.pad_top - 0.01 <= py <= plane.plot_bottom + 0.01

    def test_dashed_line_dash_pattern(self):
        svg = render_lines(_plane(), [_line({"type": "slopeIntercept", "slope": 1, "yIntercept": 0}, style="dashed")])
        assert 'stroke-dasharray="5 3"' in svg

    def test_missing_line_renders_nothing(self):
        svg = render_lines(_plane(), [_line({"type": "slopeIntercept", "slope": 0, "yIntercept": 50})])
        assert svg == ""


# ── Point references ──────────────────────────────────────────────────────────

class TestPointReferences:
    def test_polygon_with_unknown_vertex_raises(self):
        plane = _plane()
        point_map = build_point_map(plane, [PlotPoint(id="A", x=0, y=0)])
        with pytest.raises(UnknownPointReference) as exc:
            render_polygons(plane, [Polygon(vertices=["A", "Z"])], point_map)
        assert exc.value.point_id == "Z"

    def test_polygon_uses_point_map_coordinates(self):
        plane = _plane()
        points = [PlotPoint(id="A", x=0, y=0), PlotPoint(id="B", x=10, y=0), PlotPoint(id="C", x=0, y=10)]
        svg = render_polygons(plane, [Polygon(vertices=["A", "B", "C"])], build_point_map(plane, points))
        ax, ay = plane.to_svg(0, 0)
        assert f'points="{fmt(ax)},{fmt(ay)} ' in svg

    def test_distance_with_unknown_point_raises_through_dispatcher(self):
        widget = parse_widget({
            "type": "distanceFormulaGraph",
            "xAxis": {"min": -5, "max": 5, "tickInterval": 1},
            "yAxis": {"min": -5, "max": 5, "tickInterval": 1},
            "points": [{"id": "P", "x": 1, "y": 1}],
            "distances": [{"pointId1": "P", "pointId2": "Q"}],
        })
        with pytest.raises(UnknownPointReference):
            render_widget(widget)


# ── Dynamic sizing ────────────────────────────────────────────────────────────

class TestDynamicWidth:
    def test_extents_beyond_canvas_grow_viewbox(self):
        ext = Extents()
        ext.include(-20, 450)
        assert compute_dynamic_width(ext, 400, pad=10) == (-30.0, 490.0)

    def test_untouched_extents_keep_nominal_width(self):
        assert compute_dynamic_width(Extents(), 400) == (0.0, 400)

    def test_long_point_label_widens_svg(self):
        widget = parse_widget({
            "type": "pointPlotGraph",
            "xAxis": {"min": 0, "max": 10, "tickInterval": 1},
            "yAxis": {"min": 0, "max": 10, "tickInterval": 1},
            "points": [{"id": "A", "x": 10, "y": 5, "label": "a rather long label for this point"}],
        })
        svg = render_widget(widget)
        width = float(re.search(r'<svg[^>]* width="([\d.]+)"', svg).group(1))
        assert width > 400
