"""
Widget dispatcher.

Routes a validated, tagged widget model to its renderer and returns a
markup fragment. Renderers are pure: identical input yields
byte-identical output.
"""

from __future__ import annotations

import importlib
import logging
from functools import lru_cache
from typing import Callable

from qticraft.core.errors import QtiCraftError, UnknownWidgetType

logger = logging.getLogger("qticraft.widgets")

_RENDERERS = "qticraft.widgets.renderers"

# widget tag -> "module:function"
RENDERER_REGISTRY: dict[str, str] = {
    "coordinatePlane": f"{_RENDERERS}.coordinate_plane:render_coordinate_plane",
    "pointPlotGraph": f"{_RENDERERS}.coordinate_plane:render_point_plot_graph",
    "lineEquationGraph": f"{_RENDERERS}.coordinate_plane:render_line_equation_graph",
    "polygonGraph": f"{_RENDERERS}.coordinate_plane:render_polygon_graph",
    "distanceFormulaGraph": f"{_RENDERERS}.coordinate_plane:render_distance_formula_graph",
    "functionPlotGraph": f"{_RENDERERS}.coordinate_plane:render_function_plot_graph",
    "scatterPlot": f"{_RENDERERS}.coordinate_plane:render_scatter_plot",
    "parabolaGraph": f"{_RENDERERS}.coordinate_plane:render_parabola_graph",
    "numberLine": f"{_RENDERERS}.number_line:render_number_line",
    "inequalityNumberLine": f"{_RENDERERS}.number_line:render_inequality_number_line",
    "fractionNumberLine": f"{_RENDERERS}.number_line:render_fraction_number_line",
    "doubleNumberLine": f"{_RENDERERS}.number_line:render_double_number_line",
    "barChart": f"{_RENDERERS}.charts:render_bar_chart",
    "histogram": f"{_RENDERERS}.charts:render_histogram",
    "dotPlot": f"{_RENDERERS}.charts:render_dot_plot",
    "boxPlot": f"{_RENDERERS}.charts:render_box_plot",
    "lineGraph": f"{_RENDERERS}.charts:render_line_graph",
    "pieChart": f"{_RENDERERS}.part_whole:render_pie_chart",
    "probabilitySpinner": f"{_RENDERERS}.part_whole:render_probability_spinner",
    "tapeDiagram": f"{_RENDERERS}.part_whole:render_tape_diagram",
    "angleDiagram": f"{_RENDERERS}.geometry_diagrams:render_angle_diagram",
    "triangleDiagram": f"{_RENDERERS}.geometry_diagrams:render_triangle_diagram",
    "circleDiagram": f"{_RENDERERS}.geometry_diagrams:render_circle_diagram",
    "treeDiagram": f"{_RENDERERS}.geometry_diagrams:render_tree_diagram",
    "dataTable": f"{_RENDERERS}.data_table:render_data_table",
}

# Widgets whose fragment is HTML rather than SVG
HTML_WIDGET_TYPES = frozenset({"dataTable"})


@lru_cache(maxsize=None)
def _load_renderer(widget_type: str) -> Callable:
    """Dynamically load a renderer function by widget tag."""
    if widget_type not in RENDERER_REGISTRY:
        raise UnknownWidgetType(f"no renderer registered for widget type '{widget_type}'")
    module_path, func_name = RENDERER_REGISTRY[widget_type].rsplit(":", 1)
    mod = importlib.import_module(module_path)
    return getattr(mod, func_name)


def is_html_widget(widget_type: str) -> bool:
    return widget_type in HTML_WIDGET_TYPES


def render_widget(widget) -> str:
    """Render one schema-validated widget to its SVG or HTML fragment."""
    renderer = _load_renderer(widget.type)
    return renderer(widget)


def render_widgets(widgets: dict) -> tuple[dict[str, str], list[dict]]:
    """Render every widget keyed by slot name.

    A failing widget aborts only itself. Returns (fragments, errors) where
    each error is {"slot", "code", "detail"}.
    """
    fragments: dict[str, str] = {}
    errors: list[dict] = []
    for slot, widget in widgets.items():
        try:
            fragments[slot] = render_widget(widget)
        except QtiCraftError as e:
            logger.warning("widget %s (%s) failed: %s", slot, widget.type, e)
            errors.append({
                "slot": slot,
                "code": type(e).__name__,
                "detail": f"{slot}: {widget.type} raised {type(e).__name__}: {e}",
            })
    return fragments, errors


def registry_consistency() -> dict[str, set[str]]:
    """Tags missing from one of schema registry, dispatcher and prompt enumeration.

    Every value is empty when the three call sites agree.
    """
    from qticraft.models.widgets import WIDGET_SCHEMAS
    from qticraft.prompts.widget_mapping import PROMPT_WIDGET_TYPES

    schemas = set(WIDGET_SCHEMAS)
    dispatch = set(RENDERER_REGISTRY)
    prompts = set(PROMPT_WIDGET_TYPES)
    return {
        "missing_renderer": schemas - dispatch,
        "missing_prompt": schemas - prompts,
        "missing_schema": (dispatch | prompts) - schemas,
    }
