"""Prompt templates for structured-output item generation.

The widget tags listed here are the only ones the model may emit. They
must stay set-equal to the schema registry and the renderer registry.
"""
import json
import logging

from pydantic import TypeAdapter

from qticraft.models.assessment import AssessmentItemInput
from qticraft.models.widgets import WIDGET_SCHEMAS

logger = logging.getLogger("qticraft.prompts")

PROMPT_WIDGET_TYPES: dict[str, str] = {
    "coordinatePlane": "Full coordinate plane with points, lines, polygons, polylines and distances.",
    "pointPlotGraph": "Coordinate plane showing plotted points only.",
    "lineEquationGraph": "Coordinate plane graphing one or more linear equations.",
    "polygonGraph": "Coordinate plane with polygons joined through named points.",
    "distanceFormulaGraph": "Coordinate plane showing the distance between two points with legs.",
    "functionPlotGraph": "Coordinate plane with function curves given as sampled points.",
    "scatterPlot": "Scatter plot of data points with optional trend lines.",
    "parabolaGraph": "First-quadrant coordinate plane with a downward-opening parabola (projectile path).",
    "numberLine": "Horizontal number line with ticks and labelled points.",
    "inequalityNumberLine": "Number line shading the solution set of an inequality.",
    "fractionNumberLine": "Number line partitioned into fractional parts.",
    "doubleNumberLine": "Two aligned number lines showing equivalent ratios.",
    "barChart": "Vertical bar chart of labelled categories.",
    "histogram": "Histogram of frequencies over adjacent bins.",
    "dotPlot": "Dot plot stacking one dot per observation.",
    "boxPlot": "Box-and-whisker plot of a five-number summary.",
    "lineGraph": "Line graph of one or more series over categories, with an optional right axis.",
    "pieChart": "Pie chart of proportional slices with a legend.",
    "probabilitySpinner": "Spinner split into equal labelled sectors.",
    "tapeDiagram": "Tape (bar) model comparing quantities as segments.",
    "angleDiagram": "Points joined by rays with marked and labelled angles.",
    "triangleDiagram": "Triangle with labelled sides, tick marks, angle marks, internal lines and shading.",
    "circleDiagram": "Circle, semicircle or quarter circle with radii, diameters, sectors and arcs.",
    "treeDiagram": "Tree of labelled nodes joined by edges, for probability or factor trees.",
    "dataTable": "Simple table of rows and columns.",
}

WIDGET_MAPPING_SYSTEM_PROMPT = """You are an assessment author who attaches diagrams to math questions.
You only choose widget types from the list you are given.
You never invent a widget type, and you answer with JSON only."""

WIDGET_MAPPING_PROMPT = """The question body below contains slot placeholders of the form <slot name="..."/>.
For every slot that should hold a diagram, choose the best widget type.

Available widget types:
{widget_list}

Question body:
{body}

Respond in the following JSON format:
{{
  "widgets": {{
    "<slot name>": "<widget type>"
  }}
}}"""

ITEM_GENERATION_SYSTEM_PROMPT = """You are an expert assessment author who writes QTI items.
Every interaction and widget you define must be placed in the body exactly once
through a <slot name="..."/> placeholder. Write mathematics as MathML, never LaTeX,
and wrap every text-entry slot in a block element such as <p>.
Respond with JSON that matches the schema."""

ITEM_GENERATION_PROMPT = """Write one assessment item for the following request:

{request}

The JSON must validate against this schema:
{schema}"""


def widget_list_text() -> str:
    return "\n".join(f"- {tag}: {desc}" for tag, desc in PROMPT_WIDGET_TYPES.items())


def build_widget_mapping_prompt(body: str) -> str:
    return WIDGET_MAPPING_PROMPT.format(widget_list=widget_list_text(), body=body)


def build_item_generation_prompt(request: str) -> str:
    schema = json.dumps(assessment_item_json_schema(), separators=(",", ":"))
    return ITEM_GENERATION_PROMPT.format(request=request, schema=schema)


def widget_json_schema(widget_type: str) -> dict:
    """JSON schema for one widget tag, as exposed to structured output."""
    if widget_type not in PROMPT_WIDGET_TYPES:
        raise KeyError(f"widget type '{widget_type}' is not offered to the model")
    return WIDGET_SCHEMAS[widget_type].model_json_schema()


def assessment_item_json_schema() -> dict:
    return TypeAdapter(AssessmentItemInput).json_schema()


def parse_widget_mapping(payload: dict) -> dict[str, str]:
    """Validate a widget-mapping answer, dropping tags the model made up."""
    mapping = payload.get("widgets", {})
    if not isinstance(mapping, dict):
        raise ValueError("'widgets' must be an object of slot name to widget type")
    unknown = {slot: tag for slot, tag in mapping.items() if tag not in PROMPT_WIDGET_TYPES}
    if unknown:
        logger.warning("dropping unknown widget types from model answer: %s", unknown)
    return {slot: tag for slot, tag in mapping.items() if tag in PROMPT_WIDGET_TYPES}
