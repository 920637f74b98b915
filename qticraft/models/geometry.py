"""Shared geometry shapes used by every coordinate-plane style widget.

Defaults mirror the colours the generation prompts advertise, so a widget
that omits a colour renders the same as one produced by the model.
"""
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


# Hex, rgb()/rgba(), hsl()/hsla() or a bare colour keyword. Colours are
# written straight into SVG attributes, so nothing else gets through.
CSS_COLOR_PATTERN = (
    r"^(?:#(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})"
    r"|rgba?\(\s*\d{1,3}%?\s*,\s*\d{1,3}%?\s*,\s*\d{1,3}%?\s*(?:,\s*(?:[01](?:\.\d+)?|\.\d+|\d{1,3}%)\s*)?\)"
    r"|hsla?\(\s*\d{1,3}(?:\.\d+)?(?:deg)?\s*,\s*\d{1,3}(?:\.\d+)?%\s*,\s*\d{1,3}(?:\.\d+)?%\s*(?:,\s*(?:[01](?:\.\d+)?|\.\d+|\d{1,3}%)\s*)?\)"
    r"|[a-zA-Z]{3,20})$"
)
CssColor = Annotated[str, Field(pattern=CSS_COLOR_PATTERN)]


class AxisOptions(StrictModel):
    label: str | None = None
    min: float
    max: float
    tickInterval: float = Field(gt=0)
    showGridLines: bool = True


class PlotPoint(StrictModel):
    id: str
    x: float
    y: float
    label: str | None = None
    color: CssColor = "#4285F4"
    style: Literal["open", "closed"] = "closed"


class SlopeInterceptEquation(StrictModel):
    type: Literal["slopeIntercept"]
    slope: float
    yIntercept: float


class StandardEquation(StrictModel):
    """A·x + B·y = C."""

    type: Literal["standard"]
    A: float
    B: float
    C: float

    @model_validator(mode="after")
    def _not_degenerate(self):
        if self.A == 0 and self.B == 0:
            raise ValueError("standard form needs A or B to be non-zero")
        return self


class PointSlopeEquation(StrictModel):
    type: Literal["pointSlope"]
    x1: float
    y1: float
    slope: float


LineEquation = Annotated[
    Union[SlopeInterceptEquation, StandardEquation, PointSlopeEquation],
    Field(discriminator="type"),
]


class Line(StrictModel):
    id: str
    equation: LineEquation
    color: CssColor = "#EA4335"
    style: Literal["solid", "dashed"] = "solid"


class Polygon(StrictModel):
    vertices: list[str] = Field(min_length=1)
    isClosed: bool = True
    fillColor: CssColor = "rgba(66, 133, 244, 0.3)"
    strokeColor: CssColor = "#4285F4"
    label: str | None = None

    @model_validator(mode="after")
    def _distinct_vertices(self):
        if len(set(self.vertices)) != len(self.vertices):
            raise ValueError("polygon vertices must be distinct point ids")
        return self


class Coordinate(StrictModel):
    x: float
    y: float


class Polyline(StrictModel):
    id: str
    points: list[Coordinate] = Field(min_length=2)
    color: CssColor = "black"
    style: Literal["solid", "dashed"] = "solid"


class Distance(StrictModel):
    pointId1: str
    pointId2: str
    showLegs: bool = True
    showLegLabels: bool = False
    hypotenuseLabel: str | None = None
    color: CssColor = "gray"
    style: Literal["solid", "dashed"] = "dashed"
