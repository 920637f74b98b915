"""Widget schema registry.

Every diagram kind is one pydantic model tagged by a literal ``type``.
``Widget`` is the discriminated union over all of them and
``WIDGET_SCHEMAS`` maps each tag to its model. The renderer registry and
the prompt enumeration must cover exactly the same tags; see
``qticraft.widgets.registry.registry_consistency``.
"""
from typing import Annotated, Literal, Union

from pydantic import Field, TypeAdapter, model_validator

from qticraft.models.geometry import (
    AxisOptions,
    Coordinate,
    CssColor,
    Distance,
    Line,
    PlotPoint,
    Polygon,
    Polyline,
    StrictModel,
)


def _check_unique_point_ids(points: list[PlotPoint]) -> None:
    seen: set[str] = set()
    for point in points:
        if point.id in seen:
            raise ValueError(f"duplicate point id '{point.id}'")
        seen.add(point.id)


# ── Coordinate-plane family ──────────────────────────────────────────────────

class _PlaneWidget(StrictModel):
    width: float = 400
    height: float = 400
    xAxis: AxisOptions
    yAxis: AxisOptions
    showQuadrantLabels: bool = False
    points: list[PlotPoint] = []

    @model_validator(mode="after")
    def _unique_points(self):
        _check_unique_point_ids(self.points)
        return self


class CoordinatePlane(_PlaneWidget):
    type: Literal["coordinatePlane"]
    lines: list[Line] = []
    polygons: list[Polygon] = []
    polylines: list[Polyline] = []
    distances: list[Distance] = []


class PointPlotGraph(_PlaneWidget):
    type: Literal["pointPlotGraph"]


class LineEquationGraph(_PlaneWidget):
    type: Literal["lineEquationGraph"]
    lines: list[Line] = Field(min_length=1)


class PolygonGraph(_PlaneWidget):
    type: Literal["polygonGraph"]
    polygons: list[Polygon] = Field(min_length=1)


class DistanceFormulaGraph(_PlaneWidget):
    type: Literal["distanceFormulaGraph"]
    distances: list[Distance] = Field(min_length=1)


class FunctionPlotGraph(_PlaneWidget):
    type: Literal["functionPlotGraph"]
    polylines: list[Polyline] = Field(min_length=1)


class ScatterPlot(_PlaneWidget):
    type: Literal["scatterPlot"]
    trendLines: list[Line] = []


class ParabolaVertex(StrictModel):
    x: float = Field(gt=0)
    y: float = Field(gt=0)


class Parabola(StrictModel):
    """Downward-opening arc through (0, yIntercept) peaking at ``vertex``."""

    vertex: ParabolaVertex
    yIntercept: float = Field(gt=0)
    color: CssColor = "#4285F4"
    style: Literal["solid", "dashed"] = "solid"

    @model_validator(mode="after")
    def _opens_down(self):
        if self.yIntercept >= self.vertex.y:
            raise ValueError("yIntercept must be below the vertex so the parabola opens downward")
        return self


class ParabolaGraph(_PlaneWidget):
    type: Literal["parabolaGraph"]
    parabola: Parabola


# ── Number lines ─────────────────────────────────────────────────────────────

class NumberLinePoint(StrictModel):
    value: float
    label: str | None = None
    color: CssColor = "#4285F4"
    style: Literal["open", "closed"] = "closed"


class NumberLine(StrictModel):
    type: Literal["numberLine"]
    width: float = 460
    height: float = 90
    min: float
    max: float
    tickInterval: float = Field(gt=0)
    minorTicksPerInterval: int = Field(default=0, ge=0, le=10)
    showTickLabels: bool = True
    points: list[NumberLinePoint] = []


class InequalityBoundary(StrictModel):
    value: float
    type: Literal["open", "closed"]


class InequalityRange(StrictModel):
    start: InequalityBoundary | None = None
    end: InequalityBoundary | None = None
    color: CssColor = "#4285F4"


class InequalityNumberLine(StrictModel):
    type: Literal["inequalityNumberLine"]
    width: float = 460
    height: float = 90
    min: float
    max: float
    tickInterval: float = Field(gt=0)
    ranges: list[InequalityRange] = Field(min_length=1)


class FractionSegment(StrictModel):
    start: float
    end: float
    color: CssColor = "rgba(66, 133, 244, 0.35)"


class FractionNumberLine(StrictModel):
    type: Literal["fractionNumberLine"]
    width: float = 460
    height: float = 100
    min: int = 0
    max: int = 1
    denominator: int = Field(ge=1, le=24)
    showFractionLabels: bool = True
    segments: list[FractionSegment] = []
    points: list[NumberLinePoint] = []


class DoubleLine(StrictModel):
    label: str | None = None
    ticks: list[str | float] = []


class DoubleNumberLine(StrictModel):
    type: Literal["doubleNumberLine"]
    width: float = 400
    height: float = 150
    topLine: DoubleLine
    bottomLine: DoubleLine

    @model_validator(mode="after")
    def _aligned(self):
        if len(self.topLine.ticks) != len(self.bottomLine.ticks):
            raise ValueError(
                f"topLine has {len(self.topLine.ticks)} ticks but bottomLine has "
                f"{len(self.bottomLine.ticks)}; both lines must align"
            )
        return self


# ── Statistical charts ───────────────────────────────────────────────────────

class BarDatum(StrictModel):
    label: str
    value: float
    color: CssColor | None = None


class BarChart(StrictModel):
    type: Literal["barChart"]
    width: float = 420
    height: float = 300
    title: str | None = None
    xAxisLabel: str | None = None
    yAxis: AxisOptions
    data: list[BarDatum] = Field(min_length=1)
    barColor: CssColor = "#4285F4"


class HistogramBin(StrictModel):
    label: str
    frequency: float = Field(ge=0)


class Histogram(StrictModel):
    type: Literal["histogram"]
    width: float = 420
    height: float = 300
    title: str | None = None
    xAxisLabel: str | None = None
    yAxis: AxisOptions
    bins: list[HistogramBin] = Field(min_length=1)
    barColor: CssColor = "#4285F4"


class DotPlotDatum(StrictModel):
    value: float
    count: int = Field(ge=0)


class DotPlot(StrictModel):
    type: Literal["dotPlot"]
    width: float = 420
    height: float = 220
    axis: AxisOptions
    data: list[DotPlotDatum] = Field(min_length=1)
    dotColor: CssColor = "#4285F4"
    dotRadius: float = Field(default=6, gt=0)


class FiveNumberSummary(StrictModel):
    min: float
    q1: float
    median: float
    q3: float
    max: float

    @model_validator(mode="after")
    def _ordered(self):
        if not (self.min <= self.q1 <= self.median <= self.q3 <= self.max):
            raise ValueError("summary must satisfy min <= q1 <= median <= q3 <= max")
        return self


class BoxPlot(StrictModel):
    type: Literal["boxPlot"]
    width: float = 420
    height: float = 160
    axis: AxisOptions
    summary: FiveNumberSummary
    boxColor: CssColor = "rgba(66, 133, 244, 0.3)"
    medianColor: CssColor = "#EA4335"


class CategoryAxis(StrictModel):
    label: str | None = None
    categories: list[str] = Field(min_length=2)


class LineSeries(StrictModel):
    name: str
    values: list[float] = Field(min_length=1)
    color: CssColor = "#4285F4"
    style: Literal["solid", "dashed", "dotted"] = "solid"
    pointShape: Literal["circle", "square"] = "circle"
    yAxis: Literal["left", "right"] = "left"


class LineGraph(StrictModel):
    type: Literal["lineGraph"]
    width: float = 480
    height: float = 320
    title: str | None = None
    xAxis: CategoryAxis
    yAxis: AxisOptions
    yAxisRight: AxisOptions | None = None
    series: list[LineSeries] = Field(min_length=1)
    showLegend: bool = True

    @model_validator(mode="after")
    def _series_match_axes(self):
        n = len(self.xAxis.categories)
        for s in self.series:
            if len(s.values) != n:
                raise ValueError(f"series '{s.name}' has {len(s.values)} values for {n} categories")
            if s.yAxis == "right" and self.yAxisRight is None:
                raise ValueError(f"series '{s.name}' uses the right axis but yAxisRight is missing")
        return self


# ── Part-whole models ────────────────────────────────────────────────────────

class PieSlice(StrictModel):
    label: str
    value: float = Field(gt=0)
    color: CssColor | None = None


class PieChart(StrictModel):
    type: Literal["pieChart"]
    width: float = 320
    height: float = 240
    title: str | None = None
    slices: list[PieSlice] = Field(min_length=1)


class SpinnerSector(StrictModel):
    label: str
    color: CssColor | None = None


class ProbabilitySpinner(StrictModel):
    type: Literal["probabilitySpinner"]
    width: float = 240
    height: float = 240
    sectors: list[SpinnerSector] = Field(min_length=2)
    pointerAngle: float = 0


class TapeSegment(StrictModel):
    label: str | None = None
    length: float = Field(gt=0)


class Tape(StrictModel):
    label: str | None = None
    segments: list[TapeSegment] = Field(min_length=1)
    color: CssColor = "rgba(66, 133, 244, 0.3)"


class TapeDiagram(StrictModel):
    type: Literal["tapeDiagram"]
    width: float = 460
    height: float = 140
    topTape: Tape
    bottomTape: Tape | None = None
    totalLabel: str | None = None


# ── Geometry diagrams ────────────────────────────────────────────────────────
# Point coordinates are canvas pixels with +y down; the viewBox is fitted to
# the points.

class DiagramPoint(StrictModel):
    id: str
    x: float
    y: float
    label: str | None = None


class Segment(StrictModel):
    start: str = Field(alias="from")
    end: str = Field(alias="to")


class AngleMark(StrictModel):
    vertices: list[str] = Field(min_length=3, max_length=3)
    label: str | None = None
    color: CssColor = "rgba(217, 95, 79, 0.8)"
    radius: float = Field(default=30, gt=0)
    isRightAngle: bool = False


class AngleDiagram(StrictModel):
    type: Literal["angleDiagram"]
    width: float = 400
    height: float = 300
    points: list[DiagramPoint] = Field(min_length=1)
    rays: list[Segment] = []
    angles: list[AngleMark] = []

    @model_validator(mode="after")
    def _unique_points(self):
        _check_unique_point_ids(self.points)
        return self


class TriangleSide(StrictModel):
    vertex1: str
    vertex2: str
    label: str | None = None
    tickMarks: int = Field(default=0, ge=0, le=5)


class TriangleAngle(StrictModel):
    pointOnFirstRay: str
    vertex: str
    pointOnSecondRay: str
    label: str | None = None
    color: CssColor = "rgba(217, 95, 79, 0.8)"
    radius: float = Field(default=25, gt=0)
    isRightAngle: bool = False
    showArc: bool = True


class InternalLine(Segment):
    style: Literal["solid", "dashed", "dotted"] = "solid"


class ShadedRegion(StrictModel):
    vertices: list[str] = Field(min_length=3)
    color: CssColor = "rgba(66, 133, 244, 0.2)"


class TriangleDiagram(StrictModel):
    """The first three points are the triangle; any others mark feet, midpoints and so on."""

    type: Literal["triangleDiagram"]
    width: float = 400
    height: float = 300
    points: list[DiagramPoint] = Field(min_length=3)
    sides: list[TriangleSide] = []
    angles: list[TriangleAngle] = []
    internalLines: list[InternalLine] = []
    shadedRegions: list[ShadedRegion] = []

    @model_validator(mode="after")
    def _unique_points(self):
        _check_unique_point_ids(self.points)
        return self


class CircleSegment(StrictModel):
    type: Literal["radius", "diameter"]
    label: str | None = None
    color: CssColor = "#4A4A4A"
    angle: float = 0


class CircleSector(StrictModel):
    startAngle: float
    endAngle: float
    fillColor: CssColor = "rgba(66, 133, 244, 0.3)"
    label: str | None = None
    showRightAngleMarker: bool = False


class CircleArc(StrictModel):
    startAngle: float
    endAngle: float
    strokeColor: CssColor = "#EA4335"
    label: str | None = None


class CircleDiagram(StrictModel):
    """Angles are degrees clockwise from 3 o'clock."""

    type: Literal["circleDiagram"]
    width: float = 250
    height: float = 250
    shape: Literal["circle", "semicircle", "quarter-circle"] = "circle"
    rotation: float = 0
    radius: float = Field(gt=0)
    fillColor: CssColor = "none"
    strokeColor: CssColor = "black"
    innerRadius: float | None = Field(default=None, gt=0)
    annulusFillColor: CssColor | None = None
    segments: list[CircleSegment] = []
    sectors: list[CircleSector] = []
    arcs: list[CircleArc] = []
    showCenterDot: bool = False
    areaLabel: str | None = None

    @model_validator(mode="after")
    def _inner_inside(self):
        if self.innerRadius is not None and self.innerRadius >= self.radius:
            raise ValueError("innerRadius must be smaller than radius")
        return self


class TreeNode(StrictModel):
    id: str
    label: str
    position: Coordinate
    style: Literal["circled", "default"] = "default"
    color: CssColor = "black"


class TreeEdge(Segment):
    style: Literal["solid", "dashed"] = "solid"


class TreeDiagram(StrictModel):
    type: Literal["treeDiagram"]
    width: float = 400
    height: float = 400
    nodes: list[TreeNode] = Field(min_length=1)
    edges: list[TreeEdge] = []
    nodeFontSize: float = Field(default=16, gt=0)
    nodeRadius: float = Field(default=20, gt=0)

    @model_validator(mode="after")
    def _unique_nodes(self):
        _check_unique_point_ids(self.nodes)
        return self


# ── Tables ───────────────────────────────────────────────────────────────────

class TableColumn(StrictModel):
    key: str
    label: str


class DataTable(StrictModel):
    type: Literal["dataTable"]
    title: str | None = None
    columns: list[TableColumn] = Field(min_length=1)
    rows: list[dict[str, str | int | float | None]] = []
    rowHeaderKey: str | None = None

    @model_validator(mode="after")
    def _known_keys(self):
        keys = {c.key for c in self.columns}
        for i, row in enumerate(self.rows):
            extra = set(row) - keys
            if extra:
                raise ValueError(f"row {i} has unknown keys {sorted(extra)}")
        if self.rowHeaderKey is not None and self.rowHeaderKey not in keys:
            raise ValueError(f"rowHeaderKey '{self.rowHeaderKey}' is not a column")
        return self


WIDGET_SCHEMAS: dict[str, type[StrictModel]] = {
    "coordinatePlane": CoordinatePlane,
    "pointPlotGraph": PointPlotGraph,
    "lineEquationGraph": LineEquationGraph,
    "polygonGraph": PolygonGraph,
    "distanceFormulaGraph": DistanceFormulaGraph,
    "functionPlotGraph": FunctionPlotGraph,
    "scatterPlot": ScatterPlot,
    "parabolaGraph": ParabolaGraph,
    "numberLine": NumberLine,
    "inequalityNumberLine": InequalityNumberLine,
    "fractionNumberLine": FractionNumberLine,
    "doubleNumberLine": DoubleNumberLine,
    "barChart": BarChart,
    "histogram": Histogram,
    "dotPlot": DotPlot,
    "boxPlot": BoxPlot,
    "lineGraph": LineGraph,
    "pieChart": PieChart,
    "probabilitySpinner": ProbabilitySpinner,
    "tapeDiagram": TapeDiagram,
    "angleDiagram": AngleDiagram,
    "triangleDiagram": TriangleDiagram,
    "circleDiagram": CircleDiagram,
    "treeDiagram": TreeDiagram,
    "dataTable": DataTable,
}

Widget = Annotated[
    Union[
        CoordinatePlane,
        PointPlotGraph,
        LineEquationGraph,
        PolygonGraph,
        DistanceFormulaGraph,
        FunctionPlotGraph,
        ScatterPlot,
        ParabolaGraph,
        NumberLine,
        InequalityNumberLine,
        FractionNumberLine,
        DoubleNumberLine,
        BarChart,
        Histogram,
        DotPlot,
        BoxPlot,
        LineGraph,
        PieChart,
        ProbabilitySpinner,
        TapeDiagram,
        AngleDiagram,
        TriangleDiagram,
        CircleDiagram,
        TreeDiagram,
        DataTable,
    ],
    Field(discriminator="type"),
]

_WIDGET_ADAPTER = TypeAdapter(Widget)


def parse_widget(raw: dict) -> StrictModel:
    """Validate one raw widget dict into its tagged model."""
    return _WIDGET_ADAPTER.validate_python(raw)
