"""
Chart rendering for the ViEventLog dashboard.

Controllers describe what to draw with a ChartSpec and hand it to a ChartPort.
AltairChartPort turns the specs into Altair charts and keeps them per surface
for the Streamlit shell to display.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

import altair as alt
import pandas as pd

logger = logging.getLogger("ViEventLog")

# Display surfaces
STATS_SURFACE = "consumption_stats"
CONSUMPTION_SURFACE = "consumption"
BREAKDOWN_SURFACE = "breakdown"
TEMPERATURE_SURFACE = "temperature"

COLORS = {
    "background": "#2d2d2d",
    "grid": "#444444",
    "text": "white",
    "electricity": "#ff6b6b",
    "thermal": "#4ecdc4",
    "cop": "#95e1d3",
}

ZoomHandler = Callable[[Mapping[str, Any]], None]


@dataclass
class SeriesSpec:
    name: str
    kind: str  # "bar", "line" or "arc"
    data: List[Any]
    axis: int = 0
    color: Optional[str] = None
    step: bool = False
    dashed: bool = False
    smooth: bool = False
    show_symbols: bool = False
    opacity: float = 1.0


@dataclass
class AxisSpec:
    title: str
    min: Optional[float] = None
    max: Optional[float] = None
    format: Optional[str] = None


@dataclass
class ChartSpec:
    """Declarative description of one chart.

    For ``x_type == "category"`` each series' data is aligned with
    ``categories``; for ``"time"`` it is a list of ``(timestamp, value)``
    pairs; for arc charts it is a single value per series.
    """

    surface: str
    title: str
    series: List[SeriesSpec]
    x_type: str = "category"
    categories: List[str] = field(default_factory=list)
    axes: List[AxisSpec] = field(default_factory=list)
    zoom: Optional[Tuple[float, float]] = None
    x_format: Optional[str] = None
    connect_nulls: bool = False


class ChartPort(Protocol):
    def render(self, spec: ChartSpec) -> None: ...

    def render_table(self, surface: str, frame: pd.DataFrame) -> None: ...

    def show_message(self, surface: str, message: str) -> None: ...

    def clear(self, surface: str) -> None: ...

    def dispatch_zoom(self, start: float, end: float) -> None: ...

    def on_zoom_event(self, handler: ZoomHandler) -> None: ...


def _axis(spec: ChartSpec, index: int) -> AxisSpec:
    if index < len(spec.axes):
        return spec.axes[index]
    return AxisSpec(title="")


def _y(spec: ChartSpec, index: int) -> alt.Y:
    """First axis on the left, further axes stacked on the right."""
    axis = _axis(spec, index)
    scale = alt.Scale(zero=False)
    if axis.min is not None and axis.max is not None:
        scale = alt.Scale(domain=[axis.min, axis.max])

    axis_kwargs = {"grid": index == 0, "orient": "left" if index == 0 else "right"}
    if index > 1:
        axis_kwargs["offset"] = 60 * (index - 1)
    if axis.format:
        axis_kwargs["format"] = axis.format
    return alt.Y("value:Q", title=axis.title, scale=scale, axis=alt.Axis(**axis_kwargs))


def _color_scale(series: List[SeriesSpec]) -> alt.Scale:
    return alt.Scale(
        domain=[s.name for s in series],
        range=[s.color or COLORS["text"] for s in series],
    )


def _configure(chart):
    return chart.configure(
        background=COLORS["background"],
        axis=alt.AxisConfig(
            gridColor=COLORS["grid"], gridOpacity=0.3, labelColor="white", titleColor="white"
        ),
        legend=alt.LegendConfig(labelColor="white", orient="top", title=None),
    )


def build_category_chart(spec: ChartSpec):
    """Grouped bars per category plus lines on their own axes."""
    order = spec.categories
    layers = []

    bars = [s for s in spec.series if s.kind == "bar"]
    if bars:
        bar_df = pd.DataFrame(
            [
                {"category": c, "series": s.name, "value": v}
                for s in bars
                for c, v in zip(order, s.data)
            ]
        )
        layers.append(
            alt.Chart(bar_df)
            .mark_bar()
            .encode(
                x=alt.X("category:N", sort=order, title=None),
                xOffset=alt.XOffset("series:N", sort=[s.name for s in bars]),
                y=_y(spec, bars[0].axis),
                color=alt.Color("series:N", scale=_color_scale(bars)),
                tooltip=["category:N", "series:N", alt.Tooltip("value:Q", format=".2f")],
            )
        )

    for line in (s for s in spec.series if s.kind == "line"):
        line_df = pd.DataFrame({"category": order, "value": line.data[: len(order)]})
        layers.append(
            alt.Chart(line_df)
            .mark_line(
                color=line.color or COLORS["cop"],
                strokeWidth=2,
                interpolate="monotone" if line.smooth else "linear",
                point=line.show_symbols,
            )
            .encode(
                x=alt.X("category:N", sort=order, title=None),
                y=_y(spec, line.axis),
                tooltip=["category:N", alt.Tooltip("value:Q", title=line.name, format=".2f")],
            )
        )

    chart = alt.layer(*layers).resolve_scale(y="independent")
    return _configure(chart.properties(title=spec.title, height=400, width="container"))


def build_arc_chart(spec: ChartSpec):
    arc_df = pd.DataFrame(
        {"name": [s.name for s in spec.series], "value": [s.data[0] for s in spec.series]}
    )
    chart = (
        alt.Chart(arc_df)
        .mark_arc(innerRadius=70, outerRadius=130)
        .encode(
            theta=alt.Theta("value:Q", stack=True),
            color=alt.Color("name:N", scale=_color_scale(spec.series)),
            tooltip=["name:N", alt.Tooltip("value:Q", format=".2f")],
        )
        .properties(title=spec.title, height=300)
    )
    return _configure(chart)


def _series_frame(series: SeriesSpec, connect_nulls: bool) -> pd.DataFrame:
    """Time series rows with a segment id that changes at every gap."""
    frame = pd.DataFrame(series.data, columns=["time", "value"])
    frame["time"] = pd.to_datetime(frame["time"], utc=True)
    frame["value"] = pd.to_numeric(frame["value"], errors="coerce")
    if connect_nulls:
        frame["segment"] = 0
    else:
        frame["segment"] = frame["value"].isna().cumsum()
    frame["series"] = series.name
    return frame.dropna(subset=["value"])


def zoom_domain(times: pd.Series, zoom: Tuple[float, float]) -> Optional[List[int]]:
    """Epoch-millisecond x-domain for a zoom window in percent of the timeline."""
    if times.empty:
        return None
    lo, hi = times.min(), times.max()
    span = hi - lo
    start, end = zoom
    return [
        int((lo + span * (start / 100)).timestamp() * 1000),
        int((lo + span * (end / 100)).timestamp() * 1000),
    ]


def build_time_chart(spec: ChartSpec):
    """Line chart over time, series sharing an axis index share one y-scale."""
    frames = {id(s): _series_frame(s, spec.connect_nulls) for s in spec.series}
    if not any(not f.empty for f in frames.values()):
        return None

    all_times = pd.concat([f["time"] for f in frames.values()])
    domain = zoom_domain(all_times, spec.zoom) if spec.zoom else None
    x_scale = alt.Scale(domain=domain) if domain else alt.Scale()
    color = alt.Color("series:N", scale=_color_scale(spec.series))
    x_axis = alt.Axis(format=spec.x_format) if spec.x_format else alt.Axis()

    axis_layers = []
    for axis_index in sorted({s.axis for s in spec.series}):
        series_layers = []
        for s in (s for s in spec.series if s.axis == axis_index):
            frame = frames[id(s)]
            if frame.empty:
                continue
            interpolate = "step-after" if s.step else ("monotone" if s.smooth else "linear")
            series_layers.append(
                alt.Chart(frame)
                .mark_line(
                    strokeWidth=2,
                    strokeDash=[5, 5] if s.dashed else [1, 0],
                    opacity=s.opacity,
                    interpolate=interpolate,
                    point=s.show_symbols,
                    clip=True,
                )
                .encode(
                    x=alt.X("time:T", title=None, scale=x_scale, axis=x_axis),
                    y=_y(spec, axis_index),
                    color=color,
                    detail="segment:N",
                    tooltip=["time:T", "series:N", alt.Tooltip("value:Q", format=".2f")],
                )
            )
        if series_layers:
            axis_layers.append(alt.layer(*series_layers))

    chart = alt.layer(*axis_layers).resolve_scale(y="independent")
    return _configure(chart.properties(title=spec.title, height=550, width="container"))


def build_chart(spec: ChartSpec):
    if spec.x_type == "time":
        return build_time_chart(spec)
    if spec.series and all(s.kind == "arc" for s in spec.series):
        return build_arc_chart(spec)
    return build_category_chart(spec)


class AltairChartPort:
    """ChartPort that keeps Altair charts, tables and messages per surface.

    A dispatched zoom window is applied to the stored time chart and echoed to
    the zoom handlers as a button-style event, the way chart widgets report
    programmatic zoom changes.
    """

    def __init__(self):
        self.specs: Dict[str, ChartSpec] = {}
        self.charts: Dict[str, Any] = {}
        self.tables: Dict[str, pd.DataFrame] = {}
        self.messages: Dict[str, str] = {}
        self.zoom: Tuple[float, float] = (50.0, 100.0)
        self._zoom_handlers: List[ZoomHandler] = []

    def render(self, spec: ChartSpec) -> None:
        if spec.zoom is not None:
            self.zoom = spec.zoom
        self.specs[spec.surface] = spec
        self.charts[spec.surface] = build_chart(spec)
        self.messages.pop(spec.surface, None)

    def render_table(self, surface: str, frame: pd.DataFrame) -> None:
        self.tables[surface] = frame
        self.messages.pop(surface, None)

    def show_message(self, surface: str, message: str) -> None:
        self.messages[surface] = message
        self.charts.pop(surface, None)
        self.tables.pop(surface, None)

    def clear(self, surface: str) -> None:
        for store in (self.specs, self.charts, self.tables, self.messages):
            store.pop(surface, None)

    def on_zoom_event(self, handler: ZoomHandler) -> None:
        self._zoom_handlers.append(handler)

    def _emit(self, event: Mapping[str, Any]) -> None:
        for handler in list(self._zoom_handlers):
            handler(event)

    def dispatch_zoom(self, start: float, end: float) -> None:
        self.zoom = (start, end)
        spec = self.specs.get(TEMPERATURE_SURFACE)
        if spec is not None:
            self.specs[TEMPERATURE_SURFACE] = replace(spec, zoom=self.zoom)
            self.charts[TEMPERATURE_SURFACE] = build_chart(self.specs[TEMPERATURE_SURFACE])
        self._emit({"type": "dataZoom", "start": start, "end": end})

    def report_gesture(self, start: float, end: float) -> None:
        """Forward a slider or drag interaction as a gesture-style event."""
        self.zoom = (start, end)
        self._emit({"type": "dataZoom", "batch": [{"start": start, "end": end}]})
