from datetime import datetime, timedelta, timezone

import altair as alt
import pandas as pd
import pytest

from pyvieventlog.charts import (
    CONSUMPTION_SURFACE,
    STATS_SURFACE,
    TEMPERATURE_SURFACE,
    AltairChartPort,
    AxisSpec,
    ChartSpec,
    SeriesSpec,
    build_chart,
    zoom_domain,
    _series_frame,
)
from pyvieventlog.navigator import ZoomNavigator

T0 = datetime(2025, 1, 5, 0, 0, tzinfo=timezone.utc)


def time_spec(zoom=(50.0, 100.0), **kwargs):
    points = [(T0 + timedelta(hours=h), float(h)) for h in range(11)]
    flags = [(T0 + timedelta(hours=h), float(h % 2 == 0)) for h in range(11)]
    return ChartSpec(
        surface=TEMPERATURE_SURFACE,
        title="",
        x_type="time",
        series=[
            SeriesSpec("Outside", "line", points, axis=0, color="#4285f4"),
            SeriesSpec("Compressor", "line", flags, axis=1, color="#f4b400", step=True),
        ],
        axes=[AxisSpec("Temperature (°C)"), AxisSpec("Status", 0, 1, format="d")],
        zoom=zoom,
        **kwargs,
    )


def test_zoom_domain_maps_percent_to_instants():
    times = pd.Series(pd.to_datetime([T0, T0 + timedelta(hours=10)], utc=True))
    start = int((T0 + timedelta(hours=5)).timestamp() * 1000)
    end = int((T0 + timedelta(hours=10)).timestamp() * 1000)
    assert zoom_domain(times, (50, 100)) == [start, end]
    assert zoom_domain(pd.Series([], dtype="datetime64[ns, UTC]"), (0, 100)) is None


def test_gaps_start_new_segments():
    data = [(T0, 1.0), (T0 + timedelta(hours=1), None), (T0 + timedelta(hours=2), 3.0)]
    broken = _series_frame(SeriesSpec("Outside", "line", data), connect_nulls=False)
    assert broken["value"].tolist() == [1.0, 3.0]
    assert broken["segment"].tolist() == [0, 1]

    joined = _series_frame(SeriesSpec("Outside", "line", data), connect_nulls=True)
    assert joined["segment"].tolist() == [0, 0]


def test_time_chart_layers_per_axis():
    chart = build_chart(time_spec(x_format="%H:%M"))
    assert isinstance(chart, alt.LayerChart)
    assert len(chart.layer) == 2
    assert "layer" in chart.to_dict()


def test_time_chart_without_values():
    spec = ChartSpec(
        surface=TEMPERATURE_SURFACE,
        title="",
        x_type="time",
        series=[SeriesSpec("Outside", "line", [(T0, None)])],
    )
    assert build_chart(spec) is None


def test_category_and_arc_charts():
    bars = ChartSpec(
        surface=CONSUMPTION_SURFACE,
        title="Last 7 days",
        categories=["1.1", "2.1"],
        axes=[AxisSpec("Energy (kWh)"), AxisSpec("COP", 0, 6)],
        series=[
            SeriesSpec("Electricity", "bar", [1.0, 2.0], color="#ff6b6b"),
            SeriesSpec("Heat", "bar", [3.0, 7.0], color="#4ecdc4"),
            SeriesSpec("COP", "line", [3.0, 3.5], axis=1, show_symbols=True),
        ],
    )
    chart = build_chart(bars)
    assert isinstance(chart, alt.LayerChart)
    assert chart.to_dict()["title"] == "Last 7 days"

    split = ChartSpec(
        surface=STATS_SURFACE,
        title="Energy split",
        series=[SeriesSpec("Electricity", "arc", [10.0]), SeriesSpec("Heat produced", "arc", [35.0])],
    )
    assert build_chart(split).to_dict()["mark"]["type"] == "arc"


def test_message_and_chart_replace_each_other():
    port = AltairChartPort()
    port.render(time_spec())
    assert TEMPERATURE_SURFACE in port.charts

    port.show_message(TEMPERATURE_SURFACE, "No temperature data available")
    assert TEMPERATURE_SURFACE not in port.charts

    port.render(time_spec())
    assert TEMPERATURE_SURFACE not in port.messages

    port.clear(TEMPERATURE_SURFACE)
    assert TEMPERATURE_SURFACE not in port.specs


def test_dispatch_rebuilds_chart_and_echoes():
    port = AltairChartPort()
    events = []
    port.on_zoom_event(events.append)
    port.render(time_spec())
    before = port.charts[TEMPERATURE_SURFACE]

    port.dispatch_zoom(20.0, 40.0)
    assert port.specs[TEMPERATURE_SURFACE].zoom == (20.0, 40.0)
    assert port.charts[TEMPERATURE_SURFACE] is not before
    assert events == [{"type": "dataZoom", "start": 20.0, "end": 40.0}]

    port.report_gesture(10.0, 30.0)
    assert events[-1] == {"type": "dataZoom", "batch": [{"start": 10.0, "end": 30.0}]}


def test_navigator_round_trip_through_port():
    port = AltairChartPort()
    navigator = ZoomNavigator(port.dispatch_zoom)
    port.on_zoom_event(navigator.handle_event)

    navigator.pan_left()
    assert port.zoom == pytest.approx((33.33, 83.33))
    assert navigator.window.as_tuple() == pytest.approx((33.33, 83.33))

    port.report_gesture(5.0, 5.5)
    assert navigator.window.as_tuple() == (3.5, 5.5)
    assert port.zoom == (3.5, 5.5)
