import asyncio
from datetime import date

import httpx
import pytest

from pyvieventlog.api_client import DashboardApiClient
from pyvieventlog.charts import TEMPERATURE_SURFACE
from pyvieventlog.fields import STATUS_AXIS
from pyvieventlog.navigator import ZoomWindow
from pyvieventlog.schemas import DeviceSettings
from pyvieventlog.session import DashboardSession
from pyvieventlog.temperature import (
    NO_DATA_MESSAGE,
    TemperatureChartController,
    parse_time_range,
    power_axis_bounds,
    temperature_axis_bounds,
)
from tests.conftest import FakeBackend, snapshot_rows

DATA_PATH = "/api/temperature-log/data"
SETTINGS_PATH = "/api/temperature-log/settings"


def make_controller(device, port, transport):
    session = DashboardSession(device=device)
    client = DashboardApiClient(base_url="http://backend", transport=transport)
    return TemperatureChartController(client, session, port, timezone="Europe/Berlin")


def rows():
    return snapshot_rows(
        outside_temp=[-5.0, -4.5, None, -3.0],
        dhw_temp=48.5,
        compressor_active=[True, True, False, True],
        compressor_speed=None,
    )


@pytest.mark.parametrize(
    "value, hours",
    [("1h", 1), ("12h", 12), ("7d", 168), ("90d", 2160), ("bogus", 24), ("", 24), ("3w", 24)],
)
def test_parse_time_range(value, hours):
    assert parse_time_range(value) == hours


def test_temperature_axis_bounds():
    assert temperature_axis_bounds([-5.0, 48.5]) == (-6, 54)
    assert temperature_axis_bounds([]) == (None, None)


@pytest.mark.parametrize(
    "values, expected",
    [([15.5, 42.0], (13, 47)), ([200.0, 900.0], (199, 905)), ([1500.0, 2000.0], (1500, 2000)), ([], (None, None))],
)
def test_power_axis_bounds(values, expected):
    assert power_axis_bounds(values) == expected


@pytest.mark.asyncio
async def test_initialize_loads_twice_the_range(device, port):
    backend = FakeBackend({SETTINGS_PATH: {"enabled": True}, DATA_PATH: {"data": rows()}})
    controller = make_controller(device, port, backend.transport)

    assert await controller.initialize() is True
    assert backend.params(DATA_PATH)[0]["hours"] == "48"

    spec = port.specs[TEMPERATURE_SURFACE]
    assert [s.name for s in spec.series] == ["Outside", "Hot water"]
    assert spec.x_type == "time"
    assert spec.x_format == "%H:%M"
    assert spec.zoom == (50, 100)
    assert spec.axes[0].min == -6
    assert spec.axes[0].max == 54
    assert spec.series[0].data[2][1] is None
    assert controller.fields.available == {"outside_temp", "dhw_temp", "compressor_active"}


@pytest.mark.asyncio
async def test_disabled_telemetry_hides_chart(device, port):
    backend = FakeBackend({SETTINGS_PATH: {"enabled": False}})
    controller = make_controller(device, port, backend.transport)

    assert await controller.initialize() is False
    assert controller.enabled is False
    assert backend.params(DATA_PATH) == []
    assert port.rendered == []


@pytest.mark.asyncio
async def test_long_range_uses_coarser_steps(device, port):
    backend = FakeBackend({DATA_PATH: {"data": rows()}})
    controller = make_controller(device, port, backend.transport)
    controller.navigator.center()

    assert await controller.select_time_range("30d") is True
    assert backend.params(DATA_PATH)[0]["hours"] == "1440"
    assert controller.navigator.window == ZoomWindow(50, 100, 15, 7.5)
    assert port.specs[TEMPERATURE_SURFACE].x_format == "%m-%d %H:%M"


@pytest.mark.asyncio
async def test_single_day_is_requested_in_utc(device, port):
    backend = FakeBackend({DATA_PATH: {"data": rows()}})
    controller = make_controller(device, port, backend.transport)

    assert await controller.select_date(date(2025, 1, 5)) is True
    params = backend.params(DATA_PATH)[0]
    assert params["startTime"] == "2025-01-04T23:00:00Z"
    assert params["endTime"] == "2025-01-05T22:59:59Z"
    assert controller.navigator.window.as_tuple() == (0, 100)

    await controller.select_time_range("6h")
    assert controller.session.custom_date is None
    assert backend.params(DATA_PATH)[1]["hours"] == "12"


@pytest.mark.asyncio
async def test_empty_data_message_and_silent_refresh(device, port):
    backend = FakeBackend({DATA_PATH: {"data": []}})
    controller = make_controller(device, port, backend.transport)

    assert await controller.load(silent=True) is False
    assert TEMPERATURE_SURFACE not in port.messages

    assert await controller.load() is False
    assert port.messages[TEMPERATURE_SURFACE] == NO_DATA_MESSAGE


@pytest.mark.asyncio
async def test_failure_message(device, port):
    backend = FakeBackend({DATA_PATH: 500})
    controller = make_controller(device, port, backend.transport)

    assert await controller.load() is False
    assert port.messages[TEMPERATURE_SURFACE] == "Failed to load temperature data: API returned 500"


@pytest.mark.asyncio
async def test_stale_snapshots_are_discarded(device, port):
    started = asyncio.Event()
    release = asyncio.Event()

    async def handler(request):
        if request.url.params.get("hours") == "336":
            started.set()
            await release.wait()
            return httpx.Response(200, json={"data": snapshot_rows(count=2, return_temp=30.0)})
        return httpx.Response(200, json={"data": rows()})

    controller = make_controller(device, port, httpx.MockTransport(handler))
    slow = asyncio.create_task(controller.select_time_range("7d"))
    await started.wait()
    assert await controller.select_time_range("1h") is True
    release.set()

    assert await slow is False
    assert len(controller.session.snapshots) == 4
    assert "return_temp" not in controller.fields.available


@pytest.mark.asyncio
async def test_toggle_rerenders_without_fetch(device, port):
    backend = FakeBackend({DATA_PATH: {"data": rows()}})
    controller = make_controller(device, port, backend.transport)
    await controller.load()
    controller.set_display_option("smooth", True)

    assert controller.toggle_field("compressor_active") is True
    assert len(backend.requests) == 1

    status = port.specs[TEMPERATURE_SURFACE].series[-1]
    assert status.name == "Compressor"
    assert status.axis == STATUS_AXIS
    assert status.step is True
    assert status.smooth is False
    assert [v for _, v in status.data] == [1.0, 1.0, 0.0, 1.0]
    assert port.specs[TEMPERATURE_SURFACE].series[0].smooth is True


@pytest.mark.asyncio
async def test_reset_fields_restores_defaults(device, port):
    backend = FakeBackend({DATA_PATH: {"data": rows()}})
    controller = make_controller(device, port, backend.transport)
    await controller.load()

    controller.toggle_field("outside_temp")
    controller.toggle_field("dhw_temp")
    assert port.specs[TEMPERATURE_SURFACE].series == []

    controller.reset_fields()
    assert controller.fields.selected == ["outside_temp", "dhw_temp"]
    assert len(port.specs[TEMPERATURE_SURFACE].series) == 2


@pytest.mark.asyncio
async def test_buffer_setting_picks_buffer_defaults(device, port):
    data = snapshot_rows(
        outside_temp=1.0, hp_secondary_circuit_supply_temp=35.0, heating_circuit_0_supply_temp=33.0
    )
    backend = FakeBackend({DATA_PATH: {"data": data}})
    controller = make_controller(device, port, backend.transport)
    controller.session.set_device_settings(device, DeviceSettings(has_hot_water_buffer=True))

    await controller.load()
    assert controller.fields.selected == ["outside_temp", "hp_secondary_circuit_supply_temp"]


def test_unknown_display_option(device, port):
    controller = make_controller(device, port, FakeBackend().transport)
    with pytest.raises(ValueError):
        controller.set_display_option("rainbow", True)


@pytest.mark.asyncio
async def test_navigation_goes_through_the_chart(device, port):
    backend = FakeBackend({DATA_PATH: {"data": rows()}})
    controller = make_controller(device, port, backend.transport)
    await controller.load()

    controller.navigate("pan_left")
    assert port.dispatched == [pytest.approx((33.33, 83.33))]
    controller.rerender()
    assert port.specs[TEMPERATURE_SURFACE].zoom == pytest.approx((33.33, 83.33))

    port.gesture(10, 10.5)
    assert controller.navigator.window.as_tuple() == (8.5, 10.5)


@pytest.mark.asyncio
async def test_secondary_heat_generator_is_plotted_as_status(device, port):
    data = snapshot_rows(outside_temp=1.0, secondary_heat_generator_status=["on", "off", "standby", "ON"])
    backend = FakeBackend({DATA_PATH: {"data": data}})
    controller = make_controller(device, port, backend.transport)
    await controller.load()

    controller.toggle_field("secondary_heat_generator_status")
    series = port.specs[TEMPERATURE_SURFACE].series[-1]
    assert series.name == "2nd heat gen."
    assert series.axis == STATUS_AXIS
    assert [v for _, v in series.data] == [1.0, 0.0, 0.0, 1.0]


@pytest.mark.asyncio
async def test_refresh_waits_for_interval(device, port):
    backend = FakeBackend({SETTINGS_PATH: {"enabled": True}, DATA_PATH: {"data": rows()}})
    controller = make_controller(device, port, backend.transport)
    await controller.initialize()
    loaded_at = controller.loaded_at

    assert await controller.refresh_if_due(now=loaded_at + 599, interval=600) is False
    assert len(backend.params(DATA_PATH)) == 1

    assert await controller.refresh_if_due(now=loaded_at + 600, interval=600) is True
    assert len(backend.params(DATA_PATH)) == 2
    assert controller.loaded_at >= loaded_at


@pytest.mark.asyncio
async def test_refresh_is_silent(device, port):
    backend = FakeBackend({SETTINGS_PATH: {"enabled": True}, DATA_PATH: {"data": rows()}})
    controller = make_controller(device, port, backend.transport)
    await controller.initialize()

    backend.routes[DATA_PATH] = 503
    assert await controller.refresh_if_due(now=controller.loaded_at + 601, interval=600) is False
    assert TEMPERATURE_SURFACE not in port.messages
    assert TEMPERATURE_SURFACE in port.specs


@pytest.mark.asyncio
async def test_no_refresh_when_disabled_or_never_loaded(device, port):
    backend = FakeBackend({DATA_PATH: {"data": rows()}})
    controller = make_controller(device, port, backend.transport)
    assert await controller.refresh_if_due(now=10_000, interval=600) is False

    controller.enabled = True
    await controller.load()
    assert await controller.refresh_if_due(now=controller.loaded_at + 10_000, interval=0) is False
    assert len(backend.requests) == 1


@pytest.mark.asyncio
async def test_clear_drops_chart_and_refresh_clock(device, port):
    backend = FakeBackend({SETTINGS_PATH: {"enabled": True}, DATA_PATH: {"data": rows()}})
    controller = make_controller(device, port, backend.transport)
    await controller.initialize()

    controller.clear()
    assert TEMPERATURE_SURFACE not in port.specs
    assert controller.loaded_at is None
    assert await controller.refresh_if_due(interval=1) is False
