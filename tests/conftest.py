import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from pyvieventlog.database import DatabaseService
from pyvieventlog.schemas import DeviceRef


class RecordingPort:
    """ChartPort that records everything handed to it."""

    def __init__(self, echo=True):
        self.echo = echo
        self.specs = {}
        self.rendered = []
        self.tables = {}
        self.messages = {}
        self.dispatched = []
        self.handlers = []

    def render(self, spec):
        self.specs[spec.surface] = spec
        self.rendered.append(spec)
        self.messages.pop(spec.surface, None)

    def render_table(self, surface, frame):
        self.tables[surface] = frame

    def show_message(self, surface, message):
        self.messages[surface] = message

    def clear(self, surface):
        self.specs.pop(surface, None)
        self.tables.pop(surface, None)
        self.messages.pop(surface, None)

    def dispatch_zoom(self, start, end):
        self.dispatched.append((start, end))
        if self.echo:
            for handler in list(self.handlers):
                handler({"type": "dataZoom", "start": start, "end": end})

    def on_zoom_event(self, handler):
        self.handlers.append(handler)

    def gesture(self, start, end):
        for handler in list(self.handlers):
            handler({"type": "dataZoom", "batch": [{"start": start, "end": end}]})


class FakeBackend:
    """Routes for httpx.MockTransport; a route is a payload, a status code or a callable."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        if isinstance(route, int):
            return httpx.Response(route, text="error")
        return httpx.Response(200, content=json.dumps(route).encode(), headers={"content-type": "application/json"})

    @property
    def transport(self):
        return httpx.MockTransport(self)

    def params(self, path):
        """Query params of the requests made to ``path``."""
        return [dict(r.url.params) for r in self.requests if r.url.path == path]


def snapshot_rows(count=4, start=None, step_minutes=10, **fields):
    """Raw snapshot payload rows; ``fields`` map metric names to constants or lists."""
    start = start or datetime(2025, 1, 5, 10, 0, tzinfo=timezone.utc)
    rows = []
    for i in range(count):
        row = {
            "timestamp": (start + timedelta(minutes=step_minutes * i)).isoformat(),
            "installation_id": "123",
            "gateway_id": "GW1",
            "device_id": "0",
        }
        for name, value in fields.items():
            row[name] = value[i] if isinstance(value, list) else value
        rows.append(row)
    return rows


@pytest.fixture
def device():
    return DeviceRef(installation_id="123", gateway_serial="GW1", device_id="0")


@pytest.fixture
def port():
    return RecordingPort()


@pytest.fixture
def db(tmp_path):
    return DatabaseService(str(tmp_path / "test.db"))


@pytest.fixture
def week_stats():
    return {
        "electricity_kwh": 100.0,
        "thermal_kwh": 350.0,
        "avg_cop": 3.5,
        "runtime_hours": 42.5,
        "samples": 168,
        "daily_breakdown": [
            {
                "timestamp": f"2025-01-0{day}T00:00:00+01:00",
                "electricity_kwh": 14.0 + day,
                "thermal_kwh": 50.0,
                "avg_cop": 50.0 / (14.0 + day),
                "runtime_hours": 6.0,
                "samples": 24,
            }
            for day in range(1, 8)
        ],
    }


def feature(name, **properties):
    """One device feature in the shape the backend relays it."""
    return {"feature": name, "properties": {k: {"type": "auto", "value": v} for k, v in properties.items()}}


@pytest.fixture
def device_features():
    return [
        feature(
            "heating.power.consumption.dhw",
            day=[1.0, 2.0, 1.5], week=[10.0, 12.0], month=[40.0], year=[400.0, 380.0],
            dayValueReadAt="2025-01-08T05:10:00.000Z",
        ),
        feature(
            "heating.power.consumption.heating",
            day=[4.0, 5.0, None], week=[30.0, 28.0], month=[120.0], year=[1300.0, 1250.0],
            dayValueReadAt="2025-01-08T05:10:00.000Z",
        ),
        feature(
            "heating.power.consumption.summary.dhw",
            currentDay=1.0, lastSevenDays=10.0, currentMonth=40.0, currentYear=400.0,
        ),
        feature(
            "heating.power.consumption.summary.heating",
            currentDay=4.0, lastSevenDays=30.0, currentMonth=120.0, currentYear=1300.0,
        ),
        feature(
            "heating.heat.production.summary.dhw",
            currentDay=3.0, lastSevenDays=30.0, currentMonth=110.0, lastMonth=100.0,
        ),
        feature(
            "heating.heat.production.summary.heating",
            currentDay=14.0, lastSevenDays=110.0, currentMonth=420.0, lastMonth=500.0,
        ),
        {"feature": "heating.compressors.0.power.consumption.heating", "value": 21.5, "properties": {}},
        feature("heating.outside.temperature", value=3.2),
    ]
