"""
Temperature chart section: loads snapshots, plots the selected metrics and
keeps the zoom navigator in sync with the chart.
"""

import logging
import math
import re
from datetime import date, datetime, time
from time import monotonic
from typing import List, Optional, Tuple

import pytz

from .api_client import DashboardApiClient
from .charts import TEMPERATURE_SURFACE, AxisSpec, ChartPort, ChartSpec, SeriesSpec
from .config import settings
from .errors import DashboardError
from .fields import FIELD_STYLES, POWER_AXIS, TEMPERATURE_AXIS, series_name
from .schemas import Snapshot
from .session import DashboardSession

logger = logging.getLogger("ViEventLog")

TIME_RANGES = ("1h", "6h", "12h", "24h", "48h", "72h", "7d", "30d", "90d")
DEFAULT_HOURS = 24

NO_DATA_MESSAGE = "No temperature data available"
LOAD_ERROR_PREFIX = "Failed to load temperature data"

_TIME_RANGE_RE = re.compile(r"^(\d+)([hd])$")

# status strings some devices report instead of booleans
STATUS_VALUES = {"on": 1.0, "active": 1.0, "off": 0.0, "inactive": 0.0, "standby": 0.0}


def parse_time_range(value: str) -> int:
    """Hours for a range like ``"12h"`` or ``"7d"``; anything else is 24."""
    match = _TIME_RANGE_RE.match(value or "")
    if not match:
        return DEFAULT_HOURS
    amount = int(match.group(1))
    return amount if match.group(2) == "h" else amount * 24


def axis_label_format(hours: int) -> str:
    return "%H:%M" if hours <= 24 else "%m-%d %H:%M"


def temperature_axis_bounds(values: List[float]) -> Tuple[Optional[float], Optional[float]]:
    """20 % headroom below and 10 % above."""
    if not values:
        return None, None
    low, high = min(values), max(values)
    return math.floor(low - 0.2 * abs(low)), math.ceil(1.1 * high)


def power_axis_bounds(values: List[float]) -> Tuple[Optional[float], Optional[float]]:
    """Padding shrinks as magnitudes grow; counters above 1000 are shown as is."""
    if not values:
        return None, None
    low, high = min(values), max(values)

    if low < 100:
        lower = math.floor(low - 0.1 * abs(low))
    elif low > 1000:
        lower = low
    else:
        lower = math.floor(low - 0.005 * abs(low))

    if high < 100:
        upper = math.ceil(1.1 * high)
    elif high > 1000:
        upper = high
    else:
        upper = math.ceil(1.005 * high)
    return lower, upper


def _numeric(value) -> Optional[float]:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return STATUS_VALUES.get(value.strip().lower())
    return None


class TemperatureChartController:
    def __init__(self, client: DashboardApiClient, session: DashboardSession, port: ChartPort, timezone: Optional[str] = None):
        self.client = client
        self.session = session
        self.port = port
        self.tz = pytz.timezone(timezone or settings.timezone)
        self.enabled = False
        self.error: Optional[str] = None
        self._token = 0
        self.loaded_at: Optional[float] = None

        port.on_zoom_event(session.navigator.handle_event)
        session.navigator.bind(port.dispatch_zoom)

    @property
    def navigator(self):
        return self.session.navigator

    @property
    def fields(self):
        return self.session.fields

    @property
    def hours(self) -> int:
        return parse_time_range(self.session.time_range)

    async def initialize(self) -> bool:
        """Check the telemetry log is on and do the first load."""
        try:
            telemetry = await self.client.get_telemetry_settings()
        except DashboardError as e:
            logger.info(f"Temperature log settings unavailable, hiding chart: {e}")
            self.enabled = False
            return False

        self.enabled = telemetry.enabled
        if not self.enabled:
            logger.info("Temperature logging disabled, chart not shown")
            return False
        return await self.load()

    async def select_time_range(self, value: str) -> bool:
        self.session.time_range = value
        self.session.custom_date = None
        return await self.load()

    async def select_date(self, day: Optional[date]) -> bool:
        """Show a single calendar day; ``None`` goes back to the time range."""
        self.session.custom_date = day
        return await self.load()

    def _day_bounds(self, day: date) -> Tuple[datetime, datetime]:
        start = self.tz.localize(datetime.combine(day, time(0, 0, 0)))
        end = self.tz.localize(datetime.combine(day, time(23, 59, 59)))
        return start.astimezone(pytz.utc), end.astimezone(pytz.utc)

    async def load(self, silent: bool = False) -> bool:
        """Fetch snapshots for the current range or date and render them.

        ``silent`` suppresses the inline messages, for background refreshes.
        """
        self._token += 1
        token = self._token
        device = self.session.device
        day = self.session.custom_date
        self.loaded_at = monotonic()

        try:
            if day is not None:
                start, end = self._day_bounds(day)
                snapshots = await self.client.get_snapshots(device, start=start, end=end)
            else:
                # twice the span so there is history to pan back into
                snapshots = await self.client.get_snapshots(device, hours=self.hours * 2)
        except DashboardError as e:
            if token != self._token or device != self.session.device:
                logger.debug(f"Discarding stale temperature failure: {e}")
                return False
            self.error = f"{LOAD_ERROR_PREFIX}: {e}"
            logger.error(self.error)
            if not silent:
                self.port.show_message(TEMPERATURE_SURFACE, self.error)
            return False

        if token != self._token or device != self.session.device:
            logger.debug("Discarding stale temperature response")
            return False

        self.error = None
        if day is not None:
            self.navigator.reset_for_date()
        else:
            self.navigator.reset_for_range(self.hours)

        if not snapshots:
            logger.info(f"No temperature data for {device.key}")
            if not silent:
                self.port.show_message(TEMPERATURE_SURFACE, NO_DATA_MESSAGE)
            return False

        self.session.snapshots = snapshots
        self.fields.update_available(snapshots, self.session.current_device_settings.has_hot_water_buffer)
        logger.info(f"Loaded {len(snapshots)} temperature snapshots for {device.key}")
        self.rerender()
        return True

    def clear(self) -> None:
        self._token += 1
        self.error = None
        self.loaded_at = None
        self.port.clear(TEMPERATURE_SURFACE)

    async def refresh_if_due(self, now: Optional[float] = None, interval: Optional[int] = None) -> bool:
        """Silently reload once ``interval`` seconds have passed since the last load."""
        interval = settings.temperature_refresh_seconds if interval is None else interval
        if not self.enabled or interval <= 0 or self.loaded_at is None:
            return False
        now = monotonic() if now is None else now
        if now - self.loaded_at < interval:
            return False
        logger.debug(f"Refreshing temperature chart after {interval}s")
        return await self.load(silent=True)

    def toggle_field(self, field: str) -> bool:
        selected = self.fields.toggle(field)
        self.rerender()
        return selected

    def reset_fields(self) -> None:
        self.fields.reset()
        if self.session.snapshots:
            self.fields.update_available(
                self.session.snapshots, self.session.current_device_settings.has_hot_water_buffer
            )
        self.rerender()

    def save_fields(self) -> None:
        self.fields.save()

    def set_display_option(self, name: str, value: bool) -> None:
        if not hasattr(self.session.display, name):
            raise ValueError(f"Unknown display option '{name}'")
        setattr(self.session.display, name, value)
        self.rerender()

    def navigate(self, command: str) -> None:
        self.navigator.command(command)

    def rerender(self) -> bool:
        """Render the cached snapshots again, no fetch."""
        if not self.session.snapshots:
            return False
        self.port.render(self.build_chart_spec(self.session.snapshots))
        return True

    def build_chart_spec(self, snapshots: List[Snapshot]) -> ChartSpec:
        display = self.session.display
        series = []
        temperature_values, power_values = [], []

        for field in self.fields.selected:
            style = FIELD_STYLES.get(field)
            if style is None:
                continue
            points = [(s.timestamp, _numeric(s.get(field))) for s in snapshots]
            values = [v for _, v in points if v is not None]
            if style.axis == TEMPERATURE_AXIS:
                temperature_values.extend(values)
            elif style.axis == POWER_AXIS:
                power_values.extend(values)

            series.append(
                SeriesSpec(
                    name=series_name(field),
                    kind="line",
                    data=points,
                    axis=style.axis,
                    color=style.color,
                    step=style.step,
                    dashed=style.dashed,
                    smooth=display.smooth and not style.step,
                    show_symbols=display.show_symbols,
                    opacity=style.opacity,
                )
            )

        temp_min, temp_max = temperature_axis_bounds(temperature_values)
        power_min, power_max = power_axis_bounds(power_values)
        # indexed by TEMPERATURE_AXIS, STATUS_AXIS, POWER_AXIS
        axes = [
            AxisSpec(title="Temperature (°C)", min=temp_min, max=temp_max),
            AxisSpec(title="Status", min=0, max=1, format="d"),
            AxisSpec(title="Power / Flow", min=power_min, max=power_max),
        ]

        return ChartSpec(
            surface=TEMPERATURE_SURFACE,
            title="",
            series=series,
            x_type="time",
            axes=axes,
            zoom=self.navigator.window.as_tuple(),
            x_format=axis_label_format(self.hours),
            connect_nulls=display.connect_nulls,
        )
