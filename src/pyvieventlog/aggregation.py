"""
Breakdown selection and projections for the consumption tile.

Picks the hourly or daily breakdown of a StatsResult for the selected period,
trims it to an explicit date range, and projects it into chart series and
breakdown table rows.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional, Union

import pandas as pd
import pytz

from .config import settings
from .schemas import BreakdownPoint, StatsResult
from .selectors import HOURLY_PERIODS, DateRange, Period, PeriodSelector, PresetPeriod

logger = logging.getLogger("ViEventLog")

NO_DATA_MESSAGE = "No data available."
MIN_COP_AXIS_MAX = 6

PERIOD_TITLES = {
    Period.TODAY: "Today's hourly profile",
    Period.YESTERDAY: "Yesterday's hourly profile",
    Period.WEEK: "Last 7 days",
    Period.MONTH: "Current month",
    Period.LAST_30_DAYS: "Last 30 days",
    Period.YEAR: "Current year",
}
FALLBACK_TITLE = "Consumption history"

TABLE_COLUMNS = ["Time", "Electricity (kWh)", "Heat (kWh)", "COP", "Runtime", "Samples"]


class Granularity(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"


@dataclass
class BreakdownSelection:
    granularity: Granularity
    points: List[BreakdownPoint] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return bool(self.points)

    @property
    def is_hourly(self) -> bool:
        return self.granularity is Granularity.HOURLY


@dataclass
class BreakdownRow:
    time_label: str
    electricity_kwh: float
    thermal_kwh: float
    avg_cop: float
    runtime_label: str
    samples: int


@dataclass
class ConsumptionChartData:
    categories: List[str]
    electricity: List[float]
    thermal: List[float]
    cop: List[float]
    cop_axis_max: int


def _as_period(period: Union[Period, str, None]) -> Optional[Period]:
    if period is None or isinstance(period, Period):
        return period
    try:
        return Period(period)
    except ValueError:
        return None


def format_date(day: date) -> str:
    return day.strftime("%d.%m.%Y")


def format_kwh(kwh: float) -> str:
    if kwh >= 1000:
        return f"{kwh / 1000:.2f} MWh"
    return f"{kwh:.2f} kWh"


def format_runtime(hours: float) -> str:
    """Format fractional hours as ``"Hh Mm"``."""
    whole = math.floor(hours)
    minutes = round((hours - whole) * 60)
    if minutes == 60:
        whole, minutes = whole + 1, 0
    return f"{whole}h {minutes}m"


def hour_range_label(hour: int) -> str:
    return f"{hour:02d}:00 - {(hour + 1) % 24:02d}:00"


def chart_title(
    period: Union[Period, str, None] = None,
    custom_date: Optional[date] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> str:
    period = _as_period(period)
    if period in PERIOD_TITLES:
        return PERIOD_TITLES[period]

    if custom_date or (date_from and date_to and date_from == date_to):
        return f"Hourly profile {format_date(custom_date or date_from)}"

    if date_from and date_to:
        return f"Period {format_date(date_from)} to {format_date(date_to)}"

    return FALLBACK_TITLE


class PeriodAggregator:
    """Selects and projects breakdowns in the dashboard's local time zone."""

    def __init__(self, timezone: Optional[str] = None):
        self.tz = pytz.timezone(timezone or settings.timezone)

    def to_local(self, timestamp: datetime) -> datetime:
        if timestamp.tzinfo is None:
            return self.tz.localize(timestamp)
        return timestamp.astimezone(self.tz)

    def local_date(self, timestamp: datetime) -> date:
        return self.to_local(timestamp).date()

    @staticmethod
    def is_hourly(
        period: Union[Period, str, None] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> bool:
        if _as_period(period) in HOURLY_PERIODS:
            return True
        return date_from is not None and date_to is not None and date_from == date_to

    def filter_by_date_range(
        self, points: List[BreakdownPoint], date_from: date, date_to: date
    ) -> List[BreakdownPoint]:
        """Keep points between ``date_from`` 00:00 and ``date_to`` end of day."""
        if date_from == date_to:
            # compare calendar days so that points stamped right at a time
            # zone boundary still belong to their day
            return [p for p in points if self.local_date(p.timestamp) == date_from]

        lower = self.tz.localize(datetime.combine(date_from, time.min))
        upper = self.tz.localize(datetime.combine(date_to, time.max))
        return [p for p in points if lower <= self.to_local(p.timestamp) <= upper]

    def select_breakdown(
        self,
        stats: StatsResult,
        period: Union[Period, str, None] = None,
        custom_date: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> BreakdownSelection:
        hourly = self.is_hourly(period, date_from, date_to)
        granularity = Granularity.HOURLY if hourly else Granularity.DAILY
        points = stats.hourly_breakdown if hourly else stats.daily_breakdown

        if points is None:
            logger.info(f"No {granularity.value} breakdown in statistics")
            return BreakdownSelection(granularity)

        if date_from and date_to:
            points = self.filter_by_date_range(points, date_from, date_to)
        return BreakdownSelection(granularity, list(points))

    def select_for(self, stats: StatsResult, selector: PeriodSelector) -> BreakdownSelection:
        if isinstance(selector, PresetPeriod):
            return self.select_breakdown(stats, period=selector.period)
        return self.select_breakdown(stats, date_from=selector.start, date_to=selector.end)

    @staticmethod
    def title_for(selector: PeriodSelector) -> str:
        if isinstance(selector, PresetPeriod):
            return chart_title(selector.period)
        if isinstance(selector, DateRange):
            if selector.is_single_day:
                return chart_title(custom_date=selector.start)
            return chart_title(date_from=selector.start, date_to=selector.end)
        return FALLBACK_TITLE

    def _category_label(self, point: BreakdownPoint, hourly: bool) -> str:
        local = self.to_local(point.timestamp)
        if hourly:
            return f"{local.hour}:00"
        return f"{local.day}.{local.month}"

    def chart_data(self, selection: BreakdownSelection) -> ConsumptionChartData:
        points = selection.points
        cop = [p.avg_cop for p in points]
        return ConsumptionChartData(
            categories=[self._category_label(p, selection.is_hourly) for p in points],
            electricity=[p.electricity_kwh for p in points],
            thermal=[p.thermal_kwh for p in points],
            cop=cop,
            cop_axis_max=max(math.ceil(max(cop + [0]) + 1), MIN_COP_AXIS_MAX),
        )

    def table_rows(self, selection: BreakdownSelection) -> List[BreakdownRow]:
        rows = []
        for point in selection.points:
            local = self.to_local(point.timestamp)
            if selection.is_hourly:
                label = hour_range_label(local.hour)
            else:
                label = f"{local.day}.{local.month}.{local.year}"
            rows.append(
                BreakdownRow(
                    time_label=label,
                    electricity_kwh=point.electricity_kwh,
                    thermal_kwh=point.thermal_kwh,
                    avg_cop=point.avg_cop,
                    runtime_label=format_runtime(point.runtime_hours),
                    samples=point.samples,
                )
            )
        return rows

    def breakdown_frame(self, selection: BreakdownSelection) -> pd.DataFrame:
        """Breakdown table as a DataFrame, values rounded for display."""
        rows = self.table_rows(selection)
        frame = pd.DataFrame(
            [
                [
                    r.time_label,
                    round(r.electricity_kwh, 2),
                    round(r.thermal_kwh, 2),
                    round(r.avg_cop, 2),
                    r.runtime_label,
                    r.samples,
                ]
                for r in rows
            ],
            columns=TABLE_COLUMNS,
        )
        if not selection.is_hourly:
            frame = frame.rename(columns={"Time": "Date"})
        return frame
