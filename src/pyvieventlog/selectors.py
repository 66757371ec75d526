"""
Period selectors for the consumption statistics.

A selection is either a named preset or an explicit inclusive date range,
never both.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, Union


class Period(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    WEEK = "week"
    MONTH = "month"
    LAST_30_DAYS = "last30days"
    YEAR = "year"


HOURLY_PERIODS = frozenset({Period.TODAY, Period.YESTERDAY})


@dataclass(frozen=True)
class PresetPeriod:
    period: Period

    def query_params(self) -> Dict[str, str]:
        return {"period": self.period.value}

    def cache_key(self, device_key: str) -> str:
        return f"{device_key}_{self.period.value}"


@dataclass(frozen=True)
class DateRange:
    """Inclusive day range; ``start == end`` is a single day."""

    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            # date pickers can be filled in either order
            swapped_start, swapped_end = self.end, self.start
            object.__setattr__(self, "start", swapped_start)
            object.__setattr__(self, "end", swapped_end)

    @classmethod
    def single_day(cls, day: date) -> "DateRange":
        return cls(day, day)

    @property
    def is_single_day(self) -> bool:
        return self.start == self.end

    def query_params(self) -> Dict[str, str]:
        return {
            "period": "range",
            "from": self.start.isoformat(),
            "to": self.end.isoformat(),
        }

    def cache_key(self, device_key: str) -> str:
        return f"{device_key}_from_{self.start.isoformat()}_to_{self.end.isoformat()}"


PeriodSelector = Union[PresetPeriod, DateRange]


def parse_period(value: Union[str, Period]) -> Period:
    try:
        return Period(value)
    except ValueError:
        raise ValueError(
            f"Unknown period '{value}', expected one of {', '.join(p.value for p in Period)}"
        ) from None
