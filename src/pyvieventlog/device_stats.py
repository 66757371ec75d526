"""
Device statistics cards.

Besides the telemetry log, the heat pump itself reports energy counters as
device features: day/week/month/year arrays (newest first), period summaries
and weekly compressor values. This module picks the relevant features and
turns them into cards for the consumption tile.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

import pytz
from pydantic import BaseModel, Field

from .config import settings

logger = logging.getLogger("ViEventLog")

# short key -> feature name as reported by the device
FEATURE_KEYS = {
    "power_consumption_dhw": "heating.power.consumption.dhw",
    "power_consumption_heating": "heating.power.consumption.heating",
    "power_consumption_summary_dhw": "heating.power.consumption.summary.dhw",
    "power_consumption_summary_heating": "heating.power.consumption.summary.heating",
    "heat_production_dhw": "heating.heat.production.dhw",
    "heat_production_heating": "heating.heat.production.heating",
    "heat_production_summary_dhw": "heating.heat.production.summary.dhw",
    "heat_production_summary_heating": "heating.heat.production.summary.heating",
    "gas_consumption_dhw": "heating.gas.consumption.dhw",
    "gas_consumption_heating": "heating.gas.consumption.heating",
    "compressor_power_consumption_dhw": "heating.compressors.0.power.consumption.dhw",
    "compressor_power_consumption_heating": "heating.compressors.0.power.consumption.heating",
    "compressor_heat_production_dhw": "heating.compressors.0.heat.production.dhw",
    "compressor_heat_production_heating": "heating.compressors.0.heat.production.heating",
    "compressor_heat_production_cooling": "heating.compressors.0.heat.production.cooling",
}

# (property, tab label, max entries)
ARRAY_PERIODS = [
    ("day", "Day", 8),
    ("week", "Week", 6),
    ("month", "Month", 13),
    ("year", "Year", 2),
]

HEAT_SUMMARY_PERIODS = [
    ("currentDay", "Today"),
    ("lastSevenDays", "Last 7 days"),
    ("currentMonth", "Current month"),
    ("lastMonth", "Last month"),
    ("currentYear", "Current year"),
    ("lastYear", "Last year"),
]

# (property, tab label, days covered)
SUMMARY_PERIODS = [
    ("currentDay", "Today", 1),
    ("lastSevenDays", "7 days", 7),
    ("currentMonth", "Month", 30),
    ("currentYear", "Year", 365),
]

SUMMARY_GROUP = "Periods"
WEEKLY_GROUP = "Week"


class FeatureProperty(BaseModel):
    type: Optional[str] = None
    value: Any = None
    unit: Optional[str] = None


class DeviceFeature(BaseModel):
    feature: str = ""
    value: Any = None
    properties: Dict[str, FeatureProperty] = Field(default_factory=dict)

    def series(self, period: str) -> Optional[List[Any]]:
        prop = self.properties.get(period)
        if prop is None or not isinstance(prop.value, list):
            return None
        return prop.value

    def array_value(self, period: str, index: int) -> Optional[float]:
        values = self.series(period)
        if values is None or index >= len(values):
            return None
        return _number(values[index])

    def summary_value(self, period: str) -> Optional[float]:
        prop = self.properties.get(period)
        return _number(prop.value) if prop is not None else None

    def single_value(self) -> Optional[float]:
        if self.value is not None:
            return _number(self.value)
        return self.summary_value("value")

    def read_at(self) -> Optional[datetime]:
        """When the day values were last read from the device."""
        prop = self.properties.get("dayValueReadAt")
        if prop is None or not isinstance(prop.value, str):
            return None
        try:
            return datetime.fromisoformat(prop.value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unreadable dayValueReadAt on {self.feature}: {prop.value}")
            return None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def extract_key_features(features: Iterable[DeviceFeature]) -> Dict[str, DeviceFeature]:
    by_name = {f.feature: f for f in features}
    return {key: by_name[name] for key, name in FEATURE_KEYS.items() if name in by_name}


@dataclass
class StatEntry:
    label: str
    dhw: Optional[float] = None
    heating: Optional[float] = None
    cooling: Optional[float] = None

    @property
    def total(self) -> float:
        return (self.dhw or 0.0) + (self.heating or 0.0) + (self.cooling or 0.0)


@dataclass
class StatCard:
    """A card of tab groups, each group a list of labelled entries."""

    key: str
    title: str
    unit: str
    groups: Dict[str, List[StatEntry]] = field(default_factory=dict)


@dataclass
class SummaryEntry:
    label: str
    days: int
    power_dhw: Optional[float] = None
    power_heating: Optional[float] = None
    heat_dhw: Optional[float] = None
    heat_heating: Optional[float] = None

    @property
    def total_power(self) -> float:
        return (self.power_dhw or 0.0) + (self.power_heating or 0.0)

    @property
    def total_heat(self) -> float:
        return (self.heat_dhw or 0.0) + (self.heat_heating or 0.0)

    @property
    def cop(self) -> Optional[float]:
        if self.total_power > 0 and self.total_heat > 0:
            return self.total_heat / self.total_power
        return None

    @property
    def weekly_power(self) -> Optional[float]:
        """Average electricity per week, for periods longer than a day."""
        if self.days <= 1:
            return None
        return self.total_power / self.days * 7


@dataclass
class SummaryCard:
    title: str
    entries: List[SummaryEntry] = field(default_factory=list)


DeviceStatCard = Union[StatCard, SummaryCard]


def _shift_month(day: date, months_back: int) -> date:
    year, month = divmod(day.year * 12 + day.month - 1 - months_back, 12)
    return date(year, month + 1, 1)


def period_label(period: str, index: int, reference: date) -> str:
    """Tab label of entry ``index`` (0 is the newest) of an array period."""
    if period == "day":
        return (reference - timedelta(days=index)).strftime("%a %d.%m")
    if period == "week":
        return f"CW {(reference - timedelta(weeks=index)).isocalendar()[1]}"
    if period == "month":
        return _shift_month(reference, index).strftime("%B %Y")
    return str(reference.year - index)


def _reference_day(now: datetime, *features: Optional[DeviceFeature]) -> date:
    for feature in features:
        read_at = feature.read_at() if feature is not None else None
        if read_at is not None:
            if read_at.tzinfo is not None and now.tzinfo is not None:
                read_at = read_at.astimezone(now.tzinfo)
            return read_at.date()
    return now.date()


def array_card(
    key: str,
    title: str,
    unit: str,
    dhw: Optional[DeviceFeature],
    heating: Optional[DeviceFeature],
    now: datetime,
) -> Optional[StatCard]:
    """Day/week/month/year history of a dhw + heating feature pair."""
    reference = _reference_day(now, heating, dhw)
    card = StatCard(key, title, unit)

    for period, group, limit in ARRAY_PERIODS:
        values = dhw.series(period) if dhw is not None else None
        if values is None and heating is not None:
            values = heating.series(period)

        entries = []
        for i in range(min(len(values or []), limit)):
            dhw_value = dhw.array_value(period, i) if dhw is not None else None
            heating_value = heating.array_value(period, i) if heating is not None else None
            if dhw_value is None and heating_value is None:
                continue
            entries.append(StatEntry(period_label(period, i, reference), dhw_value, heating_value))
        if entries:
            card.groups[group] = entries

    return card if card.groups else None


def heat_summary_card(kf: Dict[str, DeviceFeature]) -> Optional[StatCard]:
    dhw = kf.get("heat_production_summary_dhw")
    heating = kf.get("heat_production_summary_heating")
    entries = []
    for period, label in HEAT_SUMMARY_PERIODS:
        dhw_value = dhw.summary_value(period) if dhw is not None else None
        heating_value = heating.summary_value(period) if heating is not None else None
        if dhw_value is None and heating_value is None:
            continue
        entries.append(StatEntry(label, dhw_value, heating_value))
    if not entries:
        return None
    return StatCard("heat", "Heat produced", "kWh", {SUMMARY_GROUP: entries})


def compressor_cards(kf: Dict[str, DeviceFeature]) -> List[StatCard]:
    def value(key):
        feature = kf.get(key)
        return feature.single_value() if feature is not None else None

    cards = []
    power = StatEntry(
        "Weekly",
        dhw=value("compressor_power_consumption_dhw"),
        heating=value("compressor_power_consumption_heating"),
    )
    if power.dhw is not None or power.heating is not None:
        cards.append(
            StatCard("compressor_power", "Compressor power consumption (weekly)", "kWh", {WEEKLY_GROUP: [power]})
        )

    heat = StatEntry(
        "Weekly",
        dhw=value("compressor_heat_production_dhw"),
        heating=value("compressor_heat_production_heating"),
        cooling=value("compressor_heat_production_cooling"),
    )
    if heat.dhw is not None or heat.heating is not None or heat.cooling is not None:
        cards.append(
            StatCard("compressor_heat", "Compressor heat production (weekly)", "kWh", {WEEKLY_GROUP: [heat]})
        )
    return cards


def summary_card(kf: Dict[str, DeviceFeature]) -> Optional[SummaryCard]:
    """Electricity and heat per summary period, with the COP derived from both."""
    sources = {
        "power_dhw": kf.get("power_consumption_summary_dhw"),
        "power_heating": kf.get("power_consumption_summary_heating"),
        "heat_dhw": kf.get("heat_production_summary_dhw"),
        "heat_heating": kf.get("heat_production_summary_heating"),
    }
    card = SummaryCard("Consumption statistics")
    for period, label, days in SUMMARY_PERIODS:
        values = {
            name: feature.summary_value(period) if feature is not None else None
            for name, feature in sources.items()
        }
        if all(v is None for v in values.values()):
            continue
        card.entries.append(SummaryEntry(label, days, **values))
    return card if card.entries else None


def has_device_statistics(kf: Dict[str, DeviceFeature]) -> bool:
    array_keys = (
        "power_consumption_dhw",
        "power_consumption_heating",
        "heat_production_dhw",
        "heat_production_heating",
        "gas_consumption_heating",
    )
    summary_keys = ("power_consumption_summary_dhw", "power_consumption_summary_heating")
    return any(k in kf for k in array_keys + summary_keys)


def device_statistics(
    kf: Dict[str, DeviceFeature], now: Optional[datetime] = None
) -> List[DeviceStatCard]:
    """All statistics cards the device features allow.

    Array and summary cards are both shown since the arrays can lag behind
    the summaries.
    """
    if not has_device_statistics(kf):
        return []
    now = now or datetime.now(pytz.timezone(settings.timezone))

    cards: List[DeviceStatCard] = []
    power = array_card(
        "power", "Power consumption", "kWh",
        kf.get("power_consumption_dhw"), kf.get("power_consumption_heating"), now,
    )
    if power is not None:
        cards.append(power)

    if "heat_production_dhw" in kf and "heat_production_heating" in kf:
        heat = array_card(
            "heat", "Heat produced", "kWh",
            kf["heat_production_dhw"], kf["heat_production_heating"], now,
        )
    else:
        heat = heat_summary_card(kf)
    if heat is not None:
        cards.append(heat)

    cards.extend(compressor_cards(kf))

    gas = array_card(
        "gas", "Gas consumption", "m³",
        kf.get("gas_consumption_dhw"), kf.get("gas_consumption_heating"), now,
    )
    if gas is not None:
        cards.append(gas)

    summary = summary_card(kf)
    if summary is not None:
        cards.append(summary)

    logger.debug(f"Built {len(cards)} device statistics cards")
    return cards
