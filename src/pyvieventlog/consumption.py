"""
Consumption statistics tile.

Loads statistics for the selected period, applies the device's power
correction, and renders the summary, the consumption chart and the breakdown
table. Only the response to the most recent request is ever rendered.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Optional, Union

from .aggregation import NO_DATA_MESSAGE, BreakdownSelection, PeriodAggregator
from .api_client import DashboardApiClient
from .charts import (
    BREAKDOWN_SURFACE,
    COLORS,
    CONSUMPTION_SURFACE,
    STATS_SURFACE,
    AxisSpec,
    ChartPort,
    ChartSpec,
    SeriesSpec,
)
from .config import settings
from .correction import CorrectionEngine
from .device_stats import DeviceStatCard, device_statistics, extract_key_features
from .errors import DashboardError
from .schemas import StatsResult
from .selectors import DateRange, Period, PeriodSelector, PresetPeriod, parse_period
from .session import DashboardSession

logger = logging.getLogger("ViEventLog")

LOAD_ERROR_PREFIX = "Failed to load consumption data"


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class CopBand(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    NEUTRAL = "neutral"


def classify_cop(cop: float) -> CopBand:
    if cop >= 4:
        return CopBand.GOOD
    if cop >= 3:
        return CopBand.FAIR
    if cop > 0:
        return CopBand.POOR
    return CopBand.NEUTRAL


@dataclass
class ConsumptionMetrics:
    electricity_kwh: float
    thermal_kwh: float
    avg_cop: float
    runtime_hours: float
    unit_price: float
    cost: float
    efficiency: float
    cop_band: CopBand
    samples: int = 0


def derive_metrics(stats: StatsResult, unit_price: float) -> ConsumptionMetrics:
    """Summary figures shown above the chart."""
    efficiency = stats.thermal_kwh / stats.electricity_kwh if stats.electricity_kwh else 0.0
    return ConsumptionMetrics(
        electricity_kwh=stats.electricity_kwh,
        thermal_kwh=stats.thermal_kwh,
        avg_cop=stats.avg_cop,
        runtime_hours=stats.runtime_hours,
        unit_price=unit_price,
        cost=stats.electricity_kwh * unit_price,
        efficiency=efficiency,
        cop_band=classify_cop(stats.avg_cop),
        samples=stats.samples,
    )


class ConsumptionStatsController:
    def __init__(
        self,
        client: DashboardApiClient,
        session: DashboardSession,
        port: ChartPort,
        correction: Optional[CorrectionEngine] = None,
        aggregator: Optional[PeriodAggregator] = None,
    ):
        self.client = client
        self.session = session
        self.port = port
        self.correction = correction or CorrectionEngine(session.device_settings)
        self.aggregator = aggregator or PeriodAggregator()

        self.state = LoadState.IDLE
        self.error: Optional[str] = None
        self.selection: Optional[BreakdownSelection] = None
        self.metrics: Optional[ConsumptionMetrics] = None
        self._token = 0

    @property
    def selector(self) -> PeriodSelector:
        return self.session.selector

    @property
    def stats(self) -> Optional[StatsResult]:
        """Corrected statistics of the current selection, if loaded."""
        return self.session.cached_stats()

    @property
    def unit_price(self) -> float:
        price = self.session.current_device_settings.unit_price
        return price if price is not None else settings.default_unit_price

    async def is_available(self) -> bool:
        """Whether the tile should be shown at all."""
        try:
            log_stats = await self.client.get_telemetry_stats()
        except DashboardError as e:
            logger.info(f"Telemetry log unavailable, hiding consumption tile: {e}")
            return False
        return log_stats.enabled and log_stats.total_snapshots > 0

    async def select_period(self, period: Union[Period, str]) -> bool:
        return await self._load(PresetPeriod(parse_period(period)))

    async def select_date_range(self, date_from: date, date_to: Optional[date] = None) -> bool:
        selector = DateRange.single_day(date_from) if date_to is None else DateRange(date_from, date_to)
        return await self._load(selector)

    async def refresh(self) -> bool:
        return await self._load(self.session.selector)

    async def _load(self, selector: PeriodSelector) -> bool:
        """Fetch ``selector`` and render it unless a newer request was issued meanwhile."""
        self._token += 1
        token = self._token
        device = self.session.device
        key = selector.cache_key(device.key)

        self.session.selector = selector
        self.state = LoadState.LOADING
        logger.info(f"Loading consumption statistics for {key}")

        try:
            stats = await self.client.get_consumption_stats(device, selector)
        except DashboardError as e:
            if self._is_stale(token, device):
                logger.debug(f"Discarding stale consumption failure for {key}: {e}")
                return False
            self.state = LoadState.ERROR
            self.error = f"{LOAD_ERROR_PREFIX}: {e}"
            logger.error(self.error)
            self.port.show_message(STATS_SURFACE, self.error)
            return False

        if self._is_stale(token, device):
            logger.debug(f"Discarding stale consumption response for {key}")
            return False

        corrected = self.correction.correct(stats, device)
        self.session.stats_cache[key] = corrected
        self.state = LoadState.READY
        self.error = None
        self._render(selector, corrected)
        return True

    async def load_device_statistics(self) -> List[DeviceStatCard]:
        """Fetch the device's own energy counters and build the statistics cards.

        These are optional extras; a failing request leaves no cards rather
        than an error on the tile.
        """
        device = self.session.device
        try:
            features = await self.client.get_device_features(device)
        except DashboardError as e:
            logger.warning(f"Device statistics unavailable for {device.key}: {e}")
            features = []

        if device != self.session.device:
            logger.debug(f"Discarding device statistics of {device.key}")
            return []

        self.session.device_statistics = device_statistics(extract_key_features(features))
        return self.session.device_statistics

    def clear(self) -> None:
        """Forget what was shown for the previous device."""
        self._token += 1
        self.state = LoadState.IDLE
        self.error = None
        self.selection = None
        self.metrics = None
        for surface in (STATS_SURFACE, CONSUMPTION_SURFACE, BREAKDOWN_SURFACE):
            self.port.clear(surface)

    def _is_stale(self, token: int, device) -> bool:
        return token != self._token or device != self.session.device

    def rerender(self) -> bool:
        """Render the cached result of the current selection again."""
        stats = self.session.cached_stats()
        if stats is None:
            return False
        self._render(self.session.selector, stats)
        return True

    def _render(self, selector: PeriodSelector, stats: StatsResult) -> None:
        self.metrics = derive_metrics(stats, self.unit_price)
        self.port.render(self.energy_split_spec(stats))

        self.selection = self.aggregator.select_for(stats, selector)
        if not self.selection.has_data:
            self.port.show_message(CONSUMPTION_SURFACE, NO_DATA_MESSAGE)
            self.port.show_message(BREAKDOWN_SURFACE, NO_DATA_MESSAGE)
            return

        self.port.render(self.consumption_chart_spec(selector, self.selection))
        self.port.render_table(BREAKDOWN_SURFACE, self.aggregator.breakdown_frame(self.selection))

    def consumption_chart_spec(self, selector: PeriodSelector, selection: BreakdownSelection) -> ChartSpec:
        data = self.aggregator.chart_data(selection)
        return ChartSpec(
            surface=CONSUMPTION_SURFACE,
            title=self.aggregator.title_for(selector),
            categories=data.categories,
            axes=[AxisSpec("Energy (kWh)"), AxisSpec("COP", min=0, max=data.cop_axis_max)],
            series=[
                SeriesSpec("Electricity", "bar", data.electricity, color=COLORS["electricity"]),
                SeriesSpec("Heat", "bar", data.thermal, color=COLORS["thermal"]),
                SeriesSpec("COP", "line", data.cop, axis=1, color=COLORS["cop"], smooth=True, show_symbols=True),
            ],
        )

    @staticmethod
    def energy_split_spec(stats: StatsResult) -> ChartSpec:
        return ChartSpec(
            surface=STATS_SURFACE,
            title="Energy split",
            series=[
                SeriesSpec("Electricity", "arc", [stats.electricity_kwh], color=COLORS["electricity"]),
                SeriesSpec("Heat produced", "arc", [stats.thermal_kwh], color=COLORS["thermal"]),
            ],
        )
