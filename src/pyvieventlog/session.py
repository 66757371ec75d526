"""
Per-dashboard state shared by the controllers.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from .config import settings
from .device_stats import DeviceStatCard
from .fields import FieldSelectionStore
from .navigator import ZoomNavigator, ZoomWindow
from .schemas import DeviceRef, DeviceSettings, Snapshot, StatsResult
from .selectors import PeriodSelector, PresetPeriod, parse_period

logger = logging.getLogger("ViEventLog")


def default_selector() -> PeriodSelector:
    return PresetPeriod(parse_period(settings.default_period))


def default_device() -> DeviceRef:
    return DeviceRef(
        installation_id=settings.installation_id,
        gateway_serial=settings.gateway_serial,
        device_id=settings.device_id,
    )


@dataclass
class DisplayOptions:
    smooth: bool = False
    show_symbols: bool = False
    connect_nulls: bool = False


@dataclass
class DashboardSession:
    """Everything one open dashboard remembers between interactions.

    Caches are keyed by device; ``switch_device`` is the reset point.
    """

    device: DeviceRef = field(default_factory=default_device)
    device_settings: Dict[str, DeviceSettings] = field(default_factory=dict)
    fields: FieldSelectionStore = field(default_factory=FieldSelectionStore)
    navigator: ZoomNavigator = field(default_factory=ZoomNavigator)
    selector: PeriodSelector = field(default_factory=default_selector)
    stats_cache: Dict[str, StatsResult] = field(default_factory=dict)
    snapshots: List[Snapshot] = field(default_factory=list)
    device_statistics: List[DeviceStatCard] = field(default_factory=list)
    time_range: str = settings.default_time_range
    custom_date: Optional[date] = None
    display: DisplayOptions = field(default_factory=DisplayOptions)

    @property
    def current_device_settings(self) -> DeviceSettings:
        return self.device_settings.get(self.device.key) or DeviceSettings()

    def set_device_settings(self, device: DeviceRef, device_settings: DeviceSettings) -> None:
        self.device_settings[device.key] = device_settings

    def cached_stats(self, selector: Optional[PeriodSelector] = None) -> Optional[StatsResult]:
        selector = selector or self.selector
        return self.stats_cache.get(selector.cache_key(self.device.key))

    def switch_device(self, device: DeviceRef) -> None:
        """Make ``device`` current and drop everything cached for the old one."""
        if device == self.device:
            return
        logger.info(f"Switching device {self.device.key} -> {device.key}")
        self.device = device
        self.stats_cache.clear()
        self.snapshots = []
        self.device_statistics = []
        self.fields.clear()
        self.navigator.window = ZoomWindow()
        self.selector = default_selector()
        self.time_range = settings.default_time_range
        self.custom_date = None
