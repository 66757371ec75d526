"""
Compressor power correction for consumption statistics.

The electrical energy reported by some devices is systematically off. Each
device can carry a multiplicative correction factor; applying it scales the
electrical energy and recomputes the COP. Thermal energy is never touched and
nothing is written back.
"""

import logging
import math
from typing import Any, Mapping, Optional

from .errors import CorrectionInputError
from .schemas import BreakdownPoint, DeviceRef, DeviceSettings, StatsResult

logger = logging.getLogger("ViEventLog")

DEFAULT_CORRECTION_FACTOR = 1.0


def compute_cop(thermal_kwh: float, electricity_kwh: float) -> float:
    """Coefficient of performance; 0 when no electrical energy was used."""
    if electricity_kwh > 0:
        return thermal_kwh / electricity_kwh
    return 0.0


def _check_factor(factor: Any) -> float:
    if isinstance(factor, bool) or not isinstance(factor, (int, float)):
        raise CorrectionInputError(f"Correction factor must be a number, got {factor!r}")
    if not math.isfinite(factor) or factor <= 0:
        raise CorrectionInputError(f"Correction factor must be positive, got {factor}")
    return float(factor)


def _correct_point(point: BreakdownPoint, factor: float) -> BreakdownPoint:
    electricity = point.electricity_kwh * factor
    return point.model_copy(
        update={
            "electricity_kwh": electricity,
            "avg_cop": compute_cop(point.thermal_kwh, electricity),
        }
    )


class CorrectionEngine:
    """Looks up per-device correction factors and applies them."""

    def __init__(self, device_settings: Optional[Mapping[str, DeviceSettings]] = None):
        # kept by reference so settings loaded later are picked up
        self.device_settings = device_settings if device_settings is not None else {}

    def factor_for(self, device: DeviceRef) -> float:
        device_settings = self.device_settings.get(device.key)
        if device_settings is None or not device_settings.correction_factor:
            logger.debug(f"No correction factor found for device {device.key}")
            return DEFAULT_CORRECTION_FACTOR
        return device_settings.correction_factor

    def correct(self, stats: StatsResult, device: DeviceRef) -> StatsResult:
        return self.apply(stats, self.factor_for(device))

    @staticmethod
    def apply(stats: StatsResult, factor: float) -> StatsResult:
        """Scale electrical energy by ``factor`` and recompute COP.

        Returns the input itself when the factor is 1.0 or when the input
        can't be corrected; otherwise a fully independent copy.
        """
        if factor == DEFAULT_CORRECTION_FACTOR:
            return stats

        try:
            factor = _check_factor(factor)
            if not isinstance(stats, StatsResult):
                raise CorrectionInputError(
                    f"Expected consumption statistics, got {type(stats).__name__}"
                )
        except CorrectionInputError as e:
            logger.warning(f"Skipping power correction: {e}")
            return stats

        electricity = stats.electricity_kwh * factor
        update = {
            "electricity_kwh": electricity,
            "avg_cop": compute_cop(stats.thermal_kwh, electricity),
        }
        for name in ("hourly_breakdown", "daily_breakdown"):
            points = getattr(stats, name)
            if points is not None:
                update[name] = [_correct_point(p, factor) for p in points]

        logger.debug(
            f"Corrected electricity {stats.electricity_kwh:.2f} -> {electricity:.2f} kWh "
            f"(factor {factor}), COP {stats.avg_cop:.2f} -> {update['avg_cop']:.2f}"
        )
        return stats.model_copy(update=update)
