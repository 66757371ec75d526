import math

import pytest

from pyvieventlog.correction import CorrectionEngine, compute_cop
from pyvieventlog.schemas import DeviceRef, DeviceSettings, StatsResult


def make_stats(**overrides):
    data = {
        "electricity_kwh": 10.0,
        "thermal_kwh": 40.0,
        "avg_cop": 4.0,
        "runtime_hours": 5.0,
        "samples": 24,
        "hourly_breakdown": [
            {"timestamp": "2025-01-05T10:00:00Z", "electricity_kwh": 2.0, "thermal_kwh": 7.0, "avg_cop": 3.5},
            {"timestamp": "2025-01-05T11:00:00Z", "electricity_kwh": 0.0, "thermal_kwh": 0.0, "avg_cop": 0.0},
        ],
        "daily_breakdown": [
            {"timestamp": "2025-01-05T00:00:00Z", "electricity_kwh": 10.0, "thermal_kwh": 40.0, "avg_cop": 4.0},
        ],
    }
    data.update(overrides)
    return StatsResult.model_validate(data)


def test_compute_cop_zero_electricity():
    assert compute_cop(5.0, 0.0) == 0.0
    assert compute_cop(6.0, 2.0) == 3.0


def test_factor_one_returns_input_unchanged():
    stats = make_stats()
    result = CorrectionEngine.apply(stats, 1.0)
    assert result is stats
    assert result == make_stats()


@pytest.mark.parametrize("factor", [0.8, 1.1, 2.5])
def test_cop_recomputed_everywhere(factor):
    stats = make_stats()
    result = CorrectionEngine.apply(stats, factor)

    assert math.isclose(result.electricity_kwh, stats.electricity_kwh * factor)
    assert math.isclose(result.avg_cop, stats.thermal_kwh / (stats.electricity_kwh * factor))
    assert result.thermal_kwh == stats.thermal_kwh

    for original, corrected in zip(stats.hourly_breakdown, result.hourly_breakdown):
        assert math.isclose(corrected.electricity_kwh, original.electricity_kwh * factor)
        expected = original.thermal_kwh / corrected.electricity_kwh if corrected.electricity_kwh > 0 else 0.0
        assert math.isclose(corrected.avg_cop, expected)
    assert math.isclose(result.daily_breakdown[0].avg_cop, 40.0 / (10.0 * factor))


def test_correction_does_not_mutate_input():
    stats = make_stats()
    CorrectionEngine.apply(stats, 1.5)
    assert stats.electricity_kwh == 10.0
    assert stats.hourly_breakdown[0].electricity_kwh == 2.0


def test_missing_breakdown_stays_missing():
    stats = make_stats(hourly_breakdown=None)
    result = CorrectionEngine.apply(stats, 1.2)
    assert result.hourly_breakdown is None
    assert len(result.daily_breakdown) == 1


@pytest.mark.parametrize("factor", [0, -1.0, float("nan"), float("inf"), "1.1", True, None])
def test_invalid_factor_degrades_to_input(factor):
    stats = make_stats()
    assert CorrectionEngine.apply(stats, factor) is stats


def test_non_stats_input_is_returned_as_is():
    assert CorrectionEngine.apply(None, 1.2) is None


def test_factor_lookup_by_device_key():
    device = DeviceRef(installation_id="123", device_id="0")
    other = DeviceRef(installation_id="123", device_id="1")
    engine = CorrectionEngine({device.key: DeviceSettings(powerCorrectionFactor=1.1)})

    assert engine.factor_for(device) == 1.1
    assert engine.factor_for(other) == 1.0
    assert math.isclose(engine.correct(make_stats(), device).electricity_kwh, 11.0)


def test_settings_added_later_are_used():
    settings_by_device = {}
    device = DeviceRef(installation_id="123")
    engine = CorrectionEngine(settings_by_device)
    settings_by_device[device.key] = DeviceSettings(correction_factor=2.0)
    assert engine.factor_for(device) == 2.0
