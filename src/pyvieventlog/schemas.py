"""
Payload models for the data exchanged with the ViEventLog backend.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Keys of a raw snapshot that identify its origin and are not metrics
IDENTITY_KEYS = frozenset(
    {"timestamp", "installation_id", "gateway_id", "device_id", "account_id", "account_name"}
)

MetricValue = Optional[Union[bool, float, str]]


class Snapshot(BaseModel):
    """One sampled instant with a sparse set of metrics."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    values: Dict[str, MetricValue] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _split_metrics(cls, data: Any) -> Any:
        if isinstance(data, dict) and "values" not in data:
            return {
                "timestamp": data.get("timestamp"),
                "values": {k: v for k, v in data.items() if k not in IDENTITY_KEYS},
            }
        return data

    def get(self, field: str) -> MetricValue:
        return self.values.get(field)


class BreakdownPoint(BaseModel):
    timestamp: datetime
    electricity_kwh: float = 0.0
    thermal_kwh: float = 0.0
    avg_cop: float = 0.0
    runtime_hours: float = 0.0
    samples: int = 0


class StatsResult(BaseModel):
    """Consumption statistics over one period.

    A breakdown is ``None`` when the backend did not supply it at all, which
    is different from an empty list.
    """

    electricity_kwh: float
    thermal_kwh: float
    avg_cop: float = 0.0
    runtime_hours: float = 0.0
    samples: int = 0
    hourly_breakdown: Optional[List[BreakdownPoint]] = None
    daily_breakdown: Optional[List[BreakdownPoint]] = None


class DeviceSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    correction_factor: float = Field(default=1.0, alias="powerCorrectionFactor")
    unit_price: Optional[float] = Field(default=None, alias="electricityPrice")
    has_hot_water_buffer: bool = Field(default=False, alias="hasHotWaterBuffer")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # the backend sends null for settings the user never touched
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class DeviceRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    installation_id: str
    gateway_serial: str = ""
    device_id: str = "0"

    @property
    def key(self) -> str:
        return f"{self.installation_id}_{self.device_id}"


class TelemetrySettings(BaseModel):
    enabled: bool = False


class TelemetryLogStats(BaseModel):
    enabled: bool = False
    total_snapshots: int = 0
