"""
HTTP client for the ViEventLog backend.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from .config import settings
from .device_stats import DeviceFeature
from .errors import DataError, NetworkError
from .schemas import (
    DeviceRef,
    DeviceSettings,
    Snapshot,
    StatsResult,
    TelemetryLogStats,
    TelemetrySettings,
)
from .selectors import PeriodSelector

logger = logging.getLogger("ViEventLog")


def _instant(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


class DashboardApiClient:
    """Async client for the ViEventLog backend endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.api_base_url
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.transport = transport

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.get(path, params=params)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise NetworkError(f"API returned {status}", status_code=status) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Request to {path} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise DataError(f"Invalid JSON from {path}: {e}") from e

    async def get_consumption_stats(self, device: DeviceRef, selector: PeriodSelector) -> StatsResult:
        """Fetch consumption statistics for a period or date range."""
        params = {
            "installationId": device.installation_id,
            "gatewaySerial": device.gateway_serial,
            "deviceId": device.device_id,
            **selector.query_params(),
        }
        data = await self._get_json("/api/consumption/stats", params)

        if not isinstance(data, dict) or not data.get("success"):
            message = data.get("error") if isinstance(data, dict) else None
            raise DataError(message or "Failed to load consumption data")
        if not data.get("stats"):
            raise DataError("Consumption statistics missing in response")

        try:
            return StatsResult.model_validate(data["stats"])
        except ValidationError as e:
            raise DataError(f"Malformed consumption statistics: {e.error_count()} errors") from e

    async def get_snapshots(
        self,
        device: DeviceRef,
        hours: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Snapshot]:
        """Fetch raw snapshots, either a lookback in hours or a [start, end) range."""
        params: Dict[str, Any] = {
            "installationId": device.installation_id,
            "gatewayId": device.gateway_serial,
            "deviceId": device.device_id,
            "limit": limit or settings.snapshot_limit,
        }
        if start is not None and end is not None:
            params["startTime"] = _instant(start)
            params["endTime"] = _instant(end)
        elif hours is not None:
            params["hours"] = hours
        else:
            raise ValueError("Either hours or start and end are required")

        data = await self._get_json("/api/temperature-log/data", params)
        rows = data.get("data") if isinstance(data, dict) else None
        if not rows:
            return []

        try:
            return [Snapshot.model_validate(row) for row in rows]
        except ValidationError as e:
            raise DataError(f"Malformed snapshot data: {e.error_count()} errors") from e

    async def get_telemetry_settings(self) -> TelemetrySettings:
        data = await self._get_json("/api/temperature-log/settings")
        try:
            return TelemetrySettings.model_validate(data)
        except ValidationError as e:
            raise DataError(f"Malformed telemetry settings: {e}") from e

    async def get_telemetry_stats(self) -> TelemetryLogStats:
        data = await self._get_json("/api/temperature-log/stats")
        try:
            return TelemetryLogStats.model_validate(data)
        except ValidationError as e:
            raise DataError(f"Malformed telemetry statistics: {e}") from e

    async def get_device_settings(self, device: DeviceRef) -> DeviceSettings:
        data = await self._get_json(
            "/api/device-settings",
            {"installationId": device.installation_id, "deviceId": device.device_id},
        )
        if not data:
            return DeviceSettings()
        try:
            return DeviceSettings.model_validate(data)
        except ValidationError as e:
            raise DataError(f"Malformed device settings: {e}") from e

    async def get_device_features(self, device: DeviceRef) -> List[DeviceFeature]:
        """Fetch the device's feature list (energy counters and summaries among them)."""
        data = await self._get_json(
            "/api/features",
            {
                "installationId": device.installation_id,
                "gatewaySerial": device.gateway_serial,
                "deviceId": device.device_id,
            },
        )
        rows = data.get("features") if isinstance(data, dict) else data
        if not rows:
            return []
        if not isinstance(rows, list):
            raise DataError("Feature list missing in response")

        try:
            return [DeviceFeature.model_validate(row) for row in rows]
        except ValidationError as e:
            raise DataError(f"Malformed device features: {e.error_count()} errors") from e
