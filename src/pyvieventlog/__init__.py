"""
PyViEventLog - consumption and temperature dashboard for Viessmann heat pumps
"""

from .api_client import DashboardApiClient
from .config import settings
from .consumption import ConsumptionStatsController
from .correction import CorrectionEngine
from .database import DatabaseService
from .navigator import ZoomNavigator
from .session import DashboardSession
from .temperature import TemperatureChartController

__version__ = "0.1.0"
__all__ = [
    "settings",
    "DashboardApiClient",
    "ConsumptionStatsController",
    "CorrectionEngine",
    "DatabaseService",
    "DashboardSession",
    "TemperatureChartController",
    "ZoomNavigator",
]
