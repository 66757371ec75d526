"""
Exception types for the ViEventLog dashboard.
"""

from typing import Optional


class DashboardError(Exception):
    """Base class for errors that end up as an inline message in the UI."""


class NetworkError(DashboardError):
    """Backend unreachable or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DataError(DashboardError):
    """Backend answered, but the payload is malformed, empty or reports failure."""


class CorrectionInputError(ValueError):
    """Statistics or correction factor unusable; the correction step is skipped."""


class NavigationDegenerateWindow(ValueError):
    """A reported zoom window is narrower than the minimum window size."""

    def __init__(self, start: float, end: float):
        super().__init__(f"Zoom window {start:.2f}-{end:.2f} is too narrow")
        self.start = start
        self.end = end
