"""
trend_chart.exceptions
~~~~~~~~~~~~~~~~~~~~~~
Error types raised by the segmentation pipeline and the chart-data cache.
"""

from __future__ import annotations

from typing import Any, Optional


class TrendChartError(Exception):
    """Base class for all trend_chart errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidSeries(TrendChartError):
    """The series violates a precondition (ordering, channel index, values).

    Raised before any segmentation work is scheduled. Not recoverable by
    retrying with the same series.
    """

    def __init__(self, message: str, index: Optional[int] = None, reason: str = "") -> None:
        super().__init__(message, details={"index": index, "reason": reason})
        self.index = index
        self.reason = reason


class ComputationFailure(TrendChartError):
    """A pipeline stage raised while computing chart data for a cache key.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, message: str, key: Any = None) -> None:
        super().__init__(message, details={"key": key})
        self.key = key
