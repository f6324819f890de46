"""
trend_chart.detector
~~~~~~~~~~~~~~~~~~~~
Extrema-based segmentation of a series into maximal monotonic runs, with
optional window smoothing before the turning points are located.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy.signal import windows

from .models import DataSeries

logger = logging.getLogger(__name__)

# Value changes within +/- EPSILON count as no change (plateau).
EPSILON = 1e-12

WINDOW_TYPES = ("triangular", "hanning", "gaussian")


# ------------------------------------------------------------------
# Smoothing helpers
# ------------------------------------------------------------------


def generate_window_function(
    size: int, window_type: str = "gaussian", param: Optional[float] = None
) -> np.ndarray:
    """Return normalised moving-filter weights.

    Parameters
    ----------
    size : int
        Window length; must be odd and at least 3.
    window_type : str
        ``"triangular"``, ``"hanning"`` or ``"gaussian"``.
    param : float, optional
        Gaussian spread relative to the half-width. When omitted it grows
        slowly with the window size.

    Returns
    -------
    numpy.ndarray
        Weights summing to 1.

    Raises
    ------
    ValueError
        For an even or too small *size*, or an unknown *window_type*.
    """
    if size < 3 or size % 2 == 0:
        raise ValueError(f"window size must be odd and >= 3, got {size}")

    half = (size - 1) / 2.0
    if window_type == "triangular":
        weights = windows.bartlett(size)
    elif window_type == "hanning":
        weights = windows.hann(size, sym=True)
    elif window_type == "gaussian":
        sigma = param if param and param > 0 else 0.4 + 0.1 * (size / 25.0)
        weights = windows.gaussian(size, std=sigma * half, sym=True)
    else:
        raise ValueError(
            f"unknown window type {window_type!r}, expected one of {WINDOW_TYPES}"
        )
    return weights / weights.sum()


def apply_moving_filter(values: "array-like", weights: "array-like") -> np.ndarray:
    """Weighted moving average, renormalised where the window leaves the data.

    Series shorter than 3 are returned unchanged (as a float array).
    """
    values = np.asarray(values, dtype=float)
    weights = np.asarray(weights, dtype=float)
    if weights.ndim != 1 or weights.size < 3 or weights.size % 2 == 0:
        raise ValueError("weights must be a 1-D array of odd length >= 3")
    if values.size < 3:
        return values.copy()

    half = weights.size // 2
    n = values.size
    weighted = np.convolve(values, weights)[half:half + n]
    used = np.convolve(np.ones(n), weights)[half:half + n]
    return weighted / used


# ------------------------------------------------------------------
# Extrema detection
# ------------------------------------------------------------------


def find_local_extrema(values: "array-like", tolerance: float = EPSILON) -> list[int]:
    """Return the indices of local maxima and minima of *values*.

    An index is an extremum when the last non-zero step leading into it and
    the first non-zero step leaving it point in opposite directions. Steps
    within *tolerance* are ties and never turn the trend, so a plateau
    turns at its last record. Endpoints are never extrema.
    """
    values = np.asarray(values, dtype=float)
    if values.size < 3:
        return []

    diffs = np.diff(values)
    steps = np.where(np.abs(diffs) <= tolerance, 0, np.sign(diffs))
    moving = np.flatnonzero(steps)
    if moving.size < 2:
        return []

    directions = steps[moving]
    turns = np.flatnonzero(directions[1:] != directions[:-1]) + 1
    return moving[turns].tolist()


class ExtremaSegmenter:
    """Split a series into maximal monotonic runs ending at local extrema.

    Parameters
    ----------
    tolerance : float
        Absolute dead zone for step comparisons (default :data:`EPSILON`).
    smoothing_window : int, optional
        Odd window length for smoothing before extrema detection. Disabled
        by default.
    window_type : str
        Window shape used when smoothing (default ``"gaussian"``).
    window_param : float, optional
        Shape parameter forwarded to :func:`generate_window_function`.
    """

    def __init__(
        self,
        tolerance: float = EPSILON,
        smoothing_window: Optional[int] = None,
        window_type: str = "gaussian",
        window_param: Optional[float] = None,
    ) -> None:
        self.tolerance = tolerance
        self.smoothing_window = smoothing_window
        self.window_type = window_type
        self.weights: Optional[np.ndarray] = None
        if smoothing_window is not None:
            self.weights = generate_window_function(smoothing_window, window_type, window_param)

    @staticmethod
    def segments_from_extrema(extrema: list[int], length: int) -> list[tuple[int, int]]:
        """Turn sorted extremum indices into contiguous inclusive ranges.

        Each extremum closes a segment; the next one opens right after it.
        """
        if length == 0:
            return []
        starts = [0] + [e + 1 for e in extrema]
        ends = list(extrema) + [length - 1]
        return list(zip(starts, ends))

    def detection_values(self, series: DataSeries) -> np.ndarray:
        """Values the extrema pass runs on (smoothed when configured)."""
        if self.weights is None:
            return series.values
        return apply_moving_filter(series.values, self.weights)

    def segment(self, series: DataSeries) -> list[tuple[int, int]]:
        """Partition ``[0, len(series))`` into monotonic runs.

        Returns
        -------
        list[tuple[int, int]]
            Ordered inclusive ``(start_index, end_index)`` pairs covering
            the series exactly once. Empty for an empty series.

        Raises
        ------
        InvalidSeries
            If the series is malformed (see :meth:`DataSeries.validate`).
        """
        series.validate()
        extrema = find_local_extrema(self.detection_values(series), self.tolerance)
        segments = self.segments_from_extrema(extrema, len(series))
        logger.debug(
            f"Segmented {series.identity}: {len(series)} records, "
            f"{len(extrema)} extrema, {len(segments)} segments"
        )
        return segments
