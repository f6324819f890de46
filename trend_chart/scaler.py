"""
trend_chart.scaler
~~~~~~~~~~~~~~~~~~
Y-axis bounds derived from trend statistics and configured threshold lines.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from .models import TrendStatistics

# Default number of decimal digits for tolerant float comparisons.
NDIG_PREC_COMP = 10

DEFAULT_PADDING_RATIO = 0.1
DEFAULT_MIN_BAND = 1.0


# ------------------------------------------------------------------
# Precision helpers
# ------------------------------------------------------------------


def is_equal_n_digits(first: float, second: float, n_digits: int = NDIG_PREC_COMP) -> bool:
    """True when ``|first - second| < 10 ** -n_digits``."""
    return abs(first - second) < 10.0 ** -n_digits


def is_greater_equal(first: float, second: float, n_digits: int = NDIG_PREC_COMP) -> bool:
    return first > second or is_equal_n_digits(first, second, n_digits)


def is_less_equal(first: float, second: float, n_digits: int = NDIG_PREC_COMP) -> bool:
    return first < second or is_equal_n_digits(first, second, n_digits)


class AxisScaler:
    """Compute padded Y-axis bounds.

    Parameters
    ----------
    padding_ratio : float
        Margin as a fraction of the value range (default 10 %).
    precision_digits : int
        Digits used when comparing the data maximum with the thresholds.
    min_band : float
        Smallest half-height of the axis around a single value.
    """

    def __init__(
        self,
        padding_ratio: float = DEFAULT_PADDING_RATIO,
        precision_digits: int = NDIG_PREC_COMP,
        min_band: float = DEFAULT_MIN_BAND,
    ) -> None:
        self.padding_ratio = padding_ratio
        self.precision_digits = precision_digits
        self.min_band = min_band

    def band_around(self, center: float) -> tuple[float, float]:
        half = max(abs(center) * self.padding_ratio, self.min_band)
        return center - half, center + half

    def compute_bounds(
        self,
        statistics: Sequence[TrendStatistics],
        thresholds: Iterable[float] = (),
    ) -> tuple[float, float]:
        """Return ``(axis_min, axis_max)``.

        The data range is padded below by ``padding_ratio`` of the combined
        range. Above, the padding doubles and starts from the data maximum
        when it reaches the highest threshold (within precision), otherwise
        from that threshold. A zero range, or statistics describing a
        single record, yields a band around the value instead.

        Raises
        ------
        ValueError
            If neither statistics nor thresholds are given.
        """
        thresholds = [float(t) for t in thresholds]
        if not statistics:
            if not thresholds:
                raise ValueError("no statistics or thresholds to scale the axis from")
            return self._bounds_from(min(thresholds), max(thresholds), thresholds)

        data_min = min(s.min_value for s in statistics)
        data_max = max(s.max_value for s in statistics)
        single_record = sum(s.record_count for s in statistics) <= 1
        if single_record:
            return self.band_around((data_min + data_max) / 2.0)
        return self._bounds_from(data_min, data_max, thresholds)

    def _bounds_from(
        self, data_min: float, data_max: float, thresholds: list[float]
    ) -> tuple[float, float]:
        padded_min = data_min - (data_max - data_min) * self.padding_ratio
        statistic_values = [padded_min, data_min, data_max]
        candidates = statistic_values + thresholds

        low = min(candidates)
        high = max(candidates)
        if is_equal_n_digits(high, low, self.precision_digits):
            return self.band_around(high)

        max_statistic = max(statistic_values)
        offset = (high - low) * self.padding_ratio
        axis_min = low - offset
        if is_greater_equal(max_statistic, high, self.precision_digits):
            axis_max = max_statistic + 2.0 * offset
        else:
            axis_max = high + 2.0 * offset
        return axis_min, axis_max
