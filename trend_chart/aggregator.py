"""
trend_chart.aggregator
~~~~~~~~~~~~~~~~~~~~~~
Per-segment statistics: value range, time span, trend direction and the
running per-direction totals the info panels display.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

from .detector import EPSILON
from .models import DataSeries, TrendBoundary, TrendStatistics, TrendType

logger = logging.getLogger(__name__)

DEFAULT_REL_TOLERANCE = 1e-9


def classify_trend(
    start_value: float,
    end_value: float,
    rel_tolerance: float = DEFAULT_REL_TOLERANCE,
    abs_tolerance: float = EPSILON,
) -> TrendType:
    """FLAT when both values are close, otherwise the direction of change."""
    if math.isclose(start_value, end_value, rel_tol=rel_tolerance, abs_tol=abs_tolerance):
        return TrendType.FLAT
    return TrendType.ASCENDING if end_value > start_value else TrendType.DESCENDING


class TrendAggregator:
    """Compute :class:`TrendStatistics` for every segment of a series.

    Parameters
    ----------
    rel_tolerance : float
        Relative tolerance under which a segment counts as flat.
    abs_tolerance : float
        Absolute tolerance, used for values near zero.

    Examples
    --------
    >>> from trend_chart import DataSeries, TrendAggregator, TrendType
    >>> series = DataSeries.from_arrays([0, 1000, 2000], [1.0, 3.0, 1.0])
    >>> [b.trend_type for b in TrendAggregator().aggregate(series, [(0, 1), (2, 2)])]
    [<TrendType.ASCENDING: 'ascending'>, <TrendType.DESCENDING: 'descending'>]
    """

    def __init__(
        self,
        rel_tolerance: float = DEFAULT_REL_TOLERANCE,
        abs_tolerance: float = EPSILON,
    ) -> None:
        self.rel_tolerance = rel_tolerance
        self.abs_tolerance = abs_tolerance

    @staticmethod
    def check_boundaries(length: int, boundaries: Sequence[tuple[int, int]]) -> None:
        """Raise ``ValueError`` unless *boundaries* tile ``[0, length)``."""
        expected_start = 0
        for start, end in boundaries:
            if start != expected_start or end < start or end >= length:
                raise ValueError(
                    f"boundary ({start}, {end}) does not continue at {expected_start} "
                    f"within a series of {length} records"
                )
            expected_start = end + 1
        if length and expected_start != length:
            raise ValueError(f"boundaries stop at {expected_start}, series has {length} records")

    def aggregate(
        self, series: DataSeries, boundaries: Sequence[tuple[int, int]]
    ) -> list[TrendBoundary]:
        """Return one :class:`TrendBoundary` per ``(start, end)`` pair.

        The direction of a segment is measured from its anchor, the
        extremum that closed the previous segment (``start - 1``), to its
        last record. The first segment is anchored on its own first record.
        """
        self.check_boundaries(len(series), boundaries)
        values = series.values
        timestamps = series.timestamps

        totals = {trend_type: 0.0 for trend_type in TrendType}
        counts = {trend_type: 0 for trend_type in TrendType}
        result: list[TrendBoundary] = []

        for position, (start, end) in enumerate(boundaries):
            window = values[start:end + 1]
            anchor = float(values[start - 1] if start > 0 else values[start])
            last = float(values[end])
            trend_type = classify_trend(anchor, last, self.rel_tolerance, self.abs_tolerance)

            abs_delta = abs(last - anchor)
            totals[trend_type] += abs_delta
            counts[trend_type] += 1

            statistics = TrendStatistics(
                trend_type=trend_type,
                min_value=float(window.min()),
                max_value=float(window.max()),
                start_timestamp=int(timestamps[start]),
                end_timestamp=int(timestamps[end]),
                record_count=end - start + 1,
                start_value=anchor,
                end_value=last,
                abs_delta=abs_delta,
                cumulative_abs_delta=totals[trend_type],
                ordinal=counts[trend_type],
            )
            result.append(TrendBoundary(position, start, end, statistics))

        logger.debug(
            f"Aggregated {len(result)} boundaries for {series.identity}: "
            + ", ".join(f"{t.value}={counts[t]}" for t in TrendType)
        )
        return result
