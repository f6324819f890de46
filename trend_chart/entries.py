"""
trend_chart.entries
~~~~~~~~~~~~~~~~~~~
Conversion of trend boundaries into positioned, colorized chart entries,
memoised per source record so unchanged records keep their entry objects
across rebuilds.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol, Sequence

from .models import ChartEntry, DataSeries, SeriesIdentity, TrendBoundary, TrendType

logger = logging.getLogger(__name__)

DEFAULT_FILL_ALPHA = int(0.3 * 255)

DEFAULT_COLORS = {
    TrendType.ASCENDING: "#00f500",
    TrendType.FLAT: "#f5f5f5",
    TrendType.DESCENDING: "#f50000",
}

DEFAULT_ALPHAS = {
    TrendType.ASCENDING: 255,
    TrendType.FLAT: DEFAULT_FILL_ALPHA,
    TrendType.DESCENDING: 255,
}


class Palette(Protocol):
    """Anything that maps a trend type to a fill color and alpha."""

    def color_for(self, trend_type: TrendType) -> str: ...

    def alpha_for(self, trend_type: TrendType) -> int: ...


class TrendPalette:
    """Fixed color and fill alpha per trend type."""

    def __init__(
        self,
        colors: Optional[dict[TrendType, str]] = None,
        alphas: Optional[dict[TrendType, int]] = None,
    ) -> None:
        self.colors = {**DEFAULT_COLORS, **(colors or {})}
        self.alphas = {**DEFAULT_ALPHAS, **(alphas or {})}

    def color_for(self, trend_type: TrendType) -> str:
        return self.colors[trend_type]

    def alpha_for(self, trend_type: TrendType) -> int:
        return self.alphas[trend_type]


class EntryCache:
    """Thread-safe ``source_record_index -> ChartEntry`` map for one series.

    Parameters
    ----------
    series_identity : SeriesIdentity
        The series generation these entries belong to.
    max_size : int, optional
        Upper bound on stored entries; unbounded by default.
    """

    def __init__(self, series_identity: SeriesIdentity, max_size: Optional[int] = None) -> None:
        self.series_identity = series_identity
        self.max_size = max_size
        self._entries: dict[int, ChartEntry] = {}
        self._lock = threading.Lock()

    def matches(self, identity: SeriesIdentity) -> bool:
        return self.series_identity == identity

    def get(self, index: int) -> Optional[ChartEntry]:
        with self._lock:
            return self._entries.get(index)

    def put(self, index: int, entry: ChartEntry) -> bool:
        """Store *entry*; returns False when the cache is full."""
        with self._lock:
            return self._put_locked(index, entry)

    def _put_locked(self, index: int, entry: ChartEntry) -> bool:
        if (
            self.max_size is not None
            and index not in self._entries
            and len(self._entries) >= self.max_size
        ):
            logger.warning(
                f"Entry cache for {self.series_identity} is full ({self.max_size}), "
                f"record {index} not cached"
            )
            return False
        self._entries[index] = entry
        return True

    def get_or_create(
        self,
        index: int,
        factory: Callable[[], ChartEntry],
        accept: Optional[Callable[[ChartEntry], bool]] = None,
    ) -> ChartEntry:
        """Return the cached entry for *index*, building it if missing.

        A cached entry rejected by *accept* is replaced by a new one.
        """
        with self._lock:
            entry = self._entries.get(index)
            if entry is not None and (accept is None or accept(entry)):
                return entry
            entry = factory()
            self._put_locked(index, entry)
            return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, index: object) -> bool:
        with self._lock:
            return index in self._entries

    def __repr__(self) -> str:
        return f"EntryCache(series={self.series_identity}, entries={len(self)})"


class EntryBuilder:
    """Build per-boundary chart entry lists, reusing cached entries."""

    def build(
        self,
        series: DataSeries,
        boundaries: Sequence[TrendBoundary],
        palette: Palette,
        entry_cache: Optional[EntryCache] = None,
    ) -> list[tuple[TrendType, list[ChartEntry]]]:
        """Return ``(trend_type, entries)`` for every boundary, in order.

        Parameters
        ----------
        series : DataSeries
            Source records; ``x`` is the elapsed time in seconds since the
            first record, ``y`` the primary value.
        boundaries : sequence of TrendBoundary
            Output of :meth:`TrendAggregator.aggregate` for *series*.
        palette : Palette
            Supplies the color of each trend type.
        entry_cache : EntryCache, optional
            Cache of the same series generation. A fresh one is used when
            omitted.

        Raises
        ------
        ValueError
            If *entry_cache* belongs to another series generation.
        IndexError
            If a boundary lies outside the series.
        """
        if entry_cache is None:
            entry_cache = EntryCache(series.identity)
        elif not entry_cache.matches(series.identity):
            raise ValueError(
                f"entry cache of {entry_cache.series_identity} used for {series.identity}"
            )

        length = len(series)
        values = series.values
        timestamps = series.timestamps
        origin = int(timestamps[0]) if length else 0

        grouped: list[tuple[TrendType, list[ChartEntry]]] = []
        reused = 0
        for boundary in boundaries:
            if boundary.start_index < 0 or boundary.end_index >= length:
                raise IndexError(
                    f"boundary {boundary.id} [{boundary.start_index}, {boundary.end_index}] "
                    f"outside series of {length} records"
                )
            trend_type = boundary.trend_type
            color = palette.color_for(trend_type)

            def still_valid(entry: ChartEntry) -> bool:
                return entry.color == color and entry.trend_type is trend_type

            entries = []
            for index in range(boundary.start_index, boundary.end_index + 1):
                cached = entry_cache.get(index)
                if cached is not None and still_valid(cached):
                    reused += 1
                    entries.append(cached)
                    continue
                entries.append(
                    entry_cache.get_or_create(
                        index,
                        lambda index=index: ChartEntry(
                            x=(int(timestamps[index]) - origin) / 1000.0,
                            y=float(values[index]),
                            source_record_index=index,
                            color=color,
                            trend_type=trend_type,
                        ),
                        accept=still_valid,
                    )
                )
            grouped.append((trend_type, entries))

        logger.debug(f"Built entries for {series.identity}: {length} records, {reused} reused")
        return grouped
