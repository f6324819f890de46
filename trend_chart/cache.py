"""
trend_chart.cache
~~~~~~~~~~~~~~~~~
Content-addressed, single-flight cache in front of the segmentation
pipeline.

Every ``(series identity, settings fingerprint)`` key owns one slot holding a
shared :class:`concurrent.futures.Future`. The first request for a missing
key creates the slot and submits the pipeline to a bounded worker pool;
later requests receive the same future, completed or not. A worker stores
its result only if its slot generation is still the current one for the
key, so results of evicted computations are discarded. The first request
for a newer generation of a ``(source, channel)`` group evicts the older
generations of that group.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional, Union

from .aggregator import TrendAggregator
from .assembler import ChartAssembler, statistics_for
from .detector import ExtremaSegmenter
from .entries import EntryBuilder, EntryCache, Palette, TrendPalette
from .exceptions import ComputationFailure
from .models import (
    CacheKey,
    DataSeries,
    ProcessedChartData,
    SeriesIdentity,
    TrendStatistics,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class _Slot:
    """One cache slot: the key, its generation and the shared future."""

    __slots__ = ("key", "generation", "future")

    def __init__(self, key: CacheKey, generation: int) -> None:
        self.key = key
        self.generation = generation
        self.future: Future = Future()


class ChartDataCache:
    """Compute chart data at most once per (series, settings) combination.

    Parameters
    ----------
    segmenter, aggregator, builder, assembler : optional
        Pipeline stages; defaults are created when omitted.
    palette : Palette, optional
        Color source for entries and datasets.
    max_workers : int
        Size of the worker pool created when *executor* is not given.
    executor : concurrent.futures.Executor, optional
        Externally owned pool; it is not shut down by :meth:`shutdown`.
    entry_cache_size : int, optional
        Bound for each per-series :class:`EntryCache`.

    Examples
    --------
    >>> from trend_chart import ChartDataCache, ChartSettings, DataSeries
    >>> series = DataSeries.from_arrays([0, 1000, 2000], [1.0, 3.0, 1.0])
    >>> with ChartDataCache() as cache:
    ...     first = cache.get(series, ChartSettings())
    ...     again = cache.get(series, ChartSettings())
    >>> first is again
    True
    """

    def __init__(
        self,
        segmenter: Optional[ExtremaSegmenter] = None,
        aggregator: Optional[TrendAggregator] = None,
        builder: Optional[EntryBuilder] = None,
        assembler: Optional[ChartAssembler] = None,
        palette: Optional[Palette] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        executor: Any = None,
        entry_cache_size: Optional[int] = None,
    ) -> None:
        self.segmenter = segmenter or ExtremaSegmenter()
        self.aggregator = aggregator or TrendAggregator()
        self.builder = builder or EntryBuilder()
        self.palette = palette or TrendPalette()
        self.assembler = assembler or ChartAssembler(self.palette)
        self.entry_cache_size = entry_cache_size

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="trend-chart"
        )

        self._lock = threading.Lock()
        self._slots: dict[CacheKey, _Slot] = {}
        self._entry_caches: dict[SeriesIdentity, EntryCache] = {}
        self._latest: dict[tuple[str, int], int] = {}
        self._generation = 0
        self._stats = {
            "hits": 0,
            "misses": 0,
            "computations": 0,
            "failures": 0,
            "discarded": 0,
            "evictions": 0,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def segment_and_cache(self, series: DataSeries, settings: Any = None) -> Future:
        """Return a future of the processed chart data for *series*.

        A completed future is returned on a cache hit. Concurrent requests
        for the same missing key share one computation.

        Raises
        ------
        InvalidSeries
            Synchronously, before any work is scheduled.
        """
        series.validate()
        key = CacheKey.of(series, settings)
        identity = series.identity

        with self._lock:
            slot = self._slots.get(key)
            if slot is not None:
                self._stats["hits"] += 1
                return slot.future

            self._stats["misses"] += 1
            self._stats["computations"] += 1
            self._generation += 1
            slot = _Slot(key, self._generation)

            # Only the first request of a newer generation evicts its group.
            if identity.generation > self._latest.get(identity.group, 0):
                self._latest[identity.group] = identity.generation
                self._evict_superseded_locked(identity)
            self._slots[key] = slot
            entry_cache = self._entry_caches.get(identity)
            if entry_cache is None:
                entry_cache = EntryCache(identity, self.entry_cache_size)
                self._entry_caches[identity] = entry_cache
            logger.info(f"Cache miss for {identity} ({key.settings_fingerprint}), computing")

        try:
            self._executor.submit(self._run, slot, series, settings, entry_cache)
        except RuntimeError as exc:
            with self._lock:
                self._release_locked(slot)
            slot.future.set_exception(exc)
            raise
        return slot.future

    def get(
        self, series: DataSeries, settings: Any = None, timeout: Optional[float] = None
    ) -> ProcessedChartData:
        """Blocking form of :meth:`segment_and_cache`."""
        return self.segment_and_cache(series, settings).result(timeout=timeout)

    async def get_async(self, series: DataSeries, settings: Any = None) -> ProcessedChartData:
        """Awaitable form of :meth:`segment_and_cache`."""
        return await asyncio.wrap_future(self.segment_and_cache(series, settings))

    def invalidate(self, series_identity: Union[SeriesIdentity, DataSeries]) -> int:
        """Drop every slot and the entry cache of one series generation.

        In-flight computations for it complete for their current waiters
        but are not stored. Returns the number of slots removed.
        """
        identity = getattr(series_identity, "identity", series_identity)
        with self._lock:
            removed = self._drop_identity_locked(identity)
        logger.info(f"Invalidated {identity}: {removed} slot(s) removed")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._stats["evictions"] += len(self._slots)
            self._slots.clear()
            self._entry_caches.clear()

    @staticmethod
    def statistics_for(processed: ProcessedChartData) -> list[TrendStatistics]:
        return statistics_for(processed)

    def stats(self) -> dict[str, int]:
        with self._lock:
            return dict(self._stats, slots=len(self._slots))

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ChartDataCache":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def compute(
        self, series: DataSeries, settings: Any, entry_cache: EntryCache
    ) -> ProcessedChartData:
        """Run all stages once, without touching the cache."""
        segments = self.segmenter.segment(series)
        boundaries = self.aggregator.aggregate(series, segments)
        grouped = self.builder.build(series, boundaries, self.palette, entry_cache)
        return self.assembler.assemble(
            entry_cache,
            grouped,
            settings=settings,
            palette=self.palette,
            boundaries=boundaries,
            series_identity=series.identity,
        )

    def _run(
        self, slot: _Slot, series: DataSeries, settings: Any, entry_cache: EntryCache
    ) -> None:
        try:
            result = self.compute(series, settings, entry_cache)
        except Exception as exc:
            logger.exception(f"Chart computation failed for {slot.key}")
            with self._lock:
                self._stats["failures"] += 1
                self._release_locked(slot)
            failure = ComputationFailure(
                f"chart computation failed for {slot.key.series_identity}: {exc}", key=slot.key
            )
            failure.__cause__ = exc
            slot.future.set_exception(failure)
            return

        with self._lock:
            current = self._slots.get(slot.key)
            if current is None or current.generation != slot.generation:
                self._stats["discarded"] += 1
                logger.warning(
                    f"Discarding result of generation {slot.generation} for {slot.key}"
                )
        slot.future.set_result(result)

    # ------------------------------------------------------------------
    # Slot bookkeeping (callers hold self._lock)
    # ------------------------------------------------------------------

    def _release_locked(self, slot: _Slot) -> None:
        current = self._slots.get(slot.key)
        if current is not None and current.generation == slot.generation:
            del self._slots[slot.key]

    def _drop_identity_locked(self, identity: SeriesIdentity) -> int:
        stale = [key for key in self._slots if key.series_identity == identity]
        for key in stale:
            del self._slots[key]
        self._entry_caches.pop(identity, None)
        self._stats["evictions"] += len(stale)
        return len(stale)

    def _evict_superseded_locked(self, identity: SeriesIdentity) -> None:
        """Drop every older generation of *identity*'s ``(source, channel)`` group."""

        def superseded_by(old: SeriesIdentity) -> bool:
            return old.group == identity.group and old.generation < identity.generation

        superseded = {
            key.series_identity for key in self._slots if superseded_by(key.series_identity)
        }
        superseded.update(old for old in self._entry_caches if superseded_by(old))
        for old in superseded:
            removed = self._drop_identity_locked(old)
            logger.info(f"Evicted {old} superseded by {identity}: {removed} slot(s)")
