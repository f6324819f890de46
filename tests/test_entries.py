"""Unit tests for trend_chart.entries."""

import threading

import numpy as np
import pytest

from trend_chart.aggregator import TrendAggregator
from trend_chart.entries import DEFAULT_COLORS, EntryBuilder, EntryCache, TrendPalette
from trend_chart.models import (
    ChartEntry,
    DataSeries,
    TrendBoundary,
    TrendStatistics,
    TrendType,
)


def _series(values, step_ms=1000, start_ms=0):
    return DataSeries.from_arrays(start_ms + np.arange(len(values)) * step_ms, values)


def _entry(index, trend_type=TrendType.FLAT):
    return ChartEntry(float(index), 0.0, index, DEFAULT_COLORS[trend_type], trend_type)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def peak():
    series = _series([1.0, 3.0, 1.0], start_ms=5000)
    boundaries = TrendAggregator().aggregate(series, [(0, 1), (2, 2)])
    return series, boundaries


# ---------------------------------------------------------------------------
# TrendPalette
# ---------------------------------------------------------------------------

class TestTrendPalette:
    def test_defaults(self):
        palette = TrendPalette()
        assert palette.color_for(TrendType.ASCENDING) == "#00f500"
        assert palette.color_for(TrendType.DESCENDING) == "#f50000"
        assert palette.alpha_for(TrendType.FLAT) == 76

    def test_overrides_keep_other_defaults(self):
        palette = TrendPalette(colors={TrendType.FLAT: "#888888"})
        assert palette.color_for(TrendType.FLAT) == "#888888"
        assert palette.color_for(TrendType.ASCENDING) == "#00f500"


# ---------------------------------------------------------------------------
# EntryCache
# ---------------------------------------------------------------------------

class TestEntryCache:
    def test_put_and_get(self):
        cache = EntryCache(_series([1.0]).identity)
        entry = _entry(0)
        assert cache.put(0, entry)
        assert cache.get(0) is entry
        assert 0 in cache
        assert cache.get(1) is None
        assert len(cache) == 1

    def test_max_size(self):
        cache = EntryCache(_series([1.0]).identity, max_size=2)
        assert cache.put(0, _entry(0))
        assert cache.put(1, _entry(1))
        assert not cache.put(2, _entry(2))
        assert cache.put(1, _entry(1))   # replacing an existing key is allowed
        assert len(cache) == 2
        assert 2 not in cache

    def test_get_or_create_calls_factory_once(self):
        cache = EntryCache(_series([1.0]).identity)
        calls = []

        def factory():
            calls.append(1)
            return _entry(0)

        first = cache.get_or_create(0, factory)
        second = cache.get_or_create(0, factory)
        assert first is second
        assert len(calls) == 1

    def test_get_or_create_replaces_rejected_entry(self):
        cache = EntryCache(_series([1.0]).identity)
        stale = _entry(0, TrendType.FLAT)
        cache.put(0, stale)
        fresh = cache.get_or_create(
            0,
            lambda: _entry(0, TrendType.ASCENDING),
            accept=lambda e: e.trend_type is TrendType.ASCENDING,
        )
        assert fresh is not stale
        assert cache.get(0) is fresh

    def test_concurrent_get_or_create_single_instance(self):
        cache = EntryCache(_series([1.0]).identity)
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(cache.get_or_create(0, lambda: _entry(0)))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len({id(r) for r in results}) == 1

    def test_clear(self):
        cache = EntryCache(_series([1.0]).identity)
        cache.put(0, _entry(0))
        cache.clear()
        assert len(cache) == 0


# ---------------------------------------------------------------------------
# EntryBuilder.build
# ---------------------------------------------------------------------------

class TestEntryBuilder:
    def test_entries_per_boundary(self, peak):
        series, boundaries = peak
        grouped = EntryBuilder().build(series, boundaries, TrendPalette())
        assert [trend_type for trend_type, _ in grouped] == [
            TrendType.ASCENDING,
            TrendType.DESCENDING,
        ]
        assert [len(entries) for _, entries in grouped] == [2, 1]

    def test_entry_fields(self, peak):
        series, boundaries = peak
        grouped = EntryBuilder().build(series, boundaries, TrendPalette())
        rising, falling = grouped[0][1], grouped[1][1]
        assert [(e.x, e.y) for e in rising] == [(0.0, 1.0), (1.0, 3.0)]
        assert rising[0].color == "#00f500"
        assert falling[0].source_record_index == 2
        assert falling[0].x == 2.0
        assert falling[0].color == "#f50000"
        assert falling[0].trend_type is TrendType.DESCENDING

    def test_every_record_has_one_entry(self, peak):
        series, boundaries = peak
        grouped = EntryBuilder().build(series, boundaries, TrendPalette())
        indices = [e.source_record_index for _, entries in grouped for e in entries]
        assert indices == list(range(len(series)))

    def test_rebuild_reuses_entry_objects(self, peak):
        series, boundaries = peak
        cache = EntryCache(series.identity)
        first = EntryBuilder().build(series, boundaries, TrendPalette(), cache)
        second = EntryBuilder().build(series, boundaries, TrendPalette(), cache)
        for (_, a), (_, b) in zip(first, second):
            assert all(x is y for x, y in zip(a, b))
        assert len(cache) == 3

    def test_palette_change_replaces_entries(self, peak):
        series, boundaries = peak
        cache = EntryCache(series.identity)
        first = EntryBuilder().build(series, boundaries, TrendPalette(), cache)
        palette = TrendPalette(colors={TrendType.ASCENDING: "#0000ff"})
        second = EntryBuilder().build(series, boundaries, palette, cache)
        assert second[0][1][0] is not first[0][1][0]
        assert second[0][1][0].color == "#0000ff"
        assert second[1][1][0] is first[1][1][0]

    def test_foreign_cache_rejected(self, peak):
        series, boundaries = peak
        other = _series([1.0, 2.0, 3.0])
        with pytest.raises(ValueError):
            EntryBuilder().build(series, boundaries, TrendPalette(), EntryCache(other.identity))

    def test_boundary_outside_series(self):
        series = _series([1.0, 2.0])
        statistics = TrendStatistics(TrendType.ASCENDING, 1.0, 2.0, 0, 1000, 3)
        boundary = TrendBoundary(0, 0, 2, statistics)
        with pytest.raises(IndexError):
            EntryBuilder().build(series, [boundary], TrendPalette())

    def test_empty_series(self):
        assert EntryBuilder().build(_series([]), [], TrendPalette()) == []
