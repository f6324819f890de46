"""
trend_chart
~~~~~~~~~~~
Trend segmentation and chart-data caching for time-ordered multi-channel
measurements (altitude, speed, ...).

The pipeline splits the selected channel into monotonic trend segments at
its local extrema, summarises every segment, turns the records into
positioned and colorized chart entries and groups them into per-trend
datasets. :class:`ChartDataCache` runs it at most once per distinct
(series, settings) pair:

    from trend_chart import (
        AxisScaler, ChartDataCache, ChartSettings, DataSeries, statistics_for,
    )

    series = DataSeries(records, primary_index=0, source="track-1")
    with ChartDataCache() as cache:
        future = cache.segment_and_cache(series, ChartSettings(draw_icons=True))
        processed = future.result()
        bounds = AxisScaler().compute_bounds(statistics_for(processed), [1200.0])

Each stage is also usable on its own:

    from trend_chart import ExtremaSegmenter, TrendAggregator

    segments = ExtremaSegmenter().segment(series)
    boundaries = TrendAggregator().aggregate(series, segments)
"""

from .aggregator import TrendAggregator, classify_trend
from .assembler import ChartAssembler, statistics_for
from .cache import ChartDataCache
from .detector import (
    ExtremaSegmenter,
    apply_moving_filter,
    find_local_extrema,
    generate_window_function,
)
from .entries import EntryBuilder, EntryCache, TrendPalette
from .exceptions import ComputationFailure, InvalidSeries, TrendChartError
from .models import (
    CacheKey,
    ChartDataset,
    ChartEntry,
    ChartSettings,
    DataSeries,
    DatasetStyle,
    ProcessedChartData,
    Record,
    SeriesIdentity,
    TrendBoundary,
    TrendStatistics,
    TrendType,
    fingerprint,
    settings_fields,
)
from .scaler import AxisScaler

__all__ = [
    "AxisScaler",
    "CacheKey",
    "ChartAssembler",
    "ChartDataCache",
    "ChartDataset",
    "ChartEntry",
    "ChartSettings",
    "ComputationFailure",
    "DataSeries",
    "DatasetStyle",
    "EntryBuilder",
    "EntryCache",
    "ExtremaSegmenter",
    "InvalidSeries",
    "ProcessedChartData",
    "Record",
    "SeriesIdentity",
    "TrendAggregator",
    "TrendBoundary",
    "TrendChartError",
    "TrendPalette",
    "TrendStatistics",
    "TrendType",
    "apply_moving_filter",
    "classify_trend",
    "find_local_extrema",
    "fingerprint",
    "generate_window_function",
    "settings_fields",
    "statistics_for",
]

__version__ = "0.1.0"
