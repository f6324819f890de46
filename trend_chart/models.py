"""
trend_chart.models
~~~~~~~~~~~~~~~~~~
Immutable value types shared by every pipeline stage: measurement records,
the selected-channel series view, trend statistics and boundaries, chart
entries and the processed chart bundle stored by the cache.
"""

from __future__ import annotations

import dataclasses
import hashlib
import itertools
import json
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Optional

import numpy as np

from .exceptions import InvalidSeries

if TYPE_CHECKING:
    from .entries import EntryCache

DEFAULT_SOURCE = "default"

_generation_counter = itertools.count(1)


# ------------------------------------------------------------------
# Source data
# ------------------------------------------------------------------


@dataclass(frozen=True)
class Record:
    """One timestamped multi-channel measurement.

    Parameters
    ----------
    timestamp : int
        Milliseconds; non-decreasing along a series.
    values : sequence of float
        Channel readings (e.g. altitude, speed).
    units : sequence of str
        Unit labels parallel to *values*; may be empty.
    primary_index : int
        Channel that segmentation and statistics target.
    """

    timestamp: int
    values: tuple[float, ...]
    units: tuple[str, ...] = ()
    primary_index: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))
        object.__setattr__(self, "units", tuple(self.units))


@dataclass(frozen=True)
class SeriesIdentity:
    """Token distinguishing one loaded generation of a data source.

    ``channel`` is the primary index the series was built for; generations
    only supersede each other within one ``(source, channel)`` group.
    """

    source: str
    generation: int
    channel: int = 0

    @property
    def group(self) -> tuple[str, int]:
        return self.source, self.channel

    def __str__(self) -> str:
        return f"{self.source}[{self.channel}]#{self.generation}"


class DataSeries:
    """Read-only view over an ordered record collection for one channel.

    Every construction gets a fresh :class:`SeriesIdentity`, so a reload of
    the same source (even with identical content) is a new cache generation.

    Parameters
    ----------
    records : iterable of Record
        Time-ordered measurements.
    primary_index : int, optional
        Channel to analyse. Defaults to the first record's
        ``primary_index`` (0 for an empty series).
    source : str
        Logical data source / chart name. Generations of the same source
        supersede each other in the cache.
    """

    def __init__(
        self,
        records: Iterable[Record],
        primary_index: Optional[int] = None,
        source: str = DEFAULT_SOURCE,
    ) -> None:
        self._records: tuple[Record, ...] = tuple(records)
        if primary_index is None:
            primary_index = self._records[0].primary_index if self._records else 0
        self.primary_index = primary_index
        self.identity = SeriesIdentity(source, next(_generation_counter), primary_index)
        self._validated = False
        self._problem: Optional[tuple[int, str]] = None

        values = np.empty(len(self._records), dtype=float)
        for i, record in enumerate(self._records):
            if not 0 <= primary_index < len(record.values):
                values[i] = np.nan
                self._note_problem(i, f"primary index {primary_index} out of range")
                continue
            if record.units and len(record.units) != len(record.values):
                self._note_problem(i, "units do not match values")
            try:
                values[i] = float(record.values[primary_index])
            except (TypeError, ValueError):
                values[i] = np.nan
                self._note_problem(i, "primary value is not numeric")

        timestamps = np.fromiter(
            (r.timestamp for r in self._records), dtype=np.int64, count=len(self._records)
        )
        values.setflags(write=False)
        timestamps.setflags(write=False)
        self._values = values
        self._timestamps = timestamps

    @classmethod
    def from_arrays(
        cls,
        timestamps: "array-like",
        values: "array-like",
        unit: str = "",
        source: str = DEFAULT_SOURCE,
    ) -> "DataSeries":
        """Build a single-channel series from parallel timestamp/value arrays."""
        timestamps = list(timestamps)
        values = list(values)
        if len(timestamps) != len(values):
            raise ValueError(
                f"timestamps ({len(timestamps)}) and values ({len(values)}) differ in length"
            )
        units = (unit,) if unit else ()
        records = [
            Record(int(ts), (float(v),), units, 0) for ts, v in zip(timestamps, values)
        ]
        return cls(records, primary_index=0, source=source)

    def _note_problem(self, index: int, reason: str) -> None:
        if self._problem is None:
            self._problem = (index, reason)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def records(self) -> tuple[Record, ...]:
        return self._records

    @property
    def values(self) -> np.ndarray:
        """Primary-channel values as a read-only float array."""
        return self._values

    @property
    def timestamps(self) -> np.ndarray:
        """Timestamps (ms) as a read-only int64 array."""
        return self._timestamps

    @property
    def unit(self) -> str:
        for record in self._records:
            if 0 <= self.primary_index < len(record.units):
                return record.units[self.primary_index]
        return ""

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> Record:
        return self._records[index]

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    def __repr__(self) -> str:
        return (
            f"DataSeries(identity={self.identity}, records={len(self._records)}, "
            f"primary_index={self.primary_index})"
        )

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Raise :class:`InvalidSeries` if the series is malformed.

        Checks the primary channel index and unit labels of every record,
        finiteness of the primary values and non-decreasing timestamps.
        """
        if self._validated:
            return
        if self._problem is not None:
            index, reason = self._problem
            raise InvalidSeries(f"record {index}: {reason}", index=index, reason=reason)

        non_finite = np.flatnonzero(~np.isfinite(self._values))
        if non_finite.size:
            index = int(non_finite[0])
            raise InvalidSeries(
                f"record {index}: primary value is not finite",
                index=index,
                reason="non-finite value",
            )

        backwards = np.flatnonzero(np.diff(self._timestamps) < 0)
        if backwards.size:
            index = int(backwards[0]) + 1
            raise InvalidSeries(
                f"record {index}: timestamp {int(self._timestamps[index])} precedes "
                f"{int(self._timestamps[index - 1])}",
                index=index,
                reason="non-monotonic timestamps",
            )
        self._validated = True


# ------------------------------------------------------------------
# Trend statistics
# ------------------------------------------------------------------


class TrendType(Enum):
    """Direction of a trend segment."""

    ASCENDING = "ascending"
    DESCENDING = "descending"
    FLAT = "flat"


@dataclass(frozen=True)
class TrendStatistics:
    """Summary of one trend segment.

    ``cumulative_abs_delta`` and ``ordinal`` accumulate over all segments
    of the same :class:`TrendType` up to and including this one.
    """

    trend_type: TrendType
    min_value: float
    max_value: float
    start_timestamp: int
    end_timestamp: int
    record_count: int
    start_value: float = 0.0
    end_value: float = 0.0
    abs_delta: float = 0.0
    cumulative_abs_delta: float = 0.0
    ordinal: int = 1

    @property
    def duration_ms(self) -> int:
        return self.end_timestamp - self.start_timestamp

    @property
    def value_range(self) -> float:
        return self.max_value - self.min_value


@dataclass(frozen=True)
class TrendBoundary:
    """Inclusive index range ``[start_index, end_index]`` into a series."""

    id: int
    start_index: int
    end_index: int
    statistics: TrendStatistics

    @property
    def trend_type(self) -> TrendType:
        return self.statistics.trend_type

    @property
    def record_count(self) -> int:
        return self.end_index - self.start_index + 1

    @property
    def label(self) -> str:
        return str(self.id)


# ------------------------------------------------------------------
# Chart-ready output
# ------------------------------------------------------------------


@dataclass(frozen=True)
class ChartEntry:
    """A positioned, colorized point of one source record."""

    x: float
    y: float
    source_record_index: int
    color: str
    trend_type: TrendType


@dataclass(frozen=True)
class DatasetStyle:
    """Renderer hints for one dataset."""

    fill_color: str
    fill_alpha: int
    line_color: str = "#000000"
    line_width: float = 1.0
    draw_filled: bool = True
    draw_icons: bool = False
    draw_values: bool = False


@dataclass(frozen=True)
class ChartDataset:
    """All entries of one trend type, split into per-boundary runs."""

    trend_type: TrendType
    runs: tuple[tuple[ChartEntry, ...], ...]
    style: DatasetStyle
    boundary_ids: tuple[int, ...] = ()

    @property
    def entries(self) -> list[ChartEntry]:
        return [entry for run in self.runs for entry in run]

    def __len__(self) -> int:
        return sum(len(run) for run in self.runs)


@dataclass(frozen=True)
class ProcessedChartData:
    """Result of the whole pipeline for one (series, settings) pair."""

    entry_cache: "EntryCache"
    datasets: tuple[ChartDataset, ...] = ()
    boundaries: tuple[TrendBoundary, ...] = ()
    series_identity: Optional[SeriesIdentity] = None

    @property
    def is_empty(self) -> bool:
        return not self.datasets

    @classmethod
    def empty(cls, entry_cache: "EntryCache") -> "ProcessedChartData":
        return cls(entry_cache=entry_cache, series_identity=entry_cache.series_identity)


# ------------------------------------------------------------------
# Settings and cache keys
# ------------------------------------------------------------------


@dataclass(frozen=True)
class ChartSettings:
    """Cosmetic display settings. They never affect segmentation."""

    line_color: str = "#000000"
    line_width: float = 1.0
    draw_filled: bool = True
    draw_icons: bool = False
    draw_values: bool = False
    fill_alpha: Optional[int] = None
    draw_x_labels: bool = True


def _settings_payload(settings: Any) -> Any:
    if settings is None:
        return None
    if dataclasses.is_dataclass(settings) and not isinstance(settings, type):
        return dataclasses.asdict(settings)
    if isinstance(settings, Mapping):
        return dict(settings)
    if hasattr(settings, "__dict__"):
        return {k: v for k, v in vars(settings).items() if not k.startswith("_")}
    return settings


def settings_fields(settings: Any) -> dict[str, Any]:
    """Field values of a settings object (dataclass, mapping or plain object).

    Anything without named fields yields an empty dict.
    """
    payload = _settings_payload(settings)
    return dict(payload) if isinstance(payload, Mapping) else {}


def fingerprint(settings: Any) -> str:
    """Deterministic hash of a settings object.

    Equal field values always produce the same fingerprint, regardless of
    object identity or key order.
    """
    payload = _settings_payload(settings)
    if payload is None:
        return "none"
    encoded = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()[:16]


@dataclass(frozen=True)
class CacheKey:
    """Cache key of one pipeline result."""

    series_identity: SeriesIdentity
    settings_fingerprint: str

    @classmethod
    def of(cls, series: DataSeries, settings: Any) -> "CacheKey":
        return cls(series.identity, fingerprint(settings))
