"""
trend_chart.assembler
~~~~~~~~~~~~~~~~~~~~~
Group per-boundary entry lists into styled per-trend datasets and bundle
them with the entry cache into :class:`ProcessedChartData`.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from .entries import EntryCache, Palette, TrendPalette
from .models import (
    ChartDataset,
    ChartEntry,
    ChartSettings,
    DatasetStyle,
    ProcessedChartData,
    SeriesIdentity,
    TrendBoundary,
    TrendStatistics,
    TrendType,
    settings_fields,
)


def statistics_for(processed: ProcessedChartData) -> list[TrendStatistics]:
    """Per-boundary statistics of an assembled result, in boundary order."""
    return [boundary.statistics for boundary in processed.boundaries]


class ChartAssembler:
    """Assemble renderer-ready datasets. Pure; nothing is recomputed."""

    def __init__(self, palette: Optional[Palette] = None) -> None:
        self.palette = palette or TrendPalette()

    def style_for(self, trend_type: TrendType, settings: Any, palette: Palette) -> DatasetStyle:
        """Dataset style from *settings* fields over the :class:`ChartSettings` defaults.

        *settings* may be a dataclass, a mapping or a plain object, as for
        :func:`fingerprint`.
        """
        fields = {**settings_fields(ChartSettings()), **settings_fields(settings)}
        fill_alpha = fields["fill_alpha"]
        return DatasetStyle(
            fill_color=palette.color_for(trend_type),
            fill_alpha=palette.alpha_for(trend_type) if fill_alpha is None else fill_alpha,
            line_color=fields["line_color"],
            line_width=fields["line_width"],
            draw_filled=fields["draw_filled"],
            draw_icons=fields["draw_icons"],
            draw_values=fields["draw_values"],
        )

    def assemble(
        self,
        entry_cache: EntryCache,
        grouped_entries: Sequence[tuple[TrendType, Sequence[ChartEntry]]],
        settings: Any = None,
        palette: Optional[Palette] = None,
        boundaries: Sequence[TrendBoundary] = (),
        series_identity: Optional[SeriesIdentity] = None,
    ) -> ProcessedChartData:
        """Group *grouped_entries* by trend type.

        Groups appear in order of their first boundary; within a group the
        per-boundary runs keep boundary order.
        """
        palette = palette or self.palette
        runs: dict[TrendType, list[tuple[ChartEntry, ...]]] = {}
        ids: dict[TrendType, list[int]] = {}
        for position, (trend_type, entries) in enumerate(grouped_entries):
            runs.setdefault(trend_type, []).append(tuple(entries))
            boundary_id = boundaries[position].id if position < len(boundaries) else position
            ids.setdefault(trend_type, []).append(boundary_id)

        datasets = tuple(
            ChartDataset(
                trend_type=trend_type,
                runs=tuple(type_runs),
                style=self.style_for(trend_type, settings, palette),
                boundary_ids=tuple(ids[trend_type]),
            )
            for trend_type, type_runs in runs.items()
        )
        return ProcessedChartData(
            entry_cache=entry_cache,
            datasets=datasets,
            boundaries=tuple(boundaries),
            series_identity=series_identity or entry_cache.series_identity,
        )
