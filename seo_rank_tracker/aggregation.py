from __future__ import annotations

from typing import Iterable

from seo_rank_tracker.errors import InvalidParameterError
from seo_rank_tracker.ingestion import ALLOWED_DIMENSIONS
from seo_rank_tracker.models import AggregatedSnapshot, CanonicalRow, DateWindow, KeyStat


class _QueryTally:
    """Impressions per query for one page, remembering first-seen order."""

    def __init__(self) -> None:
        self._totals: dict[str, float] = {}
        self._first_seen: dict[str, int] = {}

    def add(self, query: str, impressions: float) -> None:
        if query not in self._first_seen:
            self._first_seen[query] = len(self._first_seen)
            self._totals[query] = 0.0
        self._totals[query] += impressions

    def winner(self) -> str:
        if not self._totals:
            return ""
        # Highest impressions first, earliest-seen query on ties.
        return min(
            self._totals,
            key=lambda query: (-self._totals[query], self._first_seen[query]),
        )


def aggregate_rows(
    rows: Iterable[CanonicalRow],
    dimension: str,
    *,
    date_window: DateWindow | None = None,
    track_top_queries: bool | None = None,
    zero_impression_weight: float = 1.0,
) -> AggregatedSnapshot:
    """Fold rows into impression-weighted statistics per ``dimension`` value.

    Every row adds ``impressions`` (or ``zero_impression_weight`` when it has
    none) as positional weight, so a zero-impression row still moves the
    average position without counting as a seen impression. Rows with an
    empty grouping key are skipped.

    When grouping by page, the most-impressed query of each page is tracked
    as well (``track_top_queries`` defaults to on for ``page``).
    """
    if dimension not in ALLOWED_DIMENSIONS:
        raise InvalidParameterError(
            f"Unknown grouping dimension: {dimension!r}. Allowed: {','.join(ALLOWED_DIMENSIONS)}"
        )
    if zero_impression_weight < 0:
        raise InvalidParameterError("zero_impression_weight must be >= 0.")
    if track_top_queries is None:
        track_top_queries = dimension == "page"

    stats: dict[str, KeyStat] = {}
    tallies: dict[str, _QueryTally] = {}
    for row in rows:
        key = row.dimension(dimension)
        if not key:
            continue

        entry = stats.get(key) or KeyStat(key=key)
        stats[key] = entry.add(
            clicks=row.clicks,
            impressions=row.impressions,
            position=row.position,
            weight=row.weight(zero_impression_weight),
        )

        if track_top_queries:
            query = row.dimension("query")
            if query:
                tallies.setdefault(key, _QueryTally()).add(query, row.impressions)

    top_queries = {key: tally.winner() for key, tally in tallies.items()}
    return AggregatedSnapshot(
        dimension=dimension,
        stats=stats,
        date_window=date_window,
        top_queries=top_queries,
    )


def merge_snapshots(parts: Iterable[AggregatedSnapshot]) -> AggregatedSnapshot:
    """Combine snapshots aggregated from disjoint chunks of the same rows.

    Sums are order independent, so chunked aggregation followed by a merge
    yields the same statistics as a single pass. Top queries are not
    mergeable from winners alone and are dropped.
    """
    merged: dict[str, KeyStat] = {}
    dimension = ""
    date_window = None
    for part in parts:
        if dimension and part.dimension != dimension:
            raise InvalidParameterError(
                f"Cannot merge snapshots grouped by {dimension!r} and {part.dimension!r}."
            )
        dimension = part.dimension
        date_window = date_window or part.date_window
        for key, stat in part.stats.items():
            entry = merged.get(key)
            merged[key] = stat if entry is None else entry.merge(stat)

    if not dimension:
        raise InvalidParameterError("At least one snapshot is required to merge.")
    return AggregatedSnapshot(dimension=dimension, stats=merged, date_window=date_window)
