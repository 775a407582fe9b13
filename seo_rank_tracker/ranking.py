from __future__ import annotations

from typing import Any, Callable, Iterable, TypeVar

from seo_rank_tracker.diff import comparable_records
from seo_rank_tracker.errors import InvalidParameterError
from seo_rank_tracker.models import AggregatedSnapshot, DiffRecord, KeyStat


T = TypeVar("T")


def top_n(items: Iterable[T], sort_key: Callable[[T], Any], n: int) -> list[T]:
    """Stable sort by ``sort_key`` and keep the first ``n`` items.

    Entries comparing equal keep their input order.
    """
    if n < 1:
        raise InvalidParameterError(f"Top N must be >= 1, got {n}.")
    return sorted(items, key=sort_key)[:n]


def top_gainers(records: Iterable[DiffRecord], n: int) -> list[DiffRecord]:
    return top_n(
        comparable_records(records),
        lambda record: (-record.position_gain, -record.delta_clicks),
        n,
    )


def top_losers(records: Iterable[DiffRecord], n: int) -> list[DiffRecord]:
    return top_n(
        comparable_records(records),
        lambda record: (record.position_gain, record.delta_clicks),
        n,
    )


def find_opportunities(
    snapshot: AggregatedSnapshot,
    min_impressions: float,
    max_ctr: float,
    n: int,
) -> list[KeyStat]:
    """High-impression, low-CTR keys of a single (newer) snapshot."""
    candidates = [
        stat
        for stat in snapshot.entries()
        if stat.impressions >= min_impressions and stat.ctr <= max_ctr
    ]
    return top_n(candidates, lambda stat: -stat.impressions, n)
