from __future__ import annotations

from typing import Iterable

from seo_rank_tracker.errors import InvalidParameterError
from seo_rank_tracker.models import AggregatedSnapshot, DiffRecord, KeyStat


def _empty_stat(key: str) -> KeyStat:
    return KeyStat(key=key)


def compare_snapshots(older: AggregatedSnapshot, newer: AggregatedSnapshot) -> list[DiffRecord]:
    """Return one record per key found in either snapshot.

    Keys come out in older-snapshot order followed by keys only the newer
    snapshot has; callers that need a ranking sort explicitly.
    """
    if older.dimension != newer.dimension:
        raise InvalidParameterError(
            f"Cannot diff snapshots grouped by {older.dimension!r} and {newer.dimension!r}."
        )

    keys = dict.fromkeys(older.keys())
    keys.update(dict.fromkeys(newer.keys()))

    records: list[DiffRecord] = []
    for key in keys:
        previous = older.get(key) or _empty_stat(key)
        current = newer.get(key) or _empty_stat(key)
        records.append(
            DiffRecord(
                key=key,
                old_exists=key in older,
                new_exists=key in newer,
                old_clicks=previous.clicks,
                new_clicks=current.clicks,
                old_impressions=previous.impressions,
                new_impressions=current.impressions,
                old_ctr=previous.ctr,
                new_ctr=current.ctr,
                old_position=previous.avg_position,
                new_position=current.avg_position,
            )
        )
    return records


def is_comparable(record: DiffRecord) -> bool:
    return (
        record.old_exists
        and record.new_exists
        and record.old_position > 0
        and record.new_position > 0
    )


def comparable_records(records: Iterable[DiffRecord]) -> list[DiffRecord]:
    return [record for record in records if is_comparable(record)]
