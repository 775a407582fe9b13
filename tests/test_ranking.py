from __future__ import annotations

import pytest

from seo_rank_tracker.errors import InvalidParameterError
from seo_rank_tracker.models import AggregatedSnapshot, DiffRecord, KeyStat
from seo_rank_tracker.ranking import find_opportunities, top_gainers, top_losers, top_n


def _record(
    key: str,
    old_position: float,
    new_position: float,
    delta_clicks: float = 0,
    old_exists: bool = True,
    new_exists: bool = True,
) -> DiffRecord:
    return DiffRecord(
        key=key,
        old_exists=old_exists,
        new_exists=new_exists,
        old_clicks=10,
        new_clicks=10 + delta_clicks,
        old_impressions=100,
        new_impressions=100,
        old_ctr=0.1,
        new_ctr=0.1,
        old_position=old_position,
        new_position=new_position,
    )


def _stat(key: str, clicks: float, impressions: float, position: float = 5) -> KeyStat:
    return KeyStat(
        key=key,
        clicks=clicks,
        impressions=impressions,
        weighted_position_sum=position * impressions,
        weight_sum=impressions,
    )


def test_gainers_sort_by_gain_then_clicks() -> None:
    records = [
        _record("small", 5, 4),
        _record("big-low-clicks", 10, 2, delta_clicks=1),
        _record("big-high-clicks", 10, 2, delta_clicks=9),
        _record("drop", 3, 8),
    ]

    assert [r.key for r in top_gainers(records, 3)] == ["big-high-clicks", "big-low-clicks", "small"]


def test_losers_sort_by_gain_then_clicks_ascending() -> None:
    records = [
        _record("mild", 4, 5, delta_clicks=-1),
        _record("hard-small", 2, 9, delta_clicks=-1),
        _record("hard-big", 2, 9, delta_clicks=-20),
        _record("gain", 9, 2),
    ]

    assert [r.key for r in top_losers(records, 2)] == ["hard-big", "hard-small"]


def test_new_entrant_is_not_reported_as_loser() -> None:
    records = [
        _record("/new", 0, 40, old_exists=False),
        _record("/steady", 5, 6),
    ]

    assert [r.key for r in top_losers(records, 5)] == ["/steady"]
    assert [r.key for r in top_gainers(records, 5)] == ["/steady"]


def test_equal_entries_keep_input_order() -> None:
    records = [_record(f"k{index}", 5, 4, delta_clicks=2) for index in range(5)]

    assert [r.key for r in top_gainers(records, 5)] == ["k0", "k1", "k2", "k3", "k4"]


def test_opportunities_respect_thresholds_and_order() -> None:
    snapshot = AggregatedSnapshot(
        dimension="query",
        stats={
            stat.key: stat
            for stat in (
                _stat("low-impr", 0, 100),
                _stat("high-ctr", 500, 5000),
                _stat("opp-a", 10, 1000),
                _stat("opp-b", 10, 3000),
                _stat("opp-tie", 10, 1000),
                _stat("edge", 15, 1000),
            )
        },
    )

    result = find_opportunities(snapshot, min_impressions=500, max_ctr=0.015, n=10)

    assert [stat.key for stat in result] == ["opp-b", "opp-a", "opp-tie", "edge"]
    assert all(stat.impressions >= 500 and stat.ctr <= 0.015 for stat in result)


def test_opportunities_include_keys_new_in_latest_period() -> None:
    snapshot = AggregatedSnapshot(dimension="query", stats={"/new": _stat("/new", 1, 800, 40)})

    assert [stat.key for stat in find_opportunities(snapshot, 500, 0.02, 5)] == ["/new"]


def test_top_n_requires_positive_n() -> None:
    with pytest.raises(InvalidParameterError):
        top_n([1, 2, 3], lambda value: value, 0)
