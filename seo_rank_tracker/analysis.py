from __future__ import annotations

from dataclasses import dataclass, field

from seo_rank_tracker.aggregation import aggregate_rows
from seo_rank_tracker.diff import compare_snapshots
from seo_rank_tracker.models import DiffRecord, KeyStat, MetricSummary
from seo_rank_tracker.ranking import find_opportunities, top_gainers, top_losers
from seo_rank_tracker.snapshots import Snapshot


DEFAULT_TOP_N = 20
DEFAULT_MIN_IMPRESSIONS = 500
DEFAULT_OPPORTUNITY_CTR = 0.015


@dataclass
class RankDiffResult:
    summary_older: MetricSummary
    summary_newer: MetricSummary
    min_impressions: float
    opportunity_ctr: float
    keyword_gainers: list[DiffRecord] = field(default_factory=list)
    keyword_losers: list[DiffRecord] = field(default_factory=list)
    page_gainers: list[DiffRecord] = field(default_factory=list)
    page_losers: list[DiffRecord] = field(default_factory=list)
    opportunities: list[KeyStat] = field(default_factory=list)
    keywords_compared: int = 0
    pages_compared: int = 0


def analyze_snapshots(
    older: Snapshot,
    newer: Snapshot,
    top_n: int = DEFAULT_TOP_N,
    min_impressions: float = DEFAULT_MIN_IMPRESSIONS,
    opportunity_ctr: float = DEFAULT_OPPORTUNITY_CTR,
    zero_impression_weight: float = 1.0,
) -> RankDiffResult:
    keyword_old = aggregate_rows(
        older.rows, "query", date_window=older.request.window,
        zero_impression_weight=zero_impression_weight,
    )
    keyword_new = aggregate_rows(
        newer.rows, "query", date_window=newer.request.window,
        zero_impression_weight=zero_impression_weight,
    )
    page_old = aggregate_rows(
        older.rows, "page", date_window=older.request.window,
        track_top_queries=False, zero_impression_weight=zero_impression_weight,
    )
    page_new = aggregate_rows(
        newer.rows, "page", date_window=newer.request.window,
        track_top_queries=False, zero_impression_weight=zero_impression_weight,
    )

    keyword_diffs = compare_snapshots(keyword_old, keyword_new)
    page_diffs = compare_snapshots(page_old, page_new)

    return RankDiffResult(
        summary_older=older.summary,
        summary_newer=newer.summary,
        min_impressions=min_impressions,
        opportunity_ctr=opportunity_ctr,
        keyword_gainers=top_gainers(keyword_diffs, top_n),
        keyword_losers=top_losers(keyword_diffs, top_n),
        page_gainers=top_gainers(page_diffs, top_n),
        page_losers=top_losers(page_diffs, top_n),
        # Opportunities only look at the newer period, so new keys qualify too.
        opportunities=find_opportunities(keyword_new, min_impressions, opportunity_ctr, top_n),
        keywords_compared=len(keyword_diffs),
        pages_compared=len(page_diffs),
    )
