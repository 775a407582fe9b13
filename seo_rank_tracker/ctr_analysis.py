from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Protocol
from urllib.parse import urlparse

from seo_rank_tracker.aggregation import aggregate_rows
from seo_rank_tracker.models import CanonicalRow
from seo_rank_tracker.ranking import find_opportunities


DEFAULT_MIN_IMPRESSIONS = 500
DEFAULT_MAX_CTR = 0.02
DEFAULT_TOP_N = 30
TITLE_MAX_CHARS = 66
META_MAX_CHARS = 158
RECOMMENDATION = (
    "Front-load primary query, add benefit (fast/free), keep intent-specific wording, "
    "and keep title/meta within SERP-friendly length."
)


class TitleFetcher(Protocol):
    def fetch_title(self, url: str) -> str:
        ...


@dataclass
class PageOpportunity:
    page: str
    clicks: float
    impressions: float
    ctr: float
    avg_position: float
    top_query: str
    current_title: str = ""
    suggested_title: str = ""
    suggested_meta: str = ""
    recommendation: str = ""


def keyword_from_page(page_url: str, brand_name: str) -> str:
    parsed = urlparse(page_url)
    if not parsed.scheme or not parsed.netloc:
        return brand_name
    parts = [part.strip() for part in parsed.path.split("/") if part.strip()]
    last_part = parts[-1] if parts else brand_name.lower()
    words = re.sub(r"[-_]+", " ", last_part)
    return re.sub(r"\b\w", lambda match: match.group(0).upper(), words).strip()


def suggest_snippet(page: str, top_query: str, brand_name: str) -> tuple[str, str]:
    """Return a suggested ``(title, meta description)`` pair for a page."""
    primary = (top_query or keyword_from_page(page, brand_name) or brand_name).strip()
    leading = re.sub(r"\s+", " ", primary).strip()
    title = f"{leading} – Fast, Free Online Tool | {brand_name}"[:TITLE_MAX_CHARS]
    meta = (
        f"Use {brand_name} for {leading.lower()} in seconds. "
        "Free, secure, browser-based workflow with no installation."
    )[:META_MAX_CHARS]
    return title, meta


def find_page_opportunities(
    rows: list[CanonicalRow],
    brand_name: str,
    min_impressions: float = DEFAULT_MIN_IMPRESSIONS,
    max_ctr: float = DEFAULT_MAX_CTR,
    top_n: int = DEFAULT_TOP_N,
    title_fetcher: TitleFetcher | None = None,
    zero_impression_weight: float = 1.0,
) -> list[PageOpportunity]:
    pages = aggregate_rows(
        rows,
        "page",
        track_top_queries=True,
        zero_impression_weight=zero_impression_weight,
    )

    opportunities: list[PageOpportunity] = []
    for stat in find_opportunities(pages, min_impressions, max_ctr, top_n):
        item = PageOpportunity(
            page=stat.key,
            clicks=stat.clicks,
            impressions=stat.impressions,
            ctr=stat.ctr,
            avg_position=stat.avg_position,
            top_query=pages.top_query(stat.key),
        )
        if title_fetcher is not None:
            item.current_title = title_fetcher.fetch_title(item.page)
        item.suggested_title, item.suggested_meta = suggest_snippet(
            item.page, item.top_query, brand_name
        )
        item.recommendation = RECOMMENDATION
        opportunities.append(item)
    return opportunities
