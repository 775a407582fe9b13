from __future__ import annotations

from datetime import date

import pytest
import requests

from seo_rank_tracker.clients.page_title_client import PageTitleClient
from seo_rank_tracker.ctr_analysis import (
    META_MAX_CHARS,
    TITLE_MAX_CHARS,
    find_page_opportunities,
    keyword_from_page,
    suggest_snippet,
)
from seo_rank_tracker.models import CanonicalRow
from seo_rank_tracker.reporting import build_ctr_csv, build_ctr_markdown
from seo_rank_tracker.snapshots import Snapshot, SnapshotRequest


def _row(page: str, query: str, clicks: float, impressions: float, position: float = 6) -> CanonicalRow:
    return CanonicalRow(
        dimensions={"page": page, "query": query},
        clicks=clicks,
        impressions=impressions,
        position=position,
    )


class StubTitles:
    def __init__(self) -> None:
        self.urls: list[str] = []

    def fetch_title(self, url: str) -> str:
        self.urls.append(url)
        return f"Title of {url}"


ROWS = [
    _row("https://example.com/pdf-to-word", "pdf to word", 3, 900),
    _row("https://example.com/pdf-to-word", "convert pdf", 1, 400),
    _row("https://example.com/jpg-to-png", "jpg to png", 60, 1200),
    _row("https://example.com/heic", "heic converter", 2, 600),
    _row("https://example.com/tiny", "tiny", 0, 50),
]


def test_page_opportunities_carry_top_query_and_suggestions() -> None:
    titles = StubTitles()

    result = find_page_opportunities(
        ROWS, brand_name="ConvertCraft", min_impressions=500, max_ctr=0.02, top_n=10,
        title_fetcher=titles,
    )

    assert [item.page for item in result] == [
        "https://example.com/pdf-to-word",
        "https://example.com/heic",
    ]
    first = result[0]
    assert first.impressions == 1300
    assert first.top_query == "pdf to word"
    assert first.current_title == "Title of https://example.com/pdf-to-word"
    assert first.suggested_title.startswith("pdf to word – Fast, Free Online Tool")
    assert len(first.suggested_title) <= TITLE_MAX_CHARS
    assert len(first.suggested_meta) <= META_MAX_CHARS
    assert titles.urls == [item.page for item in result]


def test_titles_are_not_fetched_without_fetcher() -> None:
    result = find_page_opportunities(ROWS, brand_name="ConvertCraft", min_impressions=500)

    assert all(item.current_title == "" for item in result)


def test_keyword_from_page_uses_last_path_segment() -> None:
    assert keyword_from_page("https://example.com/tools/pdf-to_word", "ConvertCraft") == "Pdf To Word"
    assert keyword_from_page("/relative", "ConvertCraft") == "ConvertCraft"


def test_suggest_snippet_falls_back_to_page_keyword() -> None:
    title, meta = suggest_snippet("https://example.com/merge-pdf", "", "ConvertCraft")

    assert title == "Merge Pdf – Fast, Free Online Tool | ConvertCraft"
    assert meta.startswith("Use ConvertCraft for merge pdf in seconds.")


def test_page_title_client_parses_and_decodes_title(monkeypatch: pytest.MonkeyPatch) -> None:
    response = requests.Response()
    response.status_code = 200
    response._content = b"<html><head><title>\n PDF &amp; Word  tools </title></head></html>"
    response.encoding = "utf-8"
    monkeypatch.setattr(requests, "get", lambda url, **_: response)

    assert PageTitleClient().fetch_title("https://example.com/") == "PDF & Word tools"


def test_page_title_client_returns_empty_on_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(url: str, **_: object) -> requests.Response:
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(requests, "get", fake_get)

    assert PageTitleClient().fetch_title("https://example.com/") == ""
    assert PageTitleClient().fetch_title("ftp://example.com/") == ""


def test_ctr_markdown_and_csv_outputs() -> None:
    snapshot = Snapshot.build(
        "sc-domain:example.com",
        SnapshotRequest(date(2026, 9, 1), date(2026, 9, 28), ("query", "page")),
        ROWS,
    )
    items = find_page_opportunities(ROWS, brand_name="ConvertCraft", min_impressions=500)

    markdown = build_ctr_markdown(snapshot, "snap.json", items, 500, 0.02)
    csv_text = build_ctr_csv(items)

    assert "- Opportunities: 2" in markdown
    assert "(not fetched)" in markdown
    assert csv_text.splitlines()[0].startswith("page,current_title,impressions")
    assert len(csv_text.splitlines()) == 3
    assert '"Use ConvertCraft for pdf to word in seconds. Free, secure,' in csv_text
