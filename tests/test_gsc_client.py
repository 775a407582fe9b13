from __future__ import annotations

from datetime import date

import httplib2
import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from seo_rank_tracker.clients.gsc_client import GSCClient
from seo_rank_tracker.errors import SourceFetchError
from seo_rank_tracker.models import QueryCriteria
from seo_rank_tracker.pagination import fetch_all_rows


CRITERIA = QueryCriteria(
    start_date=date(2026, 9, 1),
    end_date=date(2026, 9, 28),
    dimensions=("query", "page"),
    search_type="web",
    country_filter="PL",
)


class _Request:
    def __init__(self, outcome) -> None:
        self._outcome = outcome

    def execute(self, num_retries: int = 0):  # noqa: ARG002
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome


class FakeSearchAnalytics:
    def __init__(self, outcomes: list) -> None:
        self.outcomes = outcomes
        self.bodies: list[dict] = []

    def query(self, siteUrl: str, body: dict) -> _Request:  # noqa: N803
        self.bodies.append(body)
        return _Request(self.outcomes.pop(0))


class FakeService:
    def __init__(self, outcomes: list) -> None:
        self.analytics = FakeSearchAnalytics(outcomes)

    def searchanalytics(self) -> FakeSearchAnalytics:
        return self.analytics


def _client(outcomes: list) -> tuple[GSCClient, FakeService]:
    client = GSCClient(site_url="sc-domain:example.com")
    service = FakeService(outcomes)
    client._service = service
    return client, service


def test_request_body_includes_paging_and_country_filter() -> None:
    client = GSCClient(site_url="sc-domain:example.com")

    body = client.build_request_body(50, 25, CRITERIA)

    assert body["startRow"] == 50
    assert body["rowLimit"] == 25
    assert body["dimensions"] == ["query", "page"]
    assert body["type"] == "web"
    assert body["dimensionFilterGroups"][0]["filters"][0]["expression"] == "pol"


@pytest.mark.parametrize("raw, expected", [("PL", "pol"), ("none", ""), (" 'DEU' ", "deu"), ("", "")])
def test_country_filter_normalization(raw: str, expected: str) -> None:
    assert GSCClient.normalize_country_filter(raw) == expected


def test_fetch_all_rows_pages_through_service() -> None:
    first = {"rows": [{"keys": ["a", "/a"], "clicks": 1, "impressions": 10, "position": 2}] * 2}
    second = {"rows": [{"keys": ["b", "/b"], "clicks": 2, "impressions": 20, "position": 3}]}
    client, service = _client([first, second])

    rows = fetch_all_rows(client, CRITERIA, row_limit=2, max_rows=10)

    assert len(rows) == 3
    assert [body["startRow"] for body in service.analytics.bodies] == [0, 2]
    assert rows[2].dimensions == {"query": "b", "page": "/b"}


def test_missing_rows_key_means_empty_page() -> None:
    client, _ = _client([{}])

    assert client.fetch_page(0, 10, CRITERIA) == []


def test_http_error_becomes_source_fetch_error() -> None:
    error = HttpError(resp=httplib2.Response({"status": 500}), content=b"backend error")
    client, _ = _client([error])

    with pytest.raises(SourceFetchError, match="startRow=0"):
        client.fetch_page(0, 10, CRITERIA)


def test_timeout_becomes_source_fetch_error() -> None:
    client, _ = _client([TimeoutError("slow")])

    with pytest.raises(SourceFetchError):
        client.fetch_page(0, 10, CRITERIA)


def test_missing_credentials_fail_as_fetch_error() -> None:
    client = GSCClient(site_url="sc-domain:example.com")

    with pytest.raises(SourceFetchError, match="Missing credentials"):
        client.fetch_page(0, 10, CRITERIA)


def test_invalid_inline_credentials_fail_as_fetch_error() -> None:
    client = GSCClient(site_url="sc-domain:example.com", credentials_json="{not json")

    with pytest.raises(SourceFetchError, match="GSC_SA_KEY"):
        client.fetch_page(0, 10, CRITERIA)


def test_token_refresh_failure_becomes_source_fetch_error() -> None:
    client, _ = _client([RefreshError("invalid_grant")])

    with pytest.raises(SourceFetchError, match="auth error"):
        client.fetch_page(0, 10, CRITERIA)


def test_incomplete_service_account_info_fails_as_fetch_error() -> None:
    client = GSCClient(site_url="sc-domain:example.com", credentials_json='{"type": "service_account"}')

    with pytest.raises(SourceFetchError, match="Invalid service account JSON"):
        client.fetch_page(0, 10, CRITERIA)
