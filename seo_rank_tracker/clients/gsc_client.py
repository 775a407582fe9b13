from __future__ import annotations

import json
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import httplib2
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from seo_rank_tracker.errors import SourceFetchError
from seo_rank_tracker.models import QueryCriteria


class GSCClient:
    """Search Console Search Analytics row source, one page per call."""

    SCOPES = ["https://www.googleapis.com/auth/webmasters.readonly"]
    HTTP_TIMEOUT_SEC = 30
    API_RETRIES = 3
    REQUEST_HARD_TIMEOUT_SEC = 45

    def __init__(
        self,
        site_url: str,
        credentials_path: str = "",
        credentials_json: str = "",
    ) -> None:
        self.site_url = site_url
        self.credentials_path = credentials_path
        self.credentials_json = credentials_json
        self._service = None

    @staticmethod
    def normalize_country_filter(country_filter: str) -> str:
        value = country_filter.strip().strip("'\"").lower()
        if value in {"", "all", "none"}:
            return ""
        if value == "pl":
            return "pol"
        return value

    def _country_filter_groups(self, country_filter: str) -> list[dict] | None:
        country = self.normalize_country_filter(country_filter)
        if not country:
            return None
        return [
            {
                "groupType": "and",
                "filters": [
                    {
                        "dimension": "country",
                        "operator": "equals",
                        "expression": country,
                    }
                ],
            }
        ]

    def _build_credentials(self) -> Credentials:
        # Inline JSON wins over a key file path.
        if self.credentials_json:
            try:
                info = json.loads(self.credentials_json)
            except json.JSONDecodeError as exc:
                raise SourceFetchError(
                    f"Failed to parse service account JSON from GSC_SA_KEY: {exc}"
                ) from exc
            try:
                return service_account.Credentials.from_service_account_info(info, scopes=self.SCOPES)
            except (ValueError, GoogleAuthError) as exc:
                raise SourceFetchError(f"Invalid service account JSON in GSC_SA_KEY: {exc}") from exc

        if self.credentials_path:
            if not Path(self.credentials_path).exists():
                raise SourceFetchError(f"GSC credentials file not found: {self.credentials_path}")
            try:
                return service_account.Credentials.from_service_account_file(
                    self.credentials_path,
                    scopes=self.SCOPES,
                )
            except (ValueError, GoogleAuthError) as exc:
                raise SourceFetchError(
                    f"Invalid service account key file {self.credentials_path}: {exc}"
                ) from exc

        raise SourceFetchError(
            "Missing credentials. Set GSC_CREDENTIALS_PATH / GOOGLE_APPLICATION_CREDENTIALS "
            "(service account key file) or GSC_SA_KEY (inline JSON)."
        )

    def _build_service(self):
        if self._service is not None:
            return self._service

        http = AuthorizedHttp(
            self._build_credentials(),
            http=httplib2.Http(timeout=self.HTTP_TIMEOUT_SEC),
        )
        self._service = build("searchconsole", "v1", http=http, cache_discovery=False)
        return self._service

    @contextmanager
    def _hard_timeout(self, seconds: int):
        # Unix hard-timeout guard for blocking googleapiclient calls.
        if seconds <= 0 or not hasattr(signal, "SIGALRM"):
            yield
            return

        def _handler(signum, frame):  # noqa: ARG001
            raise TimeoutError(f"GSC request exceeded hard timeout ({seconds}s).")

        previous = signal.getsignal(signal.SIGALRM)
        signal.signal(signal.SIGALRM, _handler)
        signal.alarm(seconds)
        try:
            yield
        finally:
            signal.alarm(0)
            signal.signal(signal.SIGALRM, previous)

    def build_request_body(
        self,
        start_row: int,
        row_limit: int,
        criteria: QueryCriteria,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "startDate": criteria.start_date.isoformat(),
            "endDate": criteria.end_date.isoformat(),
            "dimensions": list(criteria.dimensions),
            "rowLimit": row_limit,
            "startRow": start_row,
            "type": criteria.search_type,
        }
        filter_groups = self._country_filter_groups(criteria.country_filter)
        if filter_groups:
            body["dimensionFilterGroups"] = filter_groups
        return body

    def fetch_page(
        self,
        start_row: int,
        row_limit: int,
        criteria: QueryCriteria,
    ) -> list[dict[str, Any]]:
        service = self._build_service()
        body = self.build_request_body(start_row, row_limit, criteria)

        try:
            with self._hard_timeout(self.REQUEST_HARD_TIMEOUT_SEC):
                response = (
                    service.searchanalytics()
                    .query(siteUrl=self.site_url, body=body)
                    .execute(num_retries=self.API_RETRIES)
                )
        except TimeoutError as exc:
            raise SourceFetchError(f"GSC API timeout at startRow={start_row}: {exc}") from exc
        except HttpError as exc:
            raise SourceFetchError(f"GSC API error at startRow={start_row}: {exc}") from exc
        except GoogleAuthError as exc:
            raise SourceFetchError(f"GSC auth error at startRow={start_row}: {exc}") from exc
        except (httplib2.HttpLib2Error, OSError) as exc:
            raise SourceFetchError(f"GSC transport error at startRow={start_row}: {exc}") from exc

        rows = (response or {}).get("rows") or []
        return [row for row in rows if isinstance(row, dict)]
