from __future__ import annotations

from typing import Any, Protocol

from seo_rank_tracker.errors import InvalidParameterError, RankTrackerError, SourceFetchError
from seo_rank_tracker.ingestion import normalize_api_row
from seo_rank_tracker.models import CanonicalRow, QueryCriteria


MAX_ROW_LIMIT = 25000


class RowSource(Protocol):
    def fetch_page(
        self,
        start_row: int,
        row_limit: int,
        criteria: QueryCriteria,
    ) -> list[dict[str, Any]]:
        ...


def fetch_all_rows(
    source: RowSource,
    criteria: QueryCriteria,
    row_limit: int = MAX_ROW_LIMIT,
    max_rows: int = 500000,
) -> list[CanonicalRow]:
    """Page through ``source`` until the cap, an empty page or a short page.

    Requests are issued one at a time since every offset depends on how many
    rows the previous page returned. Any source failure surfaces as
    ``SourceFetchError`` and discards whatever was collected so far.
    """
    if row_limit < 1:
        raise InvalidParameterError(f"row_limit must be >= 1, got {row_limit}.")
    if max_rows < 1:
        raise InvalidParameterError(f"max_rows must be >= 1, got {max_rows}.")

    rows: list[CanonicalRow] = []
    start_row = 0
    while len(rows) < max_rows:
        try:
            batch = source.fetch_page(start_row, row_limit, criteria) or []
        except RankTrackerError:
            raise
        except Exception as exc:
            raise SourceFetchError(f"Row source failed at startRow={start_row}: {exc}") from exc
        if not batch:
            break

        for raw in batch:
            rows.append(normalize_api_row(raw, criteria.dimensions))
            if len(rows) >= max_rows:
                break

        # A short page means the source has nothing more to give.
        if len(batch) < row_limit or len(rows) >= max_rows:
            break
        start_row += len(batch)

    return rows
