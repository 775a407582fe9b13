from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
import json
from pathlib import Path
import re
from typing import Any, Mapping

from seo_rank_tracker.errors import MalformedInputError
from seo_rank_tracker.ingestion import row_to_payload, rows_from_payload
from seo_rank_tracker.models import CanonicalRow, DateWindow, MetricSummary, as_number
from seo_rank_tracker.time_windows import parse_iso_date


SNAPSHOT_VERSION = 1
SNAPSHOT_FILE_RE = re.compile(r"^rank-snapshot-.*\.json$", re.IGNORECASE)
LATEST_FILE_NAME = "latest-rank-snapshot.json"


def site_slug(site_url: str) -> str:
    value = re.sub(r"[^a-z0-9]+", "-", str(site_url or "site").lower())
    return value.strip("-")[:60] or "site"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class SnapshotRequest:
    start_date: date | None
    end_date: date | None
    dimensions: tuple[str, ...]
    date_range_source: str = "explicit"
    row_limit: int = 25000
    max_rows: int = 500000
    search_type: str = "web"

    @property
    def window(self) -> DateWindow | None:
        if self.start_date is None or self.end_date is None:
            return None
        return DateWindow("Snapshot range", self.start_date, self.end_date)

    def to_payload(self) -> dict[str, Any]:
        return {
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "dateRangeSource": self.date_range_source,
            "dimensions": list(self.dimensions),
            "rowLimit": self.row_limit,
            "maxRows": self.max_rows,
            "searchType": self.search_type,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "SnapshotRequest":
        data = payload if isinstance(payload, Mapping) else {}
        dims = data.get("dimensions")
        return cls(
            start_date=parse_iso_date(data.get("startDate")),
            end_date=parse_iso_date(data.get("endDate")),
            dimensions=tuple(str(dim) for dim in dims) if isinstance(dims, list) else (),
            date_range_source=str(data.get("dateRangeSource") or "explicit"),
            row_limit=int(as_number(data.get("rowLimit")) or 25000),
            max_rows=int(as_number(data.get("maxRows")) or 500000),
            search_type=str(data.get("searchType") or "web"),
        )


@dataclass
class Snapshot:
    property: str
    request: SnapshotRequest
    rows: list[CanonicalRow]
    summary: MetricSummary = field(default_factory=MetricSummary)
    generated_at: str = field(default_factory=_utc_now_iso)
    version: int = SNAPSHOT_VERSION

    @classmethod
    def build(
        cls,
        property: str,
        request: SnapshotRequest,
        rows: list[CanonicalRow],
        zero_impression_weight: float = 1.0,
    ) -> "Snapshot":
        return cls(
            property=property,
            request=request,
            rows=rows,
            summary=MetricSummary.from_rows(rows, zero_impression_weight),
        )

    @property
    def row_count(self) -> int:
        return self.summary.row_count or len(self.rows)

    def to_payload(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "generatedAt": self.generated_at,
            "property": self.property,
            "request": self.request.to_payload(),
            "summary": self.summary.to_payload(),
            "rows": [row_to_payload(row) for row in self.rows],
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "Snapshot":
        rows = rows_from_payload(payload)
        summary_raw = payload.get("summary")
        summary = (
            MetricSummary.from_payload(summary_raw)
            if isinstance(summary_raw, Mapping)
            else MetricSummary.from_rows(rows)
        )
        return cls(
            property=str(payload.get("property") or "unknown"),
            request=SnapshotRequest.from_payload(payload.get("request")),
            rows=rows,
            summary=summary,
            generated_at=str(payload.get("generatedAt") or ""),
            version=int(as_number(payload.get("version")) or SNAPSHOT_VERSION),
        )


def order_snapshots(
    older: tuple[Path, Snapshot],
    newer: tuple[Path, Snapshot],
) -> tuple[tuple[Path, Snapshot], tuple[Path, Snapshot]]:
    """Swap the pair when the supposedly older snapshot ends later."""
    older_end = older[1].request.end_date
    newer_end = newer[1].request.end_date
    if older_end and newer_end and older_end > newer_end:
        return newer, older
    return older, newer


class SnapshotRepository:
    """Flat JSON snapshot files in one directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def snapshot_file_name(self, snapshot: Snapshot, tag: str = "") -> str:
        stamp = re.sub(r"[:.]", "-", snapshot.generated_at)
        suffix = f"-{re.sub(r'[^a-z0-9_-]', '-', tag, flags=re.IGNORECASE)}" if tag else ""
        start = snapshot.request.start_date.isoformat() if snapshot.request.start_date else "unknown"
        end = snapshot.request.end_date.isoformat() if snapshot.request.end_date else "unknown"
        return f"rank-snapshot-{site_slug(snapshot.property)}-{start}-to-{end}-{stamp}{suffix}.json"

    def save(self, snapshot: Snapshot, tag: str = "") -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        content = json.dumps(snapshot.to_payload(), indent=2, ensure_ascii=False) + "\n"

        path = self.directory / self.snapshot_file_name(snapshot, tag)
        path.write_text(content, encoding="utf-8")
        (self.directory / LATEST_FILE_NAME).write_text(content, encoding="utf-8")
        return path

    @staticmethod
    def load(path: str | Path) -> Snapshot:
        file_path = Path(path)
        try:
            payload = json.loads(file_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise MalformedInputError(f"Invalid JSON in snapshot file: {file_path}") from exc
        try:
            return Snapshot.from_payload(payload)
        except MalformedInputError as exc:
            raise MalformedInputError(f"{exc} ({file_path})") from exc

    def _dated_files(self) -> list[Path]:
        if not self.directory.is_dir():
            return []
        return [
            path
            for path in self.directory.iterdir()
            if path.is_file() and SNAPSHOT_FILE_RE.match(path.name)
        ]

    def latest_pair(self) -> tuple[Path, Path]:
        candidates = self._dated_files()
        if len(candidates) < 2:
            raise FileNotFoundError(
                f"Need at least 2 snapshot files in {self.directory}. Found {len(candidates)}."
            )
        candidates.sort(key=lambda path: path.stat().st_mtime)
        return candidates[-2], candidates[-1]

    def latest(self) -> Path:
        latest_path = self.directory / LATEST_FILE_NAME
        if latest_path.is_file():
            return latest_path
        candidates = sorted(path.name for path in self._dated_files())
        if not candidates:
            raise FileNotFoundError(f"No rank snapshot found in {self.directory}")
        return self.directory / candidates[-1]
