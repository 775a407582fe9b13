from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

from seo_rank_tracker.analysis import RankDiffResult
from seo_rank_tracker.ctr_analysis import PageOpportunity
from seo_rank_tracker.models import MetricSummary, as_number
from seo_rank_tracker.snapshots import Snapshot


Column = tuple[str, Callable[[object], str]]


def _fmt_num(value: float | int) -> str:
    text = f"{as_number(value):,.2f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _fmt_pct(value: float | int) -> str:
    return f"{as_number(value) * 100:.2f}%"


def _escape_cell(value: object) -> str:
    return str("" if value is None else value).replace("|", "\\|").replace("\n", " ")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _md_table(items: Sequence[object], columns: Sequence[Column]) -> str:
    if not items:
        return "_none_"
    header = "| " + " | ".join(label for label, _ in columns) + " |"
    divider = "| " + " | ".join("---" for _ in columns) + " |"
    body = [
        "| " + " | ".join(render(item) for _, render in columns) + " |"
        for item in items
    ]
    return "\n".join([header, divider, *body])


def _diff_columns(key_label: str) -> list[Column]:
    return [
        (key_label, lambda r: _escape_cell(r.key)),
        ("Pos Gain", lambda r: _fmt_num(r.position_gain)),
        ("Old Pos", lambda r: _fmt_num(r.old_position)),
        ("New Pos", lambda r: _fmt_num(r.new_position)),
        ("Δ Clicks", lambda r: _fmt_num(r.delta_clicks)),
        ("Δ Impr", lambda r: _fmt_num(r.delta_impressions)),
    ]


OPPORTUNITY_COLUMNS: list[Column] = [
    ("Keyword", lambda r: _escape_cell(r.key)),
    ("Impressions", lambda r: _fmt_num(r.impressions)),
    ("Clicks", lambda r: _fmt_num(r.clicks)),
    ("CTR", lambda r: _fmt_pct(r.ctr)),
    ("Avg Position", lambda r: _fmt_num(r.avg_position)),
]


def _summary_line(label: str, summary: MetricSummary, row_count: int) -> str:
    return (
        f"- {label} rows: {_fmt_num(row_count)} | clicks: {_fmt_num(summary.clicks)} "
        f"| impressions: {_fmt_num(summary.impressions)} | ctr: {_fmt_pct(summary.ctr)} "
        f"| avgPosition: {_fmt_num(summary.avg_position)}"
    )


def _range(snapshot: Snapshot) -> str:
    start = snapshot.request.start_date
    end = snapshot.request.end_date
    return f"{start.isoformat() if start else '?'} .. {end.isoformat() if end else '?'}"


def build_diff_markdown(
    result: RankDiffResult,
    older: Snapshot,
    newer: Snapshot,
    older_path: str | Path,
    newer_path: str | Path,
    generated_at: str | None = None,
) -> str:
    lines = [
        "# SEO Rank Diff Report",
        "",
        f"- Generated: {generated_at or _utc_now()}",
        f"- Older snapshot: {older_path}",
        f"- Newer snapshot: {newer_path}",
        f"- Property: {newer.property or older.property or 'unknown'}",
        f"- Older range: {_range(older)}",
        f"- Newer range: {_range(newer)}",
        "",
        "## Snapshot Summary",
        "",
        _summary_line("Older", result.summary_older, older.row_count),
        _summary_line("Newer", result.summary_newer, newer.row_count),
        "",
        "## Top Gaining Keywords (by position gain)",
        "",
        _md_table(result.keyword_gainers, _diff_columns("Keyword")),
        "",
        "## Top Losing Keywords (by position drop)",
        "",
        _md_table(result.keyword_losers, _diff_columns("Keyword")),
        "",
        "## Top Gaining Pages",
        "",
        _md_table(result.page_gainers, _diff_columns("Page")),
        "",
        "## Top Losing Pages",
        "",
        _md_table(result.page_losers, _diff_columns("Page")),
        "",
        "## Keyword Opportunities (high impressions, low CTR)",
        "",
        f"- Filters: impressions >= {_fmt_num(result.min_impressions)}, "
        f"ctr <= {_fmt_pct(result.opportunity_ctr)}",
        "",
        _md_table(result.opportunities, OPPORTUNITY_COLUMNS),
        "",
    ]
    return "\n".join(lines)


def build_baseline_markdown(snapshot: Snapshot, note: str, generated_at: str | None = None) -> str:
    summary = snapshot.summary
    lines = [
        "# Weekly SEO Rank Report (Baseline)",
        "",
        f"- Generated: {generated_at or _utc_now()}",
        f"- Property: {snapshot.property}",
        f"- Current range: {_range(snapshot)}",
        "",
        "## Current Snapshot Summary",
        "",
        f"- Rows: {_fmt_num(snapshot.row_count)}",
        f"- Clicks: {_fmt_num(summary.clicks)}",
        f"- Impressions: {_fmt_num(summary.impressions)}",
        f"- CTR: {_fmt_pct(summary.ctr)}",
        f"- Avg Position: {_fmt_num(summary.avg_position)}",
        "",
        "## Notes",
        "",
        f"- {note}",
        "- Weekly diff sections will appear after both periods are available.",
        "",
    ]
    return "\n".join(lines)


def build_ctr_markdown(
    snapshot: Snapshot,
    snapshot_path: str | Path,
    opportunities: Sequence[PageOpportunity],
    min_impressions: float,
    max_ctr: float,
    generated_at: str | None = None,
) -> str:
    lines = [
        "# CTR Opportunities Report",
        "",
        f"- Generated: {generated_at or _utc_now()}",
        f"- Snapshot: {snapshot_path}",
        f"- Property: {snapshot.property}",
        f"- Range: {_range(snapshot)}",
        f"- Filters: impressions >= {_fmt_num(min_impressions)}, ctr <= {_fmt_pct(max_ctr)}",
        f"- Opportunities: {len(opportunities)}",
        "",
        "| Page | Current Title | Impressions | Clicks | CTR | Avg Position | Top Query "
        "| Suggested Title | Suggested Meta | Recommendation |",
        "| --- | --- | ---: | ---: | ---: | ---: | --- | --- | --- | --- |",
    ]
    for item in opportunities:
        cells = [
            _escape_cell(item.page),
            _escape_cell(item.current_title or "(not fetched)"),
            _fmt_num(item.impressions),
            _fmt_num(item.clicks),
            _fmt_pct(item.ctr),
            _fmt_num(item.avg_position),
            _escape_cell(item.top_query),
            _escape_cell(item.suggested_title),
            _escape_cell(item.suggested_meta),
            _escape_cell(item.recommendation),
        ]
        lines.append("| " + " | ".join(cells) + " |")
    if not opportunities:
        lines.append(
            "| _none_ | _none_ | 0 | 0 | 0.00% | 0 | _none_ | _none_ | _none_ | _none_ |"
        )
    lines.append("")
    return "\n".join(lines) + "\n"


CTR_CSV_HEADERS = (
    "page",
    "current_title",
    "impressions",
    "clicks",
    "ctr",
    "avg_position",
    "top_query",
    "suggested_title",
    "suggested_meta",
    "recommendation",
)


def build_ctr_csv(opportunities: Sequence[PageOpportunity]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CTR_CSV_HEADERS)
    for item in opportunities:
        writer.writerow(
            [
                item.page,
                item.current_title,
                item.impressions,
                item.clicks,
                item.ctr,
                item.avg_position,
                item.top_query,
                item.suggested_title,
                item.suggested_meta,
                item.recommendation,
            ]
        )
    return buffer.getvalue()


def write_text(path: str | Path, content: str) -> Path:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding="utf-8")
    return output
