from __future__ import annotations

import argparse
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Sequence

from dotenv import find_dotenv, load_dotenv

from seo_rank_tracker.analysis import RankDiffResult, analyze_snapshots
from seo_rank_tracker.clients.gsc_client import GSCClient
from seo_rank_tracker.clients.page_title_client import PageTitleClient
from seo_rank_tracker.config import TrackerConfig
from seo_rank_tracker.ctr_analysis import PageOpportunity, find_page_opportunities
from seo_rank_tracker.errors import MalformedInputError, RankTrackerError, SourceFetchError
from seo_rank_tracker.ingestion import parse_dimensions
from seo_rank_tracker.models import DateWindow, QueryCriteria
from seo_rank_tracker.pagination import MAX_ROW_LIMIT, RowSource, fetch_all_rows
from seo_rank_tracker.reporting import (
    build_baseline_markdown,
    build_ctr_csv,
    build_ctr_markdown,
    build_diff_markdown,
    write_text,
)
from seo_rank_tracker.snapshots import Snapshot, SnapshotRepository, SnapshotRequest, order_snapshots
from seo_rank_tracker.time_windows import compute_period_windows, resolve_date_window


def _fmt_total(value: float) -> str:
    return f"{value:.0f}"


def run_snapshot(
    source: RowSource,
    repository: SnapshotRepository,
    site_url: str,
    window: DateWindow,
    dimensions: Sequence[str],
    row_limit: int = MAX_ROW_LIMIT,
    max_rows: int = 500000,
    search_type: str = "web",
    country_filter: str = "",
    date_range_source: str = "explicit",
    tag: str = "",
    zero_impression_weight: float = 1.0,
) -> tuple[Path, Snapshot]:
    criteria = QueryCriteria(
        start_date=window.start,
        end_date=window.end,
        dimensions=tuple(dimensions),
        search_type=search_type,
        country_filter=country_filter,
    )
    rows = fetch_all_rows(source, criteria, row_limit=row_limit, max_rows=max_rows)
    request = SnapshotRequest(
        start_date=window.start,
        end_date=window.end,
        dimensions=tuple(dimensions),
        date_range_source=date_range_source,
        row_limit=row_limit,
        max_rows=max_rows,
        search_type=search_type,
    )
    snapshot = Snapshot.build(site_url, request, rows, zero_impression_weight)
    path = repository.save(snapshot, tag=tag)
    return path, snapshot


def run_diff(
    older_path: Path,
    newer_path: Path,
    top_n: int,
    min_impressions: float,
    opportunity_ctr: float,
    zero_impression_weight: float = 1.0,
) -> tuple[str, RankDiffResult]:
    older = (older_path, SnapshotRepository.load(older_path))
    newer = (newer_path, SnapshotRepository.load(newer_path))
    (older_path, older_snapshot), (newer_path, newer_snapshot) = order_snapshots(older, newer)

    result = analyze_snapshots(
        older_snapshot,
        newer_snapshot,
        top_n=top_n,
        min_impressions=min_impressions,
        opportunity_ctr=opportunity_ctr,
        zero_impression_weight=zero_impression_weight,
    )
    report = build_diff_markdown(result, older_snapshot, newer_snapshot, older_path, newer_path)
    return report, result


def run_weekly(
    source: RowSource,
    repository: SnapshotRepository,
    report_dir: Path,
    site_url: str,
    days: int = 28,
    end_date: str | None = None,
    top_n: int = 10,
    min_impressions: float = 500,
    opportunity_ctr: float = 0.015,
    dimensions: Sequence[str] = ("query", "page", "device", "country", "date"),
    country_filter: str = "",
    today: date | None = None,
    zero_impression_weight: float = 1.0,
) -> tuple[Path, bool]:
    """Fetch the current and previous period, then write the weekly report.

    Returns the report path and whether it holds a comparison. A failed
    previous-period fetch downgrades the run to a baseline report.
    """
    windows = compute_period_windows(days=days, end_date=end_date, today=today)
    report_path = report_dir / f"{(today or date.today()).isoformat()}-weekly-report.md"
    print(f"current={windows['current'].start}..{windows['current'].end}")
    print(f"previous={windows['previous'].start}..{windows['previous'].end}")

    current_path, current = run_snapshot(
        source,
        repository,
        site_url,
        windows["current"],
        dimensions,
        country_filter=country_filter,
        tag="weekly-current",
        zero_impression_weight=zero_impression_weight,
    )

    try:
        previous_path, _ = run_snapshot(
            source,
            repository,
            site_url,
            windows["previous"],
            dimensions,
            country_filter=country_filter,
            tag="weekly-previous",
            zero_impression_weight=zero_impression_weight,
        )
    except SourceFetchError as exc:
        note = f"Previous period snapshot could not be generated automatically. {exc}"
        write_text(report_path, build_baseline_markdown(current, note))
        print("Weekly baseline report generated (no comparison).")
        print(f"currentSnapshot={current_path}")
        print(f"report={report_path}")
        return report_path, False

    report, result = run_diff(
        previous_path,
        current_path,
        top_n=top_n,
        min_impressions=min_impressions,
        opportunity_ctr=opportunity_ctr,
        zero_impression_weight=zero_impression_weight,
    )
    write_text(report_path, report + "\n")
    print("Weekly report generated with comparison.")
    print(f"currentSnapshot={current_path}")
    print(f"previousSnapshot={previous_path}")
    print(f"report={report_path}")
    print(
        f"Compared keywords={result.keywords_compared} pages={result.pages_compared} "
        f"opportunities={len(result.opportunities)}"
    )
    return report_path, True


def run_ctr(
    snapshot_path: Path,
    brand_name: str,
    min_impressions: float,
    max_ctr: float,
    top_n: int,
    title_client: PageTitleClient | None,
    zero_impression_weight: float = 1.0,
) -> tuple[Snapshot, list[PageOpportunity]]:
    snapshot = SnapshotRepository.load(snapshot_path)
    if not snapshot.rows:
        raise MalformedInputError(f"Snapshot has no rows: {snapshot_path}")
    opportunities = find_page_opportunities(
        snapshot.rows,
        brand_name=brand_name,
        min_impressions=min_impressions,
        max_ctr=max_ctr,
        top_n=top_n,
        title_fetcher=title_client,
        zero_impression_weight=zero_impression_weight,
    )
    return snapshot, opportunities


def _build_gsc_client(args: argparse.Namespace, config: TrackerConfig) -> GSCClient:
    return GSCClient(
        site_url=args.site_url,
        credentials_path=args.key or config.gsc_credentials_path,
        credentials_json=args.sa_json or config.gsc_credentials_json,
    )


def _add_gsc_arguments(parser: argparse.ArgumentParser, config: TrackerConfig) -> None:
    parser.add_argument("--site-url", default=config.gsc_site_url, help="Search Console property")
    parser.add_argument("--key", default="", help="Path to service account JSON key file")
    parser.add_argument(
        "--sa-json",
        default="",
        help="Inline service account JSON (discouraged in shell history)",
    )
    parser.add_argument("--data-dir", default=config.snapshot_dir, help="Snapshot storage directory")


def _parse_args(argv: Sequence[str] | None, config: TrackerConfig) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search Console rank snapshots and diffs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    snapshot = subparsers.add_parser("snapshot", help="Fetch and store a rank snapshot")
    _add_gsc_arguments(snapshot, config)
    snapshot.add_argument("--days", type=int, default=28, help="Relative lookback window")
    snapshot.add_argument("--start-date", help="Start date in YYYY-MM-DD")
    snapshot.add_argument("--end-date", help="End date in YYYY-MM-DD")
    snapshot.add_argument("--dimensions", default=config.gsc_dimensions)
    snapshot.add_argument("--row-limit", type=int, default=config.gsc_row_limit)
    snapshot.add_argument("--max-rows", type=int, default=config.gsc_max_rows)
    snapshot.add_argument("--search-type", default=config.gsc_search_type)
    snapshot.add_argument("--tag", default="", help="Optional suffix tag for filename")

    diff = subparsers.add_parser("diff", help="Compare two rank snapshots")
    diff.add_argument("--snap1", help="Older snapshot file path")
    diff.add_argument("--snap2", help="Newer snapshot file path")
    diff.add_argument("--latest", action="store_true", help="Use latest 2 snapshots from --dir")
    diff.add_argument("--dir", default=config.snapshot_dir, help="Snapshot directory for --latest")
    diff.add_argument("--top", type=int, default=config.report_top_n)
    diff.add_argument("--min-impressions", type=float, default=config.min_impressions)
    diff.add_argument("--opportunity-ctr", type=float, default=config.opportunity_ctr)
    diff.add_argument("--out", help="Optional markdown output path")

    ctr = subparsers.add_parser("ctr", help="Page-level CTR opportunities from one snapshot")
    ctr.add_argument("--snapshot", help="Snapshot JSON (defaults to the latest one)")
    ctr.add_argument("--snapshot-dir", default=config.snapshot_dir)
    ctr.add_argument("--min-impressions", type=float, default=config.min_impressions)
    ctr.add_argument("--max-ctr", type=float, default=config.ctr_max)
    ctr.add_argument("--top", type=int, default=config.ctr_top_n)
    ctr.add_argument(
        "--fetch-titles",
        action=argparse.BooleanOptionalAction,
        default=config.fetch_titles,
        help="Fetch live page titles for the report",
    )
    ctr.add_argument("--title-timeout", type=float, default=config.title_timeout_sec)
    today_text = date.today().isoformat()
    ctr.add_argument(
        "--out",
        default=str(Path(config.report_dir) / f"ctr-opportunities-{today_text}.md"),
    )
    ctr.add_argument(
        "--csv-out",
        default=str(Path(config.report_dir) / f"ctr-opportunities-{today_text}.csv"),
    )

    weekly = subparsers.add_parser("weekly", help="Snapshot both periods and write a weekly report")
    _add_gsc_arguments(weekly, config)
    weekly.add_argument("--days", type=int, default=28, help="Window size for each period")
    weekly.add_argument("--end-date", help="Current period end date (default: yesterday UTC)")
    weekly.add_argument("--report-dir", default=config.report_dir)
    weekly.add_argument("--top", type=int, default=config.weekly_top_n)
    weekly.add_argument("--min-impressions", type=float, default=config.min_impressions)
    weekly.add_argument("--opportunity-ctr", type=float, default=config.opportunity_ctr)

    return parser.parse_args(argv)


def _command_snapshot(args: argparse.Namespace, config: TrackerConfig) -> None:
    dimensions = parse_dimensions(args.dimensions)
    row_limit = min(MAX_ROW_LIMIT, max(1, int(args.row_limit)))
    max_rows = max(1, int(args.max_rows))
    today = datetime.now(timezone.utc).date()
    window, range_source = resolve_date_window(args.days, args.start_date, args.end_date, today=today)

    path, snapshot = run_snapshot(
        _build_gsc_client(args, config),
        SnapshotRepository(args.data_dir),
        args.site_url,
        window,
        dimensions,
        row_limit=row_limit,
        max_rows=max_rows,
        search_type=args.search_type,
        country_filter=config.gsc_country_filter,
        date_range_source=range_source,
        tag=args.tag,
        zero_impression_weight=config.zero_impression_weight,
    )
    summary = snapshot.summary
    print("Rank snapshot created.")
    print(f"property={args.site_url}")
    print(f"range={window.start}..{window.end} ({range_source})")
    print(f"dimensions={','.join(dimensions)}")
    print(
        f"rows={summary.row_count} clicks={_fmt_total(summary.clicks)} "
        f"impressions={_fmt_total(summary.impressions)} ctr={summary.ctr * 100:.2f}% "
        f"avgPosition={summary.avg_position:.2f}"
    )
    print(f"snapshot={path}")
    print(f"latest={path.parent / 'latest-rank-snapshot.json'}")


def _command_diff(args: argparse.Namespace, config: TrackerConfig) -> None:
    older_path = Path(args.snap1) if args.snap1 else None
    newer_path = Path(args.snap2) if args.snap2 else None
    if args.latest:
        older_path, newer_path = SnapshotRepository(args.dir).latest_pair()
    if older_path is None or newer_path is None:
        raise RankTrackerError("Provide --snap1 and --snap2, or use --latest with --dir.")

    report, result = run_diff(
        older_path,
        newer_path,
        top_n=max(1, int(args.top)),
        min_impressions=max(1.0, float(args.min_impressions)),
        opportunity_ctr=max(0.0, float(args.opportunity_ctr)),
        zero_impression_weight=config.zero_impression_weight,
    )
    if args.out:
        write_text(args.out, report + "\n")

    print(report)
    print(
        f"Compared keywords={result.keywords_compared} pages={result.pages_compared} "
        f"opportunities={len(result.opportunities)}"
    )
    if args.out:
        print(f"Report written: {args.out}")


def _command_ctr(args: argparse.Namespace, config: TrackerConfig) -> None:
    snapshot_path = Path(args.snapshot) if args.snapshot else SnapshotRepository(args.snapshot_dir).latest()
    title_client = PageTitleClient(timeout_sec=float(args.title_timeout)) if args.fetch_titles else None
    snapshot, opportunities = run_ctr(
        snapshot_path,
        brand_name=config.brand_name,
        min_impressions=float(args.min_impressions),
        max_ctr=float(args.max_ctr),
        top_n=max(1, int(args.top)),
        title_client=title_client,
        zero_impression_weight=config.zero_impression_weight,
    )
    write_text(
        args.out,
        build_ctr_markdown(
            snapshot, snapshot_path, opportunities, float(args.min_impressions), float(args.max_ctr)
        ),
    )
    write_text(args.csv_out, build_ctr_csv(opportunities))

    print("CTR analysis complete.")
    print(f"snapshot={snapshot_path}")
    print(f"opportunities={len(opportunities)}")
    print(f"markdown={args.out}")
    print(f"csv={args.csv_out}")


def _command_weekly(args: argparse.Namespace, config: TrackerConfig) -> None:
    print("Running weekly rank automation...")
    print(f"property={args.site_url}")
    run_weekly(
        _build_gsc_client(args, config),
        SnapshotRepository(args.data_dir),
        Path(args.report_dir),
        args.site_url,
        days=int(args.days),
        end_date=args.end_date,
        top_n=max(1, int(args.top)),
        min_impressions=max(1.0, float(args.min_impressions)),
        opportunity_ctr=max(0.0, float(args.opportunity_ctr)),
        dimensions=parse_dimensions(config.gsc_dimensions),
        country_filter=config.gsc_country_filter,
        today=datetime.now(timezone.utc).date(),
        zero_impression_weight=config.zero_impression_weight,
    )


COMMANDS = {
    "snapshot": _command_snapshot,
    "diff": _command_diff,
    "ctr": _command_ctr,
    "weekly": _command_weekly,
}


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv(find_dotenv(usecwd=True))
    config = TrackerConfig.from_env()
    args = _parse_args(argv, config)

    try:
        COMMANDS[args.command](args, config)
    except (RankTrackerError, FileNotFoundError) as exc:
        print(f"{args.command} failed: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
