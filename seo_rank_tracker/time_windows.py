from __future__ import annotations

from datetime import date, timedelta

from seo_rank_tracker.errors import InvalidParameterError
from seo_rank_tracker.models import DateWindow


def parse_iso_date(raw: str | date | None) -> date | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw).strip()[:10])
    except ValueError:
        return None


def _default_end(today: date | None) -> date:
    # Search Console data for "today" is incomplete; close on yesterday.
    return (today or date.today()) - timedelta(days=1)


def resolve_date_window(
    days: int = 28,
    start_date: str | date | None = None,
    end_date: str | date | None = None,
    today: date | None = None,
) -> tuple[DateWindow, str]:
    """Return the fetch window and whether it was ``explicit`` or ``relative``.

    An explicit range needs both ends. Otherwise the window is the ``days``
    long span ending yesterday.
    """
    explicit_start = parse_iso_date(start_date)
    explicit_end = parse_iso_date(end_date)
    if explicit_start and explicit_end:
        if explicit_start > explicit_end:
            raise InvalidParameterError(
                f"Invalid date range: start date ({explicit_start}) is after end date ({explicit_end})."
            )
        return DateWindow("Explicit range", explicit_start, explicit_end), "explicit"

    if days <= 0:
        raise InvalidParameterError(f"Invalid days value: {days}")

    end = _default_end(today)
    start = end - timedelta(days=days - 1)
    return DateWindow(f"Last {days} days", start, end), "relative"


def compute_period_windows(
    days: int = 28,
    end_date: str | date | None = None,
    today: date | None = None,
) -> dict[str, DateWindow]:
    """Build the current window and the equally long window right before it."""
    if days <= 0:
        raise InvalidParameterError(f"Invalid days value: {days}")

    current_end = parse_iso_date(end_date) or _default_end(today)
    current_start = current_end - timedelta(days=days - 1)
    previous_end = current_start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=days - 1)

    return {
        "current": DateWindow(f"Current {days} days", current_start, current_end),
        "previous": DateWindow(f"Previous {days} days", previous_start, previous_end),
    }
