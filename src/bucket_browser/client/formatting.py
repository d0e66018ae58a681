"""Human-readable sizes and dates for listings."""

import math
from datetime import datetime, timezone

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]
PLACEHOLDER = "—"


def format_bytes(size: float | None) -> str:
    """Format a byte count with binary units, e.g. 1536 -> "1.5 KB"."""
    if size is None or not math.isfinite(size):
        return PLACEHOLDER

    index = 0
    value = float(size)
    while value >= 1024 and index < len(SIZE_UNITS) - 1:
        value /= 1024
        index += 1

    decimals = 0 if index == 0 else 1
    return f"{value:.{decimals}f} {SIZE_UNITS[index]}"


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp from the listing endpoint."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_date(value: str | None, now: datetime | None = None) -> str:
    """Format an upload timestamp relative to now.

    Returns "Today", "Yesterday", "N days ago" within a week, and a short
    calendar date such as "Mar 4, 2024" beyond that.
    """
    parsed = parse_timestamp(value)
    if parsed is None:
        return PLACEHOLDER

    now = now or datetime.now(timezone.utc)
    days = math.floor((now - parsed).total_seconds() / 86400)

    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    return f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"
