"""Date normalization utilities for Displacement Atlas.

Each source reports dates differently: DTM uses ISO timestamps
(``2022-06-01T00:00:00``), ACLED uses ``YYYY-MM-DD`` and snapshot files use
ISO 8601 with offsets. Route every date through these helpers before
storing, sorting or bucketing it.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as dateutil_parser


def parse_date(raw_date: object) -> Optional[datetime]:
    """Parse any supported date representation.

    Args:
        raw_date: Date string (any dateutil-parseable form) or None.

    Returns:
        Parsed datetime, or None when the value is empty or unparseable.
    """
    if raw_date is None:
        return None
    text = str(raw_date).strip()
    if not text:
        return None
    try:
        return dateutil_parser.parse(text)
    except (ValueError, OverflowError, TypeError):
        return None


def normalize_date_str(raw_date: object) -> str:
    """Normalize a source date to ISO ``YYYY-MM-DD``.

    Args:
        raw_date: Raw date value from a source row.

    Returns:
        ISO date string, or ``""`` when the value cannot be parsed.
    """
    parsed = parse_date(raw_date)
    return parsed.strftime("%Y-%m-%d") if parsed else ""


def month_key(date_str: str) -> str:
    """Calendar-month bucket ``YYYY-MM`` for an event date.

    Args:
        date_str: Event date in any parseable form.

    Returns:
        ``YYYY-MM``, or ``"Unknown"`` when the date cannot be parsed.
    """
    parsed = parse_date(date_str)
    return parsed.strftime("%Y-%m") if parsed else "Unknown"


def sort_timestamp(date_str: str) -> float:
    """Sortable POSIX timestamp for a report date; unparseable dates sort first."""
    parsed = parse_date(date_str)
    if parsed is None:
        return float("-inf")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def days_since(iso_timestamp: Optional[str]) -> Optional[float]:
    """Days elapsed since an ISO timestamp, or None when it cannot be parsed."""
    if not iso_timestamp:
        return None
    parsed = parse_date(iso_timestamp)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return (datetime.now(timezone.utc) - parsed).total_seconds() / 86400.0
