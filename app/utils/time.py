"""Utility functions for time handling.

All timestamps should be UTC and timezone-aware. The controller works on
integer milliseconds since the epoch; use epoch_ms() for "now" and
ms_to_iso() when rendering a timestamp for an API response.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def iso_now(*, timespec: str | None = None) -> str:
    """Return current UTC time as an ISO8601 string (timezone-aware)."""
    now = utc_now()
    if timespec:
        return now.isoformat(timespec=timespec)
    return now.isoformat()


def epoch_ms() -> int:
    """Return the current wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


def ms_to_datetime(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)


def ms_to_iso(value: int | None) -> str | None:
    if value is None:
        return None
    return ms_to_datetime(value).isoformat()
