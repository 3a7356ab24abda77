"""
Store-assigned timestamps and record ids.

Timestamps are never client-supplied. The clock is strictly monotonic so
``created_at`` alone gives a total order over records, and it can be
advanced past restored timestamps so a reloaded store never issues a time
earlier than one it has already persisted.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

# Record id prefixes, one per table
CAPTURE_PREFIX = "cap"
SPRINT_PREFIX = "spr"
WORKSPACE_PREFIX = "ws"
DOCUMENT_PREFIX = "doc"
TEMPLATE_PREFIX = "tpl"
FOLDER_PREFIX = "fld"

_TICK = timedelta(microseconds=1)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat a naive datetime as UTC; aware datetimes pass through unchanged."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class Clock:
    """
    Strictly increasing UTC clock.

    Example:
        >>> clock = Clock(lambda: datetime(2026, 1, 1, tzinfo=timezone.utc))
        >>> first = clock.now()
        >>> clock.now() > first
        True
    """

    def __init__(self, source: Callable[[], datetime] | None = None) -> None:
        self._source = source or _utc_now
        self._last: datetime | None = None

    def now(self) -> datetime:
        """Return a timestamp later than every timestamp returned before."""
        current = as_utc(self._source())
        if self._last is not None and current <= self._last:
            current = self._last + _TICK
        self._last = current
        return current

    def advance_to(self, moment: datetime) -> None:
        """Make sure future timestamps are later than ``moment``."""
        if self._last is None or moment > self._last:
            self._last = moment


def format_id(prefix: str, number: int) -> str:
    """Render a record id, e.g. ``format_id("cap", 7) -> "cap-7"``."""
    return f"{prefix}-{number}"


def id_sequence(record_id: str) -> int:
    """
    Extract the numeric sequence from a record id.

    Used as an ordering tie-breaker; ids that do not follow the
    ``<prefix>-<n>`` shape sort first.
    """
    _, _, suffix = record_id.rpartition("-")
    try:
        return int(suffix)
    except ValueError:
        return -1
