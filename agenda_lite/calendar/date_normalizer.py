"""Timezone-safe calendar-day extraction.

Stored timestamps encode the intended calendar date in their UTC fields: a task
due on 2025-03-12 is stored as ``2025-03-12T..Z``. Projecting that instant
through the viewer's offset would move it to the 11th for viewers west of UTC
and to the 13th for viewers far enough east, so every "which day is this item
on" question in the engine goes through this module and reads the UTC fields
directly.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, time, tzinfo
from typing import Optional, Union

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

DayLike = Union[datetime, date, str]


def _parse_text(value: str) -> Union[datetime, date]:
    text = value.strip()
    if len(text) == 10:
        # Plain YYYY-MM-DD is already a calendar day
        return date.fromisoformat(text)
    return date_parser.isoparse(text)


def to_local_calendar_day(value: DayLike) -> date:
    """Return the calendar day encoded in a stored timestamp.

    The year/month/day are taken from the instant's UTC fields, never from the
    viewer's local projection. Naive datetimes are treated as UTC; ``date``
    values are returned unchanged.

    Args:
        value: Aware or naive datetime, date, or ISO-8601 string

    Returns:
        Calendar day

    Raises:
        ValueError: If a string value is not valid ISO-8601
    """
    if isinstance(value, str):
        value = _parse_text(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return date(value.year, value.month, value.day)
    if isinstance(value, date):
        return value
    raise TypeError(f"Cannot derive a calendar day from {type(value).__name__}")


def local_midnight(day: DayLike, tz: Optional[tzinfo] = None) -> datetime:
    """Rebuild local midnight of a calendar day from its numeric fields.

    The day is first normalized with :func:`to_local_calendar_day`, so the
    result lands on the same calendar date in every viewer timezone.

    Args:
        day: Day or stored timestamp
        tz: Viewer timezone (UTC when omitted)

    Returns:
        Timezone-aware datetime at 00:00 of that day in ``tz``
    """
    calendar_day = to_local_calendar_day(day)
    return datetime.combine(calendar_day, time.min, tzinfo=tz or UTC)


def is_same_calendar_day(a: Optional[DayLike], b: Optional[DayLike]) -> bool:
    """Compare two values by normalized calendar day.

    Returns False, rather than raising, when either side is absent or cannot be
    interpreted as a day.
    """
    if a is None or b is None:
        return False
    try:
        return to_local_calendar_day(a) == to_local_calendar_day(b)
    except (TypeError, ValueError):
        logger.debug("is_same_calendar_day: uninterpretable input %r / %r", a, b)
        return False


def today_in(tz: Optional[tzinfo], now: Optional[datetime] = None) -> date:
    """Return the viewer's current calendar day.

    This is the one place where the viewer's offset matters: "today" is what the
    viewer's wall clock says, not what UTC says.
    """
    from agenda_lite.core.timezone_utils import now_utc

    current = now if now is not None else now_utc()
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)
    return current.astimezone(tz or UTC).date()


def format_day_key(day: DayLike) -> str:
    """Format a day as ``YYYY-MM-DD``."""
    return to_local_calendar_day(day).isoformat()


def format_display_date(day: DayLike) -> str:
    """Format a day for status messages, e.g. ``March 1, 2025``."""
    calendar_day = to_local_calendar_day(day)
    return f"{calendar_day.strftime('%B')} {calendar_day.day}, {calendar_day.year}"
