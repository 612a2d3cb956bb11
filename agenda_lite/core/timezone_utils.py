"""Timezone resolution and current-time utilities for agenda_lite."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from functools import lru_cache

logger = logging.getLogger(__name__)

# Default viewer timezone when nothing is configured
DEFAULT_VIEWER_TIMEZONE = "UTC"

TEST_TIME_ENV = "AGENDA_TEST_TIME"
DEFAULT_TIMEZONE_ENV = "AGENDA_DEFAULT_TIMEZONE"


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via the AGENDA_TEST_TIME environment variable.
        Format: ISO 8601 datetime string (e.g., "2025-03-01T08:20:00-08:00").
        A naive override is taken to be UTC.

        Returns:
            Current time in UTC with timezone info
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                from dateutil import parser as date_parser

                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.timezone.utc)
                return dt.replace(tzinfo=datetime.timezone.utc)

            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)
                # Fall through to real time

        return datetime.datetime.now(datetime.timezone.utc)


_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function).

    Returns:
        Current time in UTC
    """
    return _time_provider.now_utc()


@lru_cache(maxsize=64)
def _zone(name: str) -> datetime.tzinfo:
    return zoneinfo.ZoneInfo(name)


def resolve_timezone(name: str | None, fallback: str = DEFAULT_VIEWER_TIMEZONE) -> datetime.tzinfo:
    """Resolve a timezone name to a tzinfo, falling back on invalid input.

    Accepts IANA identifiers ("Europe/Berlin") and fixed offsets in the form
    "UTC+14", "UTC-12" or "+05:30".

    Args:
        name: Timezone name or fixed offset; None uses ``fallback``
        fallback: IANA name used when ``name`` is missing or invalid

    Returns:
        tzinfo instance
    """
    if not name:
        return _zone(fallback)

    offset = parse_fixed_offset(name)
    if offset is not None:
        return offset

    try:
        return _zone(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid timezone %r, falling back to %r", name, fallback)
        return _zone(fallback)


def parse_fixed_offset(text: str) -> datetime.timezone | None:
    """Parse "UTC+14", "UTC-12", "+05:30" or "-0800" into a fixed-offset timezone.

    Returns:
        timezone, or None if the text is not an offset
    """
    raw = text.strip().upper()
    if raw in ("UTC", "Z", "GMT"):
        return datetime.timezone.utc
    for prefix in ("UTC", "GMT"):
        if raw.startswith(prefix):
            raw = raw[len(prefix):]
            break
    if not raw or raw[0] not in "+-":
        return None

    sign = -1 if raw[0] == "-" else 1
    body = raw[1:].replace(":", "")
    if not body.isdigit() or len(body) not in (1, 2, 3, 4):
        return None
    if len(body) <= 2:
        hours, minutes = int(body), 0
    else:
        hours, minutes = int(body[:-2]), int(body[-2:])
    if hours > 14 or minutes > 59:
        return None
    return datetime.timezone(sign * datetime.timedelta(hours=hours, minutes=minutes))


def get_default_timezone(fallback: str = DEFAULT_VIEWER_TIMEZONE) -> str:
    """Get default viewer timezone from environment with validation.

    Checks AGENDA_DEFAULT_TIMEZONE first, then falls back to ``fallback``.

    Returns:
        Valid timezone string
    """
    timezone = os.environ.get(DEFAULT_TIMEZONE_ENV, fallback)

    if parse_fixed_offset(timezone) is not None:
        return timezone
    try:
        _zone(timezone)
        return timezone
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid timezone %r, falling back to %r", timezone, fallback)
        return fallback
