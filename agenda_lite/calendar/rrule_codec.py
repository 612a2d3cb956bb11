"""Codec for the stored recurrence rule strings.

Wire form (kept byte-compatible with previously stored rules)::

    FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE,FR;COUNT=5
    FREQ=DAILY;INTERVAL=2;UNTIL=20250412T235959Z

Parsing is tolerant: a bad field falls back to its default and is logged, so
that expansion stays total. Only text with no KEY=VALUE segment at all raises.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from agenda_lite.calendar.date_normalizer import to_local_calendar_day
from agenda_lite.calendar.models import Frequency, RecurrenceRule, Termination, Weekday
from agenda_lite.exceptions import RecurrenceRuleParseError

logger = logging.getLogger(__name__)

UNTIL_SUFFIX = "T235959Z"

_FREQUENCY_UNITS = {
    Frequency.DAILY: ("day", "days"),
    Frequency.WEEKLY: ("week", "weeks"),
    Frequency.MONTHLY: ("month", "months"),
    Frequency.YEARLY: ("year", "years"),
}

_WEEKDAY_LABELS = {
    Weekday.MO: "Mon",
    Weekday.TU: "Tue",
    Weekday.WE: "Wed",
    Weekday.TH: "Thu",
    Weekday.FR: "Fri",
    Weekday.SA: "Sat",
    Weekday.SU: "Sun",
}


def _split_segments(text: str) -> dict[str, str]:
    """Split ``KEY=VALUE;KEY=VALUE`` into an upper-cased key mapping.

    The first occurrence of a key wins. A leading ``RRULE:`` prefix is ignored.
    """
    body = text.strip()
    if body.upper().startswith("RRULE:"):
        body = body[len("RRULE:"):]

    segments: dict[str, str] = {}
    for part in body.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip().upper()
        if key and key not in segments:
            segments[key] = value.strip()
    return segments


def _parse_frequency(raw: Optional[str]) -> Frequency:
    if raw is None:
        logger.warning("RRULE has no FREQ; defaulting to DAILY")
        return Frequency.DAILY
    try:
        return Frequency(raw.upper())
    except ValueError:
        logger.warning("RRULE FREQ=%r not supported; defaulting to DAILY", raw)
        return Frequency.DAILY


def _parse_positive_int(key: str, raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning("RRULE %s=%r is not numeric; ignoring", key, raw)
        return None
    if value < 1:
        logger.warning("RRULE %s=%d is not positive; ignoring", key, value)
        return None
    return value


def _parse_by_day(raw: Optional[str]) -> tuple[Weekday, ...]:
    if not raw:
        return ()
    days = []
    for token in raw.split(","):
        code = token.strip().upper()
        # Ordinal prefixes such as "1MO" are outside the supported subset
        try:
            days.append(Weekday(code))
        except ValueError:
            logger.warning("RRULE BYDAY token %r not recognised; dropping", token)
    return tuple(days)


def _parse_until(raw: Optional[str]) -> Optional[date]:
    if raw is None:
        return None
    digits = raw.strip()[:8]
    try:
        return datetime.strptime(digits, "%Y%m%d").date()
    except ValueError:
        logger.warning("RRULE UNTIL=%r is not YYYYMMDD; ignoring", raw)
        return None


def parse_rule(text: str, anchor_start: Optional[datetime] = None) -> RecurrenceRule:
    """Parse an encoded rule string into a RecurrenceRule.

    Args:
        text: Encoded rule, e.g. "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO"
        anchor_start: Start of the item carrying the rule. When the rule is
            WEEKLY without BYDAY, the anchor's weekday is substituted.

    Returns:
        Parsed rule. COUNT wins when both COUNT and UNTIL are present.

    Raises:
        RecurrenceRuleParseError: If the text is empty or has no KEY=VALUE segment
    """
    if not text or not text.strip():
        raise RecurrenceRuleParseError("Empty recurrence rule")

    segments = _split_segments(text)
    if not segments:
        raise RecurrenceRuleParseError(f"No KEY=VALUE segments in recurrence rule: {text!r}")

    frequency = _parse_frequency(segments.get("FREQ"))

    interval = 1
    if "INTERVAL" in segments:
        interval = _parse_positive_int("INTERVAL", segments["INTERVAL"]) or 1

    by_day: tuple[Weekday, ...] = ()
    if frequency is Frequency.WEEKLY:
        by_day = _parse_by_day(segments.get("BYDAY"))
        if not by_day and anchor_start is not None:
            by_day = (Weekday.from_index(to_local_calendar_day(anchor_start).weekday()),)
    elif "BYDAY" in segments:
        logger.debug("Ignoring BYDAY for %s rule", frequency.value)

    count = _parse_positive_int("COUNT", segments.get("COUNT"))
    until = None
    if count is None:
        until = _parse_until(segments.get("UNTIL"))
    elif "UNTIL" in segments:
        logger.debug("RRULE has both COUNT and UNTIL; COUNT takes precedence")

    return RecurrenceRule(
        frequency=frequency,
        interval=interval,
        by_day=by_day,
        count=count,
        until=until,
    )


def serialize_rule(rule: RecurrenceRule) -> str:
    """Encode a RecurrenceRule in the stored wire form.

    INTERVAL is always written; BYDAY only for WEEKLY rules; at most one of
    COUNT / UNTIL.
    """
    parts = [f"FREQ={rule.frequency.value}", f"INTERVAL={rule.interval}"]
    if rule.frequency is Frequency.WEEKLY and rule.by_day:
        parts.append("BYDAY=" + ",".join(day.value for day in rule.by_day))
    if rule.termination is Termination.COUNT:
        parts.append(f"COUNT={rule.count}")
    elif rule.termination is Termination.UNTIL and rule.until is not None:
        until = rule.until
        parts.append(f"UNTIL={until.year:04d}{until.month:02d}{until.day:02d}{UNTIL_SUFFIX}")
    return ";".join(parts)


def describe_rule(rule: RecurrenceRule) -> str:
    """Short human-readable summary, e.g. "Every 2 weeks on Mon, Wed, 5 times"."""
    singular, plural = _FREQUENCY_UNITS[rule.frequency]
    text = f"Every {singular}" if rule.interval == 1 else f"Every {rule.interval} {plural}"
    if rule.frequency is Frequency.WEEKLY and rule.by_day:
        text += " on " + ", ".join(_WEEKDAY_LABELS[day] for day in rule.by_day)
    if rule.termination is Termination.COUNT:
        text += f", {rule.count} times"
    elif rule.termination is Termination.UNTIL and rule.until is not None:
        text += f", until {rule.until.isoformat()}"
    return text
