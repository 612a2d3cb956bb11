"""Recurrence expansion for agenda_lite items.

Occurrences are computed with ``dateutil.rrule`` from the item's own start
(the anchor) and cut off at a hard horizon, so unbounded rules stay finite.
The anchor itself is never returned; callers already hold the original item.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from typing import Any, Optional, Union

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, MO, MONTHLY, WEEKLY, YEARLY, rrule

from agenda_lite.calendar.models import CalendarItem, Frequency, RecurrenceRule, Weekday
from agenda_lite.calendar.rrule_codec import parse_rule
from agenda_lite.core.timezone_utils import now_utc
from agenda_lite.exceptions import RecurrenceRuleError

logger = logging.getLogger(__name__)

_DATEUTIL_FREQ = {
    Frequency.DAILY: DAILY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.MONTHLY: MONTHLY,
    Frequency.YEARLY: YEARLY,
}

# End of the UNTIL day; UNTIL is inclusive
_UNTIL_TIME = time(23, 59, 59)


@dataclass
class OccurrenceExpanderConfig:
    """Configuration for recurrence expansion.

    Consolidates expansion settings with explicit defaults.
    """

    horizon_months: int = 12
    max_occurrences_per_rule: int = 500
    expansion_yield_frequency: int = 50

    @classmethod
    def from_settings(cls, settings: Any) -> OccurrenceExpanderConfig:
        """Extract expansion configuration from a settings object.

        Args:
            settings: Object with optional expansion attributes (e.g. ``Config``)

        Returns:
            OccurrenceExpanderConfig with values from settings or defaults
        """
        return cls(
            horizon_months=getattr(settings, "horizon_months", 12),
            max_occurrences_per_rule=getattr(settings, "max_occurrences_per_rule", 500),
            expansion_yield_frequency=getattr(settings, "expansion_yield_frequency", 50),
        )


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def default_horizon(now: Optional[datetime] = None, months: int = 12) -> datetime:
    """Hard generation horizon: ``now`` plus ``months`` calendar months."""
    current = _as_utc(now) if now is not None else now_utc()
    return current + relativedelta(months=months)


def occurrence_id(source_id: str, day: date) -> str:
    """Deterministic id for the occurrence of ``source_id`` on ``day``."""
    return f"{source_id}-occurrence-{day.strftime('%Y%m%d')}"


def _build_rrule(rule: RecurrenceRule, anchor: datetime) -> rrule:
    kwargs: dict[str, Any] = {
        "freq": _DATEUTIL_FREQ[rule.frequency],
        "dtstart": anchor,
        "interval": rule.interval,
        "wkst": MO,
    }
    if rule.frequency is Frequency.WEEKLY:
        days = rule.by_day or (Weekday.from_index(anchor.weekday()),)
        kwargs["byweekday"] = [day.index for day in days]
    if rule.until is not None:
        kwargs["until"] = datetime.combine(rule.until, _UNTIL_TIME, tzinfo=UTC)
    # COUNT is enforced by the caller so that the anchor always counts as #1
    return rrule(**kwargs)


def generate_occurrences(
    rule: Union[RecurrenceRule, str],
    anchor_start: datetime,
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None,
    *,
    max_occurrences: int = 500,
    now: Optional[datetime] = None,
) -> list[datetime]:
    """Expand a rule into the ordered occurrence instants after the anchor.

    Generation stops at whichever comes first: COUNT reached (anchor counted as
    occurrence #1), the UNTIL day passed, or ``window_end`` passed. Candidates on
    the anchor's calendar day are skipped. Candidates before ``window_start`` are
    dropped but still count toward COUNT.

    Args:
        rule: Parsed rule or encoded rule string
        anchor_start: Start of the original item
        window_start: Lower bound of returned instants (defaults to the anchor)
        window_end: Hard horizon (defaults to now + 12 months)
        max_occurrences: Safety cap on returned instants
        now: Reference "now" for the default horizon

    Returns:
        Ascending list of UTC instants; empty for malformed rules
    """
    anchor = _as_utc(anchor_start)

    if isinstance(rule, str):
        try:
            rule = parse_rule(rule, anchor_start=anchor)
        except RecurrenceRuleError as e:
            logger.warning("Unusable recurrence rule %r: %s", rule, e)
            return []

    horizon = _as_utc(window_end) if window_end is not None else default_horizon(now)
    lower = _as_utc(window_start) if window_start is not None else anchor
    anchor_day = anchor.date()

    results: list[datetime] = []
    produced = 1  # the anchor

    try:
        for candidate in _build_rrule(rule, anchor):
            if candidate > horizon:
                break
            if candidate.date() == anchor_day:
                continue
            if rule.count is not None and produced >= rule.count:
                break
            produced += 1
            if candidate < lower:
                continue
            results.append(candidate)
            if len(results) >= max_occurrences:
                logger.debug("Expansion limited to %d occurrences", max_occurrences)
                break
    except (ValueError, TypeError, OverflowError) as e:
        logger.warning("Recurrence expansion failed for %r: %s", rule, e)
        return []

    return results


def expand_item(
    item: CalendarItem,
    window_end: Optional[datetime] = None,
    *,
    now: Optional[datetime] = None,
    max_occurrences: int = 500,
) -> list[CalendarItem]:
    """Generate synthetic occurrences of a recurring item.

    Each occurrence is a copy of ``item`` with start shifted to the occurrence
    instant, end shifted by the same duration, a deterministic id, and
    ``is_occurrence`` set. Non-recurring or undated items yield nothing.
    """
    if not item.is_recurring or item.start is None:
        return []

    instants = generate_occurrences(
        item.recurrence_rule or "",
        item.start,
        window_end=window_end,
        max_occurrences=max_occurrences,
        now=now,
    )

    occurrences = []
    for instant in instants:
        occurrences.append(
            item.model_copy(
                update={
                    "id": occurrence_id(item.id, instant.date()),
                    "start": instant,
                    "end": instant + item.duration if item.end is not None else None,
                    "recurrence_rule": None,
                    "is_occurrence": True,
                    "source_id": item.id,
                }
            )
        )

    logger.debug("Expanded item %s into %d occurrences", item.id, len(occurrences))
    return occurrences


def expand_items(
    items: Iterable[CalendarItem],
    window_end: Optional[datetime] = None,
    *,
    now: Optional[datetime] = None,
    max_occurrences: int = 500,
) -> list[CalendarItem]:
    """Return the original items followed by every synthetic occurrence."""
    originals = list(items)
    expanded: list[CalendarItem] = []
    for item in originals:
        expanded.extend(
            expand_item(item, window_end, now=now, max_occurrences=max_occurrences)
        )
    return originals + expanded


class OccurrenceExpander:
    """Expands recurring items with cooperative yields to the event loop.

    The engine runs on a single UI loop, so long expansions hand control back
    every ``expansion_yield_frequency`` occurrences.
    """

    def __init__(self, settings: Any = None):
        """Initialize expander with configuration settings.

        Args:
            settings: Configuration object with expansion settings (optional)
        """
        config = OccurrenceExpanderConfig.from_settings(settings)
        self.horizon_months = config.horizon_months
        self.max_occurrences = config.max_occurrences_per_rule
        self.yield_frequency = max(1, config.expansion_yield_frequency)

        logger.debug(
            "OccurrenceExpander initialized: horizon_months=%d, max_occurrences=%d",
            self.horizon_months,
            self.max_occurrences,
        )

    def horizon(self, now: Optional[datetime] = None) -> datetime:
        """Hard horizon for the current configuration."""
        return default_horizon(now, self.horizon_months)

    async def expand_stream(
        self,
        items: Iterable[CalendarItem],
        now: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> AsyncIterator[CalendarItem]:
        """Yield synthetic occurrences for every recurring item.

        Args:
            items: Items to expand
            now: Reference "now" for the horizon
            window_end: Explicit horizon overriding ``now + horizon_months``

        Yields:
            Occurrence items, grouped by source item in input order
        """
        if window_end is None:
            window_end = self.horizon(now)
        yielded = 0
        for item in items:
            for occurrence in expand_item(
                item, window_end, now=now, max_occurrences=self.max_occurrences
            ):
                yield occurrence
                yielded += 1
                if yielded % self.yield_frequency == 0:
                    await asyncio.sleep(0)

    async def expand_to_list(
        self,
        items: Iterable[CalendarItem],
        now: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> list[CalendarItem]:
        """Return originals followed by all occurrences."""
        originals = list(items)
        occurrences = [occ async for occ in self.expand_stream(originals, now, window_end)]
        return originals + occurrences
