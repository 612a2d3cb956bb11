"""Turn a drop onto a task-list section into a new due timestamp.

Sections are relative to the viewer's "today": Today, Tomorrow, Upcoming
(today + ``upcoming_offset_days``) and Someday (no due date). The item's
time-of-day is kept; items with no meaningful time get a neutral one.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Any, Optional, Union

from agenda_lite.calendar.date_normalizer import DayLike, to_local_calendar_day, today_in
from agenda_lite.calendar.models import CalendarItem, TaskSection
from agenda_lite.core.timezone_utils import get_default_timezone, resolve_timezone
from agenda_lite.exceptions import ItemNotFoundError, UnknownSectionError

logger = logging.getLogger(__name__)

NEUTRAL_DUE_TIME = time(12, 0)
UPCOMING_OFFSET_DAYS = 2

SectionLike = Union[TaskSection, str]


def parse_section(name: SectionLike) -> TaskSection:
    """Resolve a section name case-insensitively.

    Raises:
        UnknownSectionError: If ``name`` is not one of the four sections
    """
    if isinstance(name, TaskSection):
        return name
    wanted = str(name).strip().lower()
    for section in TaskSection:
        if section.value.lower() == wanted:
            return section
    raise UnknownSectionError(f"Unknown section: {name!r}")


def section_day(
    section: SectionLike, today: date, upcoming_offset_days: int = UPCOMING_OFFSET_DAYS
) -> Optional[date]:
    """Calendar day a section stands for; None for Someday."""
    section = parse_section(section)
    if section is TaskSection.TODAY:
        return today
    if section is TaskSection.TOMORROW:
        return today + timedelta(days=1)
    if section is TaskSection.UPCOMING:
        return today + timedelta(days=upcoming_offset_days)
    return None


def _time_of_day(item: CalendarItem, neutral_time: time) -> time:
    if item.start is None or item.all_day:
        return neutral_time
    start = item.start.astimezone(UTC)
    return time(start.hour, start.minute, start.second, start.microsecond)


def _viewer_today(today: Optional[date], tz: Optional[tzinfo]) -> date:
    if today is not None:
        return today
    return today_in(tz or resolve_timezone(get_default_timezone()))


def reschedule(
    item: CalendarItem,
    target: SectionLike,
    today: Optional[date] = None,
    *,
    tz: Optional[tzinfo] = None,
    neutral_time: time = NEUTRAL_DUE_TIME,
    upcoming_offset_days: int = UPCOMING_OFFSET_DAYS,
) -> Optional[datetime]:
    """Compute the new due timestamp for ``item`` dropped onto ``target``.

    Args:
        item: Dragged item
        target: Destination section
        today: Viewer's current day; derived from ``tz`` when omitted
        tz: Viewer timezone used for the default ``today``
        neutral_time: UTC time given to undated and all-day items
        upcoming_offset_days: Offset of the Upcoming section from today

    Returns:
        New UTC due timestamp, or None for Someday

    Raises:
        UnknownSectionError: If ``target`` is not a known section
    """
    day = section_day(target, _viewer_today(today, tz), upcoming_offset_days)
    if day is None:
        return None
    return datetime.combine(day, _time_of_day(item, neutral_time), tzinfo=UTC)


def classify_section(due: Optional[DayLike], today: date) -> Optional[TaskSection]:
    """Section a due timestamp belongs to relative to ``today``.

    Returns None for overdue items, which belong to no section.
    """
    if due is None:
        return TaskSection.SOMEDAY
    delta = (to_local_calendar_day(due) - today).days
    if delta < 0:
        return None
    if delta == 0:
        return TaskSection.TODAY
    if delta == 1:
        return TaskSection.TOMORROW
    return TaskSection.UPCOMING


def can_drop(item: CalendarItem, target: SectionLike, today: date) -> bool:
    """False when the item already sits in ``target``."""
    return classify_section(item.start, today) is not parse_section(target)


def move_to_day(
    item: CalendarItem, day: DayLike, *, neutral_time: time = NEUTRAL_DUE_TIME
) -> CalendarItem:
    """Move an item onto ``day`` keeping its time-of-day and duration."""
    calendar_day = to_local_calendar_day(day)
    start = datetime.combine(calendar_day, _time_of_day(item, neutral_time), tzinfo=UTC)
    end = start + item.duration if item.end is not None else None
    return item.model_copy(update={"start": start, "end": end})


def with_due(item: CalendarItem, due: Optional[datetime]) -> CalendarItem:
    """Copy of ``item`` with a new due timestamp; the end moves with it."""
    if due is None:
        return item.model_copy(update={"start": None, "end": None})
    due = due.astimezone(UTC) if due.tzinfo is not None else due.replace(tzinfo=UTC)
    end = due + item.duration if item.end is not None else None
    return item.model_copy(update={"start": due, "end": end})


class PlacementState(str, Enum):
    """Lifecycle of an OptimisticPlacement."""

    PENDING = "pending"
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class OptimisticPlacement:
    """Two-phase update of one item's due date in a rendered item list.

    ``apply()`` returns the tentative list; ``confirm()`` keeps it once
    persistence succeeds and ``rollback()`` restores the original list when it
    fails.
    """

    def __init__(
        self, items: Sequence[CalendarItem], item_id: str, new_due: Optional[datetime]
    ) -> None:
        self.original = list(items)
        self.item_id = item_id
        self.new_due = new_due
        self.state = PlacementState.PENDING
        self._tentative: list[CalendarItem] = []

    def apply(self) -> list[CalendarItem]:
        """Build the tentative list with the item moved.

        Raises:
            ItemNotFoundError: If no item has ``item_id``
            RuntimeError: If the placement was already applied
        """
        if self.state is not PlacementState.PENDING:
            raise RuntimeError(f"Placement already {self.state.value}")

        found = False
        tentative = []
        for item in self.original:
            if item.id == self.item_id:
                tentative.append(with_due(item, self.new_due))
                found = True
            else:
                tentative.append(item)
        if not found:
            raise ItemNotFoundError(f"Item {self.item_id!r} not found")

        self._tentative = tentative
        self.state = PlacementState.APPLIED
        return list(tentative)

    def confirm(self) -> list[CalendarItem]:
        """Keep the tentative list."""
        self._require_applied()
        self.state = PlacementState.CONFIRMED
        return list(self._tentative)

    def rollback(self, current: Optional[Sequence[CalendarItem]] = None) -> list[CalendarItem]:
        """Discard the tentative change.

        Args:
            current: List that may have changed since ``apply()``; only this
                placement's item is restored in it. Without it the original
                list is returned.
        """
        self._require_applied()
        self.state = PlacementState.ROLLED_BACK
        logger.debug("Rolled back placement of %s", self.item_id)
        if current is None:
            return list(self.original)

        previous = next(item for item in self.original if item.id == self.item_id)
        return [previous if item.id == self.item_id else item for item in current]

    def _require_applied(self) -> None:
        if self.state is not PlacementState.APPLIED:
            raise RuntimeError(f"Placement is {self.state.value}, not applied")


class Rescheduler:
    """Rescheduling bound to one viewer timezone and configuration."""

    def __init__(self, settings: Any = None, tz: Optional[tzinfo] = None) -> None:
        """Initialize rescheduler.

        Args:
            settings: Object with ``neutral_time``, ``upcoming_offset_days`` and
                ``default_timezone`` attributes (e.g. ``Config``), optional
            tz: Viewer timezone; overrides ``settings.default_timezone``
        """
        self.neutral_time: time = getattr(settings, "neutral_time", NEUTRAL_DUE_TIME)
        self.upcoming_offset_days: int = getattr(
            settings, "upcoming_offset_days", UPCOMING_OFFSET_DAYS
        )
        self.tz = tz or resolve_timezone(
            getattr(settings, "default_timezone", None) or get_default_timezone()
        )

    def today(self, now: Optional[datetime] = None) -> date:
        """Viewer's current calendar day."""
        return today_in(self.tz, now)

    def reschedule(
        self, item: CalendarItem, target: SectionLike, today: Optional[date] = None
    ) -> Optional[datetime]:
        return reschedule(
            item,
            target,
            today if today is not None else self.today(),
            neutral_time=self.neutral_time,
            upcoming_offset_days=self.upcoming_offset_days,
        )

    def can_drop(self, item: CalendarItem, target: SectionLike, today: Optional[date] = None) -> bool:
        return can_drop(item, target, today if today is not None else self.today())

    def classify(self, item: CalendarItem, today: Optional[date] = None) -> Optional[TaskSection]:
        return classify_section(item.start, today if today is not None else self.today())
