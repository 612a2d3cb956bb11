"""Data models for the agenda engine - events, tasks, rules and day buckets."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)


class Frequency(str, Enum):
    """Supported recurrence frequencies."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class Weekday(str, Enum):
    """Two-letter weekday codes as used by BYDAY."""

    MO = "MO"
    TU = "TU"
    WE = "WE"
    TH = "TH"
    FR = "FR"
    SA = "SA"
    SU = "SU"

    @property
    def index(self) -> int:
        """Monday-based weekday index (Monday == 0), matching date.weekday()."""
        return _WEEKDAY_ORDER.index(self)

    @classmethod
    def from_index(cls, index: int) -> Weekday:
        """Return the weekday code for a Monday-based index."""
        return _WEEKDAY_ORDER[index % 7]


_WEEKDAY_ORDER: tuple[Weekday, ...] = (
    Weekday.MO,
    Weekday.TU,
    Weekday.WE,
    Weekday.TH,
    Weekday.FR,
    Weekday.SA,
    Weekday.SU,
)


class Termination(str, Enum):
    """How a recurrence ends."""

    NEVER = "never"
    COUNT = "after"
    UNTIL = "on"


class TaskSection(str, Enum):
    """Task list sections an item can be dropped into."""

    TODAY = "Today"
    TOMORROW = "Tomorrow"
    UPCOMING = "Upcoming"
    SOMEDAY = "Someday"


def _as_utc(dt: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _first_present(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Value of the first of ``keys`` that is present and not None."""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return default


class RecurrenceRule(BaseModel):
    """Structured form of the constrained RRULE subset.

    At most one termination (``count`` or ``until``) may be set. ``until`` is a
    calendar day and is inclusive through 23:59:59 of that day.
    """

    model_config = ConfigDict(frozen=True)

    frequency: Frequency = Field(default=Frequency.DAILY, description="Recurrence frequency")
    interval: int = Field(default=1, ge=1, description="Step between occurrences")
    by_day: tuple[Weekday, ...] = Field(
        default=(), description="Weekdays to repeat on (WEEKLY only)"
    )
    count: Optional[int] = Field(default=None, ge=1, description="Total occurrences incl. anchor")
    until: Optional[date] = Field(default=None, description="Last day occurrences may fall on")

    @field_validator("by_day")
    @classmethod
    def _normalize_by_day(cls, value: tuple[Weekday, ...]) -> tuple[Weekday, ...]:
        # Monday-first and de-duplicated so equal sets compare equal
        return tuple(sorted(set(value), key=lambda day: day.index))

    @model_validator(mode="after")
    def _single_termination(self) -> RecurrenceRule:
        if self.count is not None and self.until is not None:
            raise ValueError("COUNT and UNTIL are mutually exclusive")
        if self.by_day and self.frequency is not Frequency.WEEKLY:
            raise ValueError("BYDAY is only supported for WEEKLY rules")
        return self

    @property
    def termination(self) -> Termination:
        """Which termination mode is active."""
        if self.count is not None:
            return Termination.COUNT
        if self.until is not None:
            return Termination.UNTIL
        return Termination.NEVER

    @property
    def is_bounded(self) -> bool:
        """True when the rule ends on its own, independent of any horizon."""
        return self.termination is not Termination.NEVER


class CalendarItem(BaseModel):
    """An event or task as received from the persistence collaborator.

    ``start`` is absent for undated ("Someday") tasks. When ``end`` is absent the
    item is a zero-duration point at ``start``.
    """

    # Core properties
    id: str = Field(..., description="Opaque item identifier")
    title: str = Field(default="", description="Item title")

    # Time information
    start: Optional[datetime] = Field(default=None, description="Start / due instant")
    end: Optional[datetime] = Field(default=None, description="End instant")
    all_day: bool = Field(default=False, description="Date-only item flag")

    # Recurrence
    recurrence_rule: Optional[str] = Field(default=None, description="Encoded RRULE subset")
    is_occurrence: bool = Field(
        default=False, description="True if generated from a recurrence rule"
    )
    source_id: Optional[str] = Field(
        default=None, description="Id of the generating item for synthetic occurrences"
    )

    # Rendering
    is_continuation: bool = Field(
        default=False, description="Copy of a multi-day item on a day after its start day"
    )

    # Metadata
    owner_id: Optional[str] = Field(default=None, description="Owner used for ownership checks")
    completed: bool = Field(default=False, description="Task completion status")

    @field_validator("id", "owner_id", "source_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("start", "end")
    @classmethod
    def _normalize_instant(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        return _as_utc(value)

    @field_validator("recurrence_rule", mode="before")
    @classmethod
    def _blank_rule_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _end_not_before_start(self) -> CalendarItem:
        if self.end is not None:
            if self.start is None:
                raise ValueError("end given without start")
            if self.end < self.start:
                raise ValueError("end must not be earlier than start")
        return self

    @property
    def duration(self) -> timedelta:
        """Time between start and end; zero for point items."""
        if self.start is None or self.end is None:
            return timedelta(0)
        return self.end - self.start

    @property
    def is_dated(self) -> bool:
        """True when the item has a start/due instant."""
        return self.start is not None

    @property
    def is_recurring(self) -> bool:
        """True for anchors carrying a recurrence rule."""
        return bool(self.recurrence_rule) and not self.is_occurrence

    @field_serializer("start", "end", when_used="unless-none")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> CalendarItem:
        """Build an item from a raw persistence row.

        Accepts the calendar-event column names (``date``, ``end_date``) and the
        task column names (``due_date``, ``user_id``/``owner``, ``done``) in
        addition to the model's own field names. Absent optional columns are
        treated as "no value" and fall through to the next alias.
        """
        start = _first_present(record, "start", "date", "due_date")
        end = _first_present(record, "end", "end_date")
        owner = _first_present(record, "owner_id", "user_id", "owner")
        completed = _first_present(record, "completed", "done", default=False)

        return cls(
            id=record["id"],
            title=record.get("title") or "",
            start=start or None,
            end=end or None,
            all_day=bool(_first_present(record, "all_day", "is_all_day", default=False)),
            recurrence_rule=record.get("recurrence_rule"),
            is_occurrence=bool(
                _first_present(record, "is_occurrence", "isRecurringInstance", default=False)
            ),
            source_id=record.get("source_id"),
            owner_id=owner,
            completed=bool(completed),
        )


class DayBucket(BaseModel):
    """One calendar day and the items whose span touches it."""

    day: date = Field(..., description="Calendar day")
    items: list[CalendarItem] = Field(default_factory=list, description="Items ordered by start")

    @property
    def day_key(self) -> str:
        """``YYYY-MM-DD`` key used as the rendered element's data-date."""
        return self.day.isoformat()

    @property
    def primary_items(self) -> list[CalendarItem]:
        """Items that start on this day (continuations excluded)."""
        return [item for item in self.items if not item.is_continuation]
