"""Calendar layer: item models, recurrence rules and expansion, day bucketing."""

from agenda_lite.calendar.bucketer import bucket_items, has_items_on_day, nearest_bucket
from agenda_lite.calendar.date_normalizer import is_same_calendar_day, to_local_calendar_day
from agenda_lite.calendar.models import (
    CalendarItem,
    DayBucket,
    Frequency,
    RecurrenceRule,
    TaskSection,
    Termination,
    Weekday,
)
from agenda_lite.calendar.occurrence_generator import (
    expand_item,
    expand_items,
    generate_occurrences,
)
from agenda_lite.calendar.rrule_codec import describe_rule, parse_rule, serialize_rule

__all__ = [
    "CalendarItem",
    "DayBucket",
    "Frequency",
    "RecurrenceRule",
    "TaskSection",
    "Termination",
    "Weekday",
    "bucket_items",
    "describe_rule",
    "expand_item",
    "expand_items",
    "generate_occurrences",
    "has_items_on_day",
    "is_same_calendar_day",
    "nearest_bucket",
    "parse_rule",
    "serialize_rule",
    "to_local_calendar_day",
]
