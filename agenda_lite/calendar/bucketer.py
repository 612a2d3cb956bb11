"""Group items into calendar-day buckets for the chronological list.

All day arithmetic goes through :mod:`agenda_lite.calendar.date_normalizer`, so
the bucket an item lands in does not depend on the viewer's timezone.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from typing import Optional

from agenda_lite.calendar.date_normalizer import DayLike, to_local_calendar_day
from agenda_lite.calendar.models import CalendarItem, DayBucket

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


def item_day_span(item: CalendarItem) -> Optional[tuple[date, date]]:
    """Return ``(start_day, end_day)`` for a dated item, None for undated ones.

    Items without an end span a single day.
    """
    if item.start is None:
        return None
    start_day = to_local_calendar_day(item.start)
    end_day = to_local_calendar_day(item.end) if item.end is not None else start_day
    return start_day, end_day


def bucket_items(items: Iterable[CalendarItem]) -> list[DayBucket]:
    """Group items by the calendar days they touch.

    A multi-day item is placed on its start day as-is and, on every following
    day through its end day inclusive, as a copy flagged ``is_continuation``.
    Undated items are skipped.

    Args:
        items: Originals and expanded occurrences

    Returns:
        Buckets in strictly ascending day order; items inside a bucket ordered by
        start, ties kept in input order
    """
    grouped: dict[date, list[CalendarItem]] = {}
    skipped = 0

    for item in items:
        span = item_day_span(item)
        if span is None:
            skipped += 1
            continue
        start_day, end_day = span

        grouped.setdefault(start_day, []).append(item)

        day = start_day + _ONE_DAY
        if day <= end_day:
            continuation = item.model_copy(update={"is_continuation": True})
            while day <= end_day:
                grouped.setdefault(day, []).append(continuation)
                day += _ONE_DAY

    if skipped:
        logger.debug("Skipped %d undated items while bucketing", skipped)

    buckets = []
    for day in sorted(grouped):
        # sorted() is stable, so equal starts keep insertion order
        ordered = sorted(grouped[day], key=lambda entry: entry.start)
        buckets.append(DayBucket(day=day, items=ordered))
    return buckets


def has_items_on_day(items: Iterable[CalendarItem], day: DayLike) -> bool:
    """True iff some item's ``[start_day, end_day]`` range contains ``day``.

    Agrees with :func:`bucket_items`: a non-empty bucket exists for ``day``
    exactly when this returns True.
    """
    target = to_local_calendar_day(day)
    for item in items:
        span = item_day_span(item)
        if span is not None and span[0] <= target <= span[1]:
            return True
    return False


def find_bucket(buckets: Sequence[DayBucket], day: DayLike) -> Optional[DayBucket]:
    """Return the bucket for ``day`` if one exists."""
    target = to_local_calendar_day(day)
    for bucket in buckets:
        if bucket.day == target:
            return bucket
    return None


def nearest_bucket(
    buckets: Sequence[DayBucket], day: DayLike, exclude: Optional[date] = None
) -> Optional[DayBucket]:
    """Return the bucket closest to ``day``; ties go to the earlier day.

    Args:
        buckets: Buckets in ascending order
        day: Requested day
        exclude: Day to leave out of the search

    Returns:
        Nearest bucket, or None when there is nothing to choose from
    """
    target = to_local_calendar_day(day)
    best: Optional[DayBucket] = None
    best_distance = 0
    for bucket in buckets:
        if exclude is not None and bucket.day == exclude:
            continue
        distance = abs((bucket.day - target).days)
        # Strict comparison keeps the earliest bucket on a tie
        if best is None or distance < best_distance or (
            distance == best_distance and bucket.day < best.day
        ):
            best = bucket
            best_distance = distance
    return best


def month_breaks(buckets: Sequence[DayBucket]) -> list[bool]:
    """Flag buckets that start a new month relative to the previous bucket.

    The first bucket always starts a month.
    """
    flags = []
    previous: Optional[date] = None
    for bucket in buckets:
        flags.append(
            previous is None
            or (bucket.day.year, bucket.day.month) != (previous.year, previous.month)
        )
        previous = bucket.day
    return flags


def all_dates(buckets: Sequence[DayBucket]) -> list[date]:
    """Every calendar day from the first to the last bucket, inclusive."""
    if not buckets:
        return []
    first = buckets[0].day
    last = buckets[-1].day
    days = []
    day = first
    while day <= last:
        days.append(day)
        day += _ONE_DAY
    return days
