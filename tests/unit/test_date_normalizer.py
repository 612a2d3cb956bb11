"""Unit tests for agenda_lite.calendar.date_normalizer."""

from datetime import date, datetime, timedelta, timezone

import pytest

from agenda_lite.calendar.date_normalizer import (
    format_day_key,
    format_display_date,
    is_same_calendar_day,
    local_midnight,
    to_local_calendar_day,
    today_in,
)
from tests.fixtures.agenda_data import utc

pytestmark = pytest.mark.unit

VIEWER_ZONES = [
    timezone(timedelta(hours=-12)),
    timezone.utc,
    timezone(timedelta(hours=14)),
]


class TestToLocalCalendarDay:
    @pytest.mark.parametrize("viewer", VIEWER_ZONES)
    @pytest.mark.parametrize("hour", [0, 11, 23])
    def test_day_is_the_same_in_every_viewer_zone(self, viewer: timezone, hour: int) -> None:
        stored = utc(2025, 3, 12, hour, 30)
        projected = stored.astimezone(viewer)

        assert to_local_calendar_day(projected) == date(2025, 3, 12)

    def test_naive_datetime_treated_as_utc(self) -> None:
        assert to_local_calendar_day(datetime(2025, 3, 12, 23, 59)) == date(2025, 3, 12)

    def test_date_returned_unchanged(self) -> None:
        assert to_local_calendar_day(date(2025, 3, 12)) == date(2025, 3, 12)

    @pytest.mark.parametrize(
        "text",
        ["2025-03-12", "2025-03-12T00:30:00Z", "2025-03-11T14:30:00-10:00", "2025-03-12T13:00:00+12:30"],
    )
    def test_iso_strings(self, text: str) -> None:
        assert to_local_calendar_day(text) == date(2025, 3, 12)

    def test_invalid_string_raises(self) -> None:
        with pytest.raises(ValueError):
            to_local_calendar_day("not a date")

    def test_unsupported_type_raises(self) -> None:
        with pytest.raises(TypeError):
            to_local_calendar_day(12345)  # type: ignore[arg-type]


class TestIsSameCalendarDay:
    def test_same_day_different_offsets(self) -> None:
        a = utc(2025, 3, 12, 1)
        b = utc(2025, 3, 12, 22).astimezone(timezone(timedelta(hours=-12)))
        assert is_same_calendar_day(a, b)

    def test_different_days(self) -> None:
        assert not is_same_calendar_day(utc(2025, 3, 12, 23), utc(2025, 3, 13, 0))

    @pytest.mark.parametrize("other", [None, "garbage"])
    def test_absent_or_invalid_side_is_false(self, other: object) -> None:
        assert is_same_calendar_day(utc(2025, 3, 12), other) is False  # type: ignore[arg-type]
        assert is_same_calendar_day(other, utc(2025, 3, 12)) is False  # type: ignore[arg-type]


class TestLocalMidnight:
    @pytest.mark.parametrize("viewer", VIEWER_ZONES)
    def test_local_midnight_keeps_calendar_day(self, viewer: timezone) -> None:
        midnight = local_midnight(utc(2025, 3, 12, 23, 30), viewer)

        assert midnight.date() == date(2025, 3, 12)
        assert (midnight.hour, midnight.minute) == (0, 0)
        assert midnight.tzinfo is viewer

    def test_default_zone_is_utc(self) -> None:
        assert local_midnight(date(2025, 3, 12)) == utc(2025, 3, 12)


class TestTodayIn:
    def test_today_depends_on_viewer_offset(self) -> None:
        now = utc(2025, 3, 1, 8, 20)

        assert today_in(timezone.utc, now) == date(2025, 3, 1)
        assert today_in(timezone(timedelta(hours=-12)), now) == date(2025, 2, 28)
        assert today_in(timezone(timedelta(hours=14)), now) == date(2025, 3, 1)

    def test_today_uses_test_time_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENDA_TEST_TIME", "2025-03-01T20:00:00Z")
        assert today_in(timezone(timedelta(hours=14))) == date(2025, 3, 2)


class TestFormatting:
    def test_format_day_key(self) -> None:
        assert format_day_key(utc(2025, 3, 1, 15)) == "2025-03-01"

    def test_format_display_date(self) -> None:
        assert format_display_date(date(2025, 3, 1)) == "March 1, 2025"
