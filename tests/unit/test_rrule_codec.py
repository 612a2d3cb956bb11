"""
Unit tests for agenda_lite.calendar.rrule_codec.

Covers:
- parse_rule() including tolerant degradation
- serialize_rule() wire form
- describe_rule()
"""

import logging
from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from agenda_lite.calendar.models import Frequency, RecurrenceRule, Termination, Weekday
from agenda_lite.calendar.rrule_codec import describe_rule, parse_rule, serialize_rule
from agenda_lite.exceptions import RecurrenceRuleError, RecurrenceRuleParseError

pytestmark = pytest.mark.unit


class TestParseRule:
    """Tests for parse_rule()."""

    def test_parse_weekly_with_byday_and_count(self) -> None:
        rule = parse_rule("FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE,FR;COUNT=5")

        assert rule.frequency is Frequency.WEEKLY
        assert rule.interval == 1
        assert rule.by_day == (Weekday.MO, Weekday.WE, Weekday.FR)
        assert rule.count == 5
        assert rule.until is None
        assert rule.termination is Termination.COUNT

    def test_parse_daily_with_until(self) -> None:
        rule = parse_rule("FREQ=DAILY;INTERVAL=2;UNTIL=20250412T235959Z")

        assert rule.frequency is Frequency.DAILY
        assert rule.interval == 2
        assert rule.until == date(2025, 4, 12)
        assert rule.termination is Termination.UNTIL

    def test_parse_until_without_time_part(self) -> None:
        assert parse_rule("FREQ=DAILY;UNTIL=20250412").until == date(2025, 4, 12)

    def test_keys_are_case_insensitive_and_whitespace_tolerant(self) -> None:
        rule = parse_rule(" freq=monthly ; interval = 3 ")

        assert rule.frequency is Frequency.MONTHLY
        assert rule.interval == 3

    def test_rrule_prefix_is_ignored(self) -> None:
        assert parse_rule("RRULE:FREQ=YEARLY").frequency is Frequency.YEARLY

    def test_unknown_frequency_defaults_to_daily(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            rule = parse_rule("FREQ=HOURLY;INTERVAL=2")

        assert rule.frequency is Frequency.DAILY
        assert rule.interval == 2
        assert "HOURLY" in caplog.text

    def test_missing_frequency_defaults_to_daily(self) -> None:
        assert parse_rule("INTERVAL=4").frequency is Frequency.DAILY

    @pytest.mark.parametrize("raw_interval", ["abc", "0", "-3", ""])
    def test_bad_interval_defaults_to_one(self, raw_interval: str) -> None:
        rule = parse_rule(f"FREQ=DAILY;INTERVAL={raw_interval}")
        assert rule.interval == 1

    def test_bad_count_is_dropped(self) -> None:
        rule = parse_rule("FREQ=DAILY;COUNT=many")

        assert rule.count is None
        assert rule.termination is Termination.NEVER

    def test_bad_until_is_dropped(self) -> None:
        assert parse_rule("FREQ=DAILY;UNTIL=tomorrow").until is None

    def test_unknown_byday_codes_are_dropped(self) -> None:
        rule = parse_rule("FREQ=WEEKLY;BYDAY=MO,XX,1TU,FR")
        assert rule.by_day == (Weekday.MO, Weekday.FR)

    def test_byday_is_ordered_monday_first(self) -> None:
        rule = parse_rule("FREQ=WEEKLY;BYDAY=SU,WE,MO,WE")
        assert rule.by_day == (Weekday.MO, Weekday.WE, Weekday.SU)

    def test_byday_ignored_for_non_weekly_rules(self) -> None:
        assert parse_rule("FREQ=DAILY;BYDAY=MO").by_day == ()

    def test_count_wins_over_until(self) -> None:
        rule = parse_rule("FREQ=DAILY;COUNT=3;UNTIL=20250412T235959Z")

        assert rule.count == 3
        assert rule.until is None

    def test_weekly_without_byday_uses_anchor_weekday(self) -> None:
        # 2025-03-05 is a Wednesday
        anchor = datetime(2025, 3, 5, 9, 0, tzinfo=timezone.utc)
        assert parse_rule("FREQ=WEEKLY", anchor_start=anchor).by_day == (Weekday.WE,)

    def test_anchor_weekday_read_from_utc_fields(self) -> None:
        # Wednesday evening in UTC-8 is already Thursday in UTC
        anchor = datetime(2025, 3, 5, 23, 30, tzinfo=timezone(timedelta(hours=-8)))
        assert parse_rule("FREQ=WEEKLY", anchor_start=anchor).by_day == (Weekday.TH,)

    def test_first_occurrence_of_duplicate_key_wins(self) -> None:
        assert parse_rule("FREQ=WEEKLY;FREQ=DAILY").frequency is Frequency.WEEKLY

    @pytest.mark.parametrize("text", ["", "   ", "garbage", ";;;"])
    def test_unrecoverable_text_raises(self, text: str) -> None:
        with pytest.raises(RecurrenceRuleParseError):
            parse_rule(text)

    def test_parse_error_is_a_recurrence_rule_error(self) -> None:
        with pytest.raises(RecurrenceRuleError):
            parse_rule("no segments here")


class TestSerializeRule:
    """Tests for serialize_rule()."""

    def test_weekly_wire_form(self) -> None:
        rule = RecurrenceRule(
            frequency=Frequency.WEEKLY,
            by_day=(Weekday.FR, Weekday.MO, Weekday.WE),
            count=5,
        )
        assert serialize_rule(rule) == "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE,FR;COUNT=5"

    def test_until_wire_form(self) -> None:
        rule = RecurrenceRule(frequency=Frequency.DAILY, interval=2, until=date(2025, 4, 12))
        assert serialize_rule(rule) == "FREQ=DAILY;INTERVAL=2;UNTIL=20250412T235959Z"

    def test_interval_always_emitted(self) -> None:
        assert serialize_rule(RecurrenceRule(frequency=Frequency.MONTHLY)) == "FREQ=MONTHLY;INTERVAL=1"

    @pytest.mark.parametrize(
        "rule",
        [
            RecurrenceRule(),
            RecurrenceRule(frequency=Frequency.WEEKLY, interval=2, by_day=(Weekday.TU, Weekday.SA)),
            RecurrenceRule(frequency=Frequency.MONTHLY, interval=3, count=12),
            RecurrenceRule(frequency=Frequency.YEARLY, until=date(2030, 1, 31)),
        ],
    )
    def test_parse_inverts_serialize(self, rule: RecurrenceRule) -> None:
        assert parse_rule(serialize_rule(rule)) == rule


class TestRecurrenceRuleModel:
    """Validation on the RecurrenceRule model itself."""

    def test_count_and_until_together_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RecurrenceRule(count=3, until=date(2025, 1, 1))

    def test_byday_on_daily_rule_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RecurrenceRule(frequency=Frequency.DAILY, by_day=(Weekday.MO,))

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            RecurrenceRule(interval=0)

    def test_is_bounded(self) -> None:
        assert RecurrenceRule(count=2).is_bounded
        assert not RecurrenceRule().is_bounded


class TestDescribeRule:
    """Tests for describe_rule()."""

    def test_describe_weekly_with_count(self) -> None:
        rule = parse_rule("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=5")
        assert describe_rule(rule) == "Every 2 weeks on Mon, Wed, 5 times"

    def test_describe_daily_until(self) -> None:
        rule = parse_rule("FREQ=DAILY;UNTIL=20250412T235959Z")
        assert describe_rule(rule) == "Every day, until 2025-04-12"
