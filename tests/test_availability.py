"""Tests for weekly availability grouping and validation."""

from booking_secretary.availability import (
    FORMAT_MESSAGE,
    ORDER_MESSAGE,
    OVERLAP_MESSAGE,
    accepted_rules,
    group_rules_by_day,
    validate_rules,
    validate_schedule,
)
from booking_secretary.models import DAYS_OF_WEEK_IN_ORDER, DayOfWeek, WeeklyAvailabilityRule

from tests.conftest import monday_rule


def test_group_rules_by_day_includes_every_day():
    rules = [monday_rule(), WeeklyAvailabilityRule(DayOfWeek.FRIDAY, "10:00", "12:00")]
    grouped = group_rules_by_day(rules)

    assert list(grouped) == DAYS_OF_WEEK_IN_ORDER
    assert grouped[DayOfWeek.MONDAY] == [rules[0]]
    assert grouped[DayOfWeek.FRIDAY] == [rules[1]]
    assert grouped[DayOfWeek.SUNDAY] == []


def test_overlap_reported_once_on_later_rule():
    rules = [monday_rule("09:00", "11:00"), monday_rule("10:00", "12:00")]
    issues = validate_rules(rules)

    assert len(issues) == 1
    assert issues[0].index == 1
    assert issues[0].field == "start_time"
    assert issues[0].message == OVERLAP_MESSAGE


def test_touching_rules_do_not_overlap():
    assert validate_rules([monday_rule("09:00", "10:00"), monday_rule("10:00", "11:00")]) == []


def test_same_hours_on_different_days_are_fine():
    rules = [
        monday_rule("09:00", "17:00"),
        WeeklyAvailabilityRule(DayOfWeek.TUESDAY, "09:00", "17:00"),
    ]
    assert validate_rules(rules) == []


def test_end_before_start_is_reported_on_end_time():
    issues = validate_rules([monday_rule("12:00", "09:00")])
    assert [(i.index, i.field, i.message) for i in issues] == [(0, "end_time", ORDER_MESSAGE)]


def test_zero_length_window_is_reported():
    issues = validate_rules([monday_rule("09:00", "09:00")])
    assert [i.message for i in issues] == [ORDER_MESSAGE]


def test_bad_format_skips_other_checks():
    rules = [monday_rule("09:00", "12:00"), monday_rule("9am", "25:00")]
    issues = validate_rules(rules)

    assert [(i.index, i.field, i.message) for i in issues] == [
        (1, "start_time", FORMAT_MESSAGE),
        (1, "end_time", FORMAT_MESSAGE),
    ]


def test_single_digit_hour_is_accepted():
    assert validate_rules([monday_rule("9:00", "17:30")]) == []


def test_validate_schedule_checks_timezone():
    assert validate_schedule("Europe/Berlin", [monday_rule()]) == []

    missing = validate_schedule("", [monday_rule()])
    assert [(i.field, i.message) for i in missing] == [("timezone", "Required")]

    unknown = validate_schedule("Mars/Base", [])
    assert unknown[0].field == "timezone"
    assert "Mars/Base" in unknown[0].message


def test_accepted_rules_drops_flagged_rules_only():
    rules = [
        monday_rule("09:00", "11:00"),
        monday_rule("10:00", "12:00"),
        monday_rule("13:00", "12:00"),
        monday_rule("14:00", "15:00"),
    ]
    kept = accepted_rules(rules, validate_rules(rules))

    assert kept == [rules[0], rules[3]]
    assert validate_rules(kept) == []
