from datetime import date

import pytest

from chorematrix.exceptions import InvalidRecurrenceError
from chorematrix.models import ChoreDefinition
from chorematrix.recurrence import (
    DAILY,
    Monthly,
    SpecificDays,
    Weekday,
    Weekly,
    occurrence_dates,
    recurrence_from_dict,
)


def _definition(**overrides) -> ChoreDefinition:
    values = {"id": "cd1", "title": "Feed the cat", "due_date": date(2024, 3, 1)}
    values.update(overrides)
    return ChoreDefinition(**values)


def test_weekdays_are_numbered_from_sunday() -> None:
    assert Weekday.of(date(2024, 3, 3)) is Weekday.SUNDAY
    assert Weekday.of(date(2024, 3, 4)) is Weekday.MONDAY
    assert Weekday.of(date(2024, 3, 9)) is Weekday.SATURDAY


def test_daily_window_starts_at_due_date_and_stops_at_end_date() -> None:
    definition = _definition(recurrence=DAILY, recurrence_end_date=date(2024, 3, 3))

    dates = occurrence_dates(definition, date(2024, 2, 25), date(2024, 3, 10))

    assert dates == (date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3))


def test_weekly_matches_single_weekday() -> None:
    definition = _definition(recurrence=Weekly(Weekday.SUNDAY))

    dates = occurrence_dates(definition, date(2024, 3, 1), date(2024, 3, 17))

    assert dates == (date(2024, 3, 3), date(2024, 3, 10), date(2024, 3, 17))


def test_specific_days_matches_each_selected_weekday() -> None:
    definition = _definition(recurrence=SpecificDays(frozenset({Weekday.MONDAY, Weekday.WEDNESDAY})))

    dates = occurrence_dates(definition, date(2024, 3, 1), date(2024, 3, 10))

    assert dates == (date(2024, 3, 4), date(2024, 3, 6))


def test_monthly_skips_months_without_the_day() -> None:
    definition = _definition(due_date=date(2024, 1, 1), recurrence=Monthly(31))

    dates = occurrence_dates(definition, date(2024, 1, 1), date(2024, 5, 31))

    assert dates == (date(2024, 1, 31), date(2024, 3, 31), date(2024, 5, 31))
    assert not any(day.month == 2 for day in dates)


def test_one_off_chore_occurs_once_inside_range() -> None:
    definition = _definition(due_date=date(2024, 3, 5))

    assert occurrence_dates(definition, date(2024, 3, 1), date(2024, 3, 31)) == (date(2024, 3, 5),)
    assert occurrence_dates(definition, date(2024, 3, 6), date(2024, 3, 31)) == ()


def test_one_off_chore_honours_early_start() -> None:
    definition = _definition(due_date=date(2024, 3, 5), early_start_date=date(2024, 3, 2))

    assert occurrence_dates(definition, date(2024, 3, 1), date(2024, 3, 31)) == (date(2024, 3, 2),)

    later = _definition(due_date=date(2024, 3, 5), early_start_date=date(2024, 3, 9))
    assert occurrence_dates(later, date(2024, 3, 1), date(2024, 3, 31)) == (date(2024, 3, 5),)


def test_recurring_chore_ignores_early_start() -> None:
    definition = _definition(recurrence=DAILY, early_start_date=date(2024, 2, 27))

    dates = occurrence_dates(definition, date(2024, 2, 25), date(2024, 3, 2))

    assert dates == (date(2024, 3, 1), date(2024, 3, 2))


def test_empty_results_for_inactive_or_misconfigured_definitions() -> None:
    inactive = _definition(recurrence=DAILY, active=False)
    misconfigured = _definition(recurrence=DAILY, recurrence_end_date=date(2024, 2, 1))
    daily = _definition(recurrence=DAILY)

    assert occurrence_dates(inactive, date(2024, 3, 1), date(2024, 3, 31)) == ()
    assert occurrence_dates(misconfigured, date(2024, 1, 1), date(2024, 3, 31)) == ()
    assert occurrence_dates(daily, date(2024, 3, 10), date(2024, 3, 1)) == ()
    assert occurrence_dates(daily, date(2024, 3, 4), date(2024, 3, 4)) == (date(2024, 3, 4),)


def test_invalid_rules_are_rejected() -> None:
    with pytest.raises(InvalidRecurrenceError):
        Monthly(0)
    with pytest.raises(InvalidRecurrenceError):
        Monthly(32)
    with pytest.raises(InvalidRecurrenceError):
        Weekly(7)
    with pytest.raises(InvalidRecurrenceError):
        SpecificDays(frozenset())
    with pytest.raises(InvalidRecurrenceError):
        recurrence_from_dict({"type": "fortnightly"})


def test_rules_load_from_stored_form() -> None:
    assert recurrence_from_dict(None).kind == "none"
    assert recurrence_from_dict({"type": "weekly", "dayOfWeek": 2}) == Weekly(Weekday.TUESDAY)
    rule = recurrence_from_dict({"type": "specific_days", "days": [1, 5]})
    assert rule == SpecificDays(frozenset({Weekday.MONDAY, Weekday.FRIDAY}))
    assert rule.to_dict() == {"type": "specific_days", "days": [1, 5]}
