"""Recurrence rules and occurrence date evaluation for chore definitions."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import IntEnum
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Iterable, Iterator, Mapping, Tuple, Union

from .exceptions import InvalidRecurrenceError

if TYPE_CHECKING:  # pragma: no cover
    from .models import ChoreDefinition


class Weekday(IntEnum):
    """Days of the week, numbered from Sunday like a wall calendar."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return cls((day.weekday() + 1) % 7)


def weekday_of(day: date) -> Weekday:
    return Weekday.of(day)


def _weekday(value: Any) -> Weekday:
    try:
        return Weekday(int(value))
    except (TypeError, ValueError) as exc:
        raise InvalidRecurrenceError(f"Day of week must be between 0 and 6, got {value!r}.") from exc


@dataclass(frozen=True, slots=True)
class NoRecurrence:
    """A one-off chore."""

    kind: ClassVar[str] = "none"

    def matches(self, day: date) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True, slots=True)
class Daily:
    kind: ClassVar[str] = "daily"

    def matches(self, day: date) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True, slots=True)
class Weekly:
    """Repeats once a week on ``day_of_week``."""

    day_of_week: Weekday
    kind: ClassVar[str] = "weekly"

    def __post_init__(self) -> None:
        object.__setattr__(self, "day_of_week", _weekday(self.day_of_week))

    def matches(self, day: date) -> bool:
        return weekday_of(day) == self.day_of_week

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "dayOfWeek": int(self.day_of_week)}


@dataclass(frozen=True, slots=True)
class Monthly:
    """Repeats on ``day_of_month``; months without that day are skipped."""

    day_of_month: int
    kind: ClassVar[str] = "monthly"

    def __post_init__(self) -> None:
        if isinstance(self.day_of_month, bool) or not isinstance(self.day_of_month, int):
            raise InvalidRecurrenceError(f"Day of month must be an integer, got {self.day_of_month!r}.")
        if not 1 <= self.day_of_month <= 31:
            raise InvalidRecurrenceError(f"Day of month must be between 1 and 31, got {self.day_of_month}.")

    def matches(self, day: date) -> bool:
        return day.day == self.day_of_month

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "dayOfMonth": self.day_of_month}


@dataclass(frozen=True, slots=True)
class SpecificDays:
    """Repeats on every weekday contained in ``days``."""

    days: frozenset[Weekday]
    kind: ClassVar[str] = "specific_days"

    def __post_init__(self) -> None:
        days = frozenset(_weekday(value) for value in self.days)
        if not days:
            raise InvalidRecurrenceError("Specific-days recurrence needs at least one weekday.")
        object.__setattr__(self, "days", days)

    def matches(self, day: date) -> bool:
        return weekday_of(day) in self.days

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "days": sorted(int(day) for day in self.days)}


RecurrenceRule = Union[NoRecurrence, Daily, Weekly, Monthly, SpecificDays]

NONE = NoRecurrence()
DAILY = Daily()


def recurrence_from_dict(payload: Mapping[str, Any] | None) -> RecurrenceRule:
    """Rebuild a rule from its serialised form."""

    if not payload:
        return NONE
    kind = payload.get("type") or "none"
    if kind == NoRecurrence.kind:
        return NONE
    if kind == Daily.kind:
        return DAILY
    if kind == Weekly.kind:
        return Weekly(payload.get("dayOfWeek"))
    if kind == Monthly.kind:
        return Monthly(payload.get("dayOfMonth"))
    if kind == SpecificDays.kind:
        days = payload.get("days")
        if not isinstance(days, (list, tuple, set, frozenset)):
            raise InvalidRecurrenceError("Specific-days recurrence needs a list of weekdays.")
        return SpecificDays(frozenset(days))
    raise InvalidRecurrenceError(f"Unknown recurrence type {kind!r}.")


def is_recurring(rule: RecurrenceRule) -> bool:
    return not isinstance(rule, NoRecurrence)


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    step = timedelta(days=1)
    while current <= end:
        yield current
        current += step


def _monthly_dates(day_of_month: int, start: date, end: date) -> Iterable[date]:
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        if day_of_month <= calendar.monthrange(year, month)[1]:
            candidate = date(year, month, day_of_month)
            if start <= candidate <= end:
                yield candidate
        month += 1
        if month > 12:
            year, month = year + 1, 1


def effective_start(definition: "ChoreDefinition") -> date:
    """Return the first date a definition may produce an occurrence on.

    One-off chores honour ``early_start_date`` when it precedes the due date.
    Recurring series always start on the due date.
    """

    if not is_recurring(definition.recurrence):
        early = definition.early_start_date
        if early is not None and early < definition.due_date:
            return early
    return definition.due_date


def occurrence_dates(definition: "ChoreDefinition", range_start: date, range_end: date) -> Tuple[date, ...]:
    """Return the sorted dates within ``[range_start, range_end]`` the definition occurs on."""

    if not definition.active or range_end < range_start:
        return ()
    rule = definition.recurrence
    if not is_recurring(rule):
        start = effective_start(definition)
        return (start,) if range_start <= start <= range_end else ()

    end_date = definition.recurrence_end_date
    if end_date is not None and end_date < definition.due_date:
        return ()
    window_start = max(range_start, definition.due_date)
    window_end = range_end if end_date is None else min(range_end, end_date)
    if window_end < window_start:
        return ()
    if isinstance(rule, Monthly):
        return tuple(_monthly_dates(rule.day_of_month, window_start, window_end))
    return tuple(day for day in iter_days(window_start, window_end) if rule.matches(day))


__all__ = [
    "DAILY",
    "Daily",
    "Monthly",
    "NONE",
    "NoRecurrence",
    "RecurrenceRule",
    "SpecificDays",
    "Weekday",
    "Weekly",
    "effective_start",
    "is_recurring",
    "iter_days",
    "occurrence_dates",
    "recurrence_from_dict",
    "weekday_of",
]
