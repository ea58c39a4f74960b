"""
Recurrence rules and the evaluator that decides whether a rule fires on a date.

A rule is an immutable tagged variant. Each variant carries only the fields
its branch of ``fires`` reads. The persisted task keeps the flat
frequency / days_of_week / interval columns; ``recurrence_from_fields``
builds the variant from them.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import FrozenSet, Iterable, Optional, Union

from prep_tracker.models.task import RecurrenceFrequency, Task
from prep_tracker.utils.dates import days_between, to_local_date, weekday_number


@dataclass(frozen=True)
class Daily:
    pass


@dataclass(frozen=True)
class Weekly:
    days: FrozenSet[int] = frozenset()


@dataclass(frozen=True)
class Biweekly:
    days: FrozenSet[int] = frozenset()


@dataclass(frozen=True)
class Monthly:
    pass


@dataclass(frozen=True)
class Custom:
    interval: Optional[int] = None
    days: FrozenSet[int] = frozenset()


Recurrence = Union[Daily, Weekly, Biweekly, Monthly, Custom]


def recurrence_from_fields(
    frequency: Optional[str],
    days_of_week: Optional[Iterable[int]] = None,
    interval: Optional[int] = None,
) -> Optional[Recurrence]:
    """
    Build the rule variant for a stored frequency.

    Returns None when no frequency is set. Fields the frequency does not use
    are dropped.

    Raises:
        ValueError: If the frequency is unknown
    """
    if not frequency:
        return None

    days = frozenset(days_of_week or ())
    frequency = RecurrenceFrequency(frequency)

    if frequency == RecurrenceFrequency.DAILY:
        return Daily()
    if frequency == RecurrenceFrequency.WEEKLY:
        return Weekly(days)
    if frequency == RecurrenceFrequency.BIWEEKLY:
        return Biweekly(days)
    if frequency == RecurrenceFrequency.MONTHLY:
        return Monthly()
    return Custom(interval if interval and interval >= 1 else None, days)


def rule_for(task: Task) -> Optional[Recurrence]:
    """Rule variant of a stored task, or None for tasks without recurrence."""
    return recurrence_from_fields(task.frequency, task.days_of_week, task.interval)


def _matches_weekday(days: FrozenSet[int], start_date: date, target: date) -> bool:
    if days:
        return weekday_number(target) in days
    return weekday_number(target) == weekday_number(start_date)


def fires(
    rule: Optional[Recurrence],
    start_date: Optional[Union[date, datetime]],
    end_date: Optional[Union[date, datetime]],
    target_date: Union[date, datetime],
) -> bool:
    """
    Decide whether ``rule`` anchored at ``start_date`` fires on ``target_date``.

    All three dates are reduced to reference-timezone calendar days first.
    The range is inclusive at both ends.
    """
    if rule is None or start_date is None:
        return False

    start = to_local_date(start_date)
    target = to_local_date(target_date)

    if target < start:
        return False
    if end_date is not None and target > to_local_date(end_date):
        return False

    if isinstance(rule, Daily):
        return True

    if isinstance(rule, Weekly):
        return _matches_weekday(rule.days, start, target)

    if isinstance(rule, Biweekly):
        week_index = days_between(start, target) // 7
        return week_index % 2 == 0 and _matches_weekday(rule.days, start, target)

    if isinstance(rule, Monthly):
        # No clamping: a 31st anchor never fires in a 30-day month
        return target.day == start.day

    if isinstance(rule, Custom):
        if rule.interval:
            return days_between(start, target) % rule.interval == 0
        return weekday_number(target) in rule.days

    return False
