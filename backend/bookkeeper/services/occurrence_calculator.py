"""
Calendar arithmetic for recurrence rules.

Everything here works on naive calendar dates. Callers resolve "today" in the
organization's zone before calling in, and apply end_date/occurrence_limit
themselves; the calculator has no notion of caps.
"""

import calendar
from datetime import date, timedelta
from typing import NamedTuple, Optional

from bookkeeper.models.recurring import Frequency

MONTH_STEPS = {
    Frequency.monthly: 1,
    Frequency.quarterly: 3,
    Frequency.yearly: 12,
}


class RecurrencePattern(NamedTuple):
    """The subset of rule fields that decides when occurrences fall."""
    frequency: Frequency
    start_date: date
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None


def pattern_of(rule) -> RecurrencePattern:
    """Build a pattern from anything carrying the rule's recurrence attributes."""
    return RecurrencePattern(
        frequency=Frequency(rule.frequency),
        start_date=rule.start_date,
        day_of_month=rule.day_of_month,
        day_of_week=rule.day_of_week,
    )


def sunday_weekday(d: date) -> int:
    """Weekday number with Sunday=0 ... Saturday=6."""
    return (d.weekday() + 1) % 7


def clamped_date(year: int, month: int, day: int) -> date:
    """Date for the given day, pulled back to the last day of short months."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def add_months(year: int, month: int, months: int) -> tuple:
    """Return (year, month) shifted by a number of months."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def _require_day_of_week(pattern: RecurrencePattern) -> int:
    if pattern.day_of_week is None:
        raise ValueError("weekly recurrence requires day_of_week")
    return pattern.day_of_week


def _require_day_of_month(pattern: RecurrencePattern) -> int:
    if pattern.day_of_month is None:
        raise ValueError(f"{pattern.frequency.value} recurrence requires day_of_month")
    return pattern.day_of_month


def next_occurrence(pattern: RecurrencePattern, after: date) -> date:
    """
    Next occurrence strictly after ``after``.

    ``after`` is normally the occurrence that just fired. Month-based
    frequencies step from its month and clamp the anchor day to the target
    month, so a rule on the 31st goes Jan 31 -> Feb 28 -> Mar 31.
    """
    frequency = Frequency(pattern.frequency)

    if frequency == Frequency.daily:
        return after + timedelta(days=1)

    if frequency == Frequency.weekly:
        target = _require_day_of_week(pattern)
        days_ahead = (target - sunday_weekday(after)) % 7
        return after + timedelta(days=days_ahead or 7)

    day = _require_day_of_month(pattern)
    year, month = add_months(after.year, after.month, MONTH_STEPS[frequency])
    return clamped_date(year, month, day)


def first_occurrence(pattern: RecurrencePattern, on_or_after: date) -> date:
    """
    First occurrence on or after ``on_or_after``.

    Used to seed a rule. Month-based frequencies keep the phase of
    ``start_date``'s month: a quarterly rule started in February fires in
    Feb/May/Aug/Nov, a yearly one every February.
    """
    frequency = Frequency(pattern.frequency)

    if frequency == Frequency.daily:
        return on_or_after

    if frequency == Frequency.weekly:
        target = _require_day_of_week(pattern)
        return on_or_after + timedelta(days=(target - sunday_weekday(on_or_after)) % 7)

    day = _require_day_of_month(pattern)
    step = MONTH_STEPS[frequency]
    start = pattern.start_date

    # Whole steps from the start month to the reference month
    months_between = (on_or_after.year - start.year) * 12 + (on_or_after.month - start.month)
    steps = max(months_between // step, 0)
    year, month = add_months(start.year, start.month, steps * step)
    candidate = clamped_date(year, month, day)
    while candidate < on_or_after:
        year, month = add_months(year, month, step)
        candidate = clamped_date(year, month, day)
    return candidate
