"""
Expansion of shifts into the calendar days they occupy.

Weekday numbers follow the stored convention: 0 = Sunday ... 6 = Saturday.
"""

from datetime import date, timedelta
from typing import Iterable, Iterator, List, Optional, Set

from clinica.modules.shifts.schemas import RecurringFrequency, RecurringRule, Shift

DEFAULT_RECURRENCE_YEARS = 5


def sunday_based_weekday(day: date) -> int:
    return (day.weekday() + 1) % 7


def add_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # 29 February
        return day.replace(year=day.year + years, day=28)


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _starts_pattern(rule: RecurringRule, base: date, current: date) -> bool:
    interval = rule.interval or 1
    if rule.frequency == RecurringFrequency.DAILY:
        return (current - base).days % interval == 0
    if rule.frequency == RecurringFrequency.WEEKLY:
        return sunday_based_weekday(current) in (rule.days_of_week or [])
    if rule.frequency == RecurringFrequency.BI_WEEKLY:
        if sunday_based_weekday(current) not in (rule.days_of_week or []):
            return False
        return ((current - base).days // 7) % 2 == 0
    if rule.frequency == RecurringFrequency.MONTHLY:
        if not rule.day_of_month or current.day != rule.day_of_month:
            return False
        month_diff = (current.year - base.year) * 12 + (current.month - base.month)
        return month_diff % interval == 0
    return False


def overridden_dates(shift: Shift, all_shifts: Iterable[Shift]) -> Set[date]:
    """Days of shift's series replaced by an exception instance."""
    series = shift.series_key
    return {
        s.exception_for_date
        for s in all_shifts
        if s.is_exception_instance and s.series_id == series and s.exception_for_date is not None
    }


def generate_recurring_dates(
    shift: Shift,
    view_start: date,
    view_end: date,
    all_shifts: Optional[Iterable[Shift]] = None,
) -> List[date]:
    """Sorted days inside [view_start, view_end] on which shift takes place."""
    if shift.is_exception_instance:
        if view_start <= shift.start_date <= view_end:
            return [shift.start_date]
        return []

    rule = shift.recurring_rule
    if rule is None or rule.frequency == RecurringFrequency.NONE:
        return [d for d in iter_days(shift.start_date, shift.end_date) if view_start <= d <= view_end]

    recurrence_end = rule.end_date or add_years(shift.start_date, DEFAULT_RECURRENCE_YEARS)
    span_days = max(0, (shift.end_date - shift.start_date).days)
    skipped = overridden_dates(shift, all_shifts or [])
    weekly = rule.frequency in (RecurringFrequency.WEEKLY, RecurringFrequency.BI_WEEKLY)

    dates: Set[date] = set()
    # Instances starting before the window can still reach into it
    current = max(shift.start_date, view_start - timedelta(days=span_days))
    last = min(recurrence_end, view_end)
    while current <= last:
        if _starts_pattern(rule, shift.start_date, current):
            for offset in range(span_days + 1):
                day = current + timedelta(days=offset)
                if day > recurrence_end:
                    break
                if day < view_start or day > view_end or day in skipped:
                    continue
                if weekly and span_days > 0 and sunday_based_weekday(day) not in (rule.days_of_week or []):
                    continue
                dates.add(day)
        current += timedelta(days=1)
    return sorted(dates)
