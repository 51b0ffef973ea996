"""
Shift validation rules. Works on anything shaped like a shift (Shift,
ShiftCreate) and returns every problem found, not just the first.
"""

from typing import Any, List

from clinica.modules.shifts.schemas import RecurringFrequency

MAX_SPAN_DAYS = 365


def validate_recurring_rule(rule: Any) -> List[str]:
    errors = []
    if rule is None or rule.frequency == RecurringFrequency.NONE:
        return errors
    if rule.interval is not None and rule.interval < 1:
        errors.append("Recurrence interval must be at least 1")
    if rule.frequency in (RecurringFrequency.WEEKLY, RecurringFrequency.BI_WEEKLY):
        if not rule.days_of_week:
            errors.append("Weekly recurrence needs at least one day of the week")
        elif any(d < 0 or d > 6 for d in rule.days_of_week):
            errors.append("Days of week must be between 0 (Sunday) and 6 (Saturday)")
    if rule.frequency == RecurringFrequency.MONTHLY:
        if rule.day_of_month is None or not 1 <= rule.day_of_month <= 31:
            errors.append("Monthly recurrence needs a day of month between 1 and 31")
    return errors


def validate_shift(shift: Any) -> List[str]:
    errors = []

    if not getattr(shift, "provider_id", None):
        errors.append("Provider is required")

    start_date = getattr(shift, "start_date", None)
    end_date = getattr(shift, "end_date", None)
    if start_date is None:
        errors.append("Start date is required")
    if end_date is None:
        errors.append("End date is required")
    if start_date and end_date:
        if end_date < start_date:
            errors.append("End date must be after start date")
        elif (end_date - start_date).days > MAX_SPAN_DAYS:
            errors.append(f"Date range cannot exceed {MAX_SPAN_DAYS} days")

    start_time = getattr(shift, "start_time", None)
    end_time = getattr(shift, "end_time", None)
    if getattr(shift, "is_vacation", False):
        if start_time is not None or end_time is not None:
            errors.append("Vacation shifts cannot have a start or end time")
    elif start_time is not None and end_time is not None and start_date == end_date:
        if end_time <= start_time:
            errors.append("End time must be after start time")

    if getattr(shift, "is_exception_instance", False):
        if not getattr(shift, "series_id", None):
            errors.append("Exception instances must belong to a series")
        if getattr(shift, "exception_for_date", None) is None:
            errors.append("Exception instances must name the date they replace")

    errors.extend(validate_recurring_rule(getattr(shift, "recurring_rule", None)))
    return errors
