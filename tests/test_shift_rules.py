from datetime import date, time

import pytest
from pydantic import ValidationError

from clinica.modules.catalog.schemas import ClinicType, Provider
from clinica.modules.shifts.conflicts import detect_all_shift_conflicts, find_conflicts_for_shift
from clinica.modules.shifts.recurrence import add_years, generate_recurring_dates
from clinica.modules.shifts.schemas import (
    DEFAULT_EVENT_COLOR,
    VACATION_COLOR,
    RecurringFrequency,
    RecurringRule,
    Shift,
    ShiftCreate,
    ShiftUpdate,
)
from clinica.modules.shifts.service import pick_color, pick_title
from clinica.modules.shifts.validation import validate_shift


def make_shift(shift_id="s1", provider_id="p1", start=date(2024, 3, 4), end=None, **kwargs):
    return Shift(id=shift_id, provider_id=provider_id, start_date=start, end_date=end or start, **kwargs)


class TestValidation:
    def test_valid_shift_has_no_errors(self):
        assert validate_shift(make_shift(start_time=time(9, 0), end_time=time(17, 0))) == []

    def test_end_date_before_start_date(self):
        errors = validate_shift(make_shift(start=date(2024, 3, 4), end=date(2024, 3, 1)))
        assert "End date must be after start date" in errors

    def test_range_longer_than_a_year(self):
        errors = validate_shift(make_shift(start=date(2024, 1, 1), end=date(2025, 1, 2)))
        assert "Date range cannot exceed 365 days" in errors

    def test_same_day_end_time_must_follow_start_time(self):
        errors = validate_shift(make_shift(start_time=time(17, 0), end_time=time(9, 0)))
        assert "End time must be after start time" in errors

    def test_overnight_multi_day_shift_is_allowed(self):
        shift = make_shift(end=date(2024, 3, 5), start_time=time(22, 0), end_time=time(6, 0))
        assert validate_shift(shift) == []

    def test_vacation_rejects_times(self):
        errors = validate_shift(make_shift(is_vacation=True, start_time=time(9, 0)))
        assert errors == ["Vacation shifts cannot have a start or end time"]

    def test_exception_instance_needs_series_and_date(self):
        errors = validate_shift(make_shift(is_exception_instance=True))
        assert "Exception instances must belong to a series" in errors
        assert "Exception instances must name the date they replace" in errors

    def test_clinic_type_is_optional(self):
        assert validate_shift(make_shift(clinic_type_id=None)) == []

    def test_weekly_rule_needs_days(self):
        rule = RecurringRule(frequency=RecurringFrequency.WEEKLY)
        assert "Weekly recurrence needs at least one day of the week" in validate_shift(make_shift(recurring_rule=rule))

    def test_shift_create_refuses_invalid_payload(self):
        with pytest.raises(ValidationError):
            ShiftCreate(
                provider_id="p1",
                start_date=date(2024, 3, 4),
                end_date=date(2024, 3, 4),
                is_vacation=True,
                start_time=time(9, 0),
            )

    @pytest.mark.parametrize("field", ["isVacation", "providerId", "startDate", "endDate", "color"])
    def test_update_cannot_null_required_fields(self, field):
        with pytest.raises(ValidationError):
            ShiftUpdate.model_validate({field: None})

    def test_update_can_clear_optional_fields(self):
        update = ShiftUpdate.model_validate({"startTime": None, "notes": None})
        assert update.model_dump(exclude_unset=True) == {"start_time": None, "notes": None}


class TestColorsAndTitles:
    def test_vacation_wins(self):
        provider = Provider(id="p1", name="Dr. Smith", color="bg-blue-500")
        assert pick_color(True, provider, None) == VACATION_COLOR
        assert pick_title(True, provider) == "Vacation"

    def test_provider_then_clinic_then_default(self):
        provider = Provider(id="p1", name="Dr. Smith", color="bg-blue-500")
        clinic = ClinicType(id="c1", name="Emergency", color="bg-green-500")
        assert pick_color(False, provider, clinic) == "bg-blue-500"
        assert pick_color(False, None, clinic) == "bg-green-500"
        assert pick_color(False, None, None) == DEFAULT_EVENT_COLOR
        assert pick_title(False, None) == "Shift"


class TestRecurrence:
    def test_single_day_shift(self):
        shift = make_shift()
        assert generate_recurring_dates(shift, date(2024, 3, 1), date(2024, 3, 31)) == [date(2024, 3, 4)]
        assert generate_recurring_dates(shift, date(2024, 3, 5), date(2024, 3, 31)) == []

    def test_multi_day_shift_clipped_to_window(self):
        shift = make_shift(start=date(2024, 3, 4), end=date(2024, 3, 6))
        assert generate_recurring_dates(shift, date(2024, 3, 5), date(2024, 3, 10)) == [date(2024, 3, 5), date(2024, 3, 6)]

    def test_weekly_on_monday_and_wednesday(self):
        # 2024-03-04 is a Monday; 1 = Monday, 3 = Wednesday
        rule = RecurringRule(frequency=RecurringFrequency.WEEKLY, days_of_week=[1, 3])
        shift = make_shift(recurring_rule=rule, series_id="series-1")
        assert generate_recurring_dates(shift, date(2024, 3, 4), date(2024, 3, 17)) == [
            date(2024, 3, 4), date(2024, 3, 6), date(2024, 3, 11), date(2024, 3, 13),
        ]

    def test_daily_with_interval(self):
        rule = RecurringRule(frequency=RecurringFrequency.DAILY, interval=2)
        shift = make_shift(start=date(2024, 3, 1), recurring_rule=rule)
        assert generate_recurring_dates(shift, date(2024, 3, 1), date(2024, 3, 7)) == [
            date(2024, 3, 1), date(2024, 3, 3), date(2024, 3, 5), date(2024, 3, 7),
        ]

    def test_rule_end_date_stops_series(self):
        rule = RecurringRule(frequency=RecurringFrequency.DAILY, end_date=date(2024, 3, 3))
        shift = make_shift(start=date(2024, 3, 1), recurring_rule=rule)
        assert generate_recurring_dates(shift, date(2024, 3, 1), date(2024, 3, 31)) == [
            date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3),
        ]

    def test_monthly_day_of_month(self):
        rule = RecurringRule(frequency=RecurringFrequency.MONTHLY, day_of_month=15)
        shift = make_shift(start=date(2024, 1, 15), recurring_rule=rule)
        assert generate_recurring_dates(shift, date(2024, 1, 1), date(2024, 4, 30)) == [
            date(2024, 1, 15), date(2024, 2, 15), date(2024, 3, 15), date(2024, 4, 15),
        ]

    def test_exception_suppresses_replaced_occurrence(self):
        rule = RecurringRule(frequency=RecurringFrequency.WEEKLY, days_of_week=[1, 3])
        base = make_shift(recurring_rule=rule, series_id="series-1")
        exception = make_shift(
            shift_id="s2",
            start=date(2024, 3, 6),
            series_id="series-1",
            is_exception_instance=True,
            exception_for_date=date(2024, 3, 6),
            original_recurring_shift_id="s1",
        )
        all_shifts = [base, exception]
        assert generate_recurring_dates(base, date(2024, 3, 4), date(2024, 3, 10), all_shifts) == [date(2024, 3, 4)]
        assert generate_recurring_dates(exception, date(2024, 3, 4), date(2024, 3, 10), all_shifts) == [date(2024, 3, 6)]

    def test_default_recurrence_horizon_is_five_years(self):
        rule = RecurringRule(frequency=RecurringFrequency.MONTHLY, day_of_month=1)
        shift = make_shift(start=date(2024, 1, 1), recurring_rule=rule)
        assert generate_recurring_dates(shift, date(2029, 1, 1), date(2029, 1, 1)) == [date(2029, 1, 1)]
        assert generate_recurring_dates(shift, date(2029, 2, 1), date(2029, 2, 1)) == []

    def test_add_years_handles_leap_day(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)


class TestConflicts:
    window = (date(2024, 3, 1), date(2024, 3, 31))

    def test_overlapping_shifts_of_same_provider(self):
        a = make_shift("a", start_time=time(9, 0), end_time=time(12, 0))
        b = make_shift("b", start_time=time(11, 0), end_time=time(14, 0))
        assert detect_all_shift_conflicts([a, b], *self.window) == {"a", "b"}

    def test_back_to_back_shifts_do_not_conflict(self):
        a = make_shift("a", start_time=time(9, 0), end_time=time(12, 0))
        b = make_shift("b", start_time=time(12, 0), end_time=time(15, 0))
        assert detect_all_shift_conflicts([a, b], *self.window) == set()

    def test_different_providers_do_not_conflict(self):
        a = make_shift("a", provider_id="p1", start_time=time(9, 0), end_time=time(12, 0))
        b = make_shift("b", provider_id="p2", start_time=time(9, 0), end_time=time(12, 0))
        assert detect_all_shift_conflicts([a, b], *self.window) == set()

    def test_vacations_are_ignored(self):
        a = make_shift("a", start_time=time(9, 0), end_time=time(12, 0))
        b = make_shift("b", is_vacation=True)
        assert detect_all_shift_conflicts([a, b], *self.window) == set()

    def test_untimed_shift_occupies_whole_day(self):
        a = make_shift("a", start_time=time(9, 0), end_time=time(12, 0))
        b = make_shift("b")
        assert detect_all_shift_conflicts([a, b], *self.window) == {"a", "b"}

    def test_recurring_shift_conflicts_on_matching_day(self):
        rule = RecurringRule(frequency=RecurringFrequency.WEEKLY, days_of_week=[3])
        weekly = make_shift("weekly", start_time=time(8, 0), end_time=time(10, 0), recurring_rule=rule)
        one_off = make_shift("one-off", start=date(2024, 3, 13), start_time=time(9, 0), end_time=time(11, 0))
        assert detect_all_shift_conflicts([weekly, one_off], *self.window) == {"weekly", "one-off"}

    def test_find_conflicts_for_candidate(self):
        existing = [
            make_shift("a", start_time=time(9, 0), end_time=time(12, 0)),
            make_shift("b", start_time=time(13, 0), end_time=time(15, 0)),
        ]
        candidate = make_shift("new", start_time=time(10, 0), end_time=time(11, 0))
        assert [s.id for s in find_conflicts_for_shift(candidate, existing, *self.window)] == ["a"]

    def test_candidate_without_times_finds_nothing(self):
        existing = [make_shift("a", start_time=time(9, 0), end_time=time(12, 0))]
        assert find_conflicts_for_shift(make_shift("new"), existing, *self.window) == []
