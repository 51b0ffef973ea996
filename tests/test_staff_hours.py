from datetime import date, time

import pytest

from clinica.modules.catalog.schemas import MedicalAssistant, Provider
from clinica.modules.shifts.hours import (
    calculate_staff_hours,
    shift_hours,
    staff_hours_csv,
    staff_hours_summary_csv,
)
from clinica.modules.shifts.schemas import RecurringRule, Shift, StaffType

MARCH_START = date(2024, 3, 4)
MARCH_END = date(2024, 3, 17)


def _shift(shift_id="s1", **overrides):
    fields = {
        "id": shift_id,
        "provider_id": "p1",
        "start_date": MARCH_START,
        "end_date": MARCH_START,
        "start_time": time(9, 0),
        "end_time": time(17, 0),
    }
    fields.update(overrides)
    return Shift(**fields)


@pytest.fixture
def staff():
    providers = [
        Provider(id="p1", name="Dr. Smith", color="bg-blue-500"),
        Provider(id="p2", name="dr. Adams", color="bg-green-500"),
    ]
    assistants = [MedicalAssistant(id="ma1", name="Alex Chen", color="bg-teal-500")]
    return providers, assistants


@pytest.mark.parametrize("start,end,expected", [
    (time(9, 0), time(17, 0), 8.0),
    (time(9, 0), time(9, 30), 0.5),
    (time(22, 0), time(6, 0), 8.0),
    (time(9, 0), None, 0.0),
    (None, None, 0.0),
])
def test_shift_hours(start, end, expected):
    assert shift_hours(start, end) == expected


def test_weekly_shift_counts_every_occurrence(staff):
    providers, assistants = staff
    shift = _shift(recurring_rule=RecurringRule(frequency="WEEKLY", days_of_week=[1, 3]))
    reports = calculate_staff_hours([shift], providers, assistants, MARCH_START, MARCH_END)

    smith = next(r for r in reports if r.staff_id == "p1")
    assert smith.total_hours == 32.0
    assert [e.occurrence_date for e in smith.shifts] == [
        date(2024, 3, 4), date(2024, 3, 6), date(2024, 3, 11), date(2024, 3, 13),
    ]


def test_reports_are_sorted_by_name_and_include_idle_staff(staff):
    providers, assistants = staff
    reports = calculate_staff_hours([_shift()], providers, assistants, MARCH_START, MARCH_END)
    assert [r.staff_name for r in reports] == ["Alex Chen", "dr. Adams", "Dr. Smith"]
    assert next(r for r in reports if r.staff_id == "p2").total_hours == 0.0


def test_assigned_assistants_get_the_shift_hours(staff):
    providers, assistants = staff
    shift = _shift(medical_assistant_ids=["ma1", "gone"])
    reports = calculate_staff_hours([shift], providers, assistants, MARCH_START, MARCH_END)
    alex = next(r for r in reports if r.staff_id == "ma1")
    assert alex.staff_type == StaffType.MEDICAL_ASSISTANT
    assert alex.total_hours == 8.0


def test_vacations_are_listed_only_on_request(staff):
    providers, assistants = staff
    shifts = [
        _shift(),
        _shift("s2", start_date=date(2024, 3, 5), end_date=date(2024, 3, 6), is_vacation=True, start_time=None, end_time=None),
    ]
    smith = next(r for r in calculate_staff_hours(shifts, providers, assistants, MARCH_START, MARCH_END) if r.staff_id == "p1")
    assert len(smith.shifts) == 1

    with_vacation = calculate_staff_hours(shifts, providers, assistants, MARCH_START, MARCH_END, include_vacations=True)
    smith = next(r for r in with_vacation if r.staff_id == "p1")
    assert [e.is_vacation for e in smith.shifts] == [False, True, True]
    assert [e.hours for e in smith.shifts] == [8.0, 0.0, 0.0]
    assert smith.total_hours == 8.0


def test_staff_type_filter(staff):
    providers, assistants = staff
    reports = calculate_staff_hours(
        [_shift(medical_assistant_ids=["ma1"])], providers, assistants,
        MARCH_START, MARCH_END, staff_type=StaffType.MEDICAL_ASSISTANT,
    )
    assert [r.staff_id for r in reports] == ["ma1"]


def test_shifts_outside_the_window_are_ignored(staff):
    providers, assistants = staff
    shift = _shift(start_date=date(2024, 4, 1), end_date=date(2024, 4, 1))
    reports = calculate_staff_hours([shift], providers, assistants, MARCH_START, MARCH_END)
    assert all(r.total_hours == 0.0 for r in reports)


def test_detail_csv(staff):
    providers, assistants = staff
    shift = _shift(start_time=time(22, 0), end_time=time(6, 0))
    reports = calculate_staff_hours([shift], providers, assistants, MARCH_START, MARCH_END, staff_type=StaffType.PROVIDER)
    lines = staff_hours_csv(reports).splitlines()
    assert lines == [
        "Staff Name,Staff Type,Total Hours,Date,Start Time,End Time,Hours,Is Vacation",
        "dr. Adams,provider,0.00,,,,,",
        "Dr. Smith,provider,8.00,2024-03-04,22:00,06:00,8.00,No",
    ]


def test_summary_csv_ends_with_grand_total(staff):
    providers, assistants = staff
    shifts = [_shift(medical_assistant_ids=["ma1"]), _shift("s2", provider_id="p2", start_time=time(8, 0), end_time=time(12, 30))]
    reports = calculate_staff_hours(shifts, providers, assistants, MARCH_START, MARCH_END)
    lines = staff_hours_summary_csv(reports).splitlines()
    assert lines == [
        "Staff Name,Staff Type,Total Hours",
        "Alex Chen,medicalAssistant,8.00",
        "dr. Adams,provider,4.50",
        "Dr. Smith,provider,8.00",
        ",TOTAL,20.50",
    ]
