"""
Worked hours per staff member over a date window.

Every occurrence from the recurrence expansion counts once. Vacation
occurrences are listed with zero hours when requested and never add to the
total. A shift ending before its start time runs past midnight.
"""

import csv
import io
from datetime import date, time
from typing import Dict, Iterable, List, Optional

from clinica.modules.catalog.schemas import MedicalAssistant, Provider
from clinica.modules.shifts.recurrence import generate_recurring_dates
from clinica.modules.shifts.schemas import Shift, StaffHoursReport, StaffShiftHours, StaffType

REPORT_HEADERS = ["Staff Name", "Staff Type", "Total Hours", "Date", "Start Time", "End Time", "Hours", "Is Vacation"]
SUMMARY_HEADERS = ["Staff Name", "Staff Type", "Total Hours"]


def shift_hours(start: Optional[time], end: Optional[time]) -> float:
    if start is None or end is None:
        return 0.0
    start_minutes = start.hour * 60 + start.minute
    end_minutes = end.hour * 60 + end.minute
    if end_minutes < start_minutes:
        end_minutes += 24 * 60
    return (end_minutes - start_minutes) / 60


def calculate_staff_hours(
    shifts: List[Shift],
    providers: Iterable[Provider],
    medical_assistants: Iterable[MedicalAssistant],
    window_start: date,
    window_end: date,
    staff_type: Optional[StaffType] = None,
    include_vacations: bool = False,
) -> List[StaffHoursReport]:
    """One report per staff member of the requested type, sorted by name."""
    reports: Dict[str, StaffHoursReport] = {}
    if staff_type in (None, StaffType.PROVIDER):
        for provider in providers:
            reports[provider.id] = StaffHoursReport(
                staff_id=provider.id, staff_name=provider.name, staff_type=StaffType.PROVIDER
            )
    if staff_type in (None, StaffType.MEDICAL_ASSISTANT):
        for assistant in medical_assistants:
            reports[assistant.id] = StaffHoursReport(
                staff_id=assistant.id, staff_name=assistant.name, staff_type=StaffType.MEDICAL_ASSISTANT
            )

    for shift in shifts:
        if shift.is_vacation and not include_vacations:
            continue
        hours = 0.0 if shift.is_vacation else shift_hours(shift.start_time, shift.end_time)
        staff_ids = [shift.provider_id] + list(shift.medical_assistant_ids or [])
        for day in generate_recurring_dates(shift, window_start, window_end, shifts):
            for staff_id in staff_ids:
                report = reports.get(staff_id)
                if report is None:
                    continue
                report.shifts.append(StaffShiftHours(
                    occurrence_date=day,
                    start_time=shift.start_time,
                    end_time=shift.end_time,
                    hours=hours,
                    is_vacation=shift.is_vacation,
                ))
                if not shift.is_vacation:
                    report.total_hours += hours

    for report in reports.values():
        report.shifts.sort(key=lambda entry: (entry.occurrence_date, entry.start_time or time.min))
    return sorted(reports.values(), key=lambda report: report.staff_name.casefold())


def _time_cell(value: Optional[time]) -> str:
    return value.strftime("%H:%M") if value is not None else ""


def staff_hours_csv(reports: List[StaffHoursReport]) -> str:
    """Detail export: one row per occurrence, or one empty row for idle staff."""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(REPORT_HEADERS)
    for report in reports:
        total = f"{report.total_hours:.2f}"
        if not report.shifts:
            writer.writerow([report.staff_name, report.staff_type.value, total, "", "", "", "", ""])
            continue
        for entry in report.shifts:
            writer.writerow([
                report.staff_name,
                report.staff_type.value,
                total,
                entry.occurrence_date.isoformat(),
                _time_cell(entry.start_time),
                _time_cell(entry.end_time),
                f"{entry.hours:.2f}",
                "Yes" if entry.is_vacation else "No",
            ])
    return output.getvalue()


def staff_hours_summary_csv(reports: List[StaffHoursReport]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(SUMMARY_HEADERS)
    for report in reports:
        writer.writerow([report.staff_name, report.staff_type.value, f"{report.total_hours:.2f}"])
    grand_total = sum(report.total_hours for report in reports)
    writer.writerow(["", "TOTAL", f"{grand_total:.2f}"])
    return output.getvalue()
