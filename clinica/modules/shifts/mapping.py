from typing import Any, Dict, Optional

from clinica.database.mapping import (
    RowMapper,
    date_to_str,
    datetime_to_str,
    parse_date,
    parse_datetime,
    parse_time,
    time_to_str,
)
from clinica.modules.shifts.schemas import DEFAULT_EVENT_COLOR, RecurringRule, Shift

SHIFT_COLUMNS = [
    "id",
    "provider_id",
    "clinic_type_id",
    "medical_assistant_ids",
    "title",
    "start_date",
    "end_date",
    "start_time",
    "end_time",
    "is_vacation",
    "notes",
    "color",
    "recurring_rule",
    "series_id",
    "original_recurring_shift_id",
    "is_exception_instance",
    "exception_for_date",
    "created_by_user_id",
    "user_id",
    "created_at",
    "updated_at",
]


def rule_to_json(rule: Optional[RecurringRule]) -> Optional[Dict[str, Any]]:
    # Stored with camelCase keys, matching rows written by the web client
    if rule is None:
        return None
    return rule.model_dump(mode="json", by_alias=True, exclude_none=True)


def rule_from_json(value: Any) -> Optional[RecurringRule]:
    if not value:
        return None
    return RecurringRule.model_validate(value)


def shift_to_row(shift: Shift) -> Dict[str, Any]:
    return {
        "id": shift.id,
        "provider_id": shift.provider_id,
        "clinic_type_id": shift.clinic_type_id,
        "medical_assistant_ids": list(shift.medical_assistant_ids) if shift.medical_assistant_ids is not None else None,
        "title": shift.title,
        "start_date": date_to_str(shift.start_date),
        "end_date": date_to_str(shift.end_date),
        "start_time": time_to_str(shift.start_time),
        "end_time": time_to_str(shift.end_time),
        "is_vacation": shift.is_vacation,
        "notes": shift.notes,
        "color": shift.color,
        "recurring_rule": rule_to_json(shift.recurring_rule),
        "series_id": shift.series_id,
        "original_recurring_shift_id": shift.original_recurring_shift_id,
        "is_exception_instance": shift.is_exception_instance,
        "exception_for_date": date_to_str(shift.exception_for_date),
        "created_by_user_id": shift.created_by_user_id,
        "user_id": shift.user_id,
        "created_at": datetime_to_str(shift.created_at),
        "updated_at": datetime_to_str(shift.updated_at),
    }


def shift_from_row(row: Dict[str, Any]) -> Shift:
    return Shift(
        id=row["id"],
        provider_id=row["provider_id"],
        clinic_type_id=row.get("clinic_type_id"),
        medical_assistant_ids=row.get("medical_assistant_ids"),
        title=row.get("title"),
        start_date=parse_date(row["start_date"]),
        end_date=parse_date(row["end_date"]),
        start_time=parse_time(row.get("start_time")),
        end_time=parse_time(row.get("end_time")),
        is_vacation=bool(row.get("is_vacation", False)),
        notes=row.get("notes"),
        color=row.get("color") or DEFAULT_EVENT_COLOR,
        recurring_rule=rule_from_json(row.get("recurring_rule")),
        series_id=row.get("series_id"),
        original_recurring_shift_id=row.get("original_recurring_shift_id"),
        is_exception_instance=bool(row.get("is_exception_instance", False)),
        exception_for_date=parse_date(row.get("exception_for_date")),
        created_by_user_id=row.get("created_by_user_id"),
        user_id=row.get("user_id"),
        created_at=parse_datetime(row.get("created_at")),
        updated_at=parse_datetime(row.get("updated_at")),
    )


shift_mapper = RowMapper(Shift, SHIFT_COLUMNS, shift_to_row, shift_from_row)
