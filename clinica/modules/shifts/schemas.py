from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import date, datetime, time
from enum import Enum

from clinica.core.errors import ValidationFailed

VACATION_COLOR = "bg-red-600"
DEFAULT_EVENT_COLOR = "bg-gray-600"


class RecurringFrequency(str, Enum):
    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BI_WEEKLY = "BI_WEEKLY"
    MONTHLY = "MONTHLY"


class RecurringRule(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    frequency: RecurringFrequency
    interval: Optional[int] = None
    days_of_week: Optional[List[int]] = None  # 0 = Sunday ... 6 = Saturday
    day_of_month: Optional[int] = None
    end_date: Optional[date] = None


class Shift(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    provider_id: str
    clinic_type_id: Optional[str] = None
    medical_assistant_ids: Optional[List[str]] = None
    title: Optional[str] = None
    start_date: date
    end_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_vacation: bool = False
    notes: Optional[str] = None
    color: str = DEFAULT_EVENT_COLOR
    recurring_rule: Optional[RecurringRule] = None
    series_id: Optional[str] = None
    original_recurring_shift_id: Optional[str] = None
    is_exception_instance: bool = False
    exception_for_date: Optional[date] = None
    created_by_user_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def series_key(self) -> str:
        return self.series_id or self.id


class ShiftCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    provider_id: str
    clinic_type_id: Optional[str] = None
    medical_assistant_ids: Optional[List[str]] = None
    start_date: date
    end_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_vacation: bool = False
    notes: Optional[str] = None
    recurring_rule: Optional[RecurringRule] = None

    @model_validator(mode="after")
    def check_shift_rules(self):
        from clinica.modules.shifts.validation import validate_shift

        errors = validate_shift(self)
        if errors:
            raise ValidationFailed(errors)
        return self


class ShiftUpdate(BaseModel):
    """Partial update; optional fields explicitly set to null are cleared."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    provider_id: Optional[str] = None
    clinic_type_id: Optional[str] = None
    medical_assistant_ids: Optional[List[str]] = None
    title: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_vacation: Optional[bool] = None
    notes: Optional[str] = None
    color: Optional[str] = None
    recurring_rule: Optional[RecurringRule] = None

    @field_validator("provider_id", "start_date", "end_date", "is_vacation", "color")
    @classmethod
    def reject_null(cls, value):
        # Required columns may be omitted but never cleared
        if value is None:
            raise ValueError("cannot be null")
        return value


class ShiftExceptionCreate(ShiftUpdate):
    exception_for_date: date


class ShiftOccurrence(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    shift_id: str
    occurrence_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    provider_id: str
    is_vacation: bool
    color: str
    title: Optional[str] = None


class StaffType(str, Enum):
    PROVIDER = "provider"
    MEDICAL_ASSISTANT = "medicalAssistant"


class StaffShiftHours(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    occurrence_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    hours: float
    is_vacation: bool


class StaffHoursReport(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    staff_id: str
    staff_name: str
    staff_type: StaffType
    total_hours: float = 0.0
    shifts: List[StaffShiftHours] = []
