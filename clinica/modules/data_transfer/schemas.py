from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional
from datetime import date, datetime, time

from clinica.modules.catalog.schemas import ClinicType, MedicalAssistant, Provider
from clinica.modules.shifts.schemas import RecurringRule, Shift
from clinica.modules.user_settings.schemas import UserSettings

EXPORT_VERSION = "1.0.5"


class DataExport(BaseModel):
    """Full backup of the schedule; the import payload accepts the same keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    providers: List[Provider]
    clinics: List[ClinicType]
    medical_assistants: List[MedicalAssistant]
    shifts: List[Shift]
    user_settings: Optional[UserSettings] = None
    exported_at: datetime
    version: str = EXPORT_VERSION


class CatalogItemImport(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None


class ShiftImport(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    provider_id: str
    clinic_type_id: Optional[str] = None
    medical_assistant_ids: Optional[List[str]] = None
    title: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_vacation: bool = False
    notes: Optional[str] = None
    color: Optional[str] = None
    recurring_rule: Optional[RecurringRule] = None
    series_id: Optional[str] = None
    original_recurring_shift_id: Optional[str] = None
    is_exception_instance: bool = False
    exception_for_date: Optional[date] = None
    created_by_user_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None


class ImportResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    imported: int = 0
    counts: Dict[str, int] = {}
    error: Optional[str] = None
    errors: List[str] = []
