import logging
import uuid
from datetime import date, datetime, time, timezone
from typing import List, Optional, Tuple

from clinica.core.errors import NotFoundError, ValidationFailed
from clinica.database.store import RecordStore
from clinica.database.supabase_client import BackendClient, Tables
from clinica.modules.audit.schemas import Actor
from clinica.modules.audit.service import AuditLogger
from clinica.modules.catalog.schemas import ClinicType, Provider
from clinica.modules.shifts.conflicts import detect_all_shift_conflicts, find_conflicts_for_shift
from clinica.modules.shifts.mapping import shift_mapper
from clinica.modules.shifts.recurrence import generate_recurring_dates
from clinica.modules.shifts.schemas import (
    DEFAULT_EVENT_COLOR,
    VACATION_COLOR,
    RecurringFrequency,
    Shift,
    ShiftCreate,
    ShiftExceptionCreate,
    ShiftOccurrence,
    ShiftUpdate,
)
from clinica.modules.shifts.validation import validate_shift

logger = logging.getLogger(__name__)


def pick_color(is_vacation: bool, provider: Optional[Provider], clinic: Optional[ClinicType]) -> str:
    if is_vacation:
        return VACATION_COLOR
    if provider is not None and provider.color:
        return provider.color
    if clinic is not None and clinic.color:
        return clinic.color
    return DEFAULT_EVENT_COLOR


def pick_title(is_vacation: bool, provider: Optional[Provider]) -> str:
    if is_vacation:
        return "Vacation"
    if provider is not None and provider.name:
        return provider.name
    return "Shift"


class ShiftStore(RecordStore[Shift]):
    table = Tables.SHIFTS

    def __init__(self, backend: BackendClient, audit: Optional[AuditLogger] = None):
        super().__init__(backend, shift_mapper, audit)

    def validate(self, record: Shift) -> List[str]:
        return validate_shift(record)

    def same_record(self, old: Shift, new: Shift) -> bool:
        # Assistant order carries no meaning
        def key(shift: Shift) -> Shift:
            ids = shift.medical_assistant_ids
            return shift.model_copy(update={"medical_assistant_ids": sorted(ids) if ids is not None else None})
        return key(old) == key(new)

    def prepare(self, record: Shift, is_new: bool, actor: Optional[Actor]) -> Shift:
        record = super().prepare(record, is_new, actor)
        if actor is None or not actor.id:
            return record
        updates = {}
        if record.created_by_user_id is None:
            updates["created_by_user_id"] = actor.id
        if record.user_id is None:
            updates["user_id"] = actor.id
        return record.model_copy(update=updates) if updates else record

    def add_shift(
        self,
        shift_data: ShiftCreate,
        provider: Optional[Provider] = None,
        clinic: Optional[ClinicType] = None,
        actor: Optional[Actor] = None,
    ) -> Optional[Shift]:
        """Create a shift; recurring shifts start a new series."""
        recurring = shift_data.recurring_rule is not None and shift_data.recurring_rule.frequency != RecurringFrequency.NONE
        shift = Shift(
            **shift_data.model_dump(),
            id=str(uuid.uuid4()),
            color=pick_color(shift_data.is_vacation, provider, clinic),
            title=pick_title(shift_data.is_vacation, provider),
            series_id=str(uuid.uuid4()) if recurring else None,
        )
        if self.save(lambda prev: prev + [shift], actor=actor) is None:
            return None
        return self.get(shift.id)

    def update_shift(self, shift_id: str, changes: ShiftUpdate, actor: Optional[Actor] = None) -> Optional[Shift]:
        current = self.get(shift_id)
        if current is None:
            self.fail(NotFoundError("Shift not found"))
            return None
        updates = changes.model_dump(exclude_unset=True)
        if "recurring_rule" in updates:
            updates["recurring_rule"] = changes.recurring_rule
        updates["updated_at"] = datetime.now(timezone.utc)
        updated = current.model_copy(update=updates)
        if self.save(lambda prev: [updated if s.id == shift_id else s for s in prev], actor=actor) is None:
            return None
        return self.get(shift_id)

    def delete_shift(
        self,
        shift_id: str,
        series_id: Optional[str] = None,
        delete_all_occurrences: bool = False,
        actor: Optional[Actor] = None,
    ) -> bool:
        """Delete one shift, or with delete_all_occurrences every shift of the series."""
        if delete_all_occurrences and series_id:
            ids = [s.id for s in self.data if s.series_id == series_id]
            if shift_id not in ids:
                ids.append(shift_id)
            return self.delete_many(ids, actor=actor)
        return self.delete(shift_id, actor=actor)

    def create_exception(
        self,
        base_shift_id: str,
        exception: ShiftExceptionCreate,
        actor: Optional[Actor] = None,
    ) -> Optional[Shift]:
        """Replace one occurrence of a recurring shift with a standalone instance."""
        base = self.get(base_shift_id)
        if base is None:
            self.fail(NotFoundError("Shift not found"))
            return None
        for_date = exception.exception_for_date
        if for_date not in generate_recurring_dates(base, for_date, for_date, self.data):
            self.fail(ValidationFailed([f"Shift has no occurrence to replace on {for_date.isoformat()}"]))
            return None

        span = base.end_date - base.start_date
        overrides = exception.model_dump(exclude_unset=True, exclude={"exception_for_date"})
        fields = base.model_dump(exclude={"id", "created_at", "updated_at", "created_by_user_id", "user_id"})
        fields.update({
            "start_date": for_date,
            "end_date": for_date + span,
            "recurring_rule": None,
        })
        fields.update(overrides)
        fields.update({
            "id": str(uuid.uuid4()),
            "series_id": base.series_key,
            "original_recurring_shift_id": base.id,
            "is_exception_instance": True,
            "exception_for_date": for_date,
        })
        if fields.get("is_vacation"):
            fields["start_time"] = None
            fields["end_time"] = None
        shift = Shift(**fields)
        if self.save(lambda prev: prev + [shift], actor=actor) is None:
            return None
        return self.get(shift.id)

    def occurrences(self, view_start: date, view_end: date) -> List[ShiftOccurrence]:
        result: List[Tuple[date, ShiftOccurrence]] = []
        for shift in self.data:
            for day in generate_recurring_dates(shift, view_start, view_end, self.data):
                result.append((day, ShiftOccurrence(
                    shift_id=shift.id,
                    occurrence_date=day,
                    start_time=shift.start_time,
                    end_time=shift.end_time,
                    provider_id=shift.provider_id,
                    is_vacation=shift.is_vacation,
                    color=shift.color,
                    title=shift.title,
                )))
        result.sort(key=lambda item: (item[0], item[1].start_time or time.min))
        return [occ for _, occ in result]

    def conflicting_shift_ids(self, window_start: date, window_end: date) -> List[str]:
        return sorted(detect_all_shift_conflicts(self.data, window_start, window_end))

    def conflicts_for(self, candidate: Shift, window_start: date, window_end: date) -> List[Shift]:
        return find_conflicts_for_shift(candidate, self.data, window_start, window_end)
