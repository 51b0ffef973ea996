"""
Backup export and merge import of the schedule.

Import never deletes: records whose id matches a cached record replace it,
everything else is appended, and each table goes through its store's save so
the usual validation, diffing and audit entries apply. Tables are written in
the order providers, clinics, medical assistants, shifts; a failure stops the
import and leaves the tables already written in place.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from clinica.core.errors import ValidationFailed
from clinica.database.store import RecordStore
from clinica.database.supabase_client import Tables
from clinica.modules.audit.schemas import Actor
from clinica.modules.catalog.schemas import CatalogItem
from clinica.modules.data_transfer.schemas import CatalogItemImport, DataExport, ImportResult, ShiftImport
from clinica.modules.shifts.schemas import DEFAULT_EVENT_COLOR, Shift
from clinica.modules.user_settings.schemas import UserSettings

logger = logging.getLogger(__name__)

# (payload key, table, model of one entry, default name, default colour)
SECTIONS = (
    ("providers", Tables.PROVIDERS, CatalogItemImport, "Unnamed Provider", "bg-red-500"),
    ("clinics", Tables.CLINIC_TYPES, CatalogItemImport, "Unnamed Clinic", "bg-red-600"),
    ("medicalAssistants", Tables.MEDICAL_ASSISTANTS, CatalogItemImport, "Unnamed MA", "bg-orange-500"),
    ("shifts", Tables.SHIFTS, ShiftImport, None, DEFAULT_EVENT_COLOR),
)


def _describe(error: ValidationError) -> str:
    return "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors())


def parse_backup(data: Any) -> Dict[str, List[BaseModel]]:
    """
    Check the payload shape and parse every entry. Sections may be absent;
    a present section must be a list of objects. All problems are reported
    together through ValidationFailed.
    """
    if not isinstance(data, dict):
        raise ValidationFailed(["Invalid backup file format"])

    errors: List[str] = []
    parsed: Dict[str, List[BaseModel]] = {}
    if not any(key in data for key, *_ in SECTIONS):
        errors.append("Backup contains no providers, clinics, medicalAssistants or shifts")

    for key, _table, model, _name, _color in SECTIONS:
        entries = data.get(key)
        if entries is None:
            parsed[key] = []
            continue
        if not isinstance(entries, list):
            errors.append(f"Missing or invalid {key} data")
            continue
        items = []
        for index, entry in enumerate(entries):
            try:
                items.append(model.model_validate(entry))
            except ValidationError as e:
                errors.append(f"Invalid {key} data at index {index}: {_describe(e)}")
        parsed[key] = items

    if errors:
        raise ValidationFailed(errors)
    return parsed


def merge_records(existing: List[BaseModel], incoming: List[BaseModel]) -> List[BaseModel]:
    """Replace records with a matching id in place and append the rest."""
    merged = list(existing)
    positions = {record.id: i for i, record in enumerate(merged)}
    for record in incoming:
        if record.id in positions:
            merged[positions[record.id]] = record
        else:
            positions[record.id] = len(merged)
            merged.append(record)
    return merged


def build_catalog_item(
    model: Type[CatalogItem],
    item: CatalogItemImport,
    default_name: str,
    default_color: str,
    now: datetime,
) -> CatalogItem:
    return model(
        id=item.id or str(uuid.uuid4()),
        name=item.name or default_name,
        color=item.color or default_color,
        is_active=True if item.is_active is None else item.is_active,
        user_id=item.user_id,
        created_at=item.created_at or now,
        updated_at=now,
    )


def build_shift(item: ShiftImport, now: datetime) -> Shift:
    fields = item.model_dump(exclude={"id", "end_date", "color", "created_at"})
    return Shift(
        **fields,
        id=item.id or str(uuid.uuid4()),
        end_date=item.end_date or item.start_date,
        color=item.color or DEFAULT_EVENT_COLOR,
        created_at=item.created_at or now,
        updated_at=now,
    )


class DataTransferService:
    def __init__(self, stores: Dict[str, RecordStore]):
        self.stores = stores
        # Records written per payload key by the last import
        self.counts: Dict[str, int] = {}

    def _load(self, store: RecordStore, refresh: bool = False) -> list:
        if refresh or not store.loaded:
            store.fetch_all()
            if store.failure is not None:
                raise store.failure
        return store.data

    def export_data(self, user_settings: Optional[UserSettings] = None) -> DataExport:
        """Snapshot of every table, read fresh from the backend."""
        return DataExport(
            providers=self._load(self.stores[Tables.PROVIDERS], refresh=True),
            clinics=self._load(self.stores[Tables.CLINIC_TYPES], refresh=True),
            medical_assistants=self._load(self.stores[Tables.MEDICAL_ASSISTANTS], refresh=True),
            shifts=self._load(self.stores[Tables.SHIFTS], refresh=True),
            user_settings=user_settings,
            exported_at=datetime.now(timezone.utc),
        )

    def import_data(self, data: Any, actor: Optional[Actor] = None) -> ImportResult:
        parsed = parse_backup(data)
        now = datetime.now(timezone.utc)
        self.counts = {}

        for key, table, _model, default_name, default_color in SECTIONS:
            items = parsed[key]
            if not items:
                continue
            store = self.stores[table]
            if table == Tables.SHIFTS:
                records = [build_shift(item, now) for item in items]
            else:
                records = [
                    build_catalog_item(store.mapper.model, item, default_name, default_color, now)
                    for item in items
                ]

            self._load(store)
            if store.save(lambda prev: merge_records(prev, records), actor=actor) is None:
                logger.error(f"Import stopped at {table}: {store.error}")
                raise store.failure
            self.counts[key] = len(records)

        total = sum(self.counts.values())
        logger.info(f"Imported {total} records ({self.counts})")
        return ImportResult(success=True, imported=total, counts=dict(self.counts))
