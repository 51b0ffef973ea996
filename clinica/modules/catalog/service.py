import uuid
from datetime import datetime, timezone
from typing import List, Optional, TypeVar

from clinica.core.errors import NotFoundError
from clinica.database.mapping import RowMapper
from clinica.database.store import RecordStore
from clinica.database.supabase_client import BackendClient, Tables
from clinica.modules.audit.schemas import Actor
from clinica.modules.audit.service import AuditLogger
from clinica.modules.catalog.mapping import clinic_type_mapper, medical_assistant_mapper, provider_mapper
from clinica.modules.catalog.schemas import CatalogItem, CatalogItemUpdate, ClinicType, MedicalAssistant, Provider

C = TypeVar("C", bound=CatalogItem)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50


def validate_catalog_item(item: CatalogItem, label: str) -> List[str]:
    errors = []
    name = (item.name or "").strip()
    if not name:
        errors.append(f"{label} name is required")
    elif len(name) < NAME_MIN_LENGTH:
        errors.append(f"{label} name must be at least {NAME_MIN_LENGTH} characters long")
    elif len(name) > NAME_MAX_LENGTH:
        errors.append(f"{label} name must be no more than {NAME_MAX_LENGTH} characters long")
    if not (item.color or "").strip():
        errors.append(f"{label} color is required")
    return errors


class CatalogStore(RecordStore[C]):
    label = "Item"

    def __init__(self, backend: BackendClient, mapper: RowMapper[C], audit: Optional[AuditLogger] = None):
        super().__init__(backend, mapper, audit)

    def validate(self, record: C) -> List[str]:
        return validate_catalog_item(record, self.label)

    def prepare(self, record: C, is_new: bool, actor: Optional[Actor]) -> C:
        record = super().prepare(record, is_new, actor)
        if record.user_id is None and actor is not None and actor.id:
            record = record.model_copy(update={"user_id": actor.id})
        return record

    def add(self, name: str, color: str, is_active: bool = True, actor: Optional[Actor] = None) -> Optional[C]:
        """Create a new item with a generated id. Returns None with `error` set on failure."""
        item = self.mapper.model(
            id=str(uuid.uuid4()),
            name=name.strip(),
            color=color,
            is_active=is_active,
        )
        saved = self.save(lambda prev: prev + [item], actor=actor)
        if saved is None:
            return None
        return self.get(item.id)

    def update_item(self, item_id: str, changes: CatalogItemUpdate, actor: Optional[Actor] = None) -> Optional[C]:
        current = self.get(item_id)
        if current is None:
            self.fail(NotFoundError(f"{self.label} not found"))
            return None
        updates = changes.model_dump(exclude_none=True)
        if "name" in updates:
            updates["name"] = updates["name"].strip()
        if not updates:
            return current
        updates["updated_at"] = datetime.now(timezone.utc)
        updated = current.model_copy(update=updates)
        saved = self.save(lambda prev: [updated if r.id == item_id else r for r in prev], actor=actor)
        if saved is None:
            return None
        return self.get(item_id)

    def set_active(self, item_id: str, is_active: bool, actor: Optional[Actor] = None) -> Optional[C]:
        """Soft enable/disable."""
        return self.update_item(item_id, CatalogItemUpdate(is_active=is_active), actor=actor)

    def active(self) -> List[C]:
        return [r for r in self.data if r.is_active]


class ProviderStore(CatalogStore[Provider]):
    table = Tables.PROVIDERS
    label = "Provider"

    def __init__(self, backend: BackendClient, audit: Optional[AuditLogger] = None):
        super().__init__(backend, provider_mapper, audit)


class ClinicTypeStore(CatalogStore[ClinicType]):
    table = Tables.CLINIC_TYPES
    label = "Clinic type"

    def __init__(self, backend: BackendClient, audit: Optional[AuditLogger] = None):
        super().__init__(backend, clinic_type_mapper, audit)


class MedicalAssistantStore(CatalogStore[MedicalAssistant]):
    table = Tables.MEDICAL_ASSISTANTS
    label = "Medical assistant"

    def __init__(self, backend: BackendClient, audit: Optional[AuditLogger] = None):
        super().__init__(backend, medical_assistant_mapper, audit)
