from fastapi import APIRouter, Depends, HTTPException
from clinica.core.dependencies import (
    get_actor, get_store, load_store, raise_store_error, refresh_store, require_approved, require_capability
)
from clinica.database.supabase_client import Tables
from clinica.modules.audit.schemas import Actor
from clinica.modules.catalog.schemas import (
    CatalogActiveUpdate, CatalogItemCreate, CatalogItemUpdate,
    ClinicType, MedicalAssistant, Provider
)
from clinica.modules.catalog.service import CatalogStore
from clinica.modules.users.schemas import UserProfile
from typing import List, Type


def build_catalog_router(prefix: str, table: str, item_model: Type, capability: str) -> APIRouter:
    """CRUD router over one catalog store (providers, clinic types, medical assistants)."""
    router = APIRouter(prefix=f"/{prefix}", tags=[prefix])
    store_dependency = get_store(table)

    @router.get("", response_model=List[item_model])
    async def list_items(
        active_only: bool = False,
        profile: UserProfile = Depends(require_approved),
        store: CatalogStore = Depends(store_dependency)
    ):
        """List all items, optionally only the active ones"""
        refresh_store(store)
        return store.active() if active_only else store.data

    @router.post("", response_model=item_model, status_code=201)
    async def create_item(
        item_data: CatalogItemCreate,
        profile: UserProfile = Depends(require_capability(capability)),
        actor: Actor = Depends(get_actor),
        store: CatalogStore = Depends(store_dependency)
    ):
        load_store(store)
        item = store.add(item_data.name, item_data.color, item_data.is_active, actor=actor)
        if item is None:
            raise_store_error(store)
        return item

    @router.get("/{item_id}", response_model=item_model)
    async def get_item(
        item_id: str,
        profile: UserProfile = Depends(require_approved),
        store: CatalogStore = Depends(store_dependency)
    ):
        load_store(store)
        item = store.get(item_id)
        if item is None:
            raise HTTPException(status_code=404, detail=f"{store.label} not found")
        return item

    @router.put("/{item_id}", response_model=item_model)
    async def update_item(
        item_id: str,
        item_data: CatalogItemUpdate,
        profile: UserProfile = Depends(require_capability(capability)),
        actor: Actor = Depends(get_actor),
        store: CatalogStore = Depends(store_dependency)
    ):
        load_store(store)
        item = store.update_item(item_id, item_data, actor=actor)
        if item is None:
            raise_store_error(store)
        return item

    @router.patch("/{item_id}/active", response_model=item_model)
    async def set_item_active(
        item_id: str,
        body: CatalogActiveUpdate,
        profile: UserProfile = Depends(require_capability(capability)),
        actor: Actor = Depends(get_actor),
        store: CatalogStore = Depends(store_dependency)
    ):
        """Enable or disable an item without deleting it"""
        load_store(store)
        item = store.set_active(item_id, body.is_active, actor=actor)
        if item is None:
            raise_store_error(store)
        return item

    @router.delete("/{item_id}", status_code=204)
    async def delete_item(
        item_id: str,
        profile: UserProfile = Depends(require_capability(capability)),
        actor: Actor = Depends(get_actor),
        store: CatalogStore = Depends(store_dependency)
    ):
        load_store(store)
        if not store.delete(item_id, actor=actor):
            raise_store_error(store)
        return None

    return router


providers_router = build_catalog_router("providers", Tables.PROVIDERS, Provider, "can_manage_providers")
clinic_types_router = build_catalog_router("clinic-types", Tables.CLINIC_TYPES, ClinicType, "can_manage_clinics")
medical_assistants_router = build_catalog_router(
    "medical-assistants", Tables.MEDICAL_ASSISTANTS, MedicalAssistant, "can_manage_providers"
)
