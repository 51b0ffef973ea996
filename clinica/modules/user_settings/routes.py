from fastapi import APIRouter, Depends
from clinica.core.dependencies import get_current_user
from clinica.database.supabase_client import BackendClient, get_service_backend
from clinica.modules.user_settings.schemas import UserSettings, UserSettingsUpdate
from clinica.modules.user_settings.service import UserSettingsService
from typing import Any, Dict

router = APIRouter(prefix="/settings", tags=["settings"])


def get_settings_service(service_backend: BackendClient = Depends(get_service_backend)) -> UserSettingsService:
    return UserSettingsService(service_backend)


@router.get("/me", response_model=UserSettings)
async def get_my_settings(
    current_user: Dict[str, Any] = Depends(get_current_user),
    service: UserSettingsService = Depends(get_settings_service)
):
    return service.get_settings(current_user["id"])


@router.put("/me", response_model=UserSettings)
async def replace_my_settings(
    settings_data: UserSettings,
    current_user: Dict[str, Any] = Depends(get_current_user),
    service: UserSettingsService = Depends(get_settings_service)
):
    return service.save_settings(current_user["id"], settings_data)


@router.patch("/me", response_model=UserSettings)
async def update_my_settings(
    changes: UserSettingsUpdate,
    current_user: Dict[str, Any] = Depends(get_current_user),
    service: UserSettingsService = Depends(get_settings_service)
):
    return service.update_settings(current_user["id"], changes)
