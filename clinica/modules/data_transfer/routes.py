from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from clinica.core.dependencies import get_actor, require_capability
from clinica.core.errors import ValidationFailed, to_http_exception
from clinica.modules.audit.schemas import Actor
from clinica.modules.data_transfer.schemas import DataExport, ImportResult
from clinica.modules.data_transfer.service import DataTransferService
from clinica.modules.user_settings.routes import get_settings_service
from clinica.modules.user_settings.service import UserSettingsService
from clinica.modules.users.schemas import UserProfile
from typing import Any
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/data", tags=["data"])


def get_data_transfer_service(request: Request) -> DataTransferService:
    return DataTransferService(request.app.state.stores)


@router.get("/export", response_model=DataExport)
async def export_data(
    response: Response,
    profile: UserProfile = Depends(require_capability("can_export_data")),
    service: DataTransferService = Depends(get_data_transfer_service),
    settings_service: UserSettingsService = Depends(get_settings_service)
):
    """Download every provider, clinic type, medical assistant and shift plus the caller's settings"""
    user_settings = settings_service.get_settings(profile.id)
    try:
        export = service.export_data(user_settings)
    except Exception as e:
        raise to_http_exception(e)
    filename = f"clinica-schedule-export-{export.exported_at.date().isoformat()}.json"
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    logger.info(f"User {profile.id} exported {len(export.shifts)} shifts")
    return export


@router.post("/import", response_model=ImportResult)
async def import_data(
    payload: Any = Body(...),
    profile: UserProfile = Depends(require_capability("can_import_data")),
    actor: Actor = Depends(get_actor),
    service: DataTransferService = Depends(get_data_transfer_service)
):
    """Merge a backup into the stored data; existing ids are replaced, nothing is deleted"""
    try:
        return service.import_data(payload, actor=actor)
    except HTTPException:
        raise
    except Exception as e:
        http_error = to_http_exception(e)
        if isinstance(e, ValidationFailed):
            error, errors = "Invalid backup data", e.errors
        else:
            error, errors = str(http_error.detail), []
        result = ImportResult(
            success=False,
            imported=sum(service.counts.values()),
            counts=service.counts,
            error=error,
            errors=errors,
        )
        return JSONResponse(status_code=http_error.status_code, content=result.model_dump(by_alias=True))
