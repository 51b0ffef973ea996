from fastapi import APIRouter, Depends, Query
from clinica.core.dependencies import require_admin
from clinica.core.errors import to_http_exception
from clinica.database.supabase_client import BackendClient, get_service_backend
from clinica.modules.audit.schemas import AuditLogEntry
from clinica.modules.audit.service import AuditService
from clinica.modules.users.schemas import UserProfile
from typing import List, Optional

router = APIRouter(prefix="/audit", tags=["audit"])


def get_audit_service(service_backend: BackendClient = Depends(get_service_backend)) -> AuditService:
    return AuditService(service_backend)


@router.get("", response_model=List[AuditLogEntry])
async def list_audit_entries(
    table_name: Optional[str] = None,
    record_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    profile: UserProfile = Depends(require_admin),
    service: AuditService = Depends(get_audit_service)
):
    """Most recent audit entries first (administrators only)"""
    try:
        return service.list_entries(table_name=table_name, record_id=record_id, limit=limit)
    except Exception as e:
        raise to_http_exception(e)
