"""
Core dependencies for route protection and permission checking
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from clinica.config.permissions_config import role_has_capability
from clinica.config.settings import Settings
from clinica.core.errors import to_http_exception
from clinica.database.store import RecordStore
from clinica.database.supabase_client import BackendClient, get_backend, get_service_backend
from clinica.modules.audit.schemas import Actor
from clinica.modules.audit.service import AuditLogger
from clinica.modules.auth.service import AuthService
from clinica.modules.users.schemas import UserProfile
from clinica.modules.users.service import UserManagementService, is_privileged
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_audit_logger(request: Request) -> AuditLogger:
    return request.app.state.audit


def get_auth_service(
    request: Request,
    backend: BackendClient = Depends(get_backend),
    service_backend: BackendClient = Depends(get_service_backend)
) -> AuthService:
    return AuthService(backend, service_backend, get_settings(request))


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_current_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """Extract current user info from JWT token"""
    return auth_service.get_current_user(token)


def get_user_service(
    service_backend: BackendClient = Depends(get_service_backend),
    audit: AuditLogger = Depends(get_audit_logger)
) -> UserManagementService:
    return UserManagementService(service_backend, audit)


def get_current_profile(
    user_data: Dict[str, Any] = Depends(get_current_user),
    service: UserManagementService = Depends(get_user_service)
) -> UserProfile:
    """Profile of the token's user; a signed-in identity without a profile is refused."""
    try:
        profile = service.find_profile(user_data["id"])
    except Exception as e:
        raise to_http_exception(e)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User profile not found. You may need to be invited by an administrator."
        )
    return profile


def require_approved(profile: UserProfile = Depends(get_current_profile)) -> UserProfile:
    """Gate for protected data: only approved, active accounts pass."""
    if not UserManagementService.is_access_allowed(profile):
        detail = "Account is inactive" if not profile.is_active else f"Account {profile.status.value}: access requires approval"
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
    return profile


def require_admin(profile: UserProfile = Depends(require_approved)) -> UserProfile:
    if not is_privileged(profile):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator access required")
    return profile


def require_capability(capability: str):
    """Factory function to create capability check dependency"""
    def check_capability(profile: UserProfile = Depends(require_approved)) -> UserProfile:
        if not role_has_capability(profile.role, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {capability}"
            )
        return profile
    return check_capability


def get_actor(profile: UserProfile = Depends(get_current_profile)) -> Actor:
    return Actor(id=profile.id, email=profile.email)


def get_store(table: str):
    """Factory for a dependency returning the app-wide store of a table."""
    def store_dependency(request: Request) -> RecordStore:
        return request.app.state.stores[table]
    return store_dependency


def raise_store_error(store: RecordStore, default_detail: str = "Operation failed") -> None:
    """Translate the store's last failure into an HTTPException."""
    if store.failure is not None:
        raise to_http_exception(store.failure)
    raise HTTPException(status_code=500, detail=store.error or default_detail)


def refresh_store(store: RecordStore) -> list:
    """Reload a store; a failed reload is raised even while a cached copy exists."""
    store.fetch_all()
    if store.failure is not None:
        raise_store_error(store)
    return store.data


def load_store(store: RecordStore) -> list:
    if not store.loaded:
        refresh_store(store)
    return store.data
