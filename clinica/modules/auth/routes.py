from fastapi import APIRouter, Depends
from clinica.config.permissions_config import get_permission_check
from clinica.core.dependencies import get_auth_service, get_current_token, get_current_user, get_user_service
from clinica.core.errors import to_http_exception
from clinica.modules.auth.schemas import (
    LoginRequest, RegisterRequest, RegisterResponse, ResetPasswordRequest, TokenResponse
)
from clinica.modules.auth.service import AuthService
from clinica.modules.users.service import UserManagementService
from typing import Any, Dict

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Register a new user (pending until approved)"""
    return service.register(register_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login and get access token"""
    return service.login(login_data)


@router.post("/logout", status_code=200)
async def logout(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    service.logout(token)
    return {"message": "Logged out successfully"}


@router.post("/reset-password", status_code=200)
async def reset_password(
    body: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Send a password reset email"""
    service.reset_password(body.email)
    return {"message": "If the account exists, a reset email has been sent"}


@router.get("/me")
async def get_me(
    current_user: Dict[str, Any] = Depends(get_current_user),
    users: UserManagementService = Depends(get_user_service)
):
    """Current identity, its profile and the capability map of its role (for frontend UI)."""
    try:
        profile = users.find_profile(current_user["id"])
    except Exception as e:
        raise to_http_exception(e)
    permissions = {}
    if profile is not None and users.is_access_allowed(profile):
        permissions = get_permission_check(profile.role)
    return {
        **current_user,
        "profile": profile.model_dump(by_alias=True, mode="json") if profile else None,
        "permissions": permissions,
    }
