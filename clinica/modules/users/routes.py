from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from clinica.config.permissions_config import UserStatus
from clinica.core.dependencies import get_current_profile, get_user_service
from clinica.modules.users.schemas import (
    ActiveToggleRequest, CreateUserRequest, CreateUserResponse, ProfileSelfUpdate,
    StatusChangeRequest, UserProfile, UserProfileUpdate
)
from clinica.modules.users.service import UserManagementService
from typing import List, Optional

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[UserProfile])
async def list_users(
    status: Optional[UserStatus] = None,
    profile: UserProfile = Depends(get_current_profile),
    service: UserManagementService = Depends(get_user_service)
):
    """List all profiles, optionally filtered by status (administrators only)"""
    return service.list_profiles(profile, status)


@router.post("", response_model=CreateUserResponse, status_code=201)
async def create_user(
    user_data: CreateUserRequest,
    profile: UserProfile = Depends(get_current_profile),
    service: UserManagementService = Depends(get_user_service)
):
    """Create an approved account with a password (administrators only)"""
    try:
        return service.create_user(profile, user_data)
    except HTTPException as e:
        return JSONResponse(
            status_code=e.status_code,
            content=CreateUserResponse(success=False, error=str(e.detail)).model_dump(exclude_none=True)
        )


@router.get("/me", response_model=UserProfile)
async def get_my_profile(profile: UserProfile = Depends(get_current_profile)):
    """Own profile, including pending or suspended accounts"""
    return profile


@router.patch("/me", response_model=UserProfile)
async def update_my_profile(
    changes: ProfileSelfUpdate,
    profile: UserProfile = Depends(get_current_profile),
    service: UserManagementService = Depends(get_user_service)
):
    return service.update_own_profile(profile, changes)


@router.get("/{user_id}", response_model=UserProfile)
async def get_user(
    user_id: str,
    profile: UserProfile = Depends(get_current_profile),
    service: UserManagementService = Depends(get_user_service)
):
    """Get a profile by ID (own profile, or any profile for administrators)"""
    return service.get_profile_for(profile, user_id)


@router.put("/{user_id}", response_model=UserProfile)
async def update_user(
    user_id: str,
    changes: UserProfileUpdate,
    profile: UserProfile = Depends(get_current_profile),
    service: UserManagementService = Depends(get_user_service)
):
    return service.update_user(profile, user_id, changes)


@router.post("/{user_id}/approve", response_model=UserProfile)
async def approve_user(
    user_id: str,
    body: Optional[StatusChangeRequest] = None,
    profile: UserProfile = Depends(get_current_profile),
    service: UserManagementService = Depends(get_user_service)
):
    return service.approve_user(profile, user_id, body.notes if body else None)


@router.post("/{user_id}/deny", response_model=UserProfile)
async def deny_user(
    user_id: str,
    body: Optional[StatusChangeRequest] = None,
    profile: UserProfile = Depends(get_current_profile),
    service: UserManagementService = Depends(get_user_service)
):
    return service.deny_user(profile, user_id, body.notes if body else None)


@router.post("/{user_id}/suspend", response_model=UserProfile)
async def suspend_user(
    user_id: str,
    body: Optional[StatusChangeRequest] = None,
    profile: UserProfile = Depends(get_current_profile),
    service: UserManagementService = Depends(get_user_service)
):
    return service.suspend_user(profile, user_id, body.notes if body else None)


@router.patch("/{user_id}/active", response_model=UserProfile)
async def set_user_active(
    user_id: str,
    body: ActiveToggleRequest,
    profile: UserProfile = Depends(get_current_profile),
    service: UserManagementService = Depends(get_user_service)
):
    return service.set_active(profile, user_id, body.is_active)


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    profile: UserProfile = Depends(get_current_profile),
    service: UserManagementService = Depends(get_user_service)
):
    service.delete_user(profile, user_id)
    return None
