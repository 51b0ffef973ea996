from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime

from clinica.config.permissions_config import UserRole, UserStatus


class UserProfile(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    email: str
    full_name: Optional[str] = None
    role: UserRole = UserRole.VIEW_ONLY
    status: UserStatus = UserStatus.PENDING
    is_active: bool = True
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_approved(self) -> bool:
        return self.status == UserStatus.APPROVED


class UserProfileUpdate(BaseModel):
    """Administrative update; the only way out of denied/suspended."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    full_name: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    notes: Optional[str] = None


class ProfileSelfUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    full_name: Optional[str] = None


class StatusChangeRequest(BaseModel):
    notes: Optional[str] = None


class ActiveToggleRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_active: bool


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: EmailStr
    password: str = Field(min_length=6)
    role: UserRole = UserRole.VIEW_ONLY
    full_name: Optional[str] = None
    notes: Optional[str] = None


class CreatedUser(BaseModel):
    id: str
    email: str
    role: UserRole


class CreateUserResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    user: Optional[CreatedUser] = None
