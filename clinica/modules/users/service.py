import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from pydantic import ValidationError

from clinica.config.permissions_config import PRIVILEGED_ROLES, STATUS_TRANSITIONS, UserStatus
from clinica.core.errors import InvalidTransitionError, MalformedRecordError, error_message, to_http_exception
from clinica.database.supabase_client import BackendClient, Tables, utc_now_iso
from clinica.modules.audit.schemas import Actor
from clinica.modules.audit.service import AuditLogger
from clinica.modules.users.schemas import (
    CreatedUser,
    CreateUserRequest,
    CreateUserResponse,
    ProfileSelfUpdate,
    UserProfile,
    UserProfileUpdate,
)

logger = logging.getLogger(__name__)


def profile_from_row(row: Dict[str, Any]) -> UserProfile:
    try:
        return UserProfile(**row)
    except ValidationError as e:
        reason = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise MalformedRecordError(Tables.USER_PROFILES, row.get("id"), reason)


def is_privileged(profile: Optional[UserProfile]) -> bool:
    return (
        profile is not None
        and profile.status == UserStatus.APPROVED
        and profile.role in PRIVILEGED_ROLES
    )


class UserManagementService:
    def __init__(self, backend: BackendClient, audit: Optional[AuditLogger] = None):
        self.backend = backend
        self.audit = audit

    @staticmethod
    def is_access_allowed(profile: Optional[UserProfile]) -> bool:
        """Only approved, active profiles may read protected data."""
        return profile is not None and profile.status == UserStatus.APPROVED and profile.is_active

    def _require_privileged(self, actor: UserProfile) -> None:
        if not is_privileged(actor):
            raise HTTPException(status_code=403, detail="Administrator access required")

    def _log_update(self, old: UserProfile, new: UserProfile, actor: UserProfile) -> None:
        if self.audit is not None:
            self.audit.log_update(Tables.USER_PROFILES, old, new, actor=Actor(id=actor.id, email=actor.email))

    def _parse(self, row: Dict[str, Any]) -> UserProfile:
        try:
            return profile_from_row(row)
        except MalformedRecordError as e:
            logger.error(e.message)
            raise to_http_exception(e)

    def find_profile(self, user_id: str) -> Optional[UserProfile]:
        """Profile lookup without HTTP translation; None when no row exists."""
        row = self.backend.get_by_id(Tables.USER_PROFILES, user_id)
        return profile_from_row(row) if row else None

    def get_user(self, user_id: str) -> UserProfile:
        try:
            profile = self.find_profile(user_id)
        except Exception as e:
            raise to_http_exception(e)
        if profile is None:
            raise HTTPException(status_code=404, detail="User not found")
        return profile

    def get_profile_for(self, actor: UserProfile, user_id: str) -> UserProfile:
        """Non-privileged actors may only read their own profile."""
        if actor.id != user_id:
            self._require_privileged(actor)
        return self.get_user(user_id)

    def list_profiles(self, actor: UserProfile, status: Optional[UserStatus] = None) -> List[UserProfile]:
        self._require_privileged(actor)
        try:
            if status is not None:
                rows = self.backend.select_where(
                    Tables.USER_PROFILES, {"status": status.value}, order_by="created_at", desc=True
                )
            else:
                rows = self.backend.get_all(Tables.USER_PROFILES, order_by="created_at", desc=True)
            return [profile_from_row(row) for row in rows]
        except Exception as e:
            raise to_http_exception(e)

    def transition(
        self,
        actor: UserProfile,
        user_id: str,
        target: UserStatus,
        notes: Optional[str] = None,
    ) -> UserProfile:
        """Move a profile along the approval state machine, stamping the approver."""
        self._require_privileged(actor)
        current = self.get_user(user_id)
        if target not in STATUS_TRANSITIONS.get(current.status, frozenset()):
            raise to_http_exception(InvalidTransitionError(current.status.value, target.value))

        updates = {
            "status": target.value,
            "approved_by": actor.id,
            "approved_at": utc_now_iso(),
        }
        if notes is not None:
            updates["notes"] = notes
        try:
            row = self.backend.update(Tables.USER_PROFILES, user_id, updates)
        except Exception as e:
            raise to_http_exception(e)
        if not row:
            raise HTTPException(status_code=404, detail="User not found")

        updated = self._parse(row)
        logger.info(f"User {user_id} status {current.status.value} -> {target.value} by {actor.id}")
        self._log_update(current, updated, actor)
        return updated

    def approve_user(self, actor: UserProfile, user_id: str, notes: Optional[str] = None) -> UserProfile:
        return self.transition(actor, user_id, UserStatus.APPROVED, notes)

    def deny_user(self, actor: UserProfile, user_id: str, notes: Optional[str] = None) -> UserProfile:
        return self.transition(actor, user_id, UserStatus.DENIED, notes)

    def suspend_user(self, actor: UserProfile, user_id: str, notes: Optional[str] = None) -> UserProfile:
        return self.transition(actor, user_id, UserStatus.SUSPENDED, notes)

    def update_user(self, actor: UserProfile, user_id: str, changes: UserProfileUpdate) -> UserProfile:
        """Administrative update. Setting a status here bypasses the transition table."""
        self._require_privileged(actor)
        current = self.get_user(user_id)
        updates = changes.model_dump(exclude_unset=True, mode="json")
        if not updates:
            return current
        if "status" in updates:
            updates["approved_by"] = actor.id
            updates["approved_at"] = utc_now_iso()
        try:
            row = self.backend.update(Tables.USER_PROFILES, user_id, updates)
        except Exception as e:
            raise to_http_exception(e)
        if not row:
            raise HTTPException(status_code=404, detail="User not found")
        updated = self._parse(row)
        self._log_update(current, updated, actor)
        return updated

    def update_own_profile(self, actor: UserProfile, changes: ProfileSelfUpdate) -> UserProfile:
        updates = changes.model_dump(exclude_unset=True)
        if not updates:
            return actor
        try:
            row = self.backend.update(Tables.USER_PROFILES, actor.id, updates)
        except Exception as e:
            raise to_http_exception(e)
        if not row:
            raise HTTPException(status_code=404, detail="User not found")
        updated = self._parse(row)
        self._log_update(actor, updated, actor)
        return updated

    def set_active(self, actor: UserProfile, user_id: str, is_active: bool) -> UserProfile:
        self._require_privileged(actor)
        current = self.get_user(user_id)
        try:
            row = self.backend.update(Tables.USER_PROFILES, user_id, {"is_active": is_active})
        except Exception as e:
            raise to_http_exception(e)
        if not row:
            raise HTTPException(status_code=404, detail="User not found")
        updated = self._parse(row)
        self._log_update(current, updated, actor)
        return updated

    def delete_user(self, actor: UserProfile, user_id: str) -> bool:
        """Delete the profile and its auth identity."""
        self._require_privileged(actor)
        if actor.id == user_id:
            raise HTTPException(status_code=400, detail="You cannot delete your own account")
        current = self.get_user(user_id)
        try:
            self.backend.delete(Tables.USER_PROFILES, user_id)
            self.backend.admin_delete_user(user_id)
        except Exception as e:
            raise to_http_exception(e)
        if self.audit is not None:
            self.audit.log_delete(Tables.USER_PROFILES, current, actor=Actor(id=actor.id, email=actor.email))
        return True

    def create_user(self, actor: UserProfile, request: CreateUserRequest) -> CreateUserResponse:
        """
        Create an auth identity plus an approved profile through the admin API.
        When the profile insert fails the identity is deleted again.
        """
        self._require_privileged(actor)
        email = request.email.strip().lower()
        metadata = {"full_name": request.full_name} if request.full_name else {}
        try:
            user = self.backend.admin_create_user(email, request.password, metadata)
        except Exception as e:
            message = error_message(e)
            logger.error(f"Auth user creation failed for {email}: {message}")
            if "already" in message.lower():
                raise HTTPException(status_code=409, detail="User already exists")
            raise HTTPException(status_code=400, detail=message)
        if user is None:
            raise HTTPException(status_code=400, detail="Failed to create user")

        profile = {
            "id": user.id,
            "email": email,
            "full_name": request.full_name,
            "role": request.role.value,
            "status": UserStatus.APPROVED.value,
            "is_active": True,
            "approved_by": actor.id,
            "approved_at": utc_now_iso(),
            "notes": request.notes,
        }
        try:
            self.backend.create(Tables.USER_PROFILES, profile)
        except Exception as e:
            message = error_message(e)
            logger.error(f"Profile insert failed for {email}, rolling back auth user {user.id}: {message}")
            try:
                self.backend.admin_delete_user(user.id)
            except Exception as cleanup_error:
                logger.error(f"Rollback of auth user {user.id} failed: {error_message(cleanup_error)}")
            raise HTTPException(status_code=400, detail=f"Failed to create user profile: {message}")

        if self.audit is not None:
            self.audit.log_create(Tables.USER_PROFILES, profile, record_id=user.id, actor=Actor(id=actor.id, email=actor.email))
        logger.info(f"Created user {user.id} ({email}) with role {request.role.value}")
        return CreateUserResponse(
            success=True,
            message="User created successfully",
            user=CreatedUser(id=user.id, email=email, role=request.role),
        )
