"""
Signed-in user state for scripts and long-lived processes.

The context follows the platform's auth events: a session with a user
triggers a profile load, no session means anonymous. The profile load is the
only call with an explicit timeout. When it expires the context enters a
degraded state with the placeholder role from settings.profile_timeout_role
(read-only by default) instead of the elevated access a timeout used to
grant. An empty profile_timeout_role denies access on timeout.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from enum import Enum
from typing import Any, List, Optional, Protocol

from clinica.config.permissions_config import (
    PRIVILEGED_ROLES,
    UserRole,
    UserStatus,
    role_has_capability,
)
from clinica.config.settings import Settings, settings as default_settings
from clinica.core.errors import ProfileTimeoutError, error_message
from clinica.database.supabase_client import BackendClient, Tables
from clinica.modules.audit.schemas import Actor
from clinica.modules.auth.schemas import AuthResult
from clinica.modules.auth.service import normalize_email
from clinica.modules.users.schemas import ProfileSelfUpdate, UserProfile
from clinica.modules.users.service import profile_from_row

logger = logging.getLogger(__name__)

PROFILE_NOT_FOUND = "User profile not found. You may need to be invited by an administrator."
NOT_CONFIGURED = "Authentication not configured"


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    LOADING_PROFILE = "loading_profile"
    AUTHENTICATED = "authenticated"
    AUTHENTICATED_DEGRADED = "authenticated_degraded"


class Resettable(Protocol):
    def reset(self) -> None: ...


class SessionContext:
    def __init__(self, backend: BackendClient, settings: Optional[Settings] = None):
        self.backend = backend
        self.settings = settings or default_settings
        self.state = SessionState.ANONYMOUS
        self.user_id: Optional[str] = None
        self.profile: Optional[UserProfile] = None
        self.error: Optional[str] = None
        self.warnings: List[str] = []
        self._caches: List[Resettable] = []
        self._subscription: Any = None
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="profile-fetch")

    # Lifecycle

    def attach(self, *caches: Resettable) -> None:
        """Register caches that must be emptied on sign-out."""
        self._caches.extend(caches)

    def start(self) -> SessionState:
        """Restore an existing session and subscribe to auth-state changes."""
        if not self.backend.is_configured():
            self.error = "Supabase configuration missing"
            logger.error("Supabase not configured - please check your environment variables")
            return self.state
        try:
            session = self.backend.get_session()
        except Exception as e:
            logger.error(f"Error getting session: {error_message(e)}")
            session = None

        user = getattr(session, "user", None) if session else None
        if user is not None:
            logger.info(f"Restoring session for {user.email}")
            self.load_profile(user.id, user.email)
        else:
            self._to_anonymous()

        self._subscription = self.backend.on_auth_state_change(self.handle_auth_event)
        return self.state

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        # In-flight profile fetches are left to finish on their own
        self._executor.shutdown(wait=False)

    def handle_auth_event(self, event: Any, session: Any) -> None:
        user = getattr(session, "user", None) if session else None
        logger.debug(f"Auth state change: {event} user={getattr(user, 'id', None)}")
        if user is None:
            self._to_anonymous()
            return
        if self.user_id == user.id and self.state == SessionState.AUTHENTICATED:
            return
        self.load_profile(user.id, user.email)

    # Profile loading

    def _fetch_profile_row(self, user_id: str):
        return self.backend.get_by_id(Tables.USER_PROFILES, user_id)

    def load_profile(self, user_id: str, email: Optional[str] = None) -> SessionState:
        self.state = SessionState.LOADING_PROFILE
        self.user_id = user_id
        self.error = None
        timeout = self.settings.profile_fetch_timeout_sec

        future = self._executor.submit(self._fetch_profile_row, user_id)
        try:
            row = future.result(timeout=timeout)
            profile = profile_from_row(row) if row is not None else None
        except FutureTimeout:
            self._enter_degraded(user_id, email, timeout)
            return self.state
        except Exception as e:
            self.error = f"Failed to load user profile: {error_message(e)}"
            logger.error(self.error)
            self._to_anonymous()
            return self.state

        if profile is None:
            logger.warning(f"No user profile found for {user_id}; signing out")
            self.sign_out()
            self.error = PROFILE_NOT_FOUND
            return self.state

        self.profile = profile
        self.state = SessionState.AUTHENTICATED
        logger.info(f"Loaded profile for {self.profile.email} ({self.profile.role.value}, {self.profile.status.value})")
        return self.state

    def _enter_degraded(self, user_id: str, email: Optional[str], timeout: float) -> None:
        timeout_error = ProfileTimeoutError(timeout)
        role_name = self.settings.profile_timeout_role
        try:
            role = UserRole(role_name) if role_name else None
        except ValueError:
            logger.error(f"Invalid profile_timeout_role {role_name!r}; denying access")
            role = None

        if role is None:
            self.error = timeout_error.message
            logger.warning(f"{timeout_error.message} - access denied")
            self._to_anonymous()
            return

        self.profile = UserProfile(
            id=user_id,
            email=email or "",
            role=role,
            status=UserStatus.APPROVED,
        )
        self.state = SessionState.AUTHENTICATED_DEGRADED
        warning = f"{timeout_error.message} - using temporary {role.value} access"
        self.warnings.append(warning)
        logger.warning(warning)

    def _to_anonymous(self) -> None:
        self.state = SessionState.ANONYMOUS
        self.user_id = None
        self.profile = None
        for cache in self._caches:
            cache.reset()

    # Operations

    def sign_in(self, email: str, password: str) -> AuthResult:
        if not self.backend.is_configured():
            return AuthResult(success=False, error=NOT_CONFIGURED)
        try:
            response = self.backend.sign_in(normalize_email(email), password)
        except Exception as e:
            logger.error(f"Sign in error: {error_message(e)}")
            return AuthResult(success=False, error=error_message(e))

        user = getattr(response, "user", None)
        if user is None:
            return AuthResult(success=False, error="Unknown error occurred")
        # The auth listener may already have loaded the profile
        if self.user_id != user.id or not self.is_authenticated:
            self.load_profile(user.id, user.email)
        if self.state == SessionState.ANONYMOUS:
            return AuthResult(success=False, error=self.error)
        return AuthResult(success=True)

    def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> AuthResult:
        if not self.backend.is_configured():
            return AuthResult(success=False, error=NOT_CONFIGURED)
        metadata = {"full_name": full_name} if full_name else {}
        try:
            response = self.backend.sign_up(normalize_email(email), password, metadata)
        except Exception as e:
            logger.error(f"Sign up error: {error_message(e)}")
            return AuthResult(success=False, error=error_message(e))
        if getattr(response, "user", None) is None:
            return AuthResult(success=False, error="Unknown error occurred")
        return AuthResult(success=True)

    def sign_out(self) -> AuthResult:
        result = AuthResult(success=True)
        try:
            if self.backend.is_configured():
                self.backend.sign_out()
        except Exception as e:
            logger.error(f"Sign out error: {error_message(e)}")
            result = AuthResult(success=False, error=error_message(e))
        self._to_anonymous()
        return result

    def reset_password(self, email: str) -> AuthResult:
        if not self.backend.is_configured():
            return AuthResult(success=False, error=NOT_CONFIGURED)
        try:
            self.backend.reset_password(normalize_email(email), self.settings.password_reset_redirect_url)
        except Exception as e:
            logger.error(f"Password reset error: {error_message(e)}")
            return AuthResult(success=False, error=error_message(e))
        return AuthResult(success=True)

    def update_profile(self, changes: ProfileSelfUpdate) -> AuthResult:
        if self.state != SessionState.AUTHENTICATED or self.profile is None:
            return AuthResult(success=False, error="Not authenticated")
        updates = changes.model_dump(exclude_unset=True)
        if not updates:
            return AuthResult(success=True)
        try:
            self.backend.update(Tables.USER_PROFILES, self.profile.id, updates)
        except Exception as e:
            logger.error(f"Profile update error: {error_message(e)}")
            return AuthResult(success=False, error=error_message(e))
        self.load_profile(self.profile.id, self.profile.email)
        return AuthResult(success=self.state == SessionState.AUTHENTICATED, error=self.error)

    # Predicates

    @property
    def is_authenticated(self) -> bool:
        return self.state in (SessionState.AUTHENTICATED, SessionState.AUTHENTICATED_DEGRADED)

    @property
    def is_degraded(self) -> bool:
        return self.state == SessionState.AUTHENTICATED_DEGRADED

    @property
    def actor(self) -> Optional[Actor]:
        if self.profile is None:
            return None
        return Actor(id=self.profile.id, email=self.profile.email or None)

    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.role in PRIVILEGED_ROLES

    def is_view_only(self) -> bool:
        return self.profile is not None and self.profile.role == UserRole.VIEW_ONLY

    def is_approved(self) -> bool:
        return self.profile is not None and self.profile.status == UserStatus.APPROVED

    def has_capability(self, capability: str) -> bool:
        if not self.is_approved():
            return False
        return role_has_capability(self.profile.role, capability)

    def can_read(self) -> bool:
        return self.has_capability("can_view_all_data")

    def can_write(self) -> bool:
        return self.has_capability("can_manage_shifts")
