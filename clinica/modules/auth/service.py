import hashlib
import logging
import time
from typing import Any, Dict, Optional

from fastapi import HTTPException

from clinica.config.permissions_config import UserRole, UserStatus
from clinica.config.settings import Settings, settings as default_settings
from clinica.core.errors import ConfigurationError, error_message
from clinica.database.supabase_client import BackendClient, Tables
from clinica.modules.auth.schemas import LoginRequest, RegisterRequest, RegisterResponse, TokenResponse

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_MAX_SIZE = 500


def clear_token_cache() -> None:
    _AUTH_USER_CACHE.clear()


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    def __init__(
        self,
        backend: BackendClient,
        profile_backend: Optional[BackendClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.backend = backend
        self.profile_backend = profile_backend or backend
        self.settings = settings or default_settings

    def register(self, register_data: RegisterRequest) -> RegisterResponse:
        """Register a new user; the profile starts pending until an administrator approves it."""
        email = normalize_email(register_data.email)
        try:
            user_metadata = {}
            if register_data.full_name:
                user_metadata["full_name"] = register_data.full_name

            auth_response = self.backend.sign_up(email, register_data.password, user_metadata)
            if not auth_response.user:
                raise HTTPException(status_code=400, detail="Failed to register user")
            user = auth_response.user
        except HTTPException:
            raise
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=e.message)
        except Exception as e:
            message = str(e)
            if "already registered" in message.lower() or "already exists" in message.lower():
                raise HTTPException(status_code=400, detail="User already exists")
            raise HTTPException(status_code=500, detail=f"Registration failed: {message}")

        self._ensure_pending_profile(user.id, email, register_data.full_name)
        return RegisterResponse(
            user_id=user.id,
            email=user.email or email,
            message="User registered successfully. An administrator must approve the account."
        )

    def _ensure_pending_profile(self, user_id: str, email: str, full_name: Optional[str]) -> None:
        # A database trigger may already have created the row
        try:
            if self.profile_backend.get_by_id(Tables.USER_PROFILES, user_id):
                return
            self.profile_backend.create(Tables.USER_PROFILES, {
                "id": user_id,
                "email": email,
                "full_name": full_name,
                "role": UserRole.VIEW_ONLY.value,
                "status": UserStatus.PENDING.value,
                "is_active": True,
            })
        except Exception as e:
            message = error_message(e)
            if "duplicate" in message.lower() or getattr(e, "code", None) == "23505":
                return
            logger.error(f"Pending profile creation failed for {email}: {message}")
            raise HTTPException(status_code=500, detail=f"Registration failed: {message}")

    def login(self, login_data: LoginRequest) -> TokenResponse:
        """Authenticate user using Supabase Auth"""
        email = normalize_email(login_data.email)
        try:
            auth_response = self.backend.sign_in(email, login_data.password)

            if not auth_response.user or not auth_response.session:
                raise HTTPException(status_code=401, detail="Invalid credentials")

            return TokenResponse(
                access_token=auth_response.session.access_token,
                token_type="bearer",
                user_id=auth_response.user.id,
                email=auth_response.user.email or email
            )
        except HTTPException:
            raise
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=e.message)
        except Exception as e:
            message = str(e)
            if "invalid" in message.lower() or "credentials" in message.lower():
                raise HTTPException(status_code=401, detail="Invalid email or password")
            raise HTTPException(status_code=500, detail=f"Login failed: {message}")

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user = self.backend.get_user_for_token(token)
            if not user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            user_data = {
                "id": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
                "app_metadata": user.app_metadata or {},
            }
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + self.settings.auth_cache_ttl_sec)
            return user_data
        except HTTPException:
            raise
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=e.message)
        except Exception as e:
            message = str(e)
            if "JWT" in message or "expired" in message.lower() or "invalid" in message.lower():
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            raise HTTPException(status_code=401, detail="Authentication failed")

    def logout(self, token: str) -> bool:
        """Drop the cached token; Supabase tokens are stateless JWTs and expire on their own."""
        _AUTH_USER_CACHE.pop(hashlib.sha256(token.encode()).hexdigest(), None)
        try:
            self.backend.sign_out()
            return True
        except Exception as e:
            logger.warning(f"Sign out failed: {error_message(e)}")
            return False

    def reset_password(self, email: str) -> None:
        try:
            self.backend.reset_password(normalize_email(email), self.settings.password_reset_redirect_url)
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=e.message)
        except Exception as e:
            raise HTTPException(status_code=400, detail=f"Password reset failed: {error_message(e)}")
