import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi import Request
from postgrest.exceptions import APIError
from supabase import Client, create_client

from clinica.config.settings import Settings
from clinica.core.errors import AuthorizationError, BackendError, ConfigurationError, NotFoundError

logger = logging.getLogger(__name__)


class Tables:
    PROVIDERS = "providers"
    CLINIC_TYPES = "clinic_types"
    MEDICAL_ASSISTANTS = "medical_assistants"
    SHIFTS = "shifts"
    USER_PROFILES = "user_profiles"
    USER_SETTINGS = "user_settings"
    AUDIT_LOG = "audit_log"


NO_ROWS_CODE = "PGRST116"
AUTHORIZATION_CODES = {"42501", "PGRST301", "PGRST302"}
MISSING_TABLE_CODE = "42P01"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def translate_api_error(exc: APIError, table: Optional[str] = None) -> BackendError:
    """Map a postgrest APIError onto the error taxonomy."""
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    details = getattr(exc, "details", None)
    if code == NO_ROWS_CODE:
        return NotFoundError(message, code=code, details=details)
    if code in AUTHORIZATION_CODES or "row-level security" in message.lower():
        return AuthorizationError(message, code=code, details=details)
    if table:
        logger.error(f"Backend error on {table}: [{code}] {message}")
    return BackendError(message, code=code, details=details)


class BackendClient:
    """
    Configuration-gated handle to Supabase.

    Every data and auth method checks configuration first and raises
    ConfigurationError instead of attempting a request.
    """

    def __init__(self, url: str = "", key: str = "", client: Optional[Client] = None):
        self.url = url or ""
        self._has_key = bool(key)
        self._client = client
        if self._client is None and url and key:
            try:
                self._client = create_client(url, key)
            except Exception as e:
                # Malformed URL or key: stay in not-configured mode
                logger.warning(f"Supabase client could not be created: {e}")
                self._client = None
        if not self.is_configured():
            logger.warning("Supabase configuration missing. Backend operations are disabled.")

    def is_configured(self) -> bool:
        return bool(self.url and self._has_key and self._client is not None)

    @property
    def client(self) -> Client:
        if not self.is_configured():
            raise ConfigurationError()
        return self._client

    # Data primitives

    def create(self, table: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            result = self.client.table(table).insert(data).execute()
        except APIError as e:
            raise translate_api_error(e, table)
        return result.data[0] if result.data else None

    def insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            return []
        try:
            result = self.client.table(table).insert(rows).execute()
        except APIError as e:
            raise translate_api_error(e, table)
        return result.data or []

    def get_all(self, table: str, order_by: Optional[str] = None, desc: bool = False) -> List[Dict[str, Any]]:
        query = self.client.table(table).select("*")
        if order_by:
            query = query.order(order_by, desc=desc)
        try:
            result = query.execute()
        except APIError as e:
            raise translate_api_error(e, table)
        logger.debug(f"Fetched {len(result.data or [])} records from {table}")
        return result.data or []

    def get_one(self, table: str, column: str, value: Any) -> Optional[Dict[str, Any]]:
        """Single-row lookup; a missing row is a valid empty result."""
        try:
            result = self.client.table(table)\
                .select("*")\
                .eq(column, value)\
                .limit(1)\
                .execute()
        except APIError as e:
            error = translate_api_error(e, table)
            if isinstance(error, NotFoundError):
                return None
            raise error
        return result.data[0] if result.data else None

    def get_by_id(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        return self.get_one(table, "id", record_id)

    def select_where(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self.client.table(table).select("*")
        for column, value in filters.items():
            query = query.eq(column, value)
        if order_by:
            query = query.order(order_by, desc=desc)
        if limit:
            query = query.limit(limit)
        try:
            result = query.execute()
        except APIError as e:
            raise translate_api_error(e, table)
        return result.data or []

    def update(self, table: str, record_id: str, updates: Dict[str, Any], id_column: str = "id") -> Optional[Dict[str, Any]]:
        payload = {**updates, "updated_at": utc_now_iso()}
        try:
            result = self.client.table(table)\
                .update(payload)\
                .eq(id_column, record_id)\
                .execute()
        except APIError as e:
            raise translate_api_error(e, table)
        return result.data[0] if result.data else None

    def upsert(self, table: str, rows: List[Dict[str, Any]], on_conflict: str = "id") -> List[Dict[str, Any]]:
        """Insert-or-replace keyed on on_conflict in one request."""
        if not rows:
            return []
        try:
            result = self.client.table(table)\
                .upsert(rows, on_conflict=on_conflict)\
                .execute()
        except APIError as e:
            raise translate_api_error(e, table)
        return result.data or []

    def delete(self, table: str, record_id: str) -> bool:
        try:
            self.client.table(table).delete().eq("id", record_id).execute()
        except APIError as e:
            raise translate_api_error(e, table)
        return True

    def delete_many(self, table: str, record_ids: List[str]) -> bool:
        if not record_ids:
            return True
        try:
            self.client.table(table).delete().in_("id", list(record_ids)).execute()
        except APIError as e:
            raise translate_api_error(e, table)
        return True

    # Auth passthroughs

    def get_current_user(self) -> Optional[Any]:
        response = self.client.auth.get_user()
        return response.user if response else None

    def get_session(self) -> Optional[Any]:
        return self.client.auth.get_session()

    def get_user_for_token(self, token: str) -> Optional[Any]:
        response = self.client.auth.get_user(jwt=token)
        return response.user if response else None

    def sign_in(self, email: str, password: str) -> Any:
        return self.client.auth.sign_in_with_password({
            "email": email,
            "password": password
        })

    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> Any:
        return self.client.auth.sign_up({
            "email": email,
            "password": password,
            "options": {
                "data": metadata or {}
            }
        })

    def sign_out(self) -> None:
        self.client.auth.sign_out()

    def reset_password(self, email: str, redirect_to: Optional[str] = None) -> None:
        options = {"redirect_to": redirect_to} if redirect_to else {}
        self.client.auth.reset_password_for_email(email, options)

    def on_auth_state_change(self, callback: Callable[[Any, Optional[Any]], None]) -> Any:
        """Subscribe to sign-in/sign-out/refresh events. Caller must unsubscribe()."""
        return self.client.auth.on_auth_state_change(callback)

    # Admin passthroughs (service-role client only)

    def admin_create_user(self, email: str, password: str, user_metadata: Optional[Dict[str, Any]] = None) -> Any:
        response = self.client.auth.admin.create_user({
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": user_metadata or {}
        })
        return response.user

    def admin_delete_user(self, user_id: str) -> None:
        self.client.auth.admin.delete_user(user_id)

    # Status helpers

    def check_status(self) -> Dict[str, Any]:
        return {
            "is_configured": self.is_configured(),
            "url": self.url,
            "has_key": self._has_key,
            "client": self._client is not None,
        }

    def test_connection(self) -> Dict[str, Any]:
        """Query the providers table and classify the failure, if any."""
        if not self.is_configured():
            return {
                "success": False,
                "error": "Supabase not configured - missing environment variables",
                "details": {"has_url": bool(self.url), "has_key": self._has_key},
            }
        try:
            result = self._client.table(Tables.PROVIDERS).select("id").limit(1).execute()
        except APIError as e:
            message = getattr(e, "message", None) or str(e)
            code = getattr(e, "code", None)
            if code in AUTHORIZATION_CODES or "JWT" in message:
                return {"success": False, "error": "Invalid Supabase API key", "details": {"code": code}}
            if code == MISSING_TABLE_CODE or "does not exist" in message:
                return {
                    "success": False,
                    "error": "Database tables not found - run the schema setup first",
                    "details": {"code": code},
                }
            return {"success": False, "error": f"Database error: {message}", "details": {"code": code}}
        except Exception as e:
            logger.error(f"Supabase connection test failed: {e}")
            return {"success": False, "error": "Unable to connect to Supabase - check the project URL"}
        return {
            "success": True,
            "message": "Supabase connection and database access verified",
            "details": {
                "records_found": len(result.data or []),
                "project_id": re.sub(r"^https?://([^.]+)\..*", r"\1", self.url),
            },
        }


def create_backend(settings: Settings) -> BackendClient:
    return BackendClient(settings.supabase_url, settings.supabase_key)


def create_service_backend(settings: Settings) -> BackendClient:
    """Client with service_role key; bypasses RLS. Falls back to the public key."""
    if settings.supabase_service_role_key:
        return BackendClient(settings.supabase_url, settings.supabase_service_role_key)
    return create_backend(settings)


def get_backend(request: Request) -> BackendClient:
    return request.app.state.backend


def get_service_backend(request: Request) -> BackendClient:
    return request.app.state.service_backend
