import logging
import secrets
import time
from typing import Any, List, Optional

from fastapi.encoders import jsonable_encoder

from clinica.core.errors import error_message
from clinica.database.supabase_client import BackendClient, Tables
from clinica.modules.audit.schemas import Actor, AuditAction, AuditLogEntry

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


def _snapshot(payload: Any) -> Any:
    if payload is None:
        return None
    return jsonable_encoder(payload)


class AuditLogger:
    """Best-effort writer for audit_log. Never raises."""

    def __init__(self, backend: BackendClient, session_id: Optional[str] = None):
        self.backend = backend
        self.session_id = session_id or generate_session_id()

    def _resolve_actor(self, actor: Optional[Actor]) -> Actor:
        if actor is not None and actor.id:
            return actor
        try:
            user = self.backend.get_current_user()
        except Exception as e:
            logger.debug(f"No session user for audit entry: {e}")
            user = None
        if user is None:
            return actor or Actor()
        return Actor(id=user.id, email=getattr(user, "email", None))

    def log(
        self,
        action: AuditAction,
        table_name: str,
        record_id: Optional[str] = None,
        old_data: Any = None,
        new_data: Any = None,
        actor: Optional[Actor] = None,
    ) -> bool:
        """Append an entry. Returns False (after logging) on any failure."""
        try:
            if not self.backend.is_configured():
                logger.warning("Supabase not available - skipping audit log")
                return False
            resolved = self._resolve_actor(actor)
            entry = {
                "user_id": resolved.id,
                "user_email": resolved.email,
                "session_id": self.session_id,
                "action": AuditAction(action).value,
                "table_name": table_name,
                "record_id": record_id,
                "old_values": _snapshot(old_data),
                "new_values": _snapshot(new_data),
            }
            logger.info(f"Audit {entry['action']} on {table_name} record={record_id} user={resolved.id}")
            self.backend.insert(Tables.AUDIT_LOG, [entry])
            return True
        except Exception as e:
            logger.error(f"Failed to log audit entry for {table_name}/{record_id}: {error_message(e)}")
            return False

    def log_create(self, table_name: str, record: Any, record_id: Optional[str] = None, actor: Optional[Actor] = None) -> bool:
        return self.log(AuditAction.CREATE, table_name, record_id or getattr(record, "id", None), new_data=record, actor=actor)

    def log_update(self, table_name: str, old: Any, new: Any, record_id: Optional[str] = None, actor: Optional[Actor] = None) -> bool:
        return self.log(AuditAction.UPDATE, table_name, record_id or getattr(new, "id", None), old_data=old, new_data=new, actor=actor)

    def log_delete(self, table_name: str, record: Any, record_id: Optional[str] = None, actor: Optional[Actor] = None) -> bool:
        return self.log(AuditAction.DELETE, table_name, record_id or getattr(record, "id", None), old_data=record, actor=actor)


class AuditService:
    def __init__(self, backend: BackendClient):
        self.backend = backend

    def list_entries(
        self,
        table_name: Optional[str] = None,
        record_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditLogEntry]:
        filters = {}
        if table_name:
            filters["table_name"] = table_name
        if record_id:
            filters["record_id"] = record_id
        rows = self.backend.select_where(
            Tables.AUDIT_LOG, filters, order_by="created_at", desc=True, limit=limit
        )
        return [AuditLogEntry(**row) for row in rows]
