from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, Any
from datetime import datetime
from enum import Enum


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Actor(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None


class AuditLogEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: Optional[str] = None
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    session_id: Optional[str] = None
    action: AuditAction
    table_name: str
    record_id: Optional[str] = None
    old_values: Optional[Any] = None
    new_values: Optional[Any] = None
    created_at: Optional[datetime] = None
