"""
Error taxonomy shared by the backend adapter, the record stores and the routes.
"""

from typing import Any, List, Optional

from fastapi import HTTPException


class BackendError(Exception):
    """Base class for failures reported by (or on the way to) the backend."""

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class ConfigurationError(BackendError):
    """Supabase URL or key missing; raised before any network call."""

    def __init__(self, message: str = "Supabase not configured"):
        super().__init__(message, code="not_configured")


class AuthorizationError(BackendError):
    """Row-level policy or permission rejection, surfaced verbatim."""


class NotFoundError(BackendError):
    pass


class MalformedRecordError(BackendError):
    """A stored row that does not fit its model, e.g. a null status."""

    def __init__(self, table: str, record_id: Any, reason: str):
        super().__init__(f"Malformed {table} record {record_id}: {reason}", code="malformed_record")
        self.table = table
        self.record_id = record_id


class ProfileTimeoutError(BackendError):
    def __init__(self, timeout: float):
        super().__init__(f"Profile query timeout after {timeout:g}s", code="profile_timeout")
        self.timeout = timeout


class ValidationFailed(ValueError):
    """Domain validation failed; carries every message, not just the first."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


def error_message(exc: BaseException) -> str:
    if isinstance(exc, BackendError):
        return exc.message
    return str(exc) or exc.__class__.__name__


class InvalidTransitionError(ValueError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change status from {current} to {target}")
        self.current = current
        self.target = target


def to_http_exception(exc: BaseException) -> HTTPException:
    """Translate a taxonomy error into the HTTP status routes report."""
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=503, detail=exc.message)
    if isinstance(exc, AuthorizationError):
        return HTTPException(status_code=403, detail=exc.message)
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=exc.message)
    if isinstance(exc, ProfileTimeoutError):
        return HTTPException(status_code=504, detail=exc.message)
    if isinstance(exc, MalformedRecordError):
        return HTTPException(status_code=502, detail=exc.message)
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValidationFailed):
        return HTTPException(status_code=400, detail=exc.errors)
    return HTTPException(status_code=500, detail=error_message(exc))
