import logging

from fastapi import HTTPException
from pydantic import ValidationError

from clinica.core.errors import to_http_exception
from clinica.database.supabase_client import BackendClient, Tables, utc_now_iso
from clinica.modules.user_settings.schemas import UserSettings, UserSettingsUpdate

logger = logging.getLogger(__name__)


class UserSettingsService:
    def __init__(self, backend: BackendClient):
        self.backend = backend

    def get_settings(self, user_id: str) -> UserSettings:
        """Stored settings for a user, or the defaults when none were saved."""
        try:
            row = self.backend.get_one(Tables.USER_SETTINGS, "user_id", user_id)
        except Exception as e:
            raise to_http_exception(e)
        if not row or not row.get("settings"):
            return UserSettings()
        try:
            return UserSettings.model_validate(row["settings"])
        except ValidationError as e:
            logger.warning(f"Ignoring malformed settings for {user_id}: {e}")
            return UserSettings()

    def save_settings(self, user_id: str, settings: UserSettings) -> UserSettings:
        payload = {
            "user_id": user_id,
            "settings": settings.model_dump(by_alias=True),
            "updated_at": utc_now_iso(),
        }
        try:
            self.backend.upsert(Tables.USER_SETTINGS, [payload], on_conflict="user_id")
        except Exception as e:
            raise to_http_exception(e)
        return settings

    def update_settings(self, user_id: str, changes: UserSettingsUpdate) -> UserSettings:
        """Merge a partial update into the stored settings."""
        current = self.get_settings(user_id)
        updates = changes.model_dump(exclude_unset=True, exclude_none=True)
        if not updates:
            return current
        try:
            merged = UserSettings.model_validate({**current.model_dump(), **updates})
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return self.save_settings(user_id, merged)
