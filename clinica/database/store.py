"""
Generic cached record store: the per-entity sync layer.

A store owns one table's in-memory collection. The backend is the source of
truth; `data` is a cache filled by `fetch_all` and updated optimistically by
`save` / `delete`. Calls are not queued or locked: two overlapping `save`
calls diff against whatever the cache held when each started, and the last
one to finish decides the cache contents.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel

from clinica.core.errors import ValidationFailed, error_message
from clinica.database.mapping import RowMapper
from clinica.database.supabase_client import BackendClient
from clinica.modules.audit.schemas import Actor
from clinica.modules.audit.service import AuditLogger

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

Updater = Callable[[List[T]], List[T]]


class RecordStore(Generic[T]):
    table: str = ""
    order_by: str = "created_at"

    def __init__(
        self,
        backend: BackendClient,
        mapper: RowMapper[T],
        audit: Optional[AuditLogger] = None,
        table: Optional[str] = None,
    ):
        self.backend = backend
        self.mapper = mapper
        self.audit = audit
        if table:
            self.table = table
        self.data: List[T] = []
        self.loading = False
        self.loaded = False
        self.error: Optional[str] = None
        # Exception behind `error`, kept so the HTTP layer can pick a status
        self.failure: Optional[BaseException] = None

    def fail(self, exc: BaseException) -> None:
        self.failure = exc
        self.error = error_message(exc)

    def _clear_error(self) -> None:
        self.error = None
        self.failure = None

    def validate(self, record: T) -> List[str]:
        """Domain validation for a record about to be written. Empty means valid."""
        return []

    def prepare(self, record: T, is_new: bool, actor: Optional[Actor]) -> T:
        """Fill storage-required fields the caller left empty."""
        now = datetime.now(timezone.utc)
        updates = {}
        if getattr(record, "created_at", None) is None:
            updates["created_at"] = now
        if getattr(record, "updated_at", None) is None:
            updates["updated_at"] = now
        return record.model_copy(update=updates) if updates else record

    def get(self, record_id: str) -> Optional[T]:
        for record in self.data:
            if record.id == record_id:
                return record
        return None

    def fetch_all(self) -> List[T]:
        """Reload the whole table. On failure the last good cache is kept."""
        self.loading = True
        self._clear_error()
        try:
            rows = self.backend.get_all(self.table, order_by=self.order_by)
            self.data = self.mapper.from_rows(rows)
            self.loaded = True
            logger.debug(f"Loaded {len(self.data)} records from {self.table}")
        except Exception as e:
            self.fail(e)
            logger.error(f"Error fetching {self.table}: {self.error}")
        finally:
            self.loading = False
        return self.data

    def ensure_loaded(self) -> List[T]:
        if not self.loaded:
            self.fetch_all()
        return self.data

    def reset(self) -> None:
        """Forget cached records, e.g. after sign-out."""
        self.data = []
        self.loaded = False
        self._clear_error()

    def same_record(self, old: T, new: T) -> bool:
        return old == new

    def changed_records(self, incoming: List[T], snapshot: List[T]) -> List[T]:
        cached: Dict[str, T] = {r.id: r for r in snapshot}
        return [r for r in incoming if r.id not in cached or not self.same_record(cached[r.id], r)]

    def save(self, new_data: Union[List[T], Updater], actor: Optional[Actor] = None) -> Optional[List[T]]:
        """
        Upsert the records of new_data that differ from the cache, then make
        new_data the cache. Returns the new cache, or None with `error` set.
        Records missing from new_data are not deleted server side.
        """
        snapshot = list(self.data)
        try:
            incoming = list(new_data(snapshot) if callable(new_data) else new_data)
        except Exception as e:
            self.fail(e)
            logger.error(f"Error building new {self.table} collection: {self.error}")
            return None

        changed = self.changed_records(incoming, snapshot)
        if not changed:
            self._clear_error()
            self.data = incoming
            return self.data

        cached = {r.id: r for r in snapshot}
        prepared: Dict[str, T] = {}
        errors: List[str] = []
        for record in changed:
            ready = self.prepare(record, record.id not in cached, actor)
            errors.extend(self.validate(ready))
            prepared[ready.id] = ready
        if errors:
            self.fail(ValidationFailed(errors))
            logger.warning(f"Rejected {self.table} save: {self.error}")
            return None

        self.loading = True
        self._clear_error()
        try:
            self.backend.upsert(self.table, self.mapper.to_rows(list(prepared.values())))
        except Exception as e:
            self.fail(e)
            logger.error(f"Error saving {self.table}: {self.error}")
            return None
        finally:
            self.loading = False

        self.data = [prepared.get(r.id, r) for r in incoming]
        logger.info(f"Upserted {len(prepared)} of {len(incoming)} {self.table} records")

        if self.audit is not None:
            for record in prepared.values():
                old = cached.get(record.id)
                if old is None:
                    self.audit.log_create(self.table, record, actor=actor)
                else:
                    self.audit.log_update(self.table, old, record, actor=actor)
        return self.data

    def delete(self, record_id: str, actor: Optional[Actor] = None) -> bool:
        return self._delete([record_id], actor)

    def delete_many(self, record_ids: List[str], actor: Optional[Actor] = None) -> bool:
        return self._delete(list(record_ids), actor)

    def _delete(self, record_ids: List[str], actor: Optional[Actor]) -> bool:
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return True
        self.loading = True
        self._clear_error()
        try:
            if len(ids) == 1:
                self.backend.delete(self.table, ids[0])
            else:
                self.backend.delete_many(self.table, ids)
        except Exception as e:
            self.fail(e)
            logger.error(f"Error deleting from {self.table}: {self.error}")
            return False
        finally:
            self.loading = False

        doomed = set(ids)
        removed = [r for r in self.data if r.id in doomed]
        self.data = [r for r in self.data if r.id not in doomed]

        if self.audit is not None:
            for record in removed:
                self.audit.log_delete(self.table, record, actor=actor)
        return True
