# tests/conftest.py
import copy
import threading
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from clinica.config.permissions_config import UserRole, UserStatus
from clinica.config.settings import Settings
from clinica.database.supabase_client import Tables
from clinica.main import create_app
from clinica.modules.audit.service import AuditLogger
from clinica.modules.auth.service import clear_token_cache
from clinica.modules.users.schemas import UserProfile


class FakeBackend:
    """
    In-memory stand-in for BackendClient. Rows live in per-table lists;
    `fail_on` maps a method name (or (method, table)) to an exception to raise.
    """

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.calls: List[tuple] = []
        self.fail_on: Dict[Any, Exception] = {}
        self.passwords: Dict[str, str] = {}
        self.auth_users: Dict[str, SimpleNamespace] = {}
        self.tokens: Dict[str, SimpleNamespace] = {}
        self.deleted_auth_users: List[str] = []
        self.session: Optional[SimpleNamespace] = None
        self.listeners: List[Callable] = []
        self.slow_tables: set = set()
        self.release = threading.Event()

    # Helpers

    def _check(self, method: str, table: Optional[str] = None) -> None:
        self.calls.append((method, table))
        if not self.configured:
            from clinica.core.errors import ConfigurationError
            raise ConfigurationError()
        for key in ((method, table), method):
            if key in self.fail_on:
                raise self.fail_on[key]

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables[table]

    def write_calls(self, table: str) -> List[tuple]:
        return [c for c in self.calls if c[1] == table and c[0] in ("create", "insert", "upsert", "update", "delete", "delete_many")]

    def _notify(self, event: str, session: Optional[SimpleNamespace]) -> None:
        for listener in list(self.listeners):
            listener(event, session)

    def add_user(
        self,
        email: str,
        password: str = "secret123",
        role: UserRole = UserRole.ADMIN,
        status: UserStatus = UserStatus.APPROVED,
        with_profile: bool = True,
        is_active: bool = True,
    ) -> SimpleNamespace:
        user_id = str(uuid.uuid4())
        user = SimpleNamespace(id=user_id, email=email, user_metadata={}, app_metadata={})
        self.auth_users[user_id] = user
        self.passwords[email] = password
        token = f"token-{user_id}"
        self.tokens[token] = user
        if with_profile:
            self.tables[Tables.USER_PROFILES].append({
                "id": user_id,
                "email": email,
                "full_name": None,
                "role": role.value,
                "status": status.value,
                "is_active": is_active,
                "approved_by": None,
                "approved_at": None,
                "notes": None,
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
        return SimpleNamespace(user=user, token=token, headers={"Authorization": f"Bearer {token}"})

    # BackendClient interface

    def is_configured(self) -> bool:
        return self.configured

    def create(self, table: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._check("create", table)
        row = copy.deepcopy(data)
        row.setdefault("id", str(uuid.uuid4()))
        self.tables[table].append(row)
        return copy.deepcopy(row)

    def insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self._check("insert", table)
        inserted = []
        for data in rows:
            row = copy.deepcopy(data)
            row.setdefault("id", str(uuid.uuid4()))
            self.tables[table].append(row)
            inserted.append(copy.deepcopy(row))
        return inserted

    def get_all(self, table: str, order_by: Optional[str] = None, desc: bool = False) -> List[Dict[str, Any]]:
        self._check("get_all", table)
        rows = [copy.deepcopy(r) for r in self.tables[table]]
        if order_by:
            rows.sort(key=lambda r: str(r.get(order_by) or ""), reverse=desc)
        return rows

    def get_one(self, table: str, column: str, value: Any) -> Optional[Dict[str, Any]]:
        self._check("get_one", table)
        if table in self.slow_tables:
            self.release.wait(5)
        for row in self.tables[table]:
            if row.get(column) == value:
                return copy.deepcopy(row)
        return None

    def get_by_id(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        return self.get_one(table, "id", record_id)

    def select_where(self, table, filters, order_by=None, desc=False, limit=None):
        self._check("select_where", table)
        rows = [copy.deepcopy(r) for r in self.tables[table] if all(r.get(k) == v for k, v in filters.items())]
        if order_by:
            rows.sort(key=lambda r: str(r.get(order_by) or ""), reverse=desc)
        return rows[:limit] if limit else rows

    def update(self, table: str, record_id: str, updates: Dict[str, Any], id_column: str = "id"):
        self._check("update", table)
        for row in self.tables[table]:
            if row.get(id_column) == record_id:
                row.update(copy.deepcopy(updates))
                row["updated_at"] = datetime.now(timezone.utc).isoformat()
                return copy.deepcopy(row)
        return None

    def upsert(self, table: str, rows: List[Dict[str, Any]], on_conflict: str = "id") -> List[Dict[str, Any]]:
        self._check("upsert", table)
        stored = self.tables[table]
        for data in rows:
            row = copy.deepcopy(data)
            for i, existing in enumerate(stored):
                if existing.get(on_conflict) == row.get(on_conflict):
                    stored[i] = {**existing, **row}
                    break
            else:
                row.setdefault("id", str(uuid.uuid4()))
                stored.append(row)
        return copy.deepcopy(rows)

    def delete(self, table: str, record_id: str) -> bool:
        self._check("delete", table)
        self.tables[table] = [r for r in self.tables[table] if r.get("id") != record_id]
        return True

    def delete_many(self, table: str, record_ids: List[str]) -> bool:
        self._check("delete_many", table)
        doomed = set(record_ids)
        self.tables[table] = [r for r in self.tables[table] if r.get("id") not in doomed]
        return True

    def get_current_user(self):
        self._check("get_current_user")
        return self.session.user if self.session else None

    def get_session(self):
        self._check("get_session")
        return self.session

    def get_user_for_token(self, token: str):
        self._check("get_user_for_token")
        return self.tokens.get(token)

    def sign_in(self, email: str, password: str):
        self._check("sign_in")
        if self.passwords.get(email) != password:
            raise Exception("Invalid login credentials")
        user = next(u for u in self.auth_users.values() if u.email == email)
        token = next(t for t, u in self.tokens.items() if u.id == user.id)
        self.session = SimpleNamespace(user=user, access_token=token)
        self._notify("SIGNED_IN", self.session)
        return SimpleNamespace(user=user, session=self.session)

    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None):
        self._check("sign_up")
        if email in self.passwords:
            raise Exception("User already registered")
        user_id = str(uuid.uuid4())
        user = SimpleNamespace(id=user_id, email=email, user_metadata=metadata or {}, app_metadata={})
        self.auth_users[user_id] = user
        self.passwords[email] = password
        self.tokens[f"token-{user_id}"] = user
        return SimpleNamespace(user=user, session=None)

    def sign_out(self) -> None:
        self._check("sign_out")
        self.session = None
        self._notify("SIGNED_OUT", None)

    def reset_password(self, email: str, redirect_to: Optional[str] = None) -> None:
        self._check("reset_password")

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        return SimpleNamespace(unsubscribe=lambda: self.listeners.remove(callback))

    def admin_create_user(self, email: str, password: str, user_metadata: Optional[Dict[str, Any]] = None):
        self._check("admin_create_user")
        if email in self.passwords:
            raise Exception("A user with this email address has already been registered")
        user_id = str(uuid.uuid4())
        user = SimpleNamespace(id=user_id, email=email, user_metadata=user_metadata or {}, app_metadata={})
        self.auth_users[user_id] = user
        self.passwords[email] = password
        return user

    def admin_delete_user(self, user_id: str) -> None:
        self._check("admin_delete_user")
        user = self.auth_users.pop(user_id, None)
        if user is not None:
            self.passwords.pop(user.email, None)
        self.deleted_auth_users.append(user_id)

    def check_status(self) -> Dict[str, Any]:
        return {"is_configured": self.configured, "url": "", "has_key": self.configured, "client": self.configured}

    def test_connection(self) -> Dict[str, Any]:
        if not self.configured:
            return {"success": False, "error": "Supabase not configured - missing environment variables"}
        return {"success": True, "message": "Supabase connection and database access verified"}


@pytest.fixture(autouse=True)
def _reset_token_cache():
    clear_token_cache()
    yield
    clear_token_cache()


@pytest.fixture
def backend():
    fake = FakeBackend()
    yield fake
    fake.release.set()


@pytest.fixture
def audit(backend):
    return AuditLogger(backend, session_id="session_test")


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        supabase_url="https://example.supabase.co",
        supabase_key="anon-key",
        profile_fetch_timeout_sec=0.1,
        environment="test",
    )


@pytest.fixture
def app(backend, test_settings):
    return create_app(settings=test_settings, backend=backend, service_backend=backend)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin(backend):
    return backend.add_user("admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def admin_profile(backend, admin):
    row = backend.get_by_id(Tables.USER_PROFILES, admin.user.id)
    return UserProfile(**row)


@pytest.fixture
def actor(admin):
    from clinica.modules.audit.schemas import Actor
    return Actor(id=admin.user.id, email=admin.user.email)
