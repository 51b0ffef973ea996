import re

from clinica.core.errors import BackendError
from clinica.database.supabase_client import Tables
from clinica.modules.audit.schemas import Actor, AuditAction
from clinica.modules.audit.service import AuditLogger, AuditService, generate_session_id


def test_session_id_format():
    assert re.fullmatch(r"session_\d+_[0-9a-f]{9}", generate_session_id())


def test_log_writes_entry(backend, audit):
    assert audit.log(AuditAction.UPDATE, Tables.PROVIDERS, "p1", {"name": "A"}, {"name": "B"}, Actor(id="u1", email="a@b.c"))
    entry = backend.rows(Tables.AUDIT_LOG)[0]
    assert entry["session_id"] == "session_test"
    assert entry["action"] == "update"
    assert entry["user_email"] == "a@b.c"
    assert entry["old_values"] == {"name": "A"}


def test_log_uses_session_user_when_no_actor(backend, audit, admin):
    backend.sign_in("admin@example.com", "secret123")
    audit.log_create(Tables.PROVIDERS, {"id": "p1"}, record_id="p1")
    assert backend.rows(Tables.AUDIT_LOG)[0]["user_id"] == admin.user.id


def test_log_returns_false_when_not_configured(backend):
    backend.configured = False
    logger = AuditLogger(backend)
    assert logger.log(AuditAction.CREATE, Tables.PROVIDERS, "p1") is False


def test_log_never_raises(backend, audit):
    backend.fail_on[("insert", Tables.AUDIT_LOG)] = BackendError("permission denied")
    assert audit.log_delete(Tables.PROVIDERS, {"id": "p1"}, record_id="p1") is False


def test_list_entries_filters_by_table(backend, audit):
    audit.log_create(Tables.PROVIDERS, {"id": "p1"}, record_id="p1")
    audit.log_create(Tables.SHIFTS, {"id": "s1"}, record_id="s1")
    entries = AuditService(backend).list_entries(table_name=Tables.SHIFTS)
    assert [e.record_id for e in entries] == ["s1"]
    assert entries[0].action == AuditAction.CREATE
