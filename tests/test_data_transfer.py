from datetime import date

import pytest

from clinica.core.errors import BackendError, ValidationFailed
from clinica.database.supabase_client import Tables
from clinica.modules.catalog.schemas import Provider
from clinica.modules.catalog.service import ClinicTypeStore, MedicalAssistantStore, ProviderStore
from clinica.modules.data_transfer.service import DataTransferService, merge_records, parse_backup
from clinica.modules.shifts.schemas import DEFAULT_EVENT_COLOR
from clinica.modules.shifts.service import ShiftStore
from clinica.modules.user_settings.schemas import UserSettings


@pytest.fixture
def stores(backend, audit):
    return {
        Tables.PROVIDERS: ProviderStore(backend, audit),
        Tables.CLINIC_TYPES: ClinicTypeStore(backend, audit),
        Tables.MEDICAL_ASSISTANTS: MedicalAssistantStore(backend, audit),
        Tables.SHIFTS: ShiftStore(backend, audit),
    }


@pytest.fixture
def service(stores):
    return DataTransferService(stores)


def _backup(**sections):
    payload = {
        "providers": [{"id": "p1", "name": "Dr. Smith", "color": "bg-blue-500"}],
        "shifts": [{
            "id": "s1",
            "providerId": "p1",
            "startDate": "2024-03-04",
            "startTime": "09:00:00",
            "endTime": "17:00:00",
        }],
    }
    payload.update(sections)
    return payload


class TestParseBackup:
    def test_rejects_non_object(self):
        with pytest.raises(ValidationFailed) as exc:
            parse_backup(["providers"])
        assert exc.value.errors == ["Invalid backup file format"]

    def test_rejects_payload_without_sections(self):
        with pytest.raises(ValidationFailed) as exc:
            parse_backup({"version": "1.0.5"})
        assert exc.value.errors == ["Backup contains no providers, clinics, medicalAssistants or shifts"]

    def test_collects_every_problem(self):
        with pytest.raises(ValidationFailed) as exc:
            parse_backup({"clinics": "none", "shifts": [{"id": "s1"}]})
        assert exc.value.errors[0] == "Missing or invalid clinics data"
        assert exc.value.errors[1].startswith("Invalid shifts data at index 0: ")
        assert "providerId" in exc.value.errors[1] or "provider_id" in exc.value.errors[1]

    def test_absent_sections_are_empty(self):
        parsed = parse_backup({"providers": []})
        assert parsed == {"providers": [], "clinics": [], "medicalAssistants": [], "shifts": []}


def test_merge_replaces_by_id_and_appends():
    existing = [
        Provider(id="p1", name="Dr. Smith", color="bg-blue-500"),
        Provider(id="p2", name="Dr. Jones", color="bg-red-500"),
    ]
    incoming = [
        Provider(id="p3", name="Dr. Adams", color="bg-green-500"),
        Provider(id="p1", name="Dr. Smithers", color="bg-blue-500"),
    ]
    merged = merge_records(existing, incoming)
    assert [(p.id, p.name) for p in merged] == [("p1", "Dr. Smithers"), ("p2", "Dr. Jones"), ("p3", "Dr. Adams")]


def test_import_fills_defaults_and_audits(service, backend, actor):
    result = service.import_data(_backup(medicalAssistants=[{"name": "Alex Chen"}]), actor=actor)

    assert result.success
    assert result.counts == {"providers": 1, "medicalAssistants": 1, "shifts": 1}
    assert result.imported == 3

    shift = backend.rows(Tables.SHIFTS)[0]
    assert shift["end_date"] == "2024-03-04"
    assert shift["color"] == DEFAULT_EVENT_COLOR
    assert shift["created_by_user_id"] == actor.id

    assistant = backend.rows(Tables.MEDICAL_ASSISTANTS)[0]
    assert assistant["id"]
    assert assistant["color"] == "bg-orange-500"
    assert assistant["is_active"] is True

    audited = {row["table_name"] for row in backend.rows(Tables.AUDIT_LOG)}
    assert audited == {Tables.PROVIDERS, Tables.MEDICAL_ASSISTANTS, Tables.SHIFTS}


def test_import_keeps_records_it_does_not_mention(service, backend, stores, actor):
    backend.tables[Tables.PROVIDERS] = [
        {"id": "p0", "name": "Dr. Jones", "color": "bg-red-500", "is_active": True,
         "created_at": "2024-01-01T00:00:00+00:00"},
    ]
    service.import_data(_backup(), actor=actor)
    assert sorted(r["id"] for r in backend.rows(Tables.PROVIDERS)) == ["p0", "p1"]
    assert [p.id for p in stores[Tables.PROVIDERS].data] == ["p0", "p1"]


def test_invalid_records_are_rejected_before_writing(service, backend, actor):
    backup = _backup(providers=[{"id": "p1", "name": "X", "color": "bg-blue-500"}])
    with pytest.raises(ValidationFailed):
        service.import_data(backup, actor=actor)
    assert backend.write_calls(Tables.PROVIDERS) == []
    assert backend.write_calls(Tables.SHIFTS) == []


def test_failure_stops_later_tables(service, backend, actor):
    backend.fail_on[("upsert", Tables.SHIFTS)] = BackendError("disk full")
    with pytest.raises(BackendError):
        service.import_data(_backup(), actor=actor)
    assert [r["id"] for r in backend.rows(Tables.PROVIDERS)] == ["p1"]
    assert backend.rows(Tables.SHIFTS) == []
    assert service.counts == {"providers": 1}


def test_export_reads_fresh_data(service, backend, stores):
    stores[Tables.PROVIDERS].fetch_all()
    backend.tables[Tables.PROVIDERS].append(
        {"id": "p9", "name": "Dr. Late", "color": "bg-blue-500", "is_active": True}
    )
    export = service.export_data(UserSettings())
    assert [p.id for p in export.providers] == ["p9"]
    assert export.user_settings == UserSettings()
    assert export.version == "1.0.5"


def test_export_failure_is_raised(service, backend):
    backend.fail_on[("get_all", Tables.SHIFTS)] = BackendError("network down")
    with pytest.raises(BackendError):
        service.export_data()


def test_imported_shift_dates(service, stores, actor):
    service.import_data(_backup(), actor=actor)
    shift = stores[Tables.SHIFTS].get("s1")
    assert shift.start_date == shift.end_date == date(2024, 3, 4)
