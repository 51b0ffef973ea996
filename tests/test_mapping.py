from datetime import date, time

import pytest

from clinica.modules.catalog.mapping import provider_mapper
from clinica.modules.shifts.mapping import SHIFT_COLUMNS, shift_mapper
from clinica.modules.shifts.schemas import RecurringFrequency, Shift


SHIFT_ROW = {
    "id": "s1",
    "provider_id": "p1",
    "clinic_type_id": "c1",
    "medical_assistant_ids": ["ma2", "ma1"],
    "title": "Dr. Smith",
    "start_date": "2024-03-04",
    "end_date": "2024-03-04",
    "start_time": "09:00:00",
    "end_time": "17:30:00",
    "is_vacation": False,
    "notes": None,
    "color": "bg-blue-500",
    "recurring_rule": {"frequency": "WEEKLY", "daysOfWeek": [1, 3], "endDate": "2024-06-30"},
    "series_id": "series-1",
    "original_recurring_shift_id": None,
    "is_exception_instance": False,
    "exception_for_date": None,
    "created_by_user_id": "u1",
    "user_id": "u1",
    "created_at": "2024-03-01T08:00:00+00:00",
    "updated_at": "2024-03-02T08:00:00+00:00",
}


def test_shift_row_round_trip_is_stable():
    assert shift_mapper.to_row(shift_mapper.from_row(SHIFT_ROW)) == SHIFT_ROW


def test_shift_from_row_parses_storage_types():
    shift = shift_mapper.from_row(SHIFT_ROW)
    assert shift.start_date == date(2024, 3, 4)
    assert shift.end_time == time(17, 30)
    assert shift.recurring_rule.frequency == RecurringFrequency.WEEKLY
    assert shift.recurring_rule.days_of_week == [1, 3]
    assert shift.medical_assistant_ids == ["ma2", "ma1"]


def test_absent_optional_fields_map_to_none():
    shift = Shift(id="s2", provider_id="p1", start_date=date(2024, 3, 4), end_date=date(2024, 3, 4))
    row = shift_mapper.to_row(shift)
    assert set(row) == set(SHIFT_COLUMNS)
    assert row["clinic_type_id"] is None
    assert row["start_time"] is None
    assert row["recurring_rule"] is None
    assert row["exception_for_date"] is None


def test_zulu_timestamps_are_accepted():
    row = {"id": "p1", "name": "Dr. Smith", "color": "bg-red-500", "is_active": True,
           "created_at": "2024-03-01T08:00:00Z", "updated_at": None}
    provider = provider_mapper.from_row(row)
    assert provider.created_at.utcoffset().total_seconds() == 0


def test_provider_round_trip():
    row = {
        "id": "p1",
        "name": "Dr. Smith",
        "color": "bg-red-500",
        "is_active": False,
        "user_id": "u1",
        "created_at": "2024-03-01T08:00:00+00:00",
        "updated_at": None,
    }
    assert provider_mapper.to_row(provider_mapper.from_row(row)) == row


def test_incomplete_row_shape_is_refused():
    from clinica.database.mapping import RowMapper
    from clinica.modules.catalog.schemas import Provider

    mapper = RowMapper(Provider, ["id", "name", "color"], lambda p: {"id": p.id, "name": p.name}, provider_mapper.from_row)
    with pytest.raises(KeyError):
        mapper.to_row(Provider(id="p1", name="Dr. Smith", color="bg-red-500"))


@pytest.mark.parametrize("fraction", ["1", "12", "123", "1234", "12345", "123456"])
def test_postgres_fractional_seconds_are_parsed(fraction):
    row = {"id": "p1", "name": "Dr. Smith", "color": "bg-red-500", "is_active": True,
           "created_at": f"2024-06-01T12:00:00.{fraction}+00:00", "updated_at": None}
    provider = provider_mapper.from_row(row)
    assert provider.created_at.microsecond == int(fraction.ljust(6, "0"))
    assert provider.created_at.utcoffset().total_seconds() == 0


def test_fetch_all_accepts_trimmed_timestamps(backend):
    from clinica.database.supabase_client import Tables
    from clinica.modules.catalog.service import ProviderStore

    backend.tables[Tables.PROVIDERS] = [
        {"id": "p1", "name": "Dr. Smith", "color": "bg-red-500", "is_active": True, "user_id": None,
         "created_at": "2024-06-01T12:00:00.12+00:00", "updated_at": "2024-06-01T12:00:00.5+00:00"},
    ]
    store = ProviderStore(backend)
    store.fetch_all()
    assert store.error is None
    assert [p.id for p in store.data] == ["p1"]
