"""
Bidirectional transforms between domain records and storage rows.

Domain records are pydantic models (snake_case attributes, camelCase on the
API). Storage rows are plain dicts keyed by column name. Every column of a
row shape is always emitted; absent optional values become None.
"""

from datetime import date, datetime, time
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter

T = TypeVar("T", bound=BaseModel)

_date = TypeAdapter(date)
_time = TypeAdapter(time)
_datetime = TypeAdapter(datetime)


def date_to_str(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def time_to_str(value: Optional[time]) -> Optional[str]:
    return value.strftime("%H:%M:%S") if value is not None else None


def datetime_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return _date.validate_python(str(value)[:10])


def parse_time(value: Any) -> Optional[time]:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    return _time.validate_python(str(value))


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    # Postgres trims trailing zeros from fractional seconds
    return _datetime.validate_python(str(value))


class RowMapper(Generic[T]):
    """Pairs a domain model with its to_row/from_row transforms."""

    def __init__(
        self,
        model: Type[T],
        columns: List[str],
        to_row: Callable[[T], Dict[str, Any]],
        from_row: Callable[[Dict[str, Any]], T],
    ):
        self.model = model
        self.columns = columns
        self._to_row = to_row
        self._from_row = from_row

    def to_row(self, record: T) -> Dict[str, Any]:
        row = self._to_row(record)
        missing = [c for c in self.columns if c not in row]
        if missing:
            raise KeyError(f"{self.model.__name__} row is missing columns: {missing}")
        return row

    def from_row(self, row: Dict[str, Any]) -> T:
        return self._from_row(row)

    def to_rows(self, records: List[T]) -> List[Dict[str, Any]]:
        return [self.to_row(r) for r in records]

    def from_rows(self, rows: List[Dict[str, Any]]) -> List[T]:
        return [self.from_row(r) for r in rows]
