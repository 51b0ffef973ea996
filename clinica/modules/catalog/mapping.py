from typing import Any, Dict, Type, TypeVar

from clinica.database.mapping import RowMapper, datetime_to_str, parse_datetime
from clinica.modules.catalog.schemas import CatalogItem, ClinicType, MedicalAssistant, Provider

C = TypeVar("C", bound=CatalogItem)

CATALOG_COLUMNS = ["id", "name", "color", "is_active", "user_id", "created_at", "updated_at"]


def catalog_to_row(item: CatalogItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "color": item.color,
        "is_active": item.is_active,
        "user_id": item.user_id,
        "created_at": datetime_to_str(item.created_at),
        "updated_at": datetime_to_str(item.updated_at),
    }


def catalog_mapper(model: Type[C]) -> RowMapper[C]:
    def from_row(row: Dict[str, Any]) -> C:
        return model(
            id=row["id"],
            name=row["name"],
            color=row["color"],
            is_active=row.get("is_active", True),
            user_id=row.get("user_id"),
            created_at=parse_datetime(row.get("created_at")),
            updated_at=parse_datetime(row.get("updated_at")),
        )

    return RowMapper(model, CATALOG_COLUMNS, catalog_to_row, from_row)


provider_mapper = catalog_mapper(Provider)
clinic_type_mapper = catalog_mapper(ClinicType)
medical_assistant_mapper = catalog_mapper(MedicalAssistant)
