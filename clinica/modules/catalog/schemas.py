from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime


class CatalogItem(BaseModel):
    """Shared shape of providers, clinic types and medical assistants."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    name: str
    color: str
    is_active: bool = True
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Provider(CatalogItem):
    pass


class ClinicType(CatalogItem):
    pass


class MedicalAssistant(CatalogItem):
    pass


class CatalogItemCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    color: str
    is_active: bool = True


class CatalogItemUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None


class CatalogActiveUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_active: bool
