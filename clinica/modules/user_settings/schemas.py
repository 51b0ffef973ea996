from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Literal, Optional


CalendarView = Literal["month", "week", "day"]


class UserSettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    default_calendar_view: CalendarView = "month"
    week_starts_on: Literal[0, 1] = 0  # 0 = Sunday, 1 = Monday


class UserSettingsUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    default_calendar_view: Optional[CalendarView] = None
    week_starts_on: Optional[Literal[0, 1]] = None
