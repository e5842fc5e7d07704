"""Shared Pydantic base for camelCase JSON payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from backend.utils.time import as_utc


class CamelModel(BaseModel):
    """Serializes with camelCase keys; accepts camelCase or snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# SQLite hands back naive datetimes; responses always carry an explicit UTC offset.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
