"""Realize Reporter — Local Key/Value Storage Model."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class StoredValue(SQLModel, table=True):
    """One namespaced preference entry (primary rule, recent accounts, token).

    Values are JSON documents serialized from the pydantic models.
    """

    __tablename__ = "stored_values"

    key: str = Field(primary_key=True, description="Namespaced key, e.g. prefix + slug")
    value_json: str = Field(description="JSON-serialized value")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
