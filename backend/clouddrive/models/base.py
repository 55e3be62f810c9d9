from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are treated as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Record(BaseModel):
    """A row loaded from the store. sqlite rows map straight onto the fields."""

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_row(cls, row):
        if row is None:
            return None
        return cls.model_validate(dict(row))

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_datetimes(cls, value):
        if isinstance(value, datetime):
            return as_utc(value)
        return value
