# Event record (the only persisted entity)

from __future__ import annotations
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def new_event_id() -> str:
    return str(uuid.uuid4())


def to_local_naive(dt: datetime) -> datetime:
    """Aware datetimes are converted to local wall-clock time; naive ones pass through."""
    if dt.tzinfo is not None:
        return dt.astimezone().replace(tzinfo=None)
    return dt


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_event_id)
    description: str
    scheduled_at: datetime
    notified: bool = False

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("description must not be empty")
        return v

    @field_validator("scheduled_at")
    @classmethod
    def _local_time(cls, v: datetime) -> datetime:
        return to_local_naive(v)

    def as_notified(self) -> "Event":
        return self.model_copy(update={"notified": True})

    def to_record(self) -> dict:
        return self.model_dump(mode="json")
