"""Conversation thread and message models."""

from datetime import datetime, timezone
from typing import Literal
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

NEW_THREAD_TITLE = "New Chat"

Role = Literal["user", "assistant"]


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    """Convert a timestamp to epoch milliseconds (the client wire format)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


class MessageCreate(BaseModel):
    """A message waiting to be appended; the store assigns id and timestamp."""

    role: Role = Field(..., description="Message role")
    content: str = Field(..., description="Fully assembled message text")


class Message(BaseModel):
    """A single turn in a thread. Immutable once appended."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(default_factory=_uuid, description="Unique message ID")
    role: Role = Field(..., description="Message role")
    content: str = Field(..., description="Message content")
    created_at: datetime = Field(default_factory=_utcnow, description="Creation timestamp")

    @field_serializer("created_at", when_used="json")
    def _serialize_created_at(self, value: datetime) -> int:
        return to_epoch_ms(value)


class Thread(BaseModel):
    """A conversation thread (session)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(default_factory=_uuid, description="Unique thread ID")
    title: str = Field(NEW_THREAD_TITLE, description="Human-readable label")
    updated_at: datetime = Field(default_factory=_utcnow, description="Last append timestamp")
    messages: list[Message] = Field(default_factory=list, description="Messages in conversation order")
    summary: str = Field("", description="Condensed text of earlier turns")
    summarized_through_id: str | None = Field(
        None, description="ID of last message included in summary"
    )

    @field_serializer("updated_at", when_used="json")
    def _serialize_updated_at(self, value: datetime) -> int:
        return to_epoch_ms(value)

    @property
    def has_default_title(self) -> bool:
        return self.title == NEW_THREAD_TITLE
