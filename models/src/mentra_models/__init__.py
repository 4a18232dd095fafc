"""Shared Pydantic models for mentra."""

from mentra_models.conversation import (
    NEW_THREAD_TITLE,
    Message,
    MessageCreate,
    Role,
    Thread,
    to_epoch_ms,
)

__all__ = [
    "NEW_THREAD_TITLE",
    "Message",
    "MessageCreate",
    "Role",
    "Thread",
    "to_epoch_ms",
]
