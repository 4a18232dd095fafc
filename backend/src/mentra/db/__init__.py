"""Thread storage."""

from mentra.db.memory import SessionStore, ThreadNotFoundError

__all__ = ["SessionStore", "ThreadNotFoundError"]
