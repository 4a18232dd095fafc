"""In-memory thread store.

Threads live for the lifetime of the process. Every mutation goes through
this class and runs under a single lock, so each create/append/delete is one
critical section. Callers only ever receive deep copies.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from mentra_models import NEW_THREAD_TITLE, Message, MessageCreate, Thread

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ThreadNotFoundError(LookupError):
    """Raised when a thread ID is not present in the store."""

    def __init__(self, thread_id: str):
        super().__init__(f"Thread not found: {thread_id}")
        self.thread_id = thread_id


class SessionStore:
    """Owns the mapping of thread ID to thread."""

    def __init__(self, greeting: str, clock: Clock | None = None):
        self._greeting = greeting
        self._clock = clock or utc_now
        self._threads: dict[str, Thread] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._threads)

    def __contains__(self, thread_id: object) -> bool:
        with self._lock:
            return thread_id in self._threads

    def _stamp(self, thread: Thread | None = None) -> datetime:
        """Current time, never earlier than the thread's last update."""
        now = self._clock()
        if thread is not None and now < thread.updated_at:
            return thread.updated_at
        return now

    def _require(self, thread_id: str) -> Thread:
        thread = self._threads.get(thread_id)
        if thread is None:
            raise ThreadNotFoundError(thread_id)
        return thread

    # ============= Thread Operations =============

    def create_thread(self) -> Thread:
        """Create a thread seeded with the assistant greeting."""
        with self._lock:
            now = self._stamp()
            thread = Thread(
                title=NEW_THREAD_TITLE,
                updated_at=now,
                messages=[Message(role="assistant", content=self._greeting, created_at=now)],
            )
            self._threads[thread.id] = thread
            snapshot = thread.model_copy(deep=True)
        logger.info(f"Created thread {snapshot.id}")
        return snapshot

    def get_thread(self, thread_id: str) -> Thread:
        """Get a snapshot of a thread.

        Raises:
            ThreadNotFoundError: If the thread does not exist

        """
        with self._lock:
            return self._require(thread_id).model_copy(deep=True)

    def list_threads(self) -> list[Thread]:
        """List all threads, most recently updated first."""
        with self._lock:
            # sorted() is stable, so ties keep insertion order
            ordered = sorted(
                self._threads.values(), key=lambda t: t.updated_at, reverse=True
            )
            return [thread.model_copy(deep=True) for thread in ordered]

    def delete_thread(self, thread_id: str) -> None:
        """Delete a thread.

        Raises:
            ThreadNotFoundError: If the thread does not exist

        """
        with self._lock:
            self._require(thread_id)
            del self._threads[thread_id]
        logger.info(f"Deleted thread {thread_id}")

    # ============= Message Operations =============

    def append_messages(self, thread_id: str, *drafts: MessageCreate) -> tuple[Thread, list[Message]]:
        """Atomically append one or more messages and bump updated_at.

        IDs and timestamps are assigned here, inside the lock, so append
        order and timestamp order always agree.

        Returns:
            Tuple of (thread snapshot, appended messages)

        Raises:
            ThreadNotFoundError: If the thread does not exist
            ValueError: If no messages were given

        """
        if not drafts:
            raise ValueError("append_messages() requires at least one message")

        with self._lock:
            thread = self._require(thread_id)
            now = self._stamp(thread)
            added = [
                Message(role=draft.role, content=draft.content, created_at=now)
                for draft in drafts
            ]
            thread.messages.extend(added)
            thread.updated_at = now
            return thread.model_copy(deep=True), added

    # ============= Metadata Operations =============

    def set_title(self, thread_id: str, title: str) -> bool:
        """Set the title if it is still the default.

        Returns:
            True if the title changed

        """
        with self._lock:
            thread = self._require(thread_id)
            if not thread.has_default_title or not title or title == NEW_THREAD_TITLE:
                return False
            thread.title = title
        logger.debug(f"Titled thread {thread_id}: {title!r}")
        return True

    def update_summary(
        self, thread_id: str, summary: str, summarized_through_id: str | None
    ) -> None:
        """Replace the running summary of older messages."""
        with self._lock:
            thread = self._require(thread_id)
            thread.summary = summary
            thread.summarized_through_id = summarized_through_id
