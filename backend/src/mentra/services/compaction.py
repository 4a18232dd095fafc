"""Async conversation compaction service.

Summarizes messages that have slid out of the context window so older
context is not lost. Runs in the background after a reply is recorded and
never blocks or fails the chat request.
"""

import asyncio
import logging

from mentra.db import SessionStore, ThreadNotFoundError
from mentra.services.model_gateway import ModelGateway, ModelGatewayError
from mentra_models import Message, Thread

logger = logging.getLogger(__name__)

# Summarize once this many messages outside the window are unsummarized
DEFAULT_COMPACTION_THRESHOLD = 10

SUMMARY_INSTRUCTIONS = (
    "You condense tutoring conversations. Reply with the summary only."
)


def format_transcript(messages: list[Message]) -> str:
    formatted = []
    for msg in messages:
        role = "Student" if msg.role == "user" else "Tutor"
        formatted.append(f"{role}: {msg.content}")
    return "\n\n".join(formatted)


def build_summary_prompt(messages: list[Message], existing_summary: str = "") -> str:
    """Build the summarization prompt, folding in any previous summary."""
    previous = f"Previous summary:\n{existing_summary}\n\nNew messages to incorporate:\n" if existing_summary else ""

    return f"""Summarize this tutoring conversation concisely, preserving key information:
- Topics and course material covered
- Documents the student shared and what they contained
- Where the student struggled and what was already explained
- Anything needed to continue the conversation naturally

{previous}Conversation to summarize:
{format_transcript(messages)}

Write a concise summary (1-3 paragraphs) that captures the essential context."""


def messages_to_compact(thread: Thread, recent_turns: int) -> list[Message]:
    """Messages outside the recent window that are not yet in the summary."""
    older = thread.messages[:-recent_turns] if len(thread.messages) > recent_turns else []
    if thread.summarized_through_id is None:
        return older

    for index, msg in enumerate(older):
        if msg.id == thread.summarized_through_id:
            return older[index + 1 :]
    # Summarized message is still inside the window
    return []


class ConversationCompactor:
    """Keeps ``Thread.summary`` up to date as the window slides."""

    def __init__(
        self,
        store: SessionStore,
        gateway: ModelGateway,
        recent_turns: int,
        threshold: int = DEFAULT_COMPACTION_THRESHOLD,
    ):
        self.store = store
        self.gateway = gateway
        self.recent_turns = recent_turns
        self.threshold = threshold
        self._tasks: set[asyncio.Task] = set()

    def needs_compaction(self, thread: Thread) -> bool:
        return len(messages_to_compact(thread, self.recent_turns)) >= self.threshold

    async def compact(self, thread_id: str) -> bool:
        """Summarize pending older messages of a thread.

        Returns:
            True if the summary was updated

        """
        try:
            thread = self.store.get_thread(thread_id)
        except ThreadNotFoundError:
            logger.warning(f"Thread {thread_id} not found for compaction")
            return False

        pending = messages_to_compact(thread, self.recent_turns)
        if len(pending) < self.threshold:
            return False

        logger.info(f"Starting compaction for thread {thread_id} ({len(pending)} messages)")

        try:
            new_summary = await self.gateway.complete(
                SUMMARY_INSTRUCTIONS,
                build_summary_prompt(pending, thread.summary),
            )
        except ModelGatewayError as e:
            logger.error(f"Compaction failed for thread {thread_id}: {e}")
            return False

        if not new_summary.strip():
            logger.warning(f"Failed to generate summary for thread {thread_id}")
            return False

        final_summary = f"{thread.summary}\n\n{new_summary.strip()}" if thread.summary else new_summary.strip()

        try:
            self.store.update_summary(thread_id, final_summary, pending[-1].id)
        except ThreadNotFoundError:
            logger.info(f"Thread {thread_id} deleted during compaction")
            return False

        logger.info(f"Compaction complete for thread {thread_id}: summarized {len(pending)} messages")
        return True

    def trigger(self, thread: Thread) -> asyncio.Task | None:
        """Fire-and-forget compaction if the thread needs it."""
        if not self.needs_compaction(thread):
            return None

        task = asyncio.create_task(self._compact_in_background(thread.id))
        # Strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Scheduled compaction for thread {thread.id}")
        return task

    async def _compact_in_background(self, thread_id: str) -> None:
        try:
            await self.compact(thread_id)
        except Exception:
            logger.exception(f"Compaction crashed for thread {thread_id}")
