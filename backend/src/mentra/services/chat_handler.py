"""Chat handler - runs one inbound message through to a recorded reply.

Per request: validate the thread, ingest text and uploads, append the user
turn, build the context window, call the model, then append the assistant
turn and update metadata. A model failure (error or timeout) is absorbed:
an apology is appended in place of the answer so the thread stays usable,
and the caller is told the call failed.
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from mentra.db import SessionStore
from mentra.services.compaction import ConversationCompactor
from mentra.services.context_window import ContextWindowBuilder
from mentra.services.extraction import UploadedDocument
from mentra.services.ingestion import MessageIngestionPipeline
from mentra.services.model_gateway import ModelGateway
from mentra.services.titles import derive_title
from mentra_models import Message, MessageCreate, Thread

logger = logging.getLogger(__name__)

MODEL_FAILURE_REPLY = "Sorry — I hit an error talking to the AI service. Please try again."
EMPTY_REPLY = "Sorry — I couldn’t generate a reply."

TUTOR_PERSONA = (
    "You are Mentra, a helpful coursework tutor. "
    "If extracted document text appears in the conversation, use it directly. "
    "Be clear, friendly, and structured."
)


class ResponseStyle(str, Enum):
    """How the tutor should shape its answer."""

    CONCISE = "concise"
    STEP_BY_STEP = "step_by_step"
    DETAILED = "detailed"
    EXAM_READY = "exam_ready"
    BEGINNER = "beginner"

    @classmethod
    def parse(cls, value: str | None) -> "ResponseStyle":
        """Parse a client-supplied style, falling back to step-by-step."""
        if value:
            normalized = value.strip().lower().replace("-", "_")
            for style in cls:
                if style.value == normalized:
                    return style
        return cls.STEP_BY_STEP


STYLE_GUIDANCE = {
    ResponseStyle.CONCISE: "Keep the answer short and to the point.",
    ResponseStyle.STEP_BY_STEP: "Explain step-by-step.",
    ResponseStyle.DETAILED: "Give a thorough, detailed explanation with examples.",
    ResponseStyle.EXAM_READY: "Focus on what is likely to be examined: key definitions, formulas and common mistakes.",
    ResponseStyle.BEGINNER: "Assume no background knowledge and avoid jargon.",
}


def build_instructions(
    style: ResponseStyle = ResponseStyle.STEP_BY_STEP,
    include_practice: bool = True,
) -> str:
    """Build the system instructions for one reply."""
    parts = [TUTOR_PERSONA, STYLE_GUIDANCE[style]]
    if include_practice:
        parts.append("End with a short summary and 2 practice questions.")
    else:
        parts.append("End with a short summary.")
    return " ".join(parts)


class ChatStatus(str, Enum):
    """Outcome reported to the caller."""

    OK = "ok"
    MODEL_FAILED = "model_failed"


@dataclass
class ChatResult:
    """Result of processing a chat message."""

    status: ChatStatus
    message: Message
    thread: Thread
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == ChatStatus.OK


class ConversationOrchestrator:
    """Composes ingestion, storage, context building and the model call."""

    def __init__(
        self,
        store: SessionStore,
        gateway: ModelGateway,
        pipeline: MessageIngestionPipeline,
        window: ContextWindowBuilder,
        model_timeout: float = 60.0,
        compactor: ConversationCompactor | None = None,
        serialize_threads: bool = False,
    ):
        self.store = store
        self.gateway = gateway
        self.pipeline = pipeline
        self.window = window
        self.model_timeout = model_timeout
        self.compactor = compactor
        self.serialize_threads = serialize_threads
        self._thread_locks: dict[str, asyncio.Lock] = {}

    def _thread_lock(self, thread_id: str) -> asyncio.Lock:
        lock = self._thread_locks.get(thread_id)
        if lock is None:
            lock = self._thread_locks[thread_id] = asyncio.Lock()
        return lock

    def forget_thread(self, thread_id: str) -> None:
        """Drop per-thread state after the thread is deleted."""
        self._thread_locks.pop(thread_id, None)

    async def post_message(
        self,
        thread_id: str,
        text: str,
        documents: Sequence[UploadedDocument] = (),
        style: ResponseStyle = ResponseStyle.STEP_BY_STEP,
        include_practice: bool = True,
    ) -> ChatResult:
        """Process a user message and record the assistant's reply.

        Raises:
            ThreadNotFoundError: If the thread does not exist
            EmptyMessageError: If there is no text and no file content

        """
        # Validate before doing any extraction work
        self.store.get_thread(thread_id)
        content = await self.pipeline.ingest(text, documents)

        async with AsyncExitStack() as stack:
            if self.serialize_threads:
                await stack.enter_async_context(self._thread_lock(thread_id))

            thread, _ = self.store.append_messages(
                thread_id, MessageCreate(role="user", content=content)
            )
            prompt = self.window.build(thread)
            instructions = build_instructions(style, include_practice)

            error: str | None = None
            try:
                reply = await asyncio.wait_for(
                    self.gateway.complete(instructions, prompt),
                    timeout=self.model_timeout,
                )
                reply = reply.strip() or EMPTY_REPLY
            except asyncio.TimeoutError:
                logger.error(f"Model call timed out after {self.model_timeout}s for thread {thread_id}")
                reply, error = MODEL_FAILURE_REPLY, "Model request timed out"
            except Exception as e:
                logger.exception(f"Model call failed for thread {thread_id}: {e}")
                reply, error = MODEL_FAILURE_REPLY, "Model request failed"

            thread, message = self._record_reply(thread_id, reply)

        if error is None and self.compactor is not None:
            self.compactor.trigger(thread)

        return ChatResult(
            status=ChatStatus.OK if error is None else ChatStatus.MODEL_FAILED,
            message=message,
            thread=thread,
            error=error,
        )

    def _record_reply(self, thread_id: str, reply: str) -> tuple[Thread, Message]:
        """Append the assistant turn and derive the title if still default."""
        thread, (message,) = self.store.append_messages(
            thread_id, MessageCreate(role="assistant", content=reply)
        )
        if thread.has_default_title and self.store.set_title(thread_id, derive_title(thread.messages)):
            thread = self.store.get_thread(thread_id)
        return thread, message
