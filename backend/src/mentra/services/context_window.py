"""Context window - the bounded prompt sent to the model for each turn."""

from mentra_models import Message, Thread

DEFAULT_RECENT_TURNS = 12


def format_message(message: Message) -> str:
    return f"{message.role.upper()}: {message.content}"


def format_summary_block(summary: str) -> str:
    return f"CONVERSATION SUMMARY:\n{summary.strip()}\n\n"


class ContextWindowBuilder:
    """Builds a prompt from a thread's summary and its most recent turns.

    Structure:
    1. Summary of earlier conversation (if any)
    2. The last ``recent_turns`` messages, oldest first, as ``ROLE: content``
    """

    def __init__(self, recent_turns: int = DEFAULT_RECENT_TURNS):
        if recent_turns < 1:
            raise ValueError(f"recent_turns must be at least 1, got {recent_turns}")
        self.recent_turns = recent_turns

    def recent_messages(self, thread: Thread) -> list[Message]:
        return thread.messages[-self.recent_turns :]

    def build(self, thread: Thread) -> str:
        summary_block = format_summary_block(thread.summary) if thread.summary.strip() else ""
        recent_block = "\n".join(format_message(m) for m in self.recent_messages(thread))
        return f"{summary_block}{recent_block}"
