"""Thread title derivation from the first user message."""

import re
from typing import Sequence

from mentra_models import NEW_THREAD_TITLE, Message

MAX_TITLE_WORDS = 5
MAX_TITLE_CHARS = 32
ELLIPSIS = "…"

# Extracted document text and the client's "Sent files:" line are not topic words
EXTRACTED_BLOCK_PATTERN = re.compile(r"--- Extracted from[\s\S]*$", re.IGNORECASE)
SENT_FILES_PATTERN = re.compile(r"^Sent files:.*$", re.IGNORECASE | re.MULTILINE)
WHITESPACE_PATTERN = re.compile(r"\s+")

# Conversational openers stripped from the start of the title, longest first
FILLER_PHRASES = [
    "i need help with",
    "could you please",
    "can you please",
    "would you please",
    "tell me about",
    "help me with",
    "could you",
    "can you",
    "would you",
    "how do i",
    "what is",
    "please",
]
FILLER_PATTERN = re.compile(
    r"^(?:" + "|".join(re.escape(p) for p in FILLER_PHRASES) + r")\b[\s,:;.!?-]*"
)


def clean_message_text(content: str) -> str:
    """Remove file noise, collapse whitespace and lower-case."""
    text = EXTRACTED_BLOCK_PATTERN.sub("", content)
    text = SENT_FILES_PATTERN.sub("", text)
    return WHITESPACE_PATTERN.sub(" ", text).strip().lower()


def strip_filler(text: str) -> str:
    """Strip leading filler phrases until none remain."""
    while True:
        stripped = FILLER_PATTERN.sub("", text, count=1).strip()
        if stripped == text:
            return text
        text = stripped


def derive_title(messages: Sequence[Message]) -> str:
    """Derive a short title from the first user message.

    Returns the default title when there is no user message or nothing is
    left after cleaning.
    """
    first_user = next((m for m in messages if m.role == "user"), None)
    if first_user is None:
        return NEW_THREAD_TITLE

    text = strip_filler(clean_message_text(first_user.content))
    words = text.split()[:MAX_TITLE_WORDS]
    title = " ".join(word[0].upper() + word[1:] for word in words)

    if len(title) > MAX_TITLE_CHARS:
        title = title[:MAX_TITLE_CHARS].rstrip() + ELLIPSIS
    return title or NEW_THREAD_TITLE
