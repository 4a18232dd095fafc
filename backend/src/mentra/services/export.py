"""Markdown export of a thread transcript."""

import re
from datetime import datetime, timezone

from mentra_models import Thread

DEFAULT_EXPORT_TITLE = "Mentra Chat"
UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')


def export_filename(thread: Thread) -> str:
    title = UNSAFE_FILENAME_CHARS.sub("-", thread.title or DEFAULT_EXPORT_TITLE)
    return f"{title}.md"


def _format_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def render_markdown(thread: Thread, exported_at: datetime | None = None) -> str:
    """Render a thread as a markdown transcript."""
    exported_at = exported_at or datetime.now(timezone.utc)
    lines = [
        f"# {thread.title or DEFAULT_EXPORT_TITLE}",
        "",
        f"Exported: {_format_time(exported_at)}",
        "",
    ]
    for msg in thread.messages:
        who = "User" if msg.role == "user" else "Mentra"
        lines.append(f"## {who} — {_format_time(msg.created_at)}")
        lines.append(msg.content)
        lines.append("")
    return "\n".join(lines)
