"""Stub conversation summarizer for long-term memories.

Created: 2026-10-17

Deterministic: lists the first words of up to three user messages. Reads
messages only through the store's ordered ``list_messages`` accessor.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from nevergone.models import ChatMessage, MessageRole

MAX_TOPICS = 3
TOPIC_WORDS = 5


def _topic(content: str) -> str:
    words = " ".join(content.split(" ")[:TOPIC_WORDS])
    return words + "..." if len(words) < len(content) else words


def _format_time(iso: str) -> str:
    try:
        return datetime.fromisoformat(iso).strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    except ValueError:
        return iso


def generate_summary(messages: Sequence[ChatMessage]) -> str:
    if not messages:
        return "Empty conversation - no messages to summarize."

    user_messages = [m.content for m in messages if m.role == MessageRole.USER]
    if not user_messages:
        return "Conversation contained only assistant messages."

    topics = [_topic(msg) for msg in user_messages[:MAX_TOPICS]]
    lines = [
        f"Conversation summary ({len(messages)} messages, {len(user_messages)} from user):",
        "",
        "Topics discussed:",
        *(f'{i}. "{t}"' for i, t in enumerate(topics, start=1)),
        "",
        f"First message: {_format_time(messages[0].created_at)}",
        f"Last message: {_format_time(messages[-1].created_at)}",
    ]
    return "\n".join(lines)


def truncate_summary(summary: str, max_length: int) -> str:
    if len(summary) <= max_length:
        return summary
    return summary[:max_length] + "..."
