"""Chat data models.

Created: 2026-10-17

Design notes:
- Dataclasses with ``to_dict``/``from_dict`` for JSON storage and API output
- IDs are UUID strings, timestamps ISO 8601 strings in UTC
- ``ChatMessage`` is frozen: a persisted turn never changes
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class MessageRole(str, Enum):
    """Who authored a chat turn."""

    USER = "user"
    ASSISTANT = "assistant"


def generate_id() -> str:
    """New UUID4 string for a row."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """Current UTC time, ISO 8601."""
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class ChatMessage:
    """One turn in a conversation.

    Attributes:
        id: Unique identifier
        session_id: Conversation this turn belongs to
        role: ``user`` or ``assistant``, fixed at creation
        content: Message text (non-empty once persisted)
        created_at: Creation time (ISO 8601)
    """

    session_id: str
    role: MessageRole
    content: str
    id: str = field(default_factory=generate_id)
    created_at: str = field(default_factory=now_iso)

    @classmethod
    def local(cls, session_id: str, role: MessageRole, content: str) -> ChatMessage:
        """Build a display-only copy that has not been persisted by the server."""
        return cls(session_id=session_id, role=role, content=content)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "role": self.role.value,
            "content": self.content,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatMessage:
        return cls(
            id=data.get("id", generate_id()),
            session_id=data["session_id"],
            role=MessageRole(data.get("role", "user")),
            content=data.get("content", ""),
            created_at=data.get("created_at", now_iso()),
        )


@dataclass
class ChatSession:
    """A conversation owned by a single user."""

    user_id: str
    id: str = field(default_factory=generate_id)
    title: str = "New Chat"
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatSession:
        return cls(
            id=data.get("id", generate_id()),
            user_id=data["user_id"],
            title=data.get("title", "New Chat"),
            created_at=data.get("created_at", now_iso()),
            updated_at=data.get("updated_at", now_iso()),
        )


@dataclass
class Memory:
    """Long-term summary generated from a session.

    ``session_id`` becomes None when the source session is deleted.
    """

    user_id: str
    summary: str
    session_id: str | None = None
    id: str = field(default_factory=generate_id)
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "summary": self.summary,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Memory:
        return cls(
            id=data.get("id", generate_id()),
            user_id=data["user_id"],
            summary=data.get("summary", ""),
            session_id=data.get("session_id"),
            created_at=data.get("created_at", now_iso()),
        )
