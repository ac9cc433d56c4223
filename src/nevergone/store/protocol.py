# Chat store protocol - defines the interface for swappable backends.
# Created: 2026-10-17
#
# Every call is scoped by the caller's user ID: a user can only read or write
# rows belonging to sessions they own. Lookups of sessions owned by someone
# else behave exactly like lookups of sessions that do not exist.

from __future__ import annotations

from typing import Protocol

from nevergone.models import ChatMessage, ChatSession, Memory


class ChatStoreProtocol(Protocol):
    """Protocol for chat storage backends."""

    async def create_session(self, user_id: str, title: str = "New Chat") -> ChatSession:
        """Create a session owned by *user_id*."""
        ...

    async def get_session(self, session_id: str, user_id: str) -> ChatSession | None:
        """Return the session, or None if it is missing or not owned by *user_id*."""
        ...

    async def list_sessions(self, user_id: str) -> list[ChatSession]:
        """Sessions owned by *user_id*, most recently updated first."""
        ...

    async def touch_session(self, session_id: str, user_id: str) -> bool:
        """Bump ``updated_at``. Returns False if the session is not visible."""
        ...

    async def update_session_title(self, session_id: str, user_id: str, title: str) -> bool:
        ...

    async def delete_session(self, session_id: str, user_id: str) -> bool:
        """Delete a session and its messages; memories keep a null session_id."""
        ...

    async def insert_message(self, user_id: str, message: ChatMessage) -> ChatMessage:
        """Persist one message.

        Raises:
            PersistenceFailed: the session is not visible to *user_id* or the
                content is empty.
        """
        ...

    async def list_messages(self, session_id: str, user_id: str) -> list[ChatMessage]:
        """Messages in a session ordered by creation time ascending."""
        ...

    async def insert_memory(self, memory: Memory) -> Memory:
        ...

    async def list_memories(self, user_id: str) -> list[Memory]:
        """Memories owned by *user_id*, newest first."""
        ...
