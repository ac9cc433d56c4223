"""In-memory chat store.

Created: 2026-10-17

Holds sessions, messages and memories in dicts guarded by an ``asyncio.Lock``.
Used in tests and for ephemeral local runs; ``FileChatStore`` extends it with
JSON persistence.

Every write goes through ``_commit``: if persisting fails, the in-memory change
is undone so that memory and disk never disagree.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from nevergone.errors import PersistenceFailed
from nevergone.models import ChatMessage, ChatSession, Memory, now_iso

logger = logging.getLogger(__name__)


class InMemoryChatStore:
    """Implements ``ChatStoreProtocol`` with per-user row visibility."""

    def __init__(self):
        self._sessions: dict[str, ChatSession] = {}
        self._messages: dict[str, ChatMessage] = {}
        self._memories: dict[str, Memory] = {}
        self._lock = asyncio.Lock()

    # Hook for persistent subclasses; called with the lock held.
    def _persist(self, *kinds: str) -> None:
        pass

    def _commit(self, kinds: tuple[str, ...], undo: Callable[[], None]) -> None:
        """Persist *kinds*, reverting the in-memory change via *undo* on failure."""
        try:
            self._persist(*kinds)
        except PersistenceFailed:
            undo()
            # A multi-kind write may have stored some kinds before failing
            try:
                self._persist(*kinds)
            except PersistenceFailed:
                logger.error("Could not restore %s after a failed write", ", ".join(kinds))
            raise

    def _visible(self, session_id: str, user_id: str) -> ChatSession | None:
        session = self._sessions.get(session_id)
        if session is None or session.user_id != user_id:
            return None
        return session

    # =========================================================================
    # Sessions
    # =========================================================================

    async def create_session(self, user_id: str, title: str = "New Chat") -> ChatSession:
        session = ChatSession(user_id=user_id, title=title)
        async with self._lock:
            self._sessions[session.id] = session
            self._commit(("sessions",), lambda: self._sessions.pop(session.id, None))
        return session

    async def get_session(self, session_id: str, user_id: str) -> ChatSession | None:
        return self._visible(session_id, user_id)

    async def list_sessions(self, user_id: str) -> list[ChatSession]:
        owned = [s for s in self._sessions.values() if s.user_id == user_id]
        return sorted(owned, key=lambda s: s.updated_at, reverse=True)

    async def touch_session(self, session_id: str, user_id: str) -> bool:
        async with self._lock:
            session = self._visible(session_id, user_id)
            if session is None:
                return False
            previous = session.updated_at

            def undo():
                session.updated_at = previous

            session.updated_at = now_iso()
            self._commit(("sessions",), undo)
        return True

    async def update_session_title(self, session_id: str, user_id: str, title: str) -> bool:
        async with self._lock:
            session = self._visible(session_id, user_id)
            if session is None:
                return False
            previous = (session.title, session.updated_at)

            def undo():
                session.title, session.updated_at = previous

            session.title = title
            session.updated_at = now_iso()
            self._commit(("sessions",), undo)
        return True

    async def delete_session(self, session_id: str, user_id: str) -> bool:
        async with self._lock:
            session = self._visible(session_id, user_id)
            if session is None:
                return False
            removed = [m for m in self._messages.values() if m.session_id == session_id]
            detached = [m for m in self._memories.values() if m.session_id == session_id]

            def undo():
                self._sessions[session_id] = session
                for msg in removed:
                    self._messages[msg.id] = msg
                for memory in detached:
                    memory.session_id = session_id

            del self._sessions[session_id]
            for msg in removed:
                del self._messages[msg.id]
            for memory in detached:
                memory.session_id = None
            self._commit(("sessions", "messages", "memories"), undo)
        return True

    # =========================================================================
    # Messages
    # =========================================================================

    async def insert_message(self, user_id: str, message: ChatMessage) -> ChatMessage:
        if not message.content:
            raise PersistenceFailed("Message content must not be empty")
        async with self._lock:
            if self._visible(message.session_id, user_id) is None:
                raise PersistenceFailed("Session not found or access denied")
            if message.id in self._messages:
                raise PersistenceFailed(f"Duplicate message id: {message.id}")
            self._messages[message.id] = message
            self._commit(("messages",), lambda: self._messages.pop(message.id, None))
        logger.debug("Stored %s message %s in %s", message.role.value, message.id, message.session_id)
        return message

    async def list_messages(self, session_id: str, user_id: str) -> list[ChatMessage]:
        if self._visible(session_id, user_id) is None:
            return []
        # dicts keep insertion order, so the stable sort breaks timestamp ties
        msgs = [m for m in self._messages.values() if m.session_id == session_id]
        return sorted(msgs, key=lambda m: m.created_at)

    # =========================================================================
    # Memories
    # =========================================================================

    async def insert_memory(self, memory: Memory) -> Memory:
        if not memory.summary:
            raise PersistenceFailed("Memory summary must not be empty")
        async with self._lock:
            if memory.session_id is not None and self._visible(memory.session_id, memory.user_id) is None:
                raise PersistenceFailed("Session not found or access denied")
            self._memories[memory.id] = memory
            self._commit(("memories",), lambda: self._memories.pop(memory.id, None))
        return memory

    async def list_memories(self, user_id: str) -> list[Memory]:
        owned = [m for m in self._memories.values() if m.user_id == user_id]
        return sorted(owned, key=lambda m: m.created_at, reverse=True)
