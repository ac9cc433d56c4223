"""File-based chat store.

Created: 2026-10-17

Storage layout::

    <data_dir>/
        sessions.json   # All sessions
        messages.json   # All messages
        memories.json   # All memory summaries

Reads are served from the inherited in-memory dicts. Every change rewrites
the file of the entity type it touched, through a temp file that replaces the
original, so a crash never leaves a half-written file behind.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from nevergone.errors import PersistenceFailed
from nevergone.models import ChatMessage, ChatSession, Memory
from nevergone.store.memory import InMemoryChatStore

logger = logging.getLogger(__name__)


class FileChatStore(InMemoryChatStore):
    """JSON-file persistence on top of the in-memory indexes."""

    def __init__(self, base_path: Path):
        super().__init__()
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)

        self._files = {
            "sessions": self.base_path / "sessions.json",
            "messages": self.base_path / "messages.json",
            "memories": self.base_path / "memories.json",
        }
        self._load_all()

    def _load_json(self, path: Path) -> list[dict[str, Any]]:
        """Rows stored in *path*; a missing or unreadable file yields no rows."""
        if not path.exists():
            return []
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Error loading %s: %s", path, e)
            return []

    def _save_json(self, path: Path, data: list[dict[str, Any]]) -> None:
        """Replace *path* with *data*. Raises PersistenceFailed on I/O errors."""
        temp_path = path.with_suffix(".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_path.replace(path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise PersistenceFailed(f"Error saving {path.name}: {e}") from e

    def _load_all(self) -> None:
        for data in self._load_json(self._files["sessions"]):
            session = ChatSession.from_dict(data)
            self._sessions[session.id] = session
        for data in self._load_json(self._files["messages"]):
            message = ChatMessage.from_dict(data)
            self._messages[message.id] = message
        for data in self._load_json(self._files["memories"]):
            memory = Memory.from_dict(data)
            self._memories[memory.id] = memory
        logger.debug(
            "Loaded %d sessions, %d messages, %d memories from %s",
            len(self._sessions),
            len(self._messages),
            len(self._memories),
            self.base_path,
        )

    def _persist(self, *kinds: str) -> None:
        sources = {
            "sessions": self._sessions,
            "messages": self._messages,
            "memories": self._memories,
        }
        for kind in kinds:
            rows = [item.to_dict() for item in sources[kind].values()]
            self._save_json(self._files[kind], rows)
