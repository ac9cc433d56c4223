# Chat storage backends.
# Created: 2026-10-17

from __future__ import annotations

from typing import TYPE_CHECKING

from nevergone.store.file import FileChatStore
from nevergone.store.memory import InMemoryChatStore
from nevergone.store.protocol import ChatStoreProtocol

if TYPE_CHECKING:
    from nevergone.config import Settings

__all__ = ["ChatStoreProtocol", "FileChatStore", "InMemoryChatStore", "create_store"]


def create_store(settings: Settings) -> ChatStoreProtocol:
    """Build the store backend named by ``settings.store_backend``."""
    if settings.store_backend == "file":
        return FileChatStore(settings.resolved_data_dir())
    if settings.store_backend == "memory":
        return InMemoryChatStore()
    raise ValueError(f"Unknown store backend: {settings.store_backend!r}")
