"""Client-side conversation view state.

Created: 2026-10-17

Holds optimistic, display-only copies of the turns; the server owns the
persisted rows and ``reload()`` replaces the local copies with them.
"""

from __future__ import annotations

import asyncio
import logging

from nevergone.client.api import NeverGoneClient
from nevergone.client.controller import StreamController
from nevergone.config import DEFAULT_WELCOME_MESSAGE
from nevergone.models import ChatMessage, MessageRole

logger = logging.getLogger(__name__)

CANCELLED_SUFFIX = " [cancelled]"
ERROR_SUFFIX = " [error]"
DEFAULT_TITLE = "New Chat"


def derive_title(message: str, max_words: int = 4, max_chars: int = 30) -> str:
    """Session title from the first words of the opening message."""
    title = " ".join(message.split()[:max_words])
    if not title:
        return DEFAULT_TITLE
    if len(title) > max_chars:
        return title[:max_chars] + "..."
    return title


class ChatTranscript:
    """Messages of one session as shown to the user, plus live stream state."""

    def __init__(
        self,
        client: NeverGoneClient,
        session_id: str,
        *,
        title: str = DEFAULT_TITLE,
        welcome_message: str = DEFAULT_WELCOME_MESSAGE,
    ):
        self.client = client
        self.session_id = session_id
        self.title = title
        self.welcome_message = welcome_message
        self.controller = StreamController(client)

        self.messages: list[ChatMessage] = []
        self.streaming_content = ""
        self.error_message: str | None = None
        self._title_task: asyncio.Task | None = None

    @property
    def is_streaming(self) -> bool:
        return self.controller.is_active

    async def reload(self) -> None:
        """Replace local messages with the server's persisted history."""
        self.error_message = None
        try:
            self.messages = await self.client.list_messages(self.session_id)
        except Exception as e:
            self.error_message = str(e)
            return
        if not self.messages:
            self.messages.append(
                ChatMessage.local(self.session_id, MessageRole.ASSISTANT, self.welcome_message)
            )

    def send(self, text: str) -> bool:
        """Show *text* optimistically and start streaming the reply.

        Returns False when the text is blank or a reply is still streaming.
        """
        text = text.strip()
        if not text or self.is_streaming:
            return False

        is_first = not any(m.role == MessageRole.USER for m in self.messages)
        self.messages.append(ChatMessage.local(self.session_id, MessageRole.USER, text))
        self.error_message = None
        self.streaming_content = ""

        self.controller.start(
            self.session_id,
            text,
            on_fragment=self._on_fragment,
            on_complete=self._on_complete,
            on_error=self._on_error,
        )

        if is_first and self.title == DEFAULT_TITLE:
            self.title = derive_title(text)
            self._title_task = asyncio.create_task(self._save_title(self.title))
        return True

    def cancel(self) -> None:
        """Stop the reply, keeping any partial text marked as cancelled."""
        self.controller.cancel()
        self._keep_partial(CANCELLED_SUFFIX)

    async def wait(self) -> None:
        await self.controller.wait()
        if self._title_task is not None:
            await asyncio.wait({self._title_task})

    def _keep_partial(self, suffix: str) -> None:
        if self.streaming_content:
            self.messages.append(
                ChatMessage.local(
                    self.session_id, MessageRole.ASSISTANT, self.streaming_content + suffix
                )
            )
        self.streaming_content = ""

    def _on_fragment(self, text: str) -> None:
        self.streaming_content += text

    def _on_complete(self) -> None:
        content = self.streaming_content.strip()
        if content:
            self.messages.append(
                ChatMessage.local(self.session_id, MessageRole.ASSISTANT, content)
            )
        self.streaming_content = ""

    def _on_error(self, error: Exception) -> None:
        self.error_message = str(error)
        self._keep_partial(ERROR_SUFFIX)

    async def _save_title(self, title: str) -> None:
        try:
            await self.client.update_session_title(self.session_id, title)
        except Exception as e:
            logger.warning("Failed to update session title: %s", e)
