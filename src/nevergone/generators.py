"""Token generators - interchangeable sources of response fragments.

Created: 2026-10-17

A generator turns the latest user message (plus the conversation so far)
into a finite, ordered, lazy sequence of non-empty text fragments. Calling
``generate`` again restarts from the beginning; a running sequence cannot be
resumed. Backend failures surface as ``GenerationFailed``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import AsyncIterator, Sequence
from typing import TYPE_CHECKING, Protocol

import httpx

from nevergone.errors import GenerationFailed
from nevergone.models import ChatMessage

if TYPE_CHECKING:
    from nevergone.config import Settings

logger = logging.getLogger(__name__)


class TokenGenerator(Protocol):
    """Interface that all response generators implement."""

    def generate(
        self, message: str, history: Sequence[ChatMessage] = ()
    ) -> AsyncIterator[str]:
        """Stream response fragments for *message*."""
        ...


class StubGenerator:
    """Canned demo reply, streamed word by word with a simulated delay."""

    def __init__(self, min_delay: float = 0.05, max_delay: float = 0.15):
        if min_delay < 0 or max_delay < min_delay:
            raise ValueError("require 0 <= min_delay <= max_delay")
        self.min_delay = min_delay
        self.max_delay = max_delay

    @staticmethod
    def reply_for(message: str) -> str:
        return " ".join(
            [
                f'I understand you said: "{message}".',
                "This is a demo response from the NeverGone assistant.",
                "The streaming is working correctly!",
                "Each word appears progressively to demonstrate true SSE streaming.",
            ]
        )

    async def generate(
        self, message: str, history: Sequence[ChatMessage] = ()
    ) -> AsyncIterator[str]:
        for word in self.reply_for(message).split(" "):
            if self.max_delay > 0:
                await asyncio.sleep(random.uniform(self.min_delay, self.max_delay))
            yield word + " "


class OllamaGenerator:
    """Streams ``/api/chat`` from an Ollama server."""

    def __init__(
        self,
        host: str,
        model: str,
        *,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.host = host.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @staticmethod
    def _build_messages(message: str, history: Sequence[ChatMessage]) -> list[dict]:
        messages = [{"role": m.role.value, "content": m.content} for m in history]
        # The user turn is persisted before generation, so it may already be last
        if not messages or messages[-1] != {"role": "user", "content": message}:
            messages.append({"role": "user", "content": message})
        return messages

    async def generate(
        self, message: str, history: Sequence[ChatMessage] = ()
    ) -> AsyncIterator[str]:
        payload = {
            "model": self.model,
            "messages": self._build_messages(message, history),
            "stream": True,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                async with client.stream("POST", f"{self.host}/api/chat", json=payload) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        data = json.loads(line)
                        if data.get("error"):
                            raise GenerationFailed(f"Ollama error: {data['error']}")
                        content = data.get("message", {}).get("content", "")
                        if content:
                            yield content
                        if data.get("done"):
                            return
        except httpx.HTTPError as e:
            raise GenerationFailed(f"Cannot reach Ollama at {self.host}: {e}") from e
        except json.JSONDecodeError as e:
            raise GenerationFailed(f"Malformed Ollama response: {e}") from e


def create_generator(settings: Settings) -> TokenGenerator:
    """Build the generator named by ``settings.generator``."""
    if settings.generator == "ollama":
        return OllamaGenerator(settings.ollama_host, settings.ollama_model)
    if settings.generator == "stub":
        return StubGenerator(settings.stub_min_delay, settings.stub_max_delay)
    raise ValueError(f"Unknown generator: {settings.generator!r}")
