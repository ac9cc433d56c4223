"""HTTP client for the NeverGone API.

Created: 2026-10-17

``stream_chat`` turns one ``POST /chat_stream`` into a typed event sequence
that always ends with exactly one ``Complete`` or ``Failed``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx

from nevergone.client.errors import (
    HTTPStatusError,
    NotAuthenticatedError,
    StreamConnectionError,
)
from nevergone.models import ChatMessage, ChatSession, Memory
from nevergone.sse import Complete, Failed, Fragment, StreamEvent, decode_stream

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str | None]

_MAX_ERROR_BODY = 500


def _error_message(body: bytes) -> str | None:
    text = body[:_MAX_ERROR_BODY].decode("utf-8", errors="replace").strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return text


class NeverGoneClient:
    """Async client bound to one server and one bearer credential.

    Parameters
    ----------
    base_url:
        Server root, e.g. ``http://127.0.0.1:8888``.
    token:
        Bearer token, or a callable returning the current token (None when
        signed out).
    http_client:
        Optional pre-built ``httpx.AsyncClient`` (tests pass one wired to the
        app). It is not closed by ``aclose()``.
    read_timeout:
        Maximum idle time between inbound chunks before the stream is
        treated as broken.
    """

    def __init__(
        self,
        base_url: str,
        token: str | TokenProvider | None,
        *,
        http_client: httpx.AsyncClient | None = None,
        read_timeout: float = 60.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._token_provider: TokenProvider = token if callable(token) else (lambda: token)
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, read=read_timeout),
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> NeverGoneClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def _headers(self) -> dict[str, str]:
        token = self._token_provider()
        if not token:
            raise NotAuthenticatedError()
        return {"Authorization": f"Bearer {token}"}

    # =========================================================================
    # Streaming
    # =========================================================================

    async def stream_chat(self, session_id: str, message: str) -> AsyncIterator[StreamEvent]:
        """Send *message* and yield ``Fragment`` events, then ``Complete`` or ``Failed``."""
        try:
            headers = self._headers()
        except NotAuthenticatedError as e:
            yield Failed(e)
            return

        try:
            async with self._http.stream(
                "POST",
                f"{self.base_url}/chat_stream",
                json={"session_id": session_id, "message": message},
                headers=headers,
            ) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    logger.debug("chat_stream returned HTTP %d", response.status_code)
                    yield Failed(HTTPStatusError(response.status_code, _error_message(body)))
                    return

                async for event in decode_stream(response.aiter_bytes()):
                    yield event
                    if isinstance(event, Complete):
                        return

            yield Failed(StreamConnectionError("stream ended before completion"))
        except httpx.TimeoutException:
            yield Failed(StreamConnectionError("timed out waiting for the server"))
        except httpx.HTTPError as e:
            yield Failed(StreamConnectionError(str(e) or type(e).__name__))

    async def chat(self, session_id: str, message: str) -> str:
        """Stream a reply to completion and return the full text."""
        parts: list[str] = []
        async for event in self.stream_chat(session_id, message):
            if isinstance(event, Fragment):
                parts.append(event.text)
            elif isinstance(event, Failed):
                raise event.error
        return "".join(parts)

    # =========================================================================
    # Sessions & memories
    # =========================================================================

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._http.request(
                method, f"{self.base_url}{path}", headers=self._headers(), **kwargs
            )
        except httpx.HTTPError as e:
            raise StreamConnectionError(str(e) or type(e).__name__) from e
        if response.status_code >= 400:
            raise HTTPStatusError(response.status_code, _error_message(response.content))
        return response.json()

    async def create_session(self, title: str = "New Chat") -> ChatSession:
        data = await self._request("POST", "/sessions", json={"title": title})
        return ChatSession.from_dict(data)

    async def list_sessions(self) -> list[ChatSession]:
        data = await self._request("GET", "/sessions")
        return [ChatSession.from_dict(s) for s in data["sessions"]]

    async def list_messages(self, session_id: str) -> list[ChatMessage]:
        data = await self._request("GET", f"/sessions/{session_id}/messages")
        return [ChatMessage.from_dict(m) for m in data]

    async def update_session_title(self, session_id: str, title: str) -> None:
        await self._request("PATCH", f"/sessions/{session_id}", json={"title": title})

    async def summarize_memory(self, session_id: str) -> Memory:
        data = await self._request("POST", "/summarize_memory", json={"session_id": session_id})
        return Memory.from_dict(data["memory"])
