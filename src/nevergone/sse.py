"""Server-Sent Events wire format for chat streams.

Created: 2026-10-17

Each fragment is one event::

    data: {"content":"<fragment text>"}\\n\\n

and exactly one terminal event closes the stream::

    data: [DONE]\\n\\n

The blank line is the only event delimiter. Fragment text is JSON-escaped,
so an event body never contains a raw newline.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass

DATA_PREFIX = "data: "
DONE_TOKEN = "[DONE]"
EVENT_DELIMITER = "\n\n"


# ============================================================================
# Stream events
# ============================================================================


@dataclass(frozen=True)
class Fragment:
    """One piece of response text."""

    text: str


@dataclass(frozen=True)
class Complete:
    """The server sent the terminal marker; no more fragments follow."""


@dataclass(frozen=True)
class Failed:
    """The stream ended abnormally. ``error`` is suitable for display via ``str()``."""

    error: Exception


StreamEvent = Fragment | Complete | Failed


# ============================================================================
# Encoding
# ============================================================================


def encode_fragment(text: str) -> bytes:
    payload = json.dumps({"content": text}, ensure_ascii=False, separators=(",", ":"))
    return f"{DATA_PREFIX}{payload}{EVENT_DELIMITER}".encode()


def encode_done() -> bytes:
    return f"{DATA_PREFIX}{DONE_TOKEN}{EVENT_DELIMITER}".encode()


class SSEEncoder:
    """Encodes one stream. Nothing can be encoded after the terminal marker."""

    def __init__(self):
        self.finished = False

    def fragment(self, text: str) -> bytes:
        if self.finished:
            raise RuntimeError("stream already terminated")
        return encode_fragment(text)

    def done(self) -> bytes:
        if self.finished:
            raise RuntimeError("stream already terminated")
        self.finished = True
        return encode_done()


# ============================================================================
# Decoding
# ============================================================================


def parse_event(unit: str) -> Fragment | Complete | None:
    """Decode one delimited unit. Returns None for units to skip."""
    for line in unit.split("\n"):
        if not line.startswith(DATA_PREFIX):
            continue
        data = line[len(DATA_PREFIX):]
        if data == DONE_TOKEN:
            return Complete()
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict) and isinstance(payload.get("content"), str):
            return Fragment(payload["content"])
    return None


class SSEDecoder:
    """Incremental decoder for a chat event stream.

    Bytes are decoded with an incremental UTF-8 decoder, so a multi-byte
    character split across reads is reassembled rather than corrupted.
    Malformed units are skipped. Once the terminal marker is seen, or after
    ``close()``, further input is discarded.
    """

    def __init__(self):
        self._text = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, chunk: bytes) -> list[Fragment | Complete]:
        if self._closed:
            return []

        self._buffer += self._text.decode(chunk)
        if "\r" in self._buffer:
            self._buffer = self._buffer.replace("\r\n", "\n")

        events: list[Fragment | Complete] = []
        while not self._closed:
            end = self._buffer.find(EVENT_DELIMITER)
            if end == -1:
                break
            unit = self._buffer[:end]
            self._buffer = self._buffer[end + len(EVENT_DELIMITER):]

            event = parse_event(unit)
            if event is None:
                continue
            events.append(event)
            if isinstance(event, Complete):
                self.close()
        return events

    def close(self) -> None:
        self._closed = True
        self._buffer = ""


async def decode_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[Fragment | Complete]:
    """Decode raw byte chunks into fragments, ending after ``Complete``.

    If the input runs out before the terminal marker, the iterator simply
    ends; callers treat that as a broken stream.
    """
    decoder = SSEDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
        if decoder.closed:
            return
