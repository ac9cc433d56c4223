"""Client-side stream consumption with cancellation.

Created: 2026-10-17

A ``StreamController`` owns at most one running stream. It can be consumed
either as a channel of tagged events (``open``) or through callbacks
(``start``). ``cancel()`` closes the HTTP response and guarantees that no
further event or callback is delivered for the cancelled stream, including
events already decoded but not yet handed over.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing, suppress

from nevergone.client.api import NeverGoneClient
from nevergone.sse import Complete, Failed, Fragment, StreamEvent

logger = logging.getLogger(__name__)

CHANNEL_SIZE = 64


class _StreamToken:
    """Identity of one started stream; flipped once on cancel."""

    __slots__ = ("cancelled",)

    def __init__(self):
        self.cancelled = False


class StreamChannel:
    """Async iterator over the events of one stream.

    Ends after ``Complete`` or ``Failed``, or as soon as the stream is cancelled.
    """

    def __init__(self, queue: asyncio.Queue, token: _StreamToken):
        self._queue = queue
        self._token = token
        self._closed = False

    def __aiter__(self) -> StreamChannel:
        return self

    async def __anext__(self) -> StreamEvent:
        if self._closed or self._token.cancelled:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None or self._token.cancelled:
            self._closed = True
            raise StopAsyncIteration
        if not isinstance(event, Fragment):
            self._closed = True
        return event


class StreamController:
    """Runs one chat stream at a time against a ``NeverGoneClient``."""

    def __init__(self, client: NeverGoneClient):
        self._client = client
        self._task: asyncio.Task | None = None
        self._token: _StreamToken | None = None
        self._queue: asyncio.Queue | None = None

    @property
    def is_active(self) -> bool:
        return self._token is not None and self._task is not None and not self._task.done()

    def _claim(self) -> _StreamToken:
        if self.is_active:
            raise RuntimeError("A stream is already active on this controller")
        self._token = _StreamToken()
        self._queue = None
        return self._token

    async def _events(
        self, token: _StreamToken, session_id: str, message: str
    ) -> AsyncIterator[StreamEvent]:
        async with aclosing(self._client.stream_chat(session_id, message)) as events:
            async for event in events:
                if token.cancelled:
                    return
                yield event
                if not isinstance(event, Fragment):
                    return

    def _finish(self, token: _StreamToken) -> None:
        if self._token is token:
            self._token = None

    # =========================================================================
    # Channel form
    # =========================================================================

    def open(self, session_id: str, message: str) -> StreamChannel:
        """Start a stream and return the channel its events arrive on.

        Raises:
            RuntimeError: another stream is still active.
        """
        token = self._claim()
        queue: asyncio.Queue = asyncio.Queue(maxsize=CHANNEL_SIZE)
        self._queue = queue
        self._task = asyncio.create_task(self._pump(token, queue, session_id, message))
        return StreamChannel(queue, token)

    async def _pump(
        self, token: _StreamToken, queue: asyncio.Queue, session_id: str, message: str
    ) -> None:
        try:
            async with aclosing(self._events(token, session_id, message)) as events:
                async for event in events:
                    await queue.put(event)
        except Exception as e:
            logger.exception("Stream pump failed for %s", session_id)
            await queue.put(Failed(e))
        finally:
            self._finish(token)
            with suppress(asyncio.QueueFull):
                queue.put_nowait(None)

    # =========================================================================
    # Callback form
    # =========================================================================

    def start(
        self,
        session_id: str,
        message: str,
        on_fragment: Callable[[str], None],
        on_complete: Callable[[], None],
        on_error: Callable[[Exception], None],
    ) -> asyncio.Task:
        """Start a stream and report it through callbacks.

        ``on_fragment`` runs once per fragment in arrival order; then exactly
        one of ``on_complete`` / ``on_error`` runs once, unless the stream is
        cancelled first, in which case neither does.

        Raises:
            RuntimeError: another stream is still active.
        """
        token = self._claim()
        self._task = asyncio.create_task(
            self._run(token, session_id, message, on_fragment, on_complete, on_error)
        )
        return self._task

    async def _run(
        self,
        token: _StreamToken,
        session_id: str,
        message: str,
        on_fragment: Callable[[str], None],
        on_complete: Callable[[], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        reported = False

        def report(callback: Callable[..., None], *args) -> None:
            nonlocal reported
            reported = True
            self._finish(token)
            callback(*args)

        try:
            async with aclosing(self._events(token, session_id, message)) as events:
                async for event in events:
                    if token.cancelled:
                        return
                    if isinstance(event, Fragment):
                        try:
                            on_fragment(event.text)
                        except Exception as e:
                            logger.exception("Fragment handler failed for %s", session_id)
                            report(on_error, e)
                            return
                    elif isinstance(event, Complete):
                        report(on_complete)
                        return
                    else:
                        report(on_error, event.error)
                        return
        except Exception as e:
            if reported:
                raise
            if not token.cancelled:
                logger.exception("Stream failed for %s", session_id)
                report(on_error, e)
        finally:
            self._finish(token)

    # =========================================================================
    # Control
    # =========================================================================

    def cancel(self) -> None:
        """Stop the active stream. Safe to call any number of times."""
        token, self._token = self._token, None
        if token is None:
            return
        token.cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._queue is not None:
            with suppress(asyncio.QueueFull):
                self._queue.put_nowait(None)
        logger.debug("Stream cancelled")

    async def wait(self) -> None:
        """Wait for the current (or last) stream task to finish, whatever the outcome."""
        if self._task is not None:
            await asyncio.wait({self._task})
