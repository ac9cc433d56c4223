"""Server-side stream producer.

Created: 2026-10-17

One ``StreamSession`` per request moves through::

    idle -> authenticated -> user_persisted -> streaming -> completed | aborted | failed

The user turn is stored before generation starts. The assistant turn is stored
only on ``completed``: a disconnect, an explicit stop, an idle timeout or a
generator failure leaves it unsaved. Cancellation is cooperative and is checked
once per fragment boundary.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from nevergone.errors import (
    BadRequest,
    GenerationFailed,
    NotFoundOrDenied,
    PersistenceFailed,
    StreamAborted,
)
from nevergone.generators import TokenGenerator
from nevergone.models import ChatMessage, MessageRole
from nevergone.sse import SSEEncoder
from nevergone.store.protocol import ChatStoreProtocol

logger = logging.getLogger(__name__)

DisconnectCheck = Callable[[], Awaitable[bool]]


class StreamState(str, Enum):
    IDLE = "idle"
    AUTHENTICATED = "authenticated"
    USER_PERSISTED = "user_persisted"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


TERMINAL_STATES = frozenset({StreamState.COMPLETED, StreamState.ABORTED, StreamState.FAILED})


@dataclass
class StreamSession:
    """One in-flight generation attempt. Not persisted."""

    session_id: str
    user_id: str
    message: str
    state: StreamState = StreamState.AUTHENTICATED
    history: list[ChatMessage] = field(default_factory=list)
    fragments: list[str] = field(default_factory=list)
    assistant_message: ChatMessage | None = None
    error: Exception | None = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    # generator plumbing, owned by the producer between start() and release
    iterator: AsyncIterator[str] | None = field(default=None, repr=False)
    pending: str | None = field(default=None, repr=False)
    has_pending: bool = field(default=False, repr=False)

    @property
    def accumulated(self) -> str:
        return "".join(self.fragments)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def cancel(self) -> None:
        """Ask the producer to stop at the next fragment boundary."""
        self.cancel_event.set()


class StreamBody:
    """Encoded events of one started stream, used as the response body.

    ``aclose()`` releases the stream whether or not iteration ever began, so a
    response torn down before its first chunk still frees the generator.
    """

    def __init__(
        self,
        producer: ChatStreamProducer,
        stream: StreamSession,
        events: AsyncGenerator[bytes, None],
    ):
        self._producer = producer
        self._stream = stream
        self._events = events

    def __aiter__(self) -> StreamBody:
        return self

    async def __anext__(self) -> bytes:
        return await anext(self._events)

    async def aclose(self) -> None:
        try:
            await self._events.aclose()
        finally:
            await self._producer.release(self._stream)


class ChatStreamProducer:
    """Drives a token generator onto an SSE byte stream and persists the turns."""

    def __init__(
        self,
        store: ChatStoreProtocol,
        generator: TokenGenerator,
        *,
        idle_timeout: float | None = 60.0,
    ):
        self.store = store
        self.generator = generator
        self.idle_timeout = idle_timeout
        # session_id -> live stream, for explicit stop requests
        self.active: dict[str, StreamSession] = {}

    # =========================================================================
    # Before the stream opens
    # =========================================================================

    async def prepare(self, user_id: str, session_id: str, message: str) -> StreamSession:
        """Validate, check ownership and store the user turn.

        Raises:
            BadRequest: ``session_id`` or ``message`` missing (no side effects).
            NotFoundOrDenied: the session is missing or belongs to someone else.
            PersistenceFailed: the user turn could not be stored.
        """
        if not session_id or not message or not message.strip():
            raise BadRequest()

        if await self.store.get_session(session_id, user_id) is None:
            raise NotFoundOrDenied()

        stream = StreamSession(session_id=session_id, user_id=user_id, message=message)

        try:
            await self.store.insert_message(
                user_id,
                ChatMessage(session_id=session_id, role=MessageRole.USER, content=message),
            )
        except PersistenceFailed as e:
            logger.error("Failed to insert user message for %s: %s", session_id, e)
            stream.state = StreamState.FAILED
            stream.error = e
            raise PersistenceFailed("Failed to save message") from e
        stream.state = StreamState.USER_PERSISTED
        logger.debug("User turn persisted for session %s", session_id)

        try:
            await self.store.touch_session(session_id, user_id)
        except Exception:
            logger.warning("Could not update session timestamp for %s", session_id, exc_info=True)

        stream.history = await self.store.list_messages(session_id, user_id)
        return stream

    async def start(self, stream: StreamSession) -> None:
        """Start the generator and pull the first fragment.

        Pulling before the response is created means a generator that fails
        immediately can still be reported with a proper error status.

        Raises:
            GenerationFailed: the first pull failed or timed out.
        """
        stream.iterator = aiter(self.generator.generate(stream.message, stream.history))
        try:
            stream.pending = await self._pull(stream.iterator)
        except TimeoutError as e:
            await self._fail(stream, GenerationFailed("Timed out waiting for the first fragment"))
            raise stream.error from e
        except Exception as e:
            error = e if isinstance(e, GenerationFailed) else GenerationFailed()
            await self._fail(stream, error)
            logger.error("Generation failed before streaming for %s: %s", stream.session_id, e)
            raise error from e
        stream.has_pending = True
        self.active[stream.session_id] = stream

    # =========================================================================
    # Streaming
    # =========================================================================

    def iter_events(
        self,
        stream: StreamSession,
        is_disconnected: DisconnectCheck | None = None,
    ) -> StreamBody:
        """Response body for a started ``StreamSession``."""
        return StreamBody(self, stream, self._events(stream, is_disconnected))

    async def _events(
        self,
        stream: StreamSession,
        is_disconnected: DisconnectCheck | None,
    ) -> AsyncGenerator[bytes, None]:
        encoder = SSEEncoder()
        stream.state = StreamState.STREAMING

        try:
            while True:
                if await self._should_stop(stream, is_disconnected):
                    self._abort(stream, "client disconnected")
                    return

                try:
                    fragment = await self._next_fragment(stream)
                except TimeoutError:
                    self._abort(stream, "generator idle timeout")
                    return
                except Exception as e:
                    stream.state = StreamState.FAILED
                    stream.error = e if isinstance(e, GenerationFailed) else GenerationFailed(str(e))
                    logger.error(
                        "Generation failed mid-stream for %s after %d fragments",
                        stream.session_id,
                        len(stream.fragments),
                        exc_info=True,
                    )
                    return

                if fragment is None:
                    break
                if not fragment:
                    continue
                stream.fragments.append(fragment)
                yield encoder.fragment(fragment)

            if await self._should_stop(stream, is_disconnected):
                self._abort(stream, "client disconnected")
                return

            await self._persist_assistant(stream)
            stream.state = StreamState.COMPLETED
            logger.info(
                "Stream completed for %s (%d fragments)", stream.session_id, len(stream.fragments)
            )
            yield encoder.done()
        finally:
            await self.release(stream)

    async def _persist_assistant(self, stream: StreamSession) -> None:
        content = stream.accumulated.strip()
        if not content:
            return
        try:
            stream.assistant_message = await self.store.insert_message(
                stream.user_id,
                ChatMessage(
                    session_id=stream.session_id, role=MessageRole.ASSISTANT, content=content
                ),
            )
        except Exception:
            # The reply was already delivered; losing the saved copy is accepted
            logger.exception("Failed to insert assistant message for %s", stream.session_id)

    # =========================================================================
    # Cancellation
    # =========================================================================

    def stop(self, session_id: str, user_id: str) -> bool:
        """Cancel the live stream for a session. Returns False if there is none."""
        stream = self.active.get(session_id)
        if stream is None or stream.user_id != user_id:
            return False
        stream.cancel()
        return True

    @staticmethod
    async def _should_stop(stream: StreamSession, is_disconnected: DisconnectCheck | None) -> bool:
        if stream.cancel_event.is_set():
            return True
        if is_disconnected is not None and await is_disconnected():
            return True
        return False

    def _abort(self, stream: StreamSession, reason: str) -> None:
        stream.state = StreamState.ABORTED
        stream.error = StreamAborted(reason)
        stream.cancel_event.set()
        logger.info(
            "Stream aborted for %s (%s) after %d fragments; assistant turn not saved",
            stream.session_id,
            reason,
            len(stream.fragments),
        )

    async def _fail(self, stream: StreamSession, error: Exception) -> None:
        stream.state = StreamState.FAILED
        stream.error = error
        await self.release(stream)

    async def release(self, stream: StreamSession) -> None:
        """Unregister *stream* and close its generator. Safe to call repeatedly.

        A stream released before reaching a terminal state counts as aborted.
        """
        if not stream.finished:
            self._abort(stream, "stream closed before completion")

        # Bookkeeping first: the aclose() below may be interrupted by cancellation
        iterator, stream.iterator = stream.iterator, None
        stream.pending, stream.has_pending = None, False
        if self.active.get(stream.session_id) is stream:
            del self.active[stream.session_id]

        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception:
                logger.debug("Error closing generator for %s", stream.session_id, exc_info=True)

    # =========================================================================
    # Generator plumbing
    # =========================================================================

    async def _pull(self, iterator: AsyncIterator[str]) -> str | None:
        """Next fragment, or None when exhausted. Raises TimeoutError when idle."""
        try:
            if self.idle_timeout:
                return await asyncio.wait_for(anext(iterator), timeout=self.idle_timeout)
            return await anext(iterator)
        except StopAsyncIteration:
            return None

    async def _next_fragment(self, stream: StreamSession) -> str | None:
        if stream.has_pending:
            fragment, stream.pending, stream.has_pending = stream.pending, None, False
            return fragment
        if stream.iterator is None:
            return None
        return await self._pull(stream.iterator)
