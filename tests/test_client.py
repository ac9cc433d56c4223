# Tests for the streaming client and StreamController.
# Created: 2026-10-17

import asyncio

import httpx
import pytest

from nevergone.api import create_app
from nevergone.client import (
    HTTPStatusError,
    NeverGoneClient,
    NotAuthenticatedError,
    StreamConnectionError,
    StreamController,
)
from nevergone.sse import Complete, Failed, Fragment

BASE_URL = "http://testserver"


def _asgi_client(context, token):
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=create_app(context)))
    return NeverGoneClient(BASE_URL, token, http_client=http)


def _mock_client(handler, token="t"):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NeverGoneClient(BASE_URL, token, http_client=http)


class GatedBody:
    """Server body that sends one fragment, then waits until released."""

    def __init__(self, head=b'data: {"content":"Hi"}\n\n'):
        self.head = head
        self.release = asyncio.Event()

    async def stream(self):
        yield self.head
        await self.release.wait()
        yield b'data: {"content":" there"}\n\n'
        yield b"data: [DONE]\n\n"

    def handler(self, request):
        if request.url.path == "/chat_stream":
            return httpx.Response(
                200, content=self.stream(), headers={"content-type": "text/event-stream"}
            )
        return httpx.Response(200, json={"status": "ok"})


async def _events(client, session_id="s1", message="Hello"):
    return [e async for e in client.stream_chat(session_id, message)]


class TestStreamChat:
    """Tests for NeverGoneClient.stream_chat against the real app."""

    @pytest.mark.asyncio
    async def test_fragments_then_complete(self, context, authenticator):
        client = _asgi_client(context, authenticator.issue("alice"))
        session = await client.create_session()

        events = await _events(client, session.id)

        assert events == [Fragment("Hi"), Fragment(" there"), Fragment("!"), Complete()]
        messages = await client.list_messages(session.id)
        assert [m.content for m in messages] == ["Hello", "Hi there!"]

    @pytest.mark.asyncio
    async def test_chat_returns_full_text(self, context, authenticator):
        client = _asgi_client(context, authenticator.issue("alice"))
        session = await client.create_session()
        assert await client.chat(session.id, "Hello") == "Hi there!"

    @pytest.mark.asyncio
    async def test_server_error_mapped(self, context, authenticator):
        client = _asgi_client(context, authenticator.issue("alice"))

        events = await _events(client, "missing")

        assert len(events) == 1
        error = events[0].error
        assert isinstance(error, HTTPStatusError)
        assert error.status_code == 404
        assert str(error) == "HTTP 404: Session not found or access denied"

    @pytest.mark.asyncio
    async def test_not_authenticated(self):
        calls = []
        client = _mock_client(lambda request: calls.append(request), token=lambda: None)

        events = await _events(client)

        assert isinstance(events[0].error, NotAuthenticatedError)
        assert str(events[0].error) == "Not authenticated"
        assert calls == []

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        client = _mock_client(lambda request: httpx.Response(502, text="Bad Gateway"))
        events = await _events(client)
        assert str(events[0].error) == "HTTP 502: Bad Gateway"

    @pytest.mark.asyncio
    async def test_empty_error_body(self):
        client = _mock_client(lambda request: httpx.Response(500))
        events = await _events(client)
        assert str(events[0].error) == "HTTP 500: Unknown error"

    @pytest.mark.asyncio
    async def test_eof_without_done(self):
        client = _mock_client(
            lambda request: httpx.Response(200, content=b'data: {"content":"a"}\n\n')
        )

        events = await _events(client)

        assert events[0] == Fragment("a")
        assert isinstance(events[1], Failed)
        assert isinstance(events[1].error, StreamConnectionError)
        assert len(events) == 2

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        events = await _events(_mock_client(handler))

        assert len(events) == 1
        assert isinstance(events[0].error, StreamConnectionError)
        assert "connection refused" in str(events[0].error)

    @pytest.mark.asyncio
    async def test_read_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow")

        events = await _events(_mock_client(handler))
        assert str(events[0].error) == "Connection error: timed out waiting for the server"

    @pytest.mark.asyncio
    async def test_ignores_events_after_done(self):
        body = b'data: {"content":"a"}\n\ndata: [DONE]\n\ndata: {"content":"late"}\n\n'
        client = _mock_client(lambda request: httpx.Response(200, content=body))
        assert await _events(client) == [Fragment("a"), Complete()]

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b"data: [DONE]\n\n")

        await _events(_mock_client(handler, token="abc"))

        assert seen[0].headers["authorization"] == "Bearer abc"
        assert seen[0].url.path == "/chat_stream"


class TestStreamControllerCallbacks:
    """Tests for StreamController.start."""

    @pytest.mark.asyncio
    async def test_callbacks_in_order(self, context, authenticator):
        client = _asgi_client(context, authenticator.issue("alice"))
        session = await client.create_session()
        calls = []
        controller = StreamController(client)

        controller.start(
            session.id,
            "Hello",
            on_fragment=lambda t: calls.append(("fragment", t)),
            on_complete=lambda: calls.append(("complete",)),
            on_error=lambda e: calls.append(("error", e)),
        )
        await controller.wait()

        assert calls == [
            ("fragment", "Hi"),
            ("fragment", " there"),
            ("fragment", "!"),
            ("complete",),
        ]
        assert not controller.is_active

    @pytest.mark.asyncio
    async def test_error_reported_once(self):
        client = _mock_client(lambda request: httpx.Response(401, json={"error": "nope"}))
        errors = []
        controller = StreamController(client)

        controller.start("s1", "Hi", lambda t: None, lambda: errors.append("done"), errors.append)
        await controller.wait()

        assert len(errors) == 1
        assert str(errors[0]) == "HTTP 401: nope"

    @pytest.mark.asyncio
    async def test_second_start_rejected_while_active(self):
        body = GatedBody()
        controller = StreamController(_mock_client(body.handler))
        controller.start("s1", "Hi", lambda t: None, lambda: None, lambda e: None)

        with pytest.raises(RuntimeError):
            controller.start("s1", "Again", lambda t: None, lambda: None, lambda e: None)

        controller.cancel()
        await controller.wait()

    @pytest.mark.asyncio
    async def test_restart_after_finish(self):
        client = _mock_client(lambda request: httpx.Response(200, content=b"data: [DONE]\n\n"))
        controller = StreamController(client)
        completed = []

        for _ in range(2):
            controller.start("s1", "Hi", lambda t: None, lambda: completed.append(1), lambda e: None)
            await controller.wait()

        assert completed == [1, 1]

    @pytest.mark.asyncio
    async def test_cancel_stops_delivery(self):
        body = GatedBody()
        controller = StreamController(_mock_client(body.handler))
        fragments, completed, errors = [], [], []
        got_first = asyncio.Event()

        def on_fragment(text):
            fragments.append(text)
            got_first.set()

        controller.start("s1", "Hi", on_fragment, lambda: completed.append(1), errors.append)
        await asyncio.wait_for(got_first.wait(), timeout=2)

        controller.cancel()
        controller.cancel()
        body.release.set()
        await controller.wait()

        assert fragments == ["Hi"]
        assert completed == []
        assert errors == []
        assert not controller.is_active

    @pytest.mark.asyncio
    async def test_cancel_drops_already_decoded_events(self):
        body = b'data: {"content":"a"}\n\ndata: {"content":"b"}\n\ndata: [DONE]\n\n'
        controller = StreamController(_mock_client(lambda request: httpx.Response(200, content=body)))
        fragments, completed = [], []

        def on_fragment(text):
            fragments.append(text)
            controller.cancel()

        controller.start("s1", "Hi", on_fragment, lambda: completed.append(1), lambda e: None)
        await controller.wait()

        assert fragments == ["a"]
        assert completed == []

    @pytest.mark.asyncio
    async def test_cancel_without_stream_is_noop(self):
        controller = StreamController(_mock_client(lambda request: httpx.Response(500)))
        controller.cancel()
        await controller.wait()
        assert not controller.is_active

    @pytest.mark.asyncio
    async def test_failing_fragment_handler_reports_error(self):
        body = b'data: {"content":"a"}\n\ndata: [DONE]\n\n'
        controller = StreamController(_mock_client(lambda request: httpx.Response(200, content=body)))
        completed, errors = [], []

        def on_fragment(text):
            raise ValueError("render failed")

        controller.start("s1", "Hi", on_fragment, lambda: completed.append(1), errors.append)
        await controller.wait()

        assert completed == []
        assert [str(e) for e in errors] == ["render failed"]


class TestStreamControllerChannel:
    """Tests for StreamController.open."""

    @pytest.mark.asyncio
    async def test_channel_yields_all_events(self, context, authenticator):
        client = _asgi_client(context, authenticator.issue("alice"))
        session = await client.create_session()
        controller = StreamController(client)

        events = [e async for e in controller.open(session.id, "Hello")]
        await controller.wait()

        assert events == [Fragment("Hi"), Fragment(" there"), Fragment("!"), Complete()]
        assert not controller.is_active

    @pytest.mark.asyncio
    async def test_channel_ends_on_failure(self):
        controller = StreamController(_mock_client(lambda request: httpx.Response(503)))

        events = [e async for e in controller.open("s1", "Hi")]

        assert len(events) == 1
        assert isinstance(events[0], Failed)

    @pytest.mark.asyncio
    async def test_channel_ends_on_cancel(self):
        body = GatedBody()
        controller = StreamController(_mock_client(body.handler))
        received = []

        async for event in controller.open("s1", "Hi"):
            received.append(event)
            controller.cancel()
            body.release.set()
        await controller.wait()

        assert received == [Fragment("Hi")]
