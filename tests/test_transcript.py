# Tests for the client-side conversation view state.
# Created: 2026-10-17

import asyncio

import httpx
import pytest

from nevergone.api import create_app
from nevergone.client import ChatTranscript, NeverGoneClient, derive_title
from nevergone.client.transcript import CANCELLED_SUFFIX
from nevergone.models import MessageRole


def _client(handler):
    return NeverGoneClient(
        "http://testserver", "t", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


class TestDeriveTitle:
    @pytest.mark.parametrize(
        "message, expected",
        [
            ("Hello", "Hello"),
            ("What is the meaning of life", "What is the meaning"),
            ("   ", "New Chat"),
            ("Supercalifragilisticexpialidocious words here", "Supercalifragilisticexpialidoc..."),
        ],
    )
    def test_titles(self, message, expected):
        assert derive_title(message) == expected


class TestChatTranscript:
    @pytest.mark.asyncio
    async def test_reload_shows_welcome_for_empty_session(self, context, authenticator):
        http = httpx.AsyncClient(transport=httpx.ASGITransport(app=create_app(context)))
        client = NeverGoneClient("http://testserver", authenticator.issue("alice"), http_client=http)
        session = await client.create_session()
        transcript = ChatTranscript(client, session.id, welcome_message="Welcome!")

        await transcript.reload()

        assert [(m.role, m.content) for m in transcript.messages] == [
            (MessageRole.ASSISTANT, "Welcome!")
        ]

    @pytest.mark.asyncio
    async def test_send_completes_and_names_session(self, context, authenticator):
        http = httpx.AsyncClient(transport=httpx.ASGITransport(app=create_app(context)))
        client = NeverGoneClient("http://testserver", authenticator.issue("alice"), http_client=http)
        session = await client.create_session()
        transcript = ChatTranscript(client, session.id)

        assert transcript.send("  Hello  ")
        await transcript.wait()

        assert [(m.role, m.content) for m in transcript.messages] == [
            (MessageRole.USER, "Hello"),
            (MessageRole.ASSISTANT, "Hi there!"),
        ]
        assert transcript.streaming_content == ""
        assert transcript.error_message is None
        assert transcript.title == "Hello"
        assert (await client.list_sessions())[0].title == "Hello"

        await transcript.reload()
        assert [m.content for m in transcript.messages] == ["Hello", "Hi there!"]

    @pytest.mark.asyncio
    async def test_blank_send_ignored(self):
        transcript = ChatTranscript(_client(lambda request: httpx.Response(500)), "s1")
        assert transcript.send("   ") is False
        assert transcript.messages == []

    @pytest.mark.asyncio
    async def test_cancel_keeps_partial_reply(self):
        release = asyncio.Event()

        async def body():
            yield b'data: {"content":"Hi"}\n\n'
            await release.wait()
            yield b"data: [DONE]\n\n"

        def handler(request):
            if request.url.path == "/chat_stream":
                return httpx.Response(200, content=body())
            return httpx.Response(200, json={"status": "ok"})

        transcript = ChatTranscript(_client(handler), "s1")
        transcript.send("Hello")
        for _ in range(100):
            if transcript.streaming_content:
                break
            await asyncio.sleep(0.01)

        assert transcript.send("Again") is False
        transcript.cancel()
        release.set()
        await transcript.wait()

        assert transcript.messages[-1].content == "Hi" + CANCELLED_SUFFIX
        assert not transcript.is_streaming
        assert transcript.error_message is None

    @pytest.mark.asyncio
    async def test_error_sets_message(self):
        def handler(request):
            if request.url.path == "/chat_stream":
                return httpx.Response(404, json={"error": "Session not found or access denied"})
            return httpx.Response(200, json={"status": "ok"})

        transcript = ChatTranscript(_client(handler), "s1", title="Existing")
        transcript.send("Hello")
        await transcript.wait()

        assert transcript.error_message == "HTTP 404: Session not found or access denied"
        assert [m.content for m in transcript.messages] == ["Hello"]
        assert transcript.title == "Existing"
