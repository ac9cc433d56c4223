# Shared fixtures and fakes for the NeverGone test suite.

from __future__ import annotations

import asyncio

import pytest

from nevergone.auth import TokenAuthenticator
from nevergone.config import Settings
from nevergone.context import AppContext
from nevergone.errors import GenerationFailed, PersistenceFailed
from nevergone.models import ChatMessage, MessageRole
from nevergone.store import InMemoryChatStore

SECRET = "test-secret"


class ListGenerator:
    """Token generator that yields a fixed list of fragments.

    Records how many fragments were pulled and whether the sequence was
    closed, so tests can check that an aborted stream stops pulling.
    """

    def __init__(self, fragments, *, fail_at=None, stall_after=None):
        self.fragments = list(fragments)
        self.fail_at = fail_at
        self.stall_after = stall_after
        self.calls = 0
        self.pulled = 0
        self.closed = False
        self.prompts: list[str] = []

    async def generate(self, message, history=()):
        self.calls += 1
        self.prompts.append(message)
        try:
            for i, fragment in enumerate(self.fragments):
                if self.fail_at == i:
                    raise GenerationFailed("model exploded")
                if self.stall_after is not None and i > self.stall_after:
                    await asyncio.sleep(30)
                self.pulled += 1
                yield fragment
            if self.fail_at == len(self.fragments):
                raise GenerationFailed("model exploded")
        finally:
            self.closed = True


class FailingStore(InMemoryChatStore):
    """In-memory store whose message inserts fail for the chosen roles."""

    def __init__(self, fail_roles=()):
        super().__init__()
        self.fail_roles = set(fail_roles)
        self.insert_attempts: list[ChatMessage] = []

    async def insert_message(self, user_id, message):
        self.insert_attempts.append(message)
        if message.role in self.fail_roles:
            raise PersistenceFailed("disk full")
        return await super().insert_message(user_id, message)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("NEVERGONE_CONFIG_DIR", str(tmp_path / "config"))
    return Settings(
        auth_secret=SECRET,
        stub_min_delay=0.0,
        stub_max_delay=0.0,
        generator_idle_timeout=5.0,
    )


@pytest.fixture
def store():
    return InMemoryChatStore()


@pytest.fixture
def generator():
    return ListGenerator(["Hi", " there", "!"])


@pytest.fixture
def authenticator():
    return TokenAuthenticator(SECRET)


@pytest.fixture
def context(settings, store, authenticator, generator):
    return AppContext(
        settings=settings,
        store=store,
        authenticator=authenticator,
        generator=generator,
    )


@pytest.fixture
def alice_headers(authenticator):
    return {"Authorization": f"Bearer {authenticator.issue('alice')}"}


@pytest.fixture
def bob_headers(authenticator):
    return {"Authorization": f"Bearer {authenticator.issue('bob')}"}


def roles(messages):
    return [m.role for m in messages]


USER = MessageRole.USER
ASSISTANT = MessageRole.ASSISTANT
