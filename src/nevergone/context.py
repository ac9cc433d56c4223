"""Explicitly constructed service context.

Created: 2026-10-17

Everything a request needs (settings, store, authenticator, generator and the
stream producer) hangs off one ``AppContext`` created at startup and attached
to ``app.state``. Tests build their own with fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from nevergone.auth import TokenAuthenticator
from nevergone.config import Settings
from nevergone.generators import TokenGenerator, create_generator
from nevergone.producer import ChatStreamProducer
from nevergone.store import ChatStoreProtocol, create_store


@dataclass
class AppContext:
    settings: Settings
    store: ChatStoreProtocol
    authenticator: TokenAuthenticator
    generator: TokenGenerator
    producer: ChatStreamProducer = field(init=False)

    def __post_init__(self):
        self.producer = ChatStreamProducer(
            self.store,
            self.generator,
            idle_timeout=self.settings.generator_idle_timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> AppContext:
        return cls(
            settings=settings,
            store=create_store(settings),
            authenticator=TokenAuthenticator(settings.auth_secret, settings.token_ttl_hours),
            generator=create_generator(settings),
        )
