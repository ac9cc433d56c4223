# NeverGone streaming client.
# Created: 2026-10-17

from nevergone.client.api import NeverGoneClient
from nevergone.client.controller import StreamChannel, StreamController
from nevergone.client.errors import (
    HTTPStatusError,
    NotAuthenticatedError,
    StreamConnectionError,
    StreamingError,
)
from nevergone.client.transcript import ChatTranscript, derive_title

__all__ = [
    "ChatTranscript",
    "HTTPStatusError",
    "NeverGoneClient",
    "NotAuthenticatedError",
    "StreamChannel",
    "StreamConnectionError",
    "StreamController",
    "StreamingError",
    "derive_title",
]
