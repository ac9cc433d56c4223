"""Error taxonomy for the chat stream pipeline.

Created: 2026-10-17

Every condition carries the HTTP status it maps to when it is raised before
any stream bytes have been sent. Once streaming has begun the status can no
longer change and the stream is simply ended without the terminal marker.
"""

from __future__ import annotations


class ChatStreamError(Exception):
    """Base class for chat stream failures."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(ChatStreamError):
    status_code = 400
    default_message = "Missing session_id or message"


class Unauthenticated(ChatStreamError):
    status_code = 401
    default_message = "Invalid or expired token"


class NotFoundOrDenied(ChatStreamError):
    """Session is missing or owned by someone else; the two are indistinguishable."""

    status_code = 404
    default_message = "Session not found or access denied"


class GenerationFailed(ChatStreamError):
    status_code = 500
    default_message = "Failed to generate response"


class PersistenceFailed(ChatStreamError):
    status_code = 500
    default_message = "Failed to save message"


class StreamAborted(ChatStreamError):
    """The peer went away or the stream was cancelled. Expected, not user-visible."""

    status_code = 499
    default_message = "Stream cancelled by client"
