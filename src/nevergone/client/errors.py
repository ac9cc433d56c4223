"""Client-side streaming errors. ``str(error)`` is meant for display.

Created: 2026-10-17
"""

from __future__ import annotations


class StreamingError(Exception):
    """Base class for failures observed by the streaming client."""


class NotAuthenticatedError(StreamingError):
    def __init__(self):
        super().__init__("Not authenticated")


class HTTPStatusError(StreamingError):
    """The server refused to open the stream."""

    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message or 'Unknown error'}")


class StreamConnectionError(StreamingError):
    """Transport failure, read timeout, or a stream that ended without ``[DONE]``."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Connection error: {reason}")
