"""NeverGone - streaming chat delivery service and client.

Created: 2026-10-17

The server persists each user turn, streams the generated reply over SSE and
stores the assistant turn once the stream completes. The client decodes the
stream incrementally and can cancel it at any fragment boundary.
"""

__version__ = "0.1.0"
