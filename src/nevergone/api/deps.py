# Shared FastAPI dependencies for the API layer.
# Created: 2026-10-17

from __future__ import annotations

from fastapi import Depends, Request

from nevergone.context import AppContext


def get_context(request: Request) -> AppContext:
    """Return the ``AppContext`` attached to the application at startup."""
    return request.app.state.context


async def require_user(request: Request, ctx: AppContext = Depends(get_context)) -> str:
    """Resolve the bearer credential to a user ID.

    Raises ``Unauthenticated`` (rendered as 401) when the header is missing or
    the token does not verify.
    """
    return ctx.authenticator.authenticate(request.headers.get("Authorization"))
