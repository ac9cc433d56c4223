# Sessions router - create, list, rename, delete, message history.
# Created: 2026-10-17

from __future__ import annotations

from fastapi import APIRouter, Depends

from nevergone.api.deps import get_context, require_user
from nevergone.api.schemas import (
    MessageInfo,
    SessionCreateRequest,
    SessionInfo,
    SessionListResponse,
    SessionTitleRequest,
    StatusResponse,
)
from nevergone.context import AppContext
from nevergone.errors import NotFoundOrDenied

router = APIRouter(tags=["Sessions"])


@router.post("/sessions", response_model=SessionInfo, status_code=201)
async def create_session(
    body: SessionCreateRequest | None = None,
    user_id: str = Depends(require_user),
    ctx: AppContext = Depends(get_context),
):
    title = body.title if body else "New Chat"
    session = await ctx.store.create_session(user_id, title=title)
    return session.to_dict()


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    user_id: str = Depends(require_user),
    ctx: AppContext = Depends(get_context),
):
    """List the caller's sessions, most recently active first."""
    sessions = await ctx.store.list_sessions(user_id)
    return {"sessions": [s.to_dict() for s in sessions], "total": len(sessions)}


@router.get("/sessions/{session_id}/messages", response_model=list[MessageInfo])
async def list_messages(
    session_id: str,
    user_id: str = Depends(require_user),
    ctx: AppContext = Depends(get_context),
):
    """Persisted messages of a session, oldest first."""
    if await ctx.store.get_session(session_id, user_id) is None:
        raise NotFoundOrDenied()
    messages = await ctx.store.list_messages(session_id, user_id)
    return [m.to_dict() for m in messages]


@router.patch("/sessions/{session_id}", response_model=StatusResponse)
async def update_session_title(
    session_id: str,
    body: SessionTitleRequest,
    user_id: str = Depends(require_user),
    ctx: AppContext = Depends(get_context),
):
    if not await ctx.store.update_session_title(session_id, user_id, body.title):
        raise NotFoundOrDenied()
    return StatusResponse()


@router.delete("/sessions/{session_id}", response_model=StatusResponse)
async def delete_session(
    session_id: str,
    user_id: str = Depends(require_user),
    ctx: AppContext = Depends(get_context),
):
    if not await ctx.store.delete_session(session_id, user_id):
        raise NotFoundOrDenied()
    return StatusResponse()
