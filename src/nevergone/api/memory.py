# Memory router - summarize a session into a long-term memory.
# Created: 2026-10-17

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from nevergone.api.deps import get_context, require_user
from nevergone.api.schemas import MemoryInfo, SummarizeRequest, SummarizeResponse
from nevergone.context import AppContext
from nevergone.errors import BadRequest, NotFoundOrDenied, PersistenceFailed
from nevergone.models import Memory
from nevergone.summarize import generate_summary, truncate_summary

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Memory"])

MAX_SUMMARY_LENGTH = 2000


@router.post("/summarize_memory", response_model=SummarizeResponse)
async def summarize_memory(
    body: SummarizeRequest,
    user_id: str = Depends(require_user),
    ctx: AppContext = Depends(get_context),
):
    """Summarize a session's messages and store the result as a memory."""
    if not body.session_id:
        raise BadRequest("Missing session_id")

    if await ctx.store.get_session(body.session_id, user_id) is None:
        raise NotFoundOrDenied()

    messages = await ctx.store.list_messages(body.session_id, user_id)
    summary = truncate_summary(generate_summary(messages), MAX_SUMMARY_LENGTH)

    try:
        memory = await ctx.store.insert_memory(
            Memory(user_id=user_id, session_id=body.session_id, summary=summary)
        )
    except PersistenceFailed as e:
        logger.error("Failed to insert memory for %s: %s", body.session_id, e)
        raise PersistenceFailed("Failed to save memory") from e

    return {"success": True, "memory": memory.to_dict()}


@router.get("/memories", response_model=list[MemoryInfo])
async def list_memories(
    user_id: str = Depends(require_user),
    ctx: AppContext = Depends(get_context),
):
    memories = await ctx.store.list_memories(user_id)
    return [m.to_dict() for m in memories]
