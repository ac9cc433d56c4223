# Chat router - SSE stream and stop.
# Created: 2026-10-17
#
# POST /chat_stream stores the user turn, then streams the generated reply as
# `data: {"content": ...}` events terminated by `data: [DONE]`. Failures before
# the first byte become JSON errors; failures after it end the stream without
# the terminal marker.

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from nevergone.api.deps import get_context, require_user
from nevergone.api.schemas import ChatStreamRequest, ErrorResponse, StatusResponse
from nevergone.context import AppContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class ChatStreamResponse(StreamingResponse):
    """SSE response that always closes its body, even if sending never started."""

    media_type = "text/event-stream"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.body_iterator.aclose()


@router.post(
    "/chat_stream",
    response_class=ChatStreamResponse,
    responses={
        200: {"content": {"text/event-stream": {}}},
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def chat_stream(
    body: ChatStreamRequest,
    request: Request,
    user_id: str = Depends(require_user),
    ctx: AppContext = Depends(get_context),
):
    """Send a message and receive the reply as an SSE stream."""
    producer = ctx.producer
    stream = await producer.prepare(user_id, body.session_id, body.message)
    await producer.start(stream)

    return ChatStreamResponse(
        producer.iter_events(stream, request.is_disconnected),
        headers=SSE_HEADERS,
    )


@router.post("/chat_stream/stop", response_model=StatusResponse)
async def chat_stream_stop(
    session_id: str = "",
    user_id: str = Depends(require_user),
    ctx: AppContext = Depends(get_context),
):
    """Cancel an in-flight reply. The assistant turn is not saved."""
    if not session_id:
        raise HTTPException(status_code=400, detail="session_id is required")

    if not ctx.producer.stop(session_id, user_id):
        raise HTTPException(status_code=404, detail="No active stream for this session")

    return StatusResponse()
