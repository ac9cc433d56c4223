# API request/response schemas.
# Created: 2026-10-17

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error envelope for failures before a stream opens."""

    error: str


class StatusResponse(BaseModel):
    status: str = "ok"


class ChatStreamRequest(BaseModel):
    """Start a streamed reply.

    Both fields default to empty so that missing values are reported by the
    producer as a 400 rather than a schema error.
    """

    session_id: str = ""
    message: str = ""


class MessageInfo(BaseModel):
    id: str
    session_id: str
    role: str
    content: str
    created_at: str


class SessionInfo(BaseModel):
    id: str
    user_id: str
    title: str = "New Chat"
    created_at: str
    updated_at: str


class SessionCreateRequest(BaseModel):
    title: str = Field("New Chat", min_length=1, max_length=200)


class SessionTitleRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class SessionListResponse(BaseModel):
    sessions: list[SessionInfo]
    total: int


class SummarizeRequest(BaseModel):
    session_id: str = ""


class MemoryInfo(BaseModel):
    id: str
    user_id: str
    session_id: str | None = None
    summary: str
    created_at: str


class SummarizeResponse(BaseModel):
    success: bool = True
    memory: MemoryInfo
