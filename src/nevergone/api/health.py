# Health router - unauthenticated liveness check.
# Created: 2026-10-17

from __future__ import annotations

from fastapi import APIRouter

from nevergone.api.schemas import StatusResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=StatusResponse)
async def health():
    return StatusResponse()
