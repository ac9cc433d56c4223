"""FastAPI application factory and server runner.

Created: 2026-10-17

Errors raised before a stream opens are rendered as ``{"error": "..."}`` with
the status code of the matching ``ChatStreamError``.
"""

from __future__ import annotations

import importlib
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nevergone import __version__
from nevergone.context import AppContext
from nevergone.errors import ChatStreamError

logger = logging.getLogger(__name__)

# (module_path, attr_name)
_ROUTERS: list[tuple[str, str]] = [
    ("nevergone.api.health", "router"),
    ("nevergone.api.chat", "router"),
    ("nevergone.api.sessions", "router"),
    ("nevergone.api.memory", "router"),
]


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ChatStreamError)
    async def _chat_stream_error(request: Request, exc: ChatStreamError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        logger.debug("Rejected request body on %s: %s", request.url.path, exc.errors())
        return _error(400, "Invalid request body")

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception):
        logger.exception("Unexpected error on %s", request.url.path)
        return _error(500, "Internal server error")


def create_app(context: AppContext | None = None) -> FastAPI:
    """Build the application around *context* (defaults to one built from settings)."""
    if context is None:
        from nevergone.config import get_settings

        context = AppContext.from_settings(get_settings())

    app = FastAPI(
        title="NeverGone API",
        description="Streaming chat delivery with durable message history.",
        version=__version__,
    )
    app.state.context = context

    # Permissive CORS for local/dev clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.settings.cors_allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _install_error_handlers(app)

    for module_path, attr_name in _ROUTERS:
        router = getattr(importlib.import_module(module_path), attr_name)
        app.include_router(router)
        logger.debug("Mounted router: %s", module_path)

    return app


def run_server(host: str = "127.0.0.1", port: int = 8888, dev: bool = False) -> None:
    """Start the API server with uvicorn."""
    import uvicorn

    logger.info("NeverGone API listening on http://%s:%d (docs at /docs)", host, port)

    if dev:
        uvicorn.run(
            "nevergone.api.app:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_level="debug",
        )
    else:
        uvicorn.run(create_app(), host=host, port=port)
