# NeverGone HTTP API
# Created: 2026-10-17
#
# create_app() builds the FastAPI application: chat streaming, session glue,
# memory summaries and a health check.

from nevergone.api.app import create_app, run_server

__all__ = ["create_app", "run_server"]
