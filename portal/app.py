"""
FastAPI application entry point for the portal backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, WebSocket, status
from fastapi.responses import JSONResponse

from portal.config import get_settings
from portal.errors import PortalError
from portal.messages import toast
from portal.routes import router
from portal.social_routes import router as social_router

logger = logging.getLogger(__name__)


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse | None:
    if isinstance(request, WebSocket):
        logger.warning("Closing websocket %s: %s", request.url.path, exc)
        await request.close(code=status.WS_1008_POLICY_VIOLATION)
        return None
    settings = get_settings()
    payload = toast(exc.key, settings.locale, variant="destructive", **exc.params)
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail or payload["description"], "toast": payload},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="Student Portal Backend", version="0.1.0")
    app.add_exception_handler(PortalError, portal_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(social_router, prefix=settings.api_prefix)
    return app


app = create_app()
