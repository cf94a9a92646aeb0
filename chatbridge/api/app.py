from __future__ import annotations

import os
import time
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from .router_v1 import router as router_v1
from ..domain.errors import (
    BackendOverloaded,
    BackendUnavailable,
    ChatBridgeError,
    ConfigurationError,
    InvalidState,
    SessionExists,
    SessionNotFound,
)

# Most specific first; the first isinstance match wins
_ERROR_STATUS = (
    (SessionExists, 409),
    (InvalidState, 400),
    (SessionNotFound, 404),
    (BackendOverloaded, 503),
    (BackendUnavailable, 502),
    (ConfigurationError, 500),
    (ChatBridgeError, 500),
)


def _status_for(exc: ChatBridgeError) -> int:
    for exc_type, code in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return code
    return 500


def create_app() -> FastAPI:
    # Ensure environment variables from .env are loaded when running the API server
    load_dotenv()
    app = FastAPI(title="chatbridge API", version="0.1.0")

    logger = logging.getLogger("chatbridge_api")
    logger.setLevel(logging.INFO)

    @app.middleware("http")
    async def request_logger(request: Request, call_next):
        start = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            dur_ms = (time.perf_counter() - start) * 1000.0
            logger.info(
                "%s %s -> %s in %.1fms",
                request.method,
                request.url.path,
                getattr(response, 'status_code', 'NA'),
                dur_ms,
            )

    @app.exception_handler(ChatBridgeError)
    async def chatbridge_error_handler(request: Request, exc: ChatBridgeError) -> JSONResponse:
        code = _status_for(exc)
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    # Health (root)
    @app.get("/health")
    async def root_health() -> dict:
        return {"status": "ok"}

    # Feature flag to enable/disable API
    if os.getenv("API_ENABLED", "1").strip().lower() not in {"0", "false", "no", "off"}:
        app.include_router(router_v1)
    return app


app = create_app()
