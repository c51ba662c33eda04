"""
FastAPI Application Entry Point.

This module creates and configures the FastAPI application instance for
tts-proxy. It sets up routing, logging, the access-log middleware and the
startup checks.

Usage:
    # Run with uvicorn
    uvicorn tts_proxy.main:app --host 0.0.0.0 --port 3000

    # Or through the CLI (reads PORT / TTS_PROXY_HOST)
    tts-proxy --serve
"""

from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tts_proxy import __version__
from tts_proxy.api.dependencies import get_settings
from tts_proxy.api.routes import router
from tts_proxy.core.errors import ErrorCode
from tts_proxy.core.logging import configure_logging, get_logger, info, set_request_id, warn
from tts_proxy.core.metrics import metrics
from tts_proxy.services.pipeline import check_startup

_LOG = get_logger("tts-proxy.http")

REQUEST_ID_HEADER = "X-Request-Id"


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON or wrongly typed fields -> 400 with the standard error body."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg", "invalid request body"))
    metrics.record_request(status=ErrorCode.INVALID_INPUT, duration=-1)
    return JSONResponse(
        status_code=400,
        content={"ok": False, "error": ErrorCode.INVALID_INPUT, "message": message},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: warn about a missing API key or ffmpeg."""
    check_startup(get_settings())
    yield


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function:
        1. Configures structured logging based on environment settings
        2. Creates a FastAPI instance with the service title and lifespan
        3. Registers the API router and the 400 handler for bad bodies
        4. Installs the request-id / access-log / body-limit middleware

    The body limit is read once here; a settings change needs a new app.

    Returns:
        FastAPI: Configured application instance ready to serve requests.
    """
    configure_logging()
    max_body = get_settings().get_proxy_config().request.max_body_bytes

    app = FastAPI(title="tts-proxy", version=__version__, lifespan=lifespan)
    app.include_router(router)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = rid
        set_request_id(rid)

        length = request.headers.get("content-length")
        if length is not None and length.isdigit() and int(length) > max_body:
            warn(_LOG, "body_too_large", bytes=int(length), max_bytes=max_body)
            metrics.record_request(status=ErrorCode.PAYLOAD_TOO_LARGE, duration=-1)
            response = JSONResponse(
                status_code=413,
                content={
                    "ok": False,
                    "error": ErrorCode.PAYLOAD_TOO_LARGE,
                    "message": f"Request body exceeds {max_body} bytes",
                },
            )
        else:
            t0 = time.perf_counter()
            response = await call_next(request)
            info(
                _LOG, "http",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                seconds=round(time.perf_counter() - t0, 4),
            )

        response.headers[REQUEST_ID_HEADER] = rid
        return response

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
