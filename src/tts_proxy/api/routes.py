"""
tts-proxy API Routes.

Endpoints:
    POST /api/tts   - Synthesize (or serve from cache) one utterance
    GET  /health    - Liveness probe, no dependency checks
    GET  /metrics   - Prometheus metrics

Request Flow:
    1. Take the request ID assigned by the access-log middleware
    2. Validate the body (ValidationError -> 400, no I/O performed)
    3. Call RequestPipeline.handle()
    4. Return audio with metadata headers

Error Handling:
    All errors are returned as JSON with standardized format:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>"
    }

    HTTP status codes are mapped from ProxyError codes:
        - INVALID_INPUT            -> 400 Bad Request
        - PAYLOAD_TOO_LARGE        -> 413 Payload Too Large
        - PROVIDER_REJECTED        -> 502 Bad Gateway
        - PROVIDER_NOT_CONFIGURED  -> 502 Bad Gateway
        - PROVIDER_UNAVAILABLE     -> 503 Service Unavailable
        - PROVIDER_TIMEOUT         -> 504 Gateway Timeout
        - STORAGE_FAILED           -> 500 Internal Server Error
        - INTERNAL_ERROR           -> 500 Internal Server Error

Example Usage:
    curl -X POST http://localhost:3000/api/tts \\
        -H "Content-Type: application/json" \\
        -d '{"text": "Hello!", "voiceId": "pNInz6obpgDQGcFmaJgB", "telephony": true}' \\
        --output speech.wav
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from tts_proxy import __version__
from tts_proxy.api.dependencies import get_pipeline
from tts_proxy.api.schemas import HealthResponse, TTSRequest
from tts_proxy.core.errors import ErrorCode, ProxyError
from tts_proxy.core.logging import error, get_logger, set_request_id
from tts_proxy.core.metrics import metrics
from tts_proxy.services.pipeline import RequestPipeline

router = APIRouter()

_LOG = get_logger("tts-proxy.api")

STATUS_MAP = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.PAYLOAD_TOO_LARGE: 413,
    ErrorCode.PROVIDER_REJECTED: 502,
    ErrorCode.PROVIDER_NOT_CONFIGURED: 502,
    ErrorCode.PROVIDER_UNAVAILABLE: 503,
    ErrorCode.PROVIDER_TIMEOUT: 504,
    ErrorCode.STORAGE_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def error_response(err: ProxyError, request_id: str) -> JSONResponse:
    """Create a standardized JSON error response from a ProxyError."""
    return JSONResponse(
        status_code=STATUS_MAP.get(err.code, 500),
        content=err.to_dict(),
        headers={"X-Request-Id": request_id},
    )


@router.post("/api/tts", response_class=Response)
def tts(
    req: TTSRequest,
    request: Request,
    pipeline: RequestPipeline = Depends(get_pipeline),
):
    """
    Synthesize text, serving from the durable cache when possible.

    Returns:
        Response: audio/mpeg or audio/wav bytes with headers:
            - X-Request-Id: Request identifier for tracing
            - X-Cache: "hit" or "miss" (miss = provider was called)
            - X-Audio-Format: "primary" or "telephony"
            - X-Bytes: Size of audio data in bytes
            - X-Telephony-Fallback: "1" when telephony was requested but
              conversion failed and MP3 is returned instead
    """
    rid = getattr(request.state, "request_id", None) or uuid.uuid4().hex[:12]
    set_request_id(rid)

    try:
        synth_request = pipeline.build_request(req.text, req.voice_id, req.telephony)
        result = pipeline.handle(synth_request, rid)
    except ProxyError as e:
        return error_response(e, rid)
    except Exception as e:
        # handle() wraps its own failures; this only guards the glue above
        error(_LOG, "unhandled_error", error=str(e), error_type=type(e).__name__)
        return JSONResponse(
            status_code=500,
            content={
                "ok": False,
                "error": ErrorCode.INTERNAL_ERROR,
                "message": "Internal server error",
            },
            headers={"X-Request-Id": rid},
        )

    headers = {
        "X-Request-Id": rid,
        "X-Cache": result.cache_status,
        "X-Audio-Format": result.audio_format.label,
        "X-Bytes": str(len(result.audio_bytes)),
    }
    if result.fallback:
        headers["X-Telephony-Fallback"] = "1"
    return Response(content=result.audio_bytes, media_type=result.media_type, headers=headers)


@router.get("/health", response_model=HealthResponse)
def health():
    """Liveness probe. Never touches the provider, ffmpeg or the cache."""
    return HealthResponse(ok=True, service="tts-proxy", version=__version__)


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus metrics in text exposition format."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
