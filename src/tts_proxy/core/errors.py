"""
Error Taxonomy for tts-proxy.

Every failure the proxy can report is a ProxyError carrying a stable,
machine-readable code. The API layer maps codes to HTTP status codes;
the pipeline decides which errors are terminal and which degrade.

Exception Hierarchy:
    ProxyError (base)
    ├── ValidationError          - Bad/missing request fields (no I/O done)
    ├── ProviderError            - Upstream synthesis failures
    │   ├── TransientProviderError  - 5xx, 429, network failure (retryable)
    │   ├── PermanentProviderError  - Other 4xx, missing credential
    │   └── ProviderTimeoutError    - Bounded call exceeded its timeout
    ├── StorageError             - Cache read/write failure
    └── ConversionError          - Telephony transcoding failure

Propagation:
    - ValidationError terminates immediately (400).
    - TransientProviderError is retried inside SynthesisClient and only
      surfaces after the attempt budget is spent.
    - StorageError never fails a request that already holds audio bytes.
    - ConversionError never fails a request; the primary format is served.

Usage:
    from tts_proxy.core.errors import ErrorCode, ProxyError

    try:
        result = pipeline.handle(request, rid)
    except ProxyError as e:
        return JSONResponse(status_code=..., content=e.to_dict())
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Standardized error codes for API responses and logs."""
    INVALID_INPUT = "INVALID_INPUT"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"       # Transient upstream failure
    PROVIDER_REJECTED = "PROVIDER_REJECTED"             # Permanent upstream rejection
    PROVIDER_NOT_CONFIGURED = "PROVIDER_NOT_CONFIGURED" # No API key
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    STORAGE_FAILED = "STORAGE_FAILED"
    CONVERSION_FAILED = "CONVERSION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ProxyError(Exception):
    """
    Base exception for proxy errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Optional dictionary with additional context.
    """

    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the standardized error response body."""
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(ProxyError):
    """Raised when a request is malformed; no I/O has been performed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class ProviderError(ProxyError):
    """Base class for failures talking to the synthesis provider."""


class TransientProviderError(ProviderError):
    """Upstream failure that is likely to succeed on retry (5xx, 429, network)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.PROVIDER_UNAVAILABLE, details)


class PermanentProviderError(ProviderError):
    """Upstream rejection that retrying will not fix (bad request, bad credential)."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: str = ErrorCode.PROVIDER_REJECTED,
    ):
        super().__init__(message, code, details)


class ProviderTimeoutError(ProviderError):
    """The provider call exceeded its timeout. Never retried."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.PROVIDER_TIMEOUT, details)


class StorageError(ProxyError):
    """Cache read or write failed (disk full, permission denied, corrupt entry)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.STORAGE_FAILED, details)


class ConversionError(ProxyError):
    """The transcoding subprocess failed to produce output."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONVERSION_FAILED, details)
