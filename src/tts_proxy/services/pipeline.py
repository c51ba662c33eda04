"""
RequestPipeline - One TTS Request End to End.

This module provides the RequestPipeline class which answers a single
synthesis request from the content-addressed cache, the provider and the
telephony converter. The HTTP endpoint and the CLI both use it.

Architecture:
    Validate → Key → Telephony hit? → Primary hit? → Synthesize → Store
             → Convert (if telephony) → Store → Response

Decision Table:
    telephony  telephony cached  primary cached  Provider  Convert  Result
    ---------  ----------------  --------------  --------  -------  -----------------
    no         -                 yes             -         -        primary (hit)
    no         -                 no              call      -        primary (miss)
    yes        yes               -               -         -        telephony (hit)
    yes        no                yes             -         run      telephony (hit)
    yes        no                no              call      run      telephony (miss)
    yes        no                any             any       FAIL     primary, fallback

Error Handling:
    - ValidationError: raised while building the request, before any I/O.
    - Provider errors: terminal, surfaced with their classified kind.
    - StorageError on read: treated as a cache miss.
    - StorageError on write: logged, the in-hand bytes are still returned.
    - ConversionError: logged, the primary bytes are returned with
      fallback=True.
    - Anything else: wrapped into ProxyError(INTERNAL_ERROR).

Concurrency:
    No locks. Two concurrent misses for the same key may both call the
    provider; both write identical bytes and the last rename wins. Work is
    never cancelled: a request whose caller has gone away still completes
    and populates the cache for the next caller.

Example:
    >>> from tts_proxy.core.config import Settings
    >>> from tts_proxy.services.pipeline import RequestPipeline
    >>>
    >>> pipeline = RequestPipeline(Settings(raw={}))
    >>> req = pipeline.build_request("hello", "pNInz6obpgDQGcFmaJgB", telephony=True)
    >>> result = pipeline.handle(req, request_id="req-123")
    >>> result.audio_format, result.cache_status, result.fallback
    (<AudioFormat.TELEPHONY: ...>, 'miss', False)
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from tts_proxy.core.config import ProxyConfig, Settings
from tts_proxy.core.errors import ConversionError, ErrorCode, ProxyError, StorageError, ValidationError
from tts_proxy.core.logging import debug, fail, get_logger, info, success, verbose, warn
from tts_proxy.core.metrics import metrics
from tts_proxy.proxy.converter import FormatConverter
from tts_proxy.proxy.formats import AudioFormat
from tts_proxy.proxy.keys import content_key
from tts_proxy.proxy.provider import SynthesisClient
from tts_proxy.proxy.storage import CacheStore
from tts_proxy.services.validators import validate_text, validate_voice_id
from tts_proxy.utils.timeit import timeit

_LOG = get_logger("tts-proxy.pipeline")


# =============================================================================
# Request/Response Dataclasses
# =============================================================================

@dataclass(frozen=True)
class SynthesisRequest:
    """
    An immutable, validated synthesis request.

    Attributes:
        text: Text to synthesize (non-blank).
        voice_id: Provider voice identifier (non-blank).
        telephony: Whether 16 kHz mono PCM WAV is wanted instead of MP3.

    Construct through RequestPipeline.build_request() to also apply the
    configured length limits.
    """
    text: str
    voice_id: str
    telephony: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.text, str) or not self.text.strip():
            raise ValidationError("text is required", {"field": "text"})
        if not isinstance(self.voice_id, str) or not self.voice_id.strip():
            raise ValidationError("voiceId is required", {"field": "voiceId"})

    @property
    def key(self) -> str:
        return content_key(self.voice_id, self.text)


@dataclass
class PipelineResult:
    """
    Result of one pipeline run.

    Attributes:
        audio_bytes: Audio to return to the caller.
        audio_format: Format of audio_bytes.
        cache_status: "hit" if no provider call was needed, else "miss".
        fallback: True when telephony was requested but primary is returned.
        fallback_reason: ConversionError message when fallback is True.
        total_seconds: Total processing time.
        request_id: Request ID for tracing.
        timings: Per-stage timing breakdown.
    """
    audio_bytes: bytes
    audio_format: AudioFormat
    cache_status: str
    fallback: bool = False
    fallback_reason: Optional[str] = None
    total_seconds: float = -1.0
    request_id: str = "-"
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def media_type(self) -> str:
        return self.audio_format.media_type


# =============================================================================
# Pipeline
# =============================================================================

class RequestPipeline:
    """
    Cache-first synthesis pipeline with telephony conversion and fallback.

    Collaborators default to instances built from settings and can be
    injected for tests:

        pipeline = RequestPipeline(settings, store=..., client=..., converter=...)
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[CacheStore] = None,
        client: Optional[SynthesisClient] = None,
        converter: Optional[FormatConverter] = None,
    ):
        self._settings = settings
        self._config = ProxyConfig.from_settings(settings)

        self._store = store or CacheStore(self._config.storage.base_dir)
        self._client = client or SynthesisClient.from_config(self._config.provider, self._config.retry)
        self._converter = converter or FormatConverter.from_config(self._config.converter)

        self._text_preview_chars = self._config.request.text_preview_chars

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> ProxyConfig:
        return self._config

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def client(self) -> SynthesisClient:
        return self._client

    @property
    def converter(self) -> FormatConverter:
        return self._converter

    # =========================================================================
    # Request construction
    # =========================================================================

    def build_request(self, text: Optional[str], voice_id: Optional[str], telephony: bool = False) -> SynthesisRequest:
        """
        Validate raw inputs against the configured limits.

        Raises:
            ValidationError: Before any I/O, if an input is malformed.
        """
        try:
            return SynthesisRequest(
                text=validate_text(text, self._config.request.max_text_chars),
                voice_id=validate_voice_id(voice_id, self._config.request.max_voice_id_chars),
                telephony=bool(telephony),
            )
        except ValidationError as e:
            metrics.record_request(status=e.code, duration=-1)
            raise

    # =========================================================================
    # Storage helpers (best-effort)
    # =========================================================================

    def _lookup(self, key: str, fmt: AudioFormat) -> Optional[bytes]:
        """Read a cached artifact; unreadable entries count as a miss."""
        try:
            data = self._store.read(key, fmt)
        except StorageError as e:
            metrics.record_storage_error("read")
            metrics.record_cache(fmt.label, "error")
            warn(_LOG, "cache_read_failed", key=key[:8], format=fmt.label, error=e.message)
            return None

        metrics.record_cache(fmt.label, "hit" if data is not None else "miss")
        return data

    def _persist(self, key: str, fmt: AudioFormat, data: bytes) -> bool:
        """Write an artifact; failures are logged, never raised."""
        try:
            self._store.write(key, fmt, data)
            return True
        except StorageError as e:
            metrics.record_storage_error("write")
            warn(_LOG, "cache_write_failed", key=key[:8], format=fmt.label, error=e.message)
            return False

    # =========================================================================
    # Public API
    # =========================================================================

    def handle(self, request: SynthesisRequest, request_id: str) -> PipelineResult:
        """
        Answer one request (main entry point).

        Args:
            request: Validated SynthesisRequest.
            request_id: Unique ID for request tracing.

        Returns:
            PipelineResult with the audio and how it was obtained.

        Raises:
            ProviderError: Synthesis failed (transient after retries,
                permanent, or timed out).
            ProxyError: INTERNAL_ERROR for anything unexpected.
        """
        timings: Dict[str, float] = {}
        cache_status = "miss"

        info(_LOG, "request", chars=len(request.text), voice=request.voice_id, telephony=request.telephony)
        if self._text_preview_chars > 0:
            verbose(_LOG, "request_text", text_preview=request.text[:self._text_preview_chars])

        try:
            with timeit("request_total") as total_t:
                key = request.key
                debug(_LOG, "resolved", cache_key=key, voice=request.voice_id)

                # ──────────────────────────────────────────────
                # Telephony hit: bypasses provider and converter
                # ──────────────────────────────────────────────
                result_bytes: Optional[bytes] = None
                result_format = AudioFormat.PRIMARY
                fallback_reason: Optional[str] = None

                if request.telephony:
                    with timeit("cache_lookup_telephony") as t:
                        result_bytes = self._lookup(key, AudioFormat.TELEPHONY)
                    timings["cache_lookup_telephony"] = t.seconds
                    if result_bytes is not None:
                        cache_status = "hit"
                        result_format = AudioFormat.TELEPHONY

                if result_bytes is None:
                    # ──────────────────────────────────────────────
                    # Primary: cache, else provider
                    # ──────────────────────────────────────────────
                    with timeit("cache_lookup") as t:
                        primary = self._lookup(key, AudioFormat.PRIMARY)
                    timings["cache_lookup"] = t.seconds
                    verbose(_LOG, "stage", event="cache_lookup", seconds=round(t.seconds, 4),
                            cache="hit" if primary is not None else "miss")

                    if primary is not None:
                        cache_status = "hit"
                    else:
                        with timeit("synth") as t:
                            primary = self._client.synthesize(request.text, request.voice_id)
                        timings["synth"] = t.seconds
                        verbose(_LOG, "stage", event="synth", seconds=round(t.seconds, 4),
                                attempts=self._client.last_attempts)

                        with timeit("cache_store") as t:
                            self._persist(key, AudioFormat.PRIMARY, primary)
                        timings["cache_store"] = t.seconds

                    result_bytes = primary

                    # ──────────────────────────────────────────────
                    # Telephony conversion with fallback
                    # ──────────────────────────────────────────────
                    if request.telephony:
                        try:
                            with timeit("convert") as t:
                                converted = self._converter.convert(primary)
                            timings["convert"] = t.seconds
                            verbose(_LOG, "stage", event="convert", seconds=round(t.seconds, 4))
                        except ConversionError as e:
                            fallback_reason = e.message
                            metrics.record_fallback()
                            warn(_LOG, "telephony_fallback", key=key[:8], error=e.message)
                        else:
                            self._persist(key, AudioFormat.TELEPHONY, converted)
                            result_bytes = converted
                            result_format = AudioFormat.TELEPHONY

        except ProxyError as e:
            fail(_LOG, "request_failed", error=e.code, message=e.message)
            metrics.record_request(status=e.code, duration=total_t.seconds, cache_status="error")
            raise
        except Exception as e:
            fail(_LOG, "request_failed", error=str(e), error_type=type(e).__name__)
            metrics.record_request(status=ErrorCode.INTERNAL_ERROR, duration=total_t.seconds, cache_status="error")
            raise ProxyError(
                f"Unexpected error: {e}",
                ErrorCode.INTERNAL_ERROR,
                {"error_type": type(e).__name__},
            ) from e

        total_s = total_t.seconds
        success(_LOG, "done", bytes=len(result_bytes), format=result_format.label,
                cache=cache_status, fallback=fallback_reason is not None, seconds=round(total_s, 3))
        metrics.record_request(
            status="success",
            duration=total_s,
            audio_format=result_format.label,
            cache_status=cache_status,
            audio_bytes=len(result_bytes),
        )

        return PipelineResult(
            audio_bytes=result_bytes,
            audio_format=result_format,
            cache_status=cache_status,
            fallback=fallback_reason is not None,
            fallback_reason=fallback_reason,
            total_seconds=total_s,
            request_id=request_id,
            timings=timings,
        )

    # =========================================================================
    # Introspection
    # =========================================================================

    def describe(self, request: SynthesisRequest) -> Dict[str, object]:
        """
        Report the cache state for a request without any provider call.

        Used by the CLI dry run.
        """
        key = request.key
        return {
            "key": key,
            "voice_id": request.voice_id,
            "chars": len(request.text),
            "telephony": request.telephony,
            "cached": self._store.cached_formats(key),
            "path": str(self._store.path_for(key, AudioFormat.TELEPHONY if request.telephony else AudioFormat.PRIMARY)),
            "provider_configured": self._client.configured,
        }

    def close(self) -> None:
        self._client.close()


# =============================================================================
# Startup
# =============================================================================

def check_startup(settings: Settings) -> bool:
    """
    Log startup warnings for missing prerequisites.

    The proxy still starts without an API key or ffmpeg; synthesis (or
    telephony conversion) then fails per request.

    Returns:
        True if the provider credential is configured.
    """
    config = ProxyConfig.from_settings(settings)
    configured = config.provider.api_key is not None
    if not configured:
        warn(_LOG, "startup_warning", message="ELEVENLABS_API_KEY is not set; every synthesis call will fail")

    converter = FormatConverter.from_config(config.converter)
    if not converter.available():
        warn(_LOG, "startup_warning",
             message=f"{config.converter.ffmpeg_bin} not found; telephony requests will fall back to MP3")

    info(_LOG, "startup", cache_dir=config.storage.base_dir, port=config.server.port,
         provider=config.provider.base_url, model=config.provider.model_id)
    return configured


# =============================================================================
# Global Pipeline Singleton
# =============================================================================

_pipeline: Optional[RequestPipeline] = None
_pipeline_lock = threading.Lock()


def get_pipeline(settings: Settings) -> RequestPipeline:
    """
    Get or create the global RequestPipeline instance.

    Thread-safe lazy singleton. The pipeline is created on first call
    and reused for subsequent calls.
    """
    global _pipeline
    if _pipeline is None:
        with _pipeline_lock:
            if _pipeline is None:
                _pipeline = RequestPipeline(settings)
    return _pipeline


def reset_pipeline() -> None:
    """
    Reset the global pipeline instance.

    Used primarily for testing to ensure clean state between tests.
    """
    global _pipeline
    with _pipeline_lock:
        if _pipeline is not None:
            _pipeline.close()
        _pipeline = None
