"""
Prometheus Metrics for tts-proxy.

Metrics Exposed:
    tts_proxy_requests_total                 - Requests by status and returned format
    tts_proxy_request_duration_seconds       - Request latency histogram
    tts_proxy_audio_bytes_total              - Audio bytes returned to callers
    tts_proxy_cache_lookups_total            - Cache lookups by format and result
    tts_proxy_provider_attempts_total        - Provider calls by outcome
    tts_proxy_conversions_total              - Telephony conversions by result
    tts_proxy_telephony_fallbacks_total      - Telephony requests answered with MP3
    tts_proxy_storage_errors_total           - Cache read/write failures by operation

All metrics live in a private CollectorRegistry so that importing the
package twice (e.g. in tests) never trips duplicate-registration errors
on the global registry.

Usage:
    from tts_proxy.core.metrics import metrics

    metrics.record_cache("telephony", "hit")
    metrics.record_provider_attempt("transient")
    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


class ProxyMetrics:
    """
    Metric collection for the proxy pipeline.

    Prometheus client objects are thread-safe, so a single instance is
    shared by every request handler thread.
    """

    def __init__(self) -> None:
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "tts_proxy_requests_total",
            "Total TTS proxy requests",
            ["status", "format"],
            registry=self._registry,
        )
        self._request_duration = Histogram(
            "tts_proxy_request_duration_seconds",
            "TTS proxy request duration in seconds",
            ["cache_status"],
            # Provider round trips dominate; cache hits land in the first bucket
            buckets=(0.01, 0.05, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "tts_proxy_audio_bytes_total",
            "Total audio bytes returned",
            registry=self._registry,
        )
        self._cache_lookups = Counter(
            "tts_proxy_cache_lookups_total",
            "Cache lookups by format and result",
            ["format", "result"],
            registry=self._registry,
        )
        self._provider_attempts = Counter(
            "tts_proxy_provider_attempts_total",
            "Provider calls by outcome",
            ["outcome"],
            registry=self._registry,
        )
        self._conversions = Counter(
            "tts_proxy_conversions_total",
            "Telephony conversions by result",
            ["result"],
            registry=self._registry,
        )
        self._fallbacks = Counter(
            "tts_proxy_telephony_fallbacks_total",
            "Telephony requests answered with the primary format",
            registry=self._registry,
        )
        self._storage_errors = Counter(
            "tts_proxy_storage_errors_total",
            "Cache storage failures by operation",
            ["op"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(
        self,
        status: str,
        duration: float,
        audio_format: str = "none",
        cache_status: str = "miss",
        audio_bytes: int = 0,
    ) -> None:
        """
        Record a finished request.

        Args:
            status: "success" or an ErrorCode value.
            duration: Seconds spent in the pipeline (negative values are skipped,
                for requests rejected before reaching it).
            audio_format: "primary", "telephony" or "none" on error.
            cache_status: "hit", "miss", or "error" for failed requests.
            audio_bytes: Size of the returned audio.
        """
        self._requests_total.labels(status=status, format=audio_format).inc()
        if duration >= 0:
            self._request_duration.labels(cache_status=cache_status).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_cache(self, audio_format: str, result: str) -> None:
        """Record a cache lookup ("hit", "miss" or "error")."""
        self._cache_lookups.labels(format=audio_format, result=result).inc()

    def record_provider_attempt(self, outcome: str) -> None:
        """Record one provider call ("success", "transient", "permanent", "timeout")."""
        self._provider_attempts.labels(outcome=outcome).inc()

    def record_conversion(self, result: str) -> None:
        self._conversions.labels(result=result).inc()

    def record_fallback(self) -> None:
        self._fallbacks.inc()

    def record_storage_error(self, op: str) -> None:
        self._storage_errors.labels(op=op).inc()

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Return (body, content_type) for the /metrics endpoint."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


metrics = ProxyMetrics()
