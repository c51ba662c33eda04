"""
ElevenLabs Synthesis Client.

Issues one bounded POST per attempt to

    {base_url}/v1/text-to-speech/{voice_id}

and returns the MP3 body. Failures are classified so that only those
worth retrying are retried:

    Outcome                                   Error                     Retried
    ----------------------------------------  ------------------------  -------
    2xx with audio                            (success)                 -
    2xx with empty body                       TransientProviderError    yes
    5xx, 429                                  TransientProviderError    yes
    other 4xx                                 PermanentProviderError    no
    httpx.TimeoutException                    ProviderTimeoutError      no
    other httpx.TransportError (connect, ...) TransientProviderError    yes
    anything else                             PermanentProviderError    no

Timeouts are not retried: a provider that did not answer within the 30s
budget is unlikely to answer the next time, and three stacked timeouts
would hold the caller for minutes. Ambiguous exceptions default to
permanent so that an unknown failure mode can never loop.

Retry Policy (tenacity):
    stop after 3 attempts, wait backoff_s * 2**(n-1) (1s, 2s) plus
    uniform jitter in [0, jitter_s]. After exhaustion the last
    TransientProviderError is re-raised unchanged.

Usage:
    client = SynthesisClient.from_config(config.provider, config.retry)
    mp3 = client.synthesize("Hello there", "pNInz6obpgDQGcFmaJgB")
"""
from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from tts_proxy.core.config import Defaults, ProviderConfig, RetryConfig
from tts_proxy.core.errors import (
    ErrorCode,
    PermanentProviderError,
    ProviderTimeoutError,
    TransientProviderError,
)
from tts_proxy.core.logging import debug, get_logger, verbose, warn
from tts_proxy.core.metrics import metrics

_LOG = get_logger("tts-proxy.provider")

# Upstream error bodies are JSON of unbounded size; keep logs readable
_ERROR_BODY_PREVIEW = 200


class SynthesisClient:
    """
    Synchronous provider client with retry/backoff.

    Thread-safe: the underlying httpx.Client is shared by all request
    threads and pools connections to the provider.

    `last_attempts` reports how many attempts the most recent call made
    on the calling thread.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = Defaults.PROVIDER_BASE_URL,
        model_id: str = Defaults.PROVIDER_MODEL_ID,
        stability: float = Defaults.PROVIDER_STABILITY,
        similarity_boost: float = Defaults.PROVIDER_SIMILARITY_BOOST,
        timeout_s: float = Defaults.PROVIDER_TIMEOUT_S,
        max_attempts: int = Defaults.RETRY_MAX_ATTEMPTS,
        backoff_s: float = Defaults.RETRY_BACKOFF_S,
        jitter_s: float = Defaults.RETRY_JITTER_S,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model_id = model_id
        self._voice_settings = {"stability": stability, "similarity_boost": similarity_boost}
        self._timeout_s = timeout_s
        self._max_attempts = max_attempts
        self._backoff_s = backoff_s
        self._jitter_s = jitter_s
        self._http = http_client or httpx.Client(timeout=httpx.Timeout(timeout_s))
        self._sleep = sleep
        self._local = threading.local()

    @classmethod
    def from_config(
        cls,
        provider: ProviderConfig,
        retry: RetryConfig,
        **kwargs: Any,
    ) -> "SynthesisClient":
        return cls(
            api_key=provider.api_key,
            base_url=provider.base_url,
            model_id=provider.model_id,
            stability=provider.stability,
            similarity_boost=provider.similarity_boost,
            timeout_s=provider.timeout_s,
            max_attempts=retry.max_attempts,
            backoff_s=retry.backoff_s,
            jitter_s=retry.jitter_s,
            **kwargs,
        )

    @property
    def configured(self) -> bool:
        """Whether an API key is available."""
        return bool(self._api_key)

    def close(self) -> None:
        self._http.close()

    # =========================================================================
    # Public API
    # =========================================================================

    def synthesize(self, text: str, voice_id: str) -> bytes:
        """
        Synthesize `text` with `voice_id`, retrying transient failures.

        Returns:
            Raw audio bytes (MP3).

        Raises:
            TransientProviderError: Still failing after the attempt budget.
            PermanentProviderError: Rejected upstream, or no API key configured.
            ProviderTimeoutError: A single attempt exceeded the timeout.
        """
        if not self._api_key:
            raise PermanentProviderError(
                "Provider API key is not configured (set ELEVENLABS_API_KEY)",
                code=ErrorCode.PROVIDER_NOT_CONFIGURED,
            )

        self._local.attempts = 0
        retrying = Retrying(
            retry=retry_if_exception_type(TransientProviderError),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff_s, exp_base=2) + wait_random(0, self._jitter_s),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        return retrying(self._attempt, text, voice_id)

    @property
    def last_attempts(self) -> int:
        return getattr(self._local, "attempts", 0)

    # =========================================================================
    # Single attempt
    # =========================================================================

    def _attempt(self, text: str, voice_id: str) -> bytes:
        self._local.attempts = self.last_attempts + 1
        url = f"{self._base_url}/v1/text-to-speech/{quote(voice_id, safe='')}"
        payload: Dict[str, Any] = {
            "text": text,
            "model_id": self._model_id,
            "voice_settings": self._voice_settings,
        }
        headers = {
            "xi-api-key": self._api_key or "",
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }
        debug(_LOG, "provider_call", attempt=self.last_attempts, url=url, chars=len(text))

        try:
            response = self._http.post(url, json=payload, headers=headers, timeout=self._timeout_s)
        except httpx.TimeoutException as e:
            metrics.record_provider_attempt("timeout")
            raise ProviderTimeoutError(
                f"Provider did not respond within {self._timeout_s}s",
                {"timeout_s": self._timeout_s, "error_type": type(e).__name__},
            ) from e
        except httpx.TransportError as e:
            metrics.record_provider_attempt("transient")
            raise TransientProviderError(
                f"Network error talking to provider: {e}",
                {"error_type": type(e).__name__},
            ) from e
        except Exception as e:
            metrics.record_provider_attempt("permanent")
            raise PermanentProviderError(
                f"Unexpected provider client error: {e}",
                {"error_type": type(e).__name__},
            ) from e

        return self._classify(response)

    def _classify(self, response: httpx.Response) -> bytes:
        status = response.status_code

        if 200 <= status < 300:
            if not response.content:
                metrics.record_provider_attempt("transient")
                raise TransientProviderError("Provider returned an empty audio body", {"upstream_status": status})
            metrics.record_provider_attempt("success")
            verbose(_LOG, "provider_ok", status=status, bytes=len(response.content))
            return response.content

        details = {"upstream_status": status, "upstream_body": response.text[:_ERROR_BODY_PREVIEW]}

        if status >= 500 or status == 429:
            metrics.record_provider_attempt("transient")
            raise TransientProviderError(f"Provider unavailable: HTTP {status}", details)

        metrics.record_provider_attempt("permanent")
        raise PermanentProviderError(f"Provider rejected request: HTTP {status}", details)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait_s = retry_state.next_action.sleep if retry_state.next_action else 0.0
        warn(
            _LOG, "provider_retry",
            attempt=retry_state.attempt_number,
            max_attempts=self._max_attempts,
            wait_s=round(wait_s, 3),
            error=getattr(exc, "message", str(exc)),
        )
