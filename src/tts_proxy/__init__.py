"""
tts-proxy: Caching Text-to-Speech Proxy for ElevenLabs.

A small HTTP service that sits between callers and a remote speech
synthesis provider. Each request is answered from a content-addressed disk
cache when possible, otherwise synthesized upstream (with retry/backoff)
and stored for next time.

Key Features:
    - Content-addressed cache keyed by SHA-256 of (voice, text)
    - Retry with exponential backoff for transient provider failures
    - Optional telephony output (16 kHz mono PCM WAV) via ffmpeg
    - Graceful fallback to the provider's MP3 when conversion fails
    - Structured logging and Prometheus metrics

Example Usage:
    >>> from tts_proxy.core.config import Settings
    >>> from tts_proxy.services import RequestPipeline, SynthesisRequest
    >>>
    >>> pipeline = RequestPipeline(Settings(raw={}))
    >>> result = pipeline.handle(SynthesisRequest("Hello", "pNInz6obpgDQGcFmaJgB"))
    >>> with open("hello.mp3", "wb") as f:
    ...     f.write(result.audio_bytes)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
