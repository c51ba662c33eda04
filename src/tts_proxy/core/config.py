"""
Configuration Management for tts-proxy.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration sections
    - YAML file loading
    - Environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (ELEVENLABS_API_KEY, PORT, TTS_PROXY_CACHE_DIR, ...)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    provider:
      base_url: https://api.elevenlabs.io
      model_id: eleven_monolingual_v1
      timeout_s: 30

    retry:
      max_attempts: 3
      backoff_s: 1.0

    storage:
      base_dir: ./cache

    converter:
      ffmpeg_bin: ffmpeg
      sample_rate: 16000

The provider API key is deliberately read from the environment only
(ELEVENLABS_API_KEY) so that it never ends up in a checked-in YAML file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os
import yaml


class ConfigValidationError(Exception):
    """Raised when a configuration value is out of bounds or malformed."""
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Provider: Remote synthesis API
        - Retry: Backoff policy for transient provider failures
        - Storage: Durable cache location
        - Converter: ffmpeg telephony transcoding
        - Server: HTTP bind address
        - Request: Input limits
        - Logging: Log level
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Provider (ElevenLabs)
    # ─────────────────────────────────────────────────────────────────────────
    PROVIDER_BASE_URL = "https://api.elevenlabs.io"
    PROVIDER_MODEL_ID = "eleven_monolingual_v1"
    PROVIDER_STABILITY = 0.6
    PROVIDER_SIMILARITY_BOOST = 0.9
    PROVIDER_TIMEOUT_S = 30.0

    # ─────────────────────────────────────────────────────────────────────────
    # Retry Policy
    # ─────────────────────────────────────────────────────────────────────────
    RETRY_MAX_ATTEMPTS = 3          # 1 call + 2 retries
    RETRY_BACKOFF_S = 1.0           # First wait; doubles per attempt (1s, 2s)
    RETRY_JITTER_S = 0.25           # Uniform random extra wait

    # ─────────────────────────────────────────────────────────────────────────
    # Storage (content-addressed disk cache)
    # ─────────────────────────────────────────────────────────────────────────
    STORAGE_BASE_DIR = "./cache"

    # ─────────────────────────────────────────────────────────────────────────
    # Telephony Converter
    # ─────────────────────────────────────────────────────────────────────────
    CONVERTER_FFMPEG_BIN = "ffmpeg"
    CONVERTER_SAMPLE_RATE = 16000
    CONVERTER_CHANNELS = 1
    CONVERTER_CODEC = "pcm_s16le"
    CONVERTER_TIMEOUT_S = 60.0

    # ─────────────────────────────────────────────────────────────────────────
    # HTTP Server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_HOST = "0.0.0.0"
    SERVER_PORT = 3000

    # ─────────────────────────────────────────────────────────────────────────
    # Request Limits
    # ─────────────────────────────────────────────────────────────────────────
    REQUEST_MAX_TEXT_CHARS = 5000       # Fits the 64 KB JSON body budget
    REQUEST_MAX_VOICE_ID_CHARS = 128
    REQUEST_TEXT_PREVIEW_CHARS = 80     # Characters of text shown in VERBOSE logs
    REQUEST_MAX_BODY_BYTES = 64 * 1024  # JSON body limit

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class ProviderConfig:
    """
    Remote synthesis provider settings.

    api_key is None when ELEVENLABS_API_KEY is unset; the service still
    starts but every synthesis call fails with PROVIDER_NOT_CONFIGURED.
    """
    api_key: Optional[str] = None
    base_url: str = Defaults.PROVIDER_BASE_URL
    model_id: str = Defaults.PROVIDER_MODEL_ID
    stability: float = Defaults.PROVIDER_STABILITY
    similarity_boost: float = Defaults.PROVIDER_SIMILARITY_BOOST
    timeout_s: float = Defaults.PROVIDER_TIMEOUT_S


@dataclass
class RetryConfig:
    """Backoff policy applied to transient provider failures only."""
    max_attempts: int = Defaults.RETRY_MAX_ATTEMPTS
    backoff_s: float = Defaults.RETRY_BACKOFF_S
    jitter_s: float = Defaults.RETRY_JITTER_S


@dataclass
class StorageConfig:
    """Root directory of the content-addressed audio cache."""
    base_dir: str = Defaults.STORAGE_BASE_DIR


@dataclass
class ConverterConfig:
    """
    Telephony transcoding settings.

    The defaults produce 16 kHz, mono, signed 16-bit little-endian PCM
    in a WAV container.
    """
    ffmpeg_bin: str = Defaults.CONVERTER_FFMPEG_BIN
    sample_rate: int = Defaults.CONVERTER_SAMPLE_RATE
    channels: int = Defaults.CONVERTER_CHANNELS
    codec: str = Defaults.CONVERTER_CODEC
    timeout_s: float = Defaults.CONVERTER_TIMEOUT_S


@dataclass
class ServerConfig:
    host: str = Defaults.SERVER_HOST
    port: int = Defaults.SERVER_PORT


@dataclass
class RequestConfig:
    max_text_chars: int = Defaults.REQUEST_MAX_TEXT_CHARS
    max_voice_id_chars: int = Defaults.REQUEST_MAX_VOICE_ID_CHARS
    text_preview_chars: int = Defaults.REQUEST_TEXT_PREVIEW_CHARS
    max_body_bytes: int = Defaults.REQUEST_MAX_BODY_BYTES


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, failures only
        2 = NORMAL: Request lifecycle, cache status (default)
        3 = VERBOSE: Per-stage timing, retry attempts
        4 = DEBUG: Internal state
    """
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ProxyConfig:
    """
    Validated configuration for the proxy.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ProxyConfig.from_settings(settings)
        print(config.retry.max_attempts)
    """
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    converter: ConverterConfig = field(default_factory=ConverterConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    request: RequestConfig = field(default_factory=RequestConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ProxyConfig":
        """
        Create ProxyConfig from Settings, applying environment overrides.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ProxyConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Provider
        # ─────────────────────────────────────────────────────────────────────
        provider_raw = raw.get("provider", {}) or {}
        provider = ProviderConfig(
            api_key=_env("ELEVENLABS_API_KEY") or None,
            base_url=str(_env("ELEVENLABS_BASE_URL")
                         or provider_raw.get("base_url", Defaults.PROVIDER_BASE_URL)).rstrip("/"),
            model_id=str(_env("ELEVENLABS_MODEL_ID")
                         or provider_raw.get("model_id", Defaults.PROVIDER_MODEL_ID)),
            stability=float(provider_raw.get("stability", Defaults.PROVIDER_STABILITY)),
            similarity_boost=float(provider_raw.get("similarity_boost", Defaults.PROVIDER_SIMILARITY_BOOST)),
            timeout_s=float(provider_raw.get("timeout_s", Defaults.PROVIDER_TIMEOUT_S)),
        )
        if not provider.base_url:
            raise ConfigValidationError("provider.base_url must not be empty")
        cls._validate_range("provider.stability", provider.stability, 0.0, 1.0)
        cls._validate_range("provider.similarity_boost", provider.similarity_boost, 0.0, 1.0)
        cls._validate_positive("provider.timeout_s", provider.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Retry
        # ─────────────────────────────────────────────────────────────────────
        retry_raw = raw.get("retry", {}) or {}
        retry = RetryConfig(
            max_attempts=int(retry_raw.get("max_attempts", Defaults.RETRY_MAX_ATTEMPTS)),
            backoff_s=float(retry_raw.get("backoff_s", Defaults.RETRY_BACKOFF_S)),
            jitter_s=float(retry_raw.get("jitter_s", Defaults.RETRY_JITTER_S)),
        )
        cls._validate_positive("retry.max_attempts", retry.max_attempts)
        cls._validate_non_negative("retry.backoff_s", retry.backoff_s)
        cls._validate_non_negative("retry.jitter_s", retry.jitter_s)

        # ─────────────────────────────────────────────────────────────────────
        # Storage
        # ─────────────────────────────────────────────────────────────────────
        storage_raw = raw.get("storage", {}) or {}
        storage = StorageConfig(
            base_dir=str(_env("TTS_PROXY_CACHE_DIR")
                         or storage_raw.get("base_dir", Defaults.STORAGE_BASE_DIR)),
        )
        if not storage.base_dir:
            raise ConfigValidationError("storage.base_dir must not be empty")

        # ─────────────────────────────────────────────────────────────────────
        # Converter
        # ─────────────────────────────────────────────────────────────────────
        converter_raw = raw.get("converter", {}) or {}
        converter = ConverterConfig(
            ffmpeg_bin=str(_env("TTS_PROXY_FFMPEG")
                           or converter_raw.get("ffmpeg_bin", Defaults.CONVERTER_FFMPEG_BIN)),
            sample_rate=int(converter_raw.get("sample_rate", Defaults.CONVERTER_SAMPLE_RATE)),
            channels=int(converter_raw.get("channels", Defaults.CONVERTER_CHANNELS)),
            codec=str(converter_raw.get("codec", Defaults.CONVERTER_CODEC)),
            timeout_s=float(converter_raw.get("timeout_s", Defaults.CONVERTER_TIMEOUT_S)),
        )
        cls._validate_positive("converter.sample_rate", converter.sample_rate)
        cls._validate_positive("converter.channels", converter.channels)
        cls._validate_positive("converter.timeout_s", converter.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Server
        # ─────────────────────────────────────────────────────────────────────
        server_raw = raw.get("server", {}) or {}
        port_raw = _env("PORT") or server_raw.get("port", Defaults.SERVER_PORT)
        try:
            port = int(port_raw)
        except (TypeError, ValueError):
            raise ConfigValidationError(f"server.port must be an integer, got {port_raw!r}")
        server = ServerConfig(
            host=str(_env("TTS_PROXY_HOST") or server_raw.get("host", Defaults.SERVER_HOST)),
            port=port,
        )
        cls._validate_range("server.port", server.port, 1, 65535)

        # ─────────────────────────────────────────────────────────────────────
        # Request limits
        # ─────────────────────────────────────────────────────────────────────
        request_raw = raw.get("request", {}) or {}
        request = RequestConfig(
            max_text_chars=int(request_raw.get("max_text_chars", Defaults.REQUEST_MAX_TEXT_CHARS)),
            max_voice_id_chars=int(request_raw.get("max_voice_id_chars", Defaults.REQUEST_MAX_VOICE_ID_CHARS)),
            text_preview_chars=int(request_raw.get("text_preview_chars", Defaults.REQUEST_TEXT_PREVIEW_CHARS)),
            max_body_bytes=int(request_raw.get("max_body_bytes", Defaults.REQUEST_MAX_BODY_BYTES)),
        )
        cls._validate_positive("request.max_text_chars", request.max_text_chars)
        cls._validate_positive("request.max_voice_id_chars", request.max_voice_id_chars)
        cls._validate_non_negative("request.text_preview_chars", request.text_preview_chars)
        cls._validate_positive("request.max_body_bytes", request.max_body_bytes)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        level_raw = _env("TTS_PROXY_LOG_LEVEL") or logging_raw.get("level", Defaults.LOGGING_LEVEL)
        if isinstance(level_raw, str) and not level_raw.strip().isdigit():
            level_map = {"MINIMAL": 1, "NORMAL": 2, "INFO": 2, "VERBOSE": 3, "DEBUG": 4, "TRACE": 4}
            log_level = level_map.get(level_raw.strip().upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(level_raw)
        logging_cfg = LoggingConfig(level=log_level)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            provider=provider,
            retry=retry,
            storage=storage,
            converter=converter,
            server=server,
            request=request,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


def _env(name: str) -> Optional[str]:
    """Return a stripped environment value, or None when unset/blank."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_proxy_config() to get the validated ProxyConfig.
    """
    raw: Dict[str, Any]

    @property
    def cache_dir(self) -> str:
        return self.get_proxy_config().storage.base_dir

    @property
    def port(self) -> int:
        return self.get_proxy_config().server.port

    @property
    def has_api_key(self) -> bool:
        """Whether a provider credential is configured."""
        return self.get_proxy_config().provider.api_key is not None

    def get_proxy_config(self) -> ProxyConfig:
        """
        Get validated ProxyConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ProxyConfig.from_settings(self)


DEFAULT_SETTINGS_PATH = "config/settings.yaml"


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from a YAML configuration file.

    When no path is given, TTS_PROXY_SETTINGS or config/settings.yaml is
    used, and a missing file simply yields empty settings (defaults plus
    environment). An explicitly requested file must exist.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If an explicit settings file doesn't exist.
        ConfigValidationError: If the file is not a YAML mapping.
    """
    explicit = path is not None
    p = Path(path or os.getenv("TTS_PROXY_SETTINGS", DEFAULT_SETTINGS_PATH))
    if not p.exists():
        if explicit:
            raise FileNotFoundError(f"settings file not found: {p.resolve()}")
        return Settings(raw={})

    with p.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigValidationError(f"settings file must contain a mapping: {p}")

    return Settings(raw=raw)
