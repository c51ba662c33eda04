"""
Request Context and Logging State.

The request id is stored in a ContextVar so that it follows a request
through FastAPI's threadpool and any asyncio tasks without being passed
around explicitly. The current numeric level and the resolved logging
configuration are process-wide module state.

Environment Variables:
    - TTS_PROXY_LOG_LEVEL: Log level (1-4 or name)
    - TTS_PROXY_LOG_DIR: Directory for the JSONL log file (disabled if unset)
    - TTS_PROXY_JSONL_FILE: JSONL filename (default tts-proxy.jsonl)
    - TTS_PROXY_LOG_ROTATE_BYTES: Max JSONL file size before rotation
    - TTS_PROXY_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

# "-" marks log lines emitted outside any request
_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request id to the current context for log correlation."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(int(_current_level), "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging configuration from the settings file and environment.

    Priority (highest first): TTS_PROXY_* environment variables, the
    `logging` section of the settings file, built-in defaults.
    """
    cfg: Dict[str, Any] = {}

    from tts_proxy.core.config import ConfigValidationError, load_settings

    try:
        settings = load_settings()
        cfg.update(settings.raw.get("logging", {}) or {})
    except (OSError, ConfigValidationError, yaml.YAMLError):
        # Unreadable settings: defaults, config layer reports the error
        pass

    env_map = {
        "TTS_PROXY_LOG_LEVEL": "level",
        "TTS_PROXY_LOG_DIR": "log_dir",
        "TTS_PROXY_JSONL_FILE": "jsonl_file",
    }
    for env_name, key in env_map.items():
        if os.getenv(env_name):
            cfg[key] = os.environ[env_name]

    for env_name, key in (
        ("TTS_PROXY_LOG_ROTATE_BYTES", "rotate_max_bytes"),
        ("TTS_PROXY_LOG_ROTATE_BACKUP", "rotate_backup_count"),
    ):
        value = os.getenv(env_name)
        if value:
            try:
                cfg[key] = int(value)
            except ValueError:
                pass

    return cfg
