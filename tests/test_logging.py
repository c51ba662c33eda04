"""Tests for the numeric-level logging layer."""
from __future__ import annotations

import json
import logging

import pytest

from tts_proxy.core.logging import (
    ColoredConsoleFormatter,
    JsonlFormatter,
    LogLevel,
    coerce_level,
    get_request_id,
    set_request_id,
)
from tts_proxy.core.logging import colors
from tts_proxy.core.logging.context import read_logging_config


def _record(msg="cache", **extra):
    record = logging.LogRecord("tts-proxy.test", logging.INFO, __file__, 1, msg, None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


class TestLevels:

    def test_enum_values(self):
        assert [int(level) for level in LogLevel] == [1, 2, 3, 4]

    @pytest.mark.parametrize("value,expected", [
        (1, LogLevel.MINIMAL),
        (4, LogLevel.DEBUG),
        ("3", LogLevel.VERBOSE),
        ("verbose", LogLevel.VERBOSE),
        ("WARNING", LogLevel.MINIMAL),
        (logging.INFO, LogLevel.NORMAL),
        ("nonsense", LogLevel.NORMAL),
        (True, LogLevel.NORMAL),
    ])
    def test_coerce_level(self, value, expected):
        assert coerce_level(value) == expected


class TestRequestId:

    def test_roundtrip(self):
        set_request_id("abc123")
        assert get_request_id() == "abc123"


class TestFormatters:

    def test_jsonl(self):
        line = JsonlFormatter().format(_record(
            tag="INFO", request_id="rid1", numeric_level=2, seconds=0.25,
            extra_data={"format": "telephony", "result": "hit"},
        ))
        payload = json.loads(line)
        assert payload["message"] == "cache"
        assert payload["request_id"] == "rid1"
        assert payload["seconds"] == 0.25
        assert payload["extra"] == {"format": "telephony", "result": "hit"}

    def test_console_plain(self, monkeypatch):
        monkeypatch.setattr(colors, "USE_COLORS", False)
        line = ColoredConsoleFormatter().format(_record(
            tag="SUCCESS", request_id="rid2", seconds=1.5, extra_data={"cache": "miss"},
        ))
        assert "(rid2)" in line
        assert "cache=miss" in line
        assert "1.500s" in line
        assert "\033[" not in line


class TestConfig:

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TTS_PROXY_LOG_LEVEL", "4")
        monkeypatch.setenv("TTS_PROXY_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("TTS_PROXY_LOG_ROTATE_BYTES", "1024")
        cfg = read_logging_config()
        assert cfg["level"] == "4"
        assert cfg["log_dir"] == str(tmp_path)
        assert cfg["rotate_max_bytes"] == 1024

    def test_broken_settings_file_ignored(self, monkeypatch, tmp_path):
        p = tmp_path / "bad.yaml"
        p.write_text("- not\n- a mapping\n", encoding="utf-8")
        monkeypatch.setenv("TTS_PROXY_SETTINGS", str(p))
        assert read_logging_config() == {}
