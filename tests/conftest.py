"""Shared fixtures: environment isolation and fake pipeline collaborators."""
from __future__ import annotations

from typing import List, Optional

import pytest

from tts_proxy.core.errors import ConversionError
from tts_proxy.proxy.storage import CacheStore

_ENV_VARS = (
    "ELEVENLABS_API_KEY",
    "ELEVENLABS_BASE_URL",
    "ELEVENLABS_MODEL_ID",
    "PORT",
    "TTS_PROXY_HOST",
    "TTS_PROXY_CACHE_DIR",
    "TTS_PROXY_FFMPEG",
    "TTS_PROXY_LOG_LEVEL",
    "TTS_PROXY_LOG_DIR",
    "TTS_PROXY_JSONL_FILE",
    "TTS_PROXY_LOG_ROTATE_BYTES",
    "TTS_PROXY_LOG_ROTATE_BACKUP",
    "TTS_PROXY_SETTINGS",
)

FAKE_MP3 = b"ID3\x03\x00\x00\x00fake-mp3-frames"
FAKE_WAV = b"RIFF\x24\x00\x00\x00WAVEfmt fake-pcm"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Every test sees defaults only, with its own cache directory."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TTS_PROXY_SETTINGS", str(tmp_path / "absent-settings.yaml"))
    monkeypatch.setenv("TTS_PROXY_CACHE_DIR", str(tmp_path / "cache"))

    from tts_proxy.api.dependencies import get_settings
    from tts_proxy.services.pipeline import reset_pipeline

    get_settings.cache_clear()
    reset_pipeline()
    yield
    reset_pipeline()
    get_settings.cache_clear()


class FakeClient:
    """Stands in for SynthesisClient; records every call."""

    def __init__(self, audio: bytes = FAKE_MP3, error: Optional[Exception] = None):
        self.audio = audio
        self.error = error
        self.calls: List[tuple] = []
        self.configured = True
        self.last_attempts = 0

    def synthesize(self, text: str, voice_id: str) -> bytes:
        self.calls.append((text, voice_id))
        self.last_attempts = 1
        if self.error is not None:
            raise self.error
        return self.audio

    def close(self) -> None:
        pass


class FakeConverter:
    """Stands in for FormatConverter; fails on demand."""

    def __init__(self, output: bytes = FAKE_WAV, fail: bool = False):
        self.output = output
        self.fail = fail
        self.calls: List[bytes] = []

    def convert(self, primary_bytes: bytes, target=None) -> bytes:
        self.calls.append(primary_bytes)
        if self.fail:
            raise ConversionError("ffmpeg exited with status 1", {"returncode": 1})
        return self.output

    def available(self) -> bool:
        return True


class CountingStore(CacheStore):
    """CacheStore that counts reads and writes."""

    def __init__(self, base_dir):
        super().__init__(base_dir)
        self.reads: List[tuple] = []
        self.writes: List[tuple] = []

    def read(self, key, fmt):
        self.reads.append((key, fmt))
        return super().read(key, fmt)

    def write(self, key, fmt, data):
        self.writes.append((key, fmt))
        return super().write(key, fmt, data)


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def fake_converter():
    return FakeConverter()


@pytest.fixture
def store(tmp_path):
    return CountingStore(tmp_path / "store")
