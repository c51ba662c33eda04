"""
Tests for the durable artifact store.

Tests cover:
- Write then read returns identical bytes
- Absent artifacts read as None
- Sharded layout and atomic write (no temp files left behind)
- Unreadable or empty entries raise StorageError
- Write failures raise StorageError
- Invalid keys never become paths
"""
import os
from unittest.mock import patch

import pytest

from tts_proxy.core.errors import ErrorCode, StorageError
from tts_proxy.proxy.formats import AudioFormat
from tts_proxy.proxy.keys import content_key
from tts_proxy.proxy.storage import CacheStore

KEY = content_key("v1", "hello")


@pytest.fixture
def cache(tmp_path):
    return CacheStore(tmp_path / "cache")


class TestReadWrite:

    def test_round_trip(self, cache):
        cache.write(KEY, AudioFormat.PRIMARY, b"mp3-bytes")
        assert cache.read(KEY, AudioFormat.PRIMARY) == b"mp3-bytes"

    def test_formats_are_independent(self, cache):
        cache.write(KEY, AudioFormat.PRIMARY, b"mp3")
        assert cache.read(KEY, AudioFormat.TELEPHONY) is None
        assert cache.has(KEY, AudioFormat.PRIMARY)
        assert not cache.has(KEY, AudioFormat.TELEPHONY)

    def test_missing_returns_none(self, cache):
        assert cache.read(KEY, AudioFormat.PRIMARY) is None

    def test_rewrite_same_key(self, cache):
        cache.write(KEY, AudioFormat.PRIMARY, b"same")
        cache.write(KEY, AudioFormat.PRIMARY, b"same")
        assert cache.read(KEY, AudioFormat.PRIMARY) == b"same"

    def test_sharded_layout(self, cache, tmp_path):
        cache.write(KEY, AudioFormat.TELEPHONY, b"wav")
        expected = tmp_path / "cache" / KEY[:2] / f"{KEY}.wav"
        assert expected.is_file()
        assert cache.path_for(KEY, AudioFormat.TELEPHONY) == expected

    def test_no_temp_files_left(self, cache):
        cache.write(KEY, AudioFormat.PRIMARY, b"data")
        shard = cache.path_for(KEY, AudioFormat.PRIMARY).parent
        assert [p.name for p in shard.iterdir()] == [f"{KEY}.mp3"]

    def test_cached_formats(self, cache):
        cache.write(KEY, AudioFormat.PRIMARY, b"mp3")
        assert cache.cached_formats(KEY) == {"primary": True, "telephony": False}


class TestFailures:

    def test_empty_entry_raises(self, cache):
        p = cache.path_for(KEY, AudioFormat.PRIMARY)
        p.parent.mkdir(parents=True)
        p.write_bytes(b"")
        with pytest.raises(StorageError) as exc:
            cache.read(KEY, AudioFormat.PRIMARY)
        assert exc.value.code == ErrorCode.STORAGE_FAILED

    def test_unreadable_entry_raises(self, cache):
        # A directory where the file should be cannot be read as bytes
        p = cache.path_for(KEY, AudioFormat.PRIMARY)
        p.mkdir(parents=True)
        with pytest.raises(StorageError):
            cache.read(KEY, AudioFormat.PRIMARY)

    def test_write_failure_raises_and_cleans_up(self, cache):
        with patch("tts_proxy.proxy.storage.os.replace", side_effect=OSError(28, "No space left on device")):
            with pytest.raises(StorageError) as exc:
                cache.write(KEY, AudioFormat.PRIMARY, b"data")
        assert "No space left" in exc.value.details["error"]
        shard = cache.path_for(KEY, AudioFormat.PRIMARY).parent
        assert list(shard.iterdir()) == []

    def test_write_into_unwritable_root_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"not a directory")
        cache = CacheStore(blocker / "cache")
        with pytest.raises(StorageError):
            cache.write(KEY, AudioFormat.PRIMARY, b"data")

    def test_invalid_key_rejected(self, cache):
        with pytest.raises(ValueError):
            cache.path_for("../../etc/passwd", AudioFormat.PRIMARY)
