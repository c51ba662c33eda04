"""
Durable Artifact Store.

Synthesized and converted audio is kept on disk, one file per
(key, format), in a sharded layout:

    {base_dir}/
        3f/
            3fa1...c2d0.mp3     primary (provider MP3)
            3fa1...c2d0.wav     telephony (16 kHz mono PCM)
        a7/
            a7e9...0b14.mp3

The first two hex characters of the key pick the shard directory, which
keeps any one directory from growing past a few thousand entries.

Write Semantics:
    Each write goes to a uniquely named temp file in the target shard and
    is moved into place with os.replace(). Readers therefore never see a
    partial file, concurrent writers of the same key never share a temp
    path, and the last writer wins. Content addressing means every writer
    of a given (key, format) carries the same bytes, so no locking is needed.

    Nothing here deletes artifacts. Eviction belongs to external
    housekeeping (e.g. a cron job pruning by mtime).

Failure Semantics:
    has()   -> False on any stat failure
    read()  -> None if absent; StorageError if present but unreadable
    write() -> StorageError on any OSError (disk full, permission denied)

Usage:
    store = CacheStore("./cache")
    key = content_key(voice_id, text)

    data = store.read(key, AudioFormat.PRIMARY)
    if data is None:
        data = client.synthesize(text, voice_id)
        store.write(key, AudioFormat.PRIMARY, data)
"""
from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Dict, Optional

from tts_proxy.core.errors import StorageError
from tts_proxy.core.logging import debug, get_logger, verbose
from tts_proxy.proxy.formats import AudioFormat
from tts_proxy.proxy.keys import is_valid_key

_LOG = get_logger("tts-proxy.storage")


class CacheStore:
    """
    Content-addressed audio store rooted at `base_dir`.

    Thread-safe without locks: every operation is a single filesystem
    call or an atomic rename.
    """

    def __init__(self, base_dir: str | os.PathLike):
        self._base_dir = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def path_for(self, key: str, fmt: AudioFormat) -> Path:
        """
        Resolve the artifact path for (key, fmt).

        Raises:
            ValueError: If key is not a 64-char hex digest. This keeps
                arbitrary strings from ever being turned into paths.
        """
        if not is_valid_key(key):
            raise ValueError(f"invalid cache key: {key!r}")
        return self._base_dir / key[:2] / f"{key}.{fmt.extension}"

    def has(self, key: str, fmt: AudioFormat) -> bool:
        """Whether an artifact exists for (key, fmt). No side effects."""
        try:
            return self.path_for(key, fmt).is_file()
        except OSError:
            return False

    def read(self, key: str, fmt: AudioFormat) -> Optional[bytes]:
        """
        Read a stored artifact.

        Returns:
            The stored bytes, or None if no artifact exists.

        Raises:
            StorageError: If the artifact exists but cannot be read, or is
                empty (a zero-byte file is never written by this store).
        """
        p = self.path_for(key, fmt)
        try:
            data = p.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(
                f"Failed to read cached {fmt.label} audio",
                {"key": key[:8], "error": str(e)},
            ) from e

        if not data:
            raise StorageError(f"Cached {fmt.label} audio is empty", {"key": key[:8]})

        verbose(_LOG, "storage_read", key=key[:8], format=fmt.label, bytes=len(data))
        return data

    def write(self, key: str, fmt: AudioFormat, data: bytes) -> None:
        """
        Persist an artifact atomically.

        Rewriting an existing (key, fmt) replaces it with identical
        content, which is a no-op in effect.

        Raises:
            StorageError: On any filesystem failure. The temp file is
                removed before raising.
        """
        p = self.path_for(key, fmt)
        tmp = p.with_name(f".{p.name}.{uuid.uuid4().hex[:12]}.tmp")

        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, p)
        except OSError as e:
            try:
                tmp.unlink(missing_ok=True)
            except OSError as cleanup_err:
                debug(_LOG, "storage_tmp_cleanup_failed", path=str(tmp), error=str(cleanup_err))
            raise StorageError(
                f"Failed to write cached {fmt.label} audio",
                {"key": key[:8], "error": str(e)},
            ) from e

        verbose(_LOG, "storage_write", key=key[:8], format=fmt.label, bytes=len(data))

    def cached_formats(self, key: str) -> Dict[str, bool]:
        """Report which formats exist for a key (used by the CLI dry run)."""
        return {fmt.label: self.has(key, fmt) for fmt in AudioFormat}
