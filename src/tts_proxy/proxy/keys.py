"""
Content-Addressed Cache Keys.

A cache key is the SHA-256 of the request fields that determine the
provider's output: the voice id and the text. Identical (voice, text)
pairs always map to the same key, across processes and restarts, so a
file written by one worker is a valid hit for every other worker.

Encoding:
    sha256( b"tts-proxy/v1" || len(voice):voice || len(text):text )

Each field is length-prefixed rather than joined with a separator, so no
choice of characters can make two different pairs encode identically:
("ab", "c") hashes "2:ab1:c" while ("a", "bc") hashes "1:a2:bc". The
namespace prefix versions the scheme; bumping it invalidates every
existing key at once.

Example:
    >>> content_key("pNInz6obpgDQGcFmaJgB", "hello")
    '...64 hex chars...'
"""
from __future__ import annotations

import hashlib
import re

KEY_NAMESPACE = b"tts-proxy/v1"

_KEY_RE = re.compile(r"[0-9a-f]{64}")


def _length_prefixed(value: str) -> bytes:
    data = value.encode("utf-8")
    return str(len(data)).encode("ascii") + b":" + data


def content_key(voice_id: str, text: str) -> str:
    """
    Derive the cache key for a (voice, text) pair.

    Pure and deterministic; performs no I/O and never fails for input that
    passed the request validators (UTF-8 encodable str).

    Args:
        voice_id: Provider voice identifier.
        text: Text exactly as it will be sent to the provider.

    Returns:
        64-character lowercase hex SHA-256 digest.
    """
    h = hashlib.sha256()
    h.update(KEY_NAMESPACE)
    h.update(_length_prefixed(voice_id))
    h.update(_length_prefixed(text))
    return h.hexdigest()


def is_valid_key(key: str) -> bool:
    """Whether `key` has the shape produced by content_key()."""
    return isinstance(key, str) and _KEY_RE.fullmatch(key) is not None
