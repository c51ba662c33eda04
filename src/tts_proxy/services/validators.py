"""
Input Validation for the Proxy Pipeline.

Validation runs before any cache lookup or provider call, so a rejected
request never touches the network or the disk.

Validation Rules:
    - Text: Required, non-blank, max 5000 characters (after stripping)
    - Voice ID: Required, non-blank, max 128 characters, no path separators
      or control characters
    - Both: encodable as UTF-8 (no lone surrogates)

Both values are stripped of surrounding whitespace; the stripped values
are what gets hashed and sent to the provider, so " hello" and "hello"
share one cache entry.

Error Handling:
    Every failure raises tts_proxy.core.errors.ValidationError
    (code INVALID_INPUT) with a `field` detail naming the offending input.

Usage:
    from tts_proxy.services.validators import validate_text, validate_voice_id

    text = validate_text(body.text)
    voice_id = validate_voice_id(body.voice_id)
"""
from __future__ import annotations

from typing import Optional

from tts_proxy.core.config import Defaults
from tts_proxy.core.errors import ValidationError


def _require_utf8(value: str, field: str) -> None:
    """Lone surrogates survive JSON decoding but cannot be hashed or sent."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValidationError(
            f"{field} is not valid UTF-8 text",
            {"field": field, "position": e.start},
        ) from e


def validate_text(text: Optional[str], max_length: int = Defaults.REQUEST_MAX_TEXT_CHARS) -> str:
    """
    Validate text input.

    Args:
        text: Input text
        max_length: Maximum allowed length

    Returns:
        Stripped text

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("text is required", {"field": "text"})

    text = text.strip()
    _require_utf8(text, "text")

    if len(text) > max_length:
        raise ValidationError(
            f"text exceeds maximum length ({len(text)} > {max_length})",
            {"field": "text", "length": len(text), "max_length": max_length},
        )

    return text


def validate_voice_id(voice_id: Optional[str], max_length: int = Defaults.REQUEST_MAX_VOICE_ID_CHARS) -> str:
    """
    Validate provider voice identifier.

    Voice ids end up in the provider URL path, so separators and control
    characters are rejected outright rather than escaped.

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(voice_id, str) or not voice_id.strip():
        raise ValidationError("voiceId is required", {"field": "voiceId"})

    voice_id = voice_id.strip()
    _require_utf8(voice_id, "voiceId")

    if len(voice_id) > max_length:
        raise ValidationError(
            f"voiceId exceeds maximum length ({len(voice_id)} > {max_length})",
            {"field": "voiceId", "length": len(voice_id), "max_length": max_length},
        )

    if any(c in "/\\" or ord(c) < 32 for c in voice_id):
        raise ValidationError("voiceId contains invalid characters", {"field": "voiceId"})

    return voice_id
