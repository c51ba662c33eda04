"""
Audio Formats.

The proxy deals in exactly two artifact formats per cache key:

    PRIMARY    - whatever the provider returns (MP3, audio/mpeg)
    TELEPHONY  - 16 kHz mono signed 16-bit PCM in a WAV container (audio/wav)

Each format knows its on-disk extension and the media type used in HTTP
responses. TelephonySpec describes the ffmpeg target for TELEPHONY.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from tts_proxy.core.config import Defaults


class AudioFormat(Enum):
    PRIMARY = ("primary", "mp3", "audio/mpeg")
    TELEPHONY = ("telephony", "wav", "audio/wav")

    def __init__(self, label: str, extension: str, media_type: str):
        self.label = label
        self.extension = extension
        self.media_type = media_type


@dataclass(frozen=True)
class TelephonySpec:
    """
    Target of the telephony conversion.

    Attributes:
        sample_rate: Output sample rate in Hz.
        channels: Output channel count.
        codec: ffmpeg audio codec name (uncompressed linear PCM).
    """
    sample_rate: int = Defaults.CONVERTER_SAMPLE_RATE
    channels: int = Defaults.CONVERTER_CHANNELS
    codec: str = Defaults.CONVERTER_CODEC


TELEPHONY_SPEC = TelephonySpec()
