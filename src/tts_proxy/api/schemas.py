"""
API Request/Response Schemas.

The request body accepts the field names used by existing callers
(`voiceId`) as well as the snake_case form (`voice_id`):

    {
        "text": "Your call is important to us.",
        "voiceId": "pNInz6obpgDQGcFmaJgB",
        "telephony": true
    }

Pydantic only checks types here. Emptiness and length limits are enforced
by services/validators.py so that every validation failure produces the
same INVALID_INPUT error body, whichever layer catches it.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TTSRequest(BaseModel):
    """
    Body of POST /api/tts.

    Attributes:
        text: Text to synthesize.
        voice_id: Provider voice identifier (JSON: "voiceId" or "voice_id").
        telephony: Return 16 kHz mono PCM WAV instead of MP3.
    """
    model_config = ConfigDict(populate_by_name=True)

    text: str | None = Field(
        default=None,
        description="Text to synthesize",
    )
    voice_id: str | None = Field(
        default=None,
        alias="voiceId",
        description="Provider voice identifier",
    )
    telephony: bool = Field(
        default=False,
        description="Return telephony audio (16 kHz mono PCM WAV)",
    )


class HealthResponse(BaseModel):
    """Liveness response. Performs no dependency checks."""
    ok: bool = True
    service: str
    version: str
