"""Tests for request input validation."""
import pytest

from tts_proxy.core.errors import ErrorCode, ValidationError
from tts_proxy.services.validators import validate_text, validate_voice_id


class TestValidateText:

    def test_valid_text_is_stripped(self):
        assert validate_text("  Hello there  ") == "Hello there"

    @pytest.mark.parametrize("value", ["", "   ", "\n\t", None])
    def test_blank_rejected(self, value):
        with pytest.raises(ValidationError) as exc:
            validate_text(value)
        assert exc.value.code == ErrorCode.INVALID_INPUT
        assert exc.value.details["field"] == "text"

    def test_non_string_rejected(self):
        with pytest.raises(ValidationError):
            validate_text(123)

    @pytest.mark.parametrize("value", ["hi \ud800", "\udfff tail"])
    def test_lone_surrogate_rejected(self, value):
        with pytest.raises(ValidationError) as exc:
            validate_text(value)
        assert exc.value.code == ErrorCode.INVALID_INPUT
        assert exc.value.details["field"] == "text"

    def test_non_bmp_text_accepted(self):
        assert validate_text("hello \U0001F600") == "hello \U0001F600"

    def test_max_length(self):
        assert validate_text("x" * 10, max_length=10) == "x" * 10
        with pytest.raises(ValidationError) as exc:
            validate_text("x" * 11, max_length=10)
        assert exc.value.details["max_length"] == 10


class TestValidateVoiceId:

    def test_valid(self):
        assert validate_voice_id(" pNInz6obpgDQGcFmaJgB ") == "pNInz6obpgDQGcFmaJgB"

    @pytest.mark.parametrize("value", ["", "  ", None])
    def test_blank_rejected(self, value):
        with pytest.raises(ValidationError) as exc:
            validate_voice_id(value)
        assert exc.value.details["field"] == "voiceId"

    @pytest.mark.parametrize("value", ["../admin", "a/b", "a\\b", "a\nb", "a\x00b"])
    def test_separators_and_control_chars_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_voice_id(value)

    def test_max_length(self):
        with pytest.raises(ValidationError):
            validate_voice_id("v" * 129)

    def test_lone_surrogate_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_voice_id("voice\ud800")
        assert exc.value.details["field"] == "voiceId"
