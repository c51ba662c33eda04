"""
Tests for the ffmpeg telephony converter.

subprocess.run is mocked so these tests need no ffmpeg; one end-to-end
test runs only when ffmpeg is on PATH.

Tests cover:
- Argument vector (list, no shell, 16 kHz / mono / pcm_s16le)
- Non-zero exit, spawn failure, timeout, missing output -> ConversionError
- Temp directory removed on success and on failure
"""
import shutil
import subprocess
import wave
from pathlib import Path
from unittest.mock import patch

import pytest

from tts_proxy.core.config import ConverterConfig
from tts_proxy.core.errors import ConversionError, ErrorCode
from tts_proxy.proxy.converter import FormatConverter

WAV = b"RIFF\x24\x00\x00\x00WAVEfmt converted"


def fake_ffmpeg(output: bytes = WAV, returncode: int = 0, stderr: bytes = b""):
    """Build a subprocess.run replacement that writes `output` to the last argv item."""
    seen = {}

    def run(cmd, **kwargs):
        seen["cmd"] = cmd
        seen["kwargs"] = kwargs
        seen["tmp_dir"] = Path(cmd[-1]).parent
        if returncode == 0 and output is not None:
            Path(cmd[-1]).write_bytes(output)
        return subprocess.CompletedProcess(cmd, returncode, stdout=None, stderr=stderr)

    return run, seen


class TestCommand:

    def test_argv_list(self):
        run, seen = fake_ffmpeg()
        with patch("tts_proxy.proxy.converter.subprocess.run", side_effect=run):
            assert FormatConverter().convert(b"mp3") == WAV

        cmd = seen["cmd"]
        assert isinstance(cmd, list)
        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-ar") + 1] == "16000"
        assert cmd[cmd.index("-ac") + 1] == "1"
        assert cmd[cmd.index("-acodec") + 1] == "pcm_s16le"
        assert cmd[cmd.index("-i") + 1].endswith("input.mp3")
        assert cmd[-1].endswith("output.wav")
        assert "shell" not in seen["kwargs"]
        assert seen["kwargs"]["timeout"] == 60.0

    def test_input_bytes_written(self):
        captured = {}

        def run(cmd, **kwargs):
            captured["input"] = Path(cmd[cmd.index("-i") + 1]).read_bytes()
            Path(cmd[-1]).write_bytes(WAV)
            return subprocess.CompletedProcess(cmd, 0, stderr=b"")

        with patch("tts_proxy.proxy.converter.subprocess.run", side_effect=run):
            FormatConverter().convert(b"primary-audio")
        assert captured["input"] == b"primary-audio"

    def test_from_config(self):
        conv = FormatConverter.from_config(
            ConverterConfig(ffmpeg_bin="/opt/ffmpeg", sample_rate=8000, timeout_s=5.0)
        )
        cmd = conv.build_command(Path("in.mp3"), Path("out.wav"))
        assert cmd[0] == "/opt/ffmpeg"
        assert cmd[cmd.index("-ar") + 1] == "8000"
        assert conv.timeout_s == 5.0


class TestFailures:

    def test_nonzero_exit(self):
        run, seen = fake_ffmpeg(returncode=1, stderr=b"Invalid data found when processing input")
        with patch("tts_proxy.proxy.converter.subprocess.run", side_effect=run):
            with pytest.raises(ConversionError) as exc:
                FormatConverter().convert(b"not audio")

        assert exc.value.code == ErrorCode.CONVERSION_FAILED
        assert exc.value.details["returncode"] == 1
        assert "Invalid data" in exc.value.details["stderr"]
        assert not seen["tmp_dir"].exists()

    def test_spawn_failure(self):
        with patch("tts_proxy.proxy.converter.subprocess.run", side_effect=FileNotFoundError("ffmpeg")):
            with pytest.raises(ConversionError):
                FormatConverter(ffmpeg_bin="definitely-not-ffmpeg").convert(b"mp3")

    def test_timeout(self):
        err = subprocess.TimeoutExpired(cmd=["ffmpeg"], timeout=1.0)
        with patch("tts_proxy.proxy.converter.subprocess.run", side_effect=err):
            with pytest.raises(ConversionError) as exc:
                FormatConverter(timeout_s=1.0).convert(b"mp3")
        assert exc.value.details["timeout_s"] == 1.0

    def test_zero_exit_without_output(self):
        run, _ = fake_ffmpeg(output=None)
        with patch("tts_proxy.proxy.converter.subprocess.run", side_effect=run):
            with pytest.raises(ConversionError):
                FormatConverter().convert(b"mp3")

    def test_zero_exit_with_empty_output(self):
        run, _ = fake_ffmpeg(output=b"")
        with patch("tts_proxy.proxy.converter.subprocess.run", side_effect=run):
            with pytest.raises(ConversionError):
                FormatConverter().convert(b"mp3")

    def test_temp_dir_creation_failure(self):
        err = OSError(28, "No space left on device")
        with patch("tts_proxy.proxy.converter.tempfile.mkdtemp", side_effect=err), \
                patch("tts_proxy.proxy.converter.subprocess.run") as run:
            with pytest.raises(ConversionError) as exc:
                FormatConverter().convert(b"mp3")

        assert exc.value.code == ErrorCode.CONVERSION_FAILED
        assert "No space left" in exc.value.message
        run.assert_not_called()

    def test_real_missing_binary(self):
        """No mocking: spawning a nonexistent binary is a ConversionError."""
        with pytest.raises(ConversionError):
            FormatConverter(ffmpeg_bin="tts-proxy-no-such-ffmpeg").convert(b"mp3")


class TestCleanup:

    def test_temp_dir_removed_on_success(self):
        run, seen = fake_ffmpeg()
        with patch("tts_proxy.proxy.converter.subprocess.run", side_effect=run):
            FormatConverter().convert(b"mp3")
        assert not seen["tmp_dir"].exists()


@pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not on PATH")
class TestRealFfmpeg:

    def test_converts_to_16k_mono_pcm(self, tmp_path):
        src = tmp_path / "tone.mp3"
        subprocess.run(
            ["ffmpeg", "-hide_banner", "-loglevel", "error", "-y",
             "-f", "lavfi", "-i", "sine=frequency=440:duration=0.5:sample_rate=44100",
             "-ac", "2", str(src)],
            check=True,
        )

        out = FormatConverter().convert(src.read_bytes())

        dst = tmp_path / "out.wav"
        dst.write_bytes(out)
        with wave.open(str(dst), "rb") as w:
            assert w.getframerate() == 16000
            assert w.getnchannels() == 1
            assert w.getsampwidth() == 2
