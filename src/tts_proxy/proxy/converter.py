"""
Telephony Format Converter.

Transcodes primary (MP3) audio into the telephony target with an external
ffmpeg process:

    ffmpeg -hide_banner -loglevel error -nostdin -y \\
        -i input.mp3 -ar 16000 -ac 1 -acodec pcm_s16le output.wav

The process is always started from an explicit argument list, never a
shell string, so nothing in a request can reach a shell. Input and output
live in a private temp directory that is removed whether or not the
conversion succeeds.

Failure Semantics:
    Every failure mode raises ConversionError:
        - ffmpeg binary missing or not executable (OSError on spawn)
        - process exceeded timeout_s
        - non-zero exit status
        - zero exit but no (or empty) output file
    The pipeline treats ConversionError as "serve the primary format".

Usage:
    converter = FormatConverter.from_config(config.converter)
    wav = converter.convert(mp3_bytes)
"""
from __future__ import annotations

import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

from tts_proxy.core.config import ConverterConfig, Defaults
from tts_proxy.core.errors import ConversionError
from tts_proxy.core.logging import debug, get_logger, verbose, warn
from tts_proxy.core.metrics import metrics
from tts_proxy.proxy.formats import TELEPHONY_SPEC, TelephonySpec

_LOG = get_logger("tts-proxy.converter")

# ffmpeg writes a full banner on failure; keep the tail that says why
_STDERR_PREVIEW = 500


class FormatConverter:
    """
    ffmpeg-backed converter from primary audio to the telephony format.

    Stateless between calls; safe to share across request threads since
    each call gets its own temp directory.
    """

    def __init__(
        self,
        ffmpeg_bin: str = Defaults.CONVERTER_FFMPEG_BIN,
        spec: TelephonySpec = TELEPHONY_SPEC,
        timeout_s: float = Defaults.CONVERTER_TIMEOUT_S,
    ):
        self.ffmpeg_bin = ffmpeg_bin
        self.spec = spec
        self.timeout_s = timeout_s

    @classmethod
    def from_config(cls, config: ConverterConfig) -> "FormatConverter":
        return cls(
            ffmpeg_bin=config.ffmpeg_bin,
            spec=TelephonySpec(
                sample_rate=config.sample_rate,
                channels=config.channels,
                codec=config.codec,
            ),
            timeout_s=config.timeout_s,
        )

    def available(self) -> bool:
        """Whether the ffmpeg binary can be found (on PATH or as a path)."""
        return shutil.which(self.ffmpeg_bin) is not None

    def build_command(self, input_path: Path, output_path: Path, spec: Optional[TelephonySpec] = None) -> List[str]:
        """Argument vector for one conversion."""
        spec = spec or self.spec
        return [
            self.ffmpeg_bin,
            "-hide_banner",
            "-loglevel", "error",
            "-nostdin",
            "-y",
            "-i", str(input_path),
            "-ar", str(spec.sample_rate),
            "-ac", str(spec.channels),
            "-acodec", spec.codec,
            str(output_path),
        ]

    def convert(self, primary_bytes: bytes, target: Optional[TelephonySpec] = None) -> bytes:
        """
        Convert primary audio bytes to the telephony format.

        Args:
            primary_bytes: Audio as returned by the provider.
            target: Output spec; defaults to this converter's spec.

        Returns:
            Converted audio bytes (WAV container).

        Raises:
            ConversionError: On any failure, see module docstring.
        """
        tmp_dir: Optional[Path] = None

        try:
            tmp_dir = Path(tempfile.mkdtemp(prefix="tts_proxy_conv_"))
            in_path = tmp_dir / "input.mp3"
            out_path = tmp_dir / "output.wav"
            cmd = self.build_command(in_path, out_path, target)

            in_path.write_bytes(primary_bytes)
            debug(_LOG, "convert_start", bin=self.ffmpeg_bin, bytes=len(primary_bytes))

            try:
                result = subprocess.run(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.PIPE,
                    timeout=self.timeout_s,
                    check=False,
                )
            except subprocess.TimeoutExpired as e:
                raise ConversionError(
                    f"ffmpeg timed out after {self.timeout_s}s",
                    {"timeout_s": self.timeout_s},
                ) from e
            except OSError as e:
                raise ConversionError(
                    f"Could not start ffmpeg: {e}",
                    {"bin": self.ffmpeg_bin},
                ) from e

            if result.returncode != 0:
                stderr = (result.stderr or b"").decode("utf-8", errors="replace").strip()
                raise ConversionError(
                    f"ffmpeg exited with status {result.returncode}",
                    {"returncode": result.returncode, "stderr": stderr[-_STDERR_PREVIEW:]},
                )

            try:
                data = out_path.read_bytes()
            except FileNotFoundError as e:
                raise ConversionError("ffmpeg produced no output file") from e

            if not data:
                raise ConversionError("ffmpeg produced an empty output file")

        except ConversionError as e:
            metrics.record_conversion("failure")
            warn(_LOG, "convert_failed", error=e.message, **e.details)
            raise
        except OSError as e:
            # Temp dir create/write/read failures
            metrics.record_conversion("failure")
            warn(_LOG, "convert_failed", error=str(e))
            raise ConversionError(f"Conversion I/O failed: {e}") from e
        finally:
            if tmp_dir is not None:
                shutil.rmtree(tmp_dir, ignore_errors=True)

        metrics.record_conversion("success")
        verbose(_LOG, "convert_ok", in_bytes=len(primary_bytes), out_bytes=len(data))
        return data
