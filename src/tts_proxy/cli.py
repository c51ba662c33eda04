"""
Command-Line Interface for tts-proxy.

Runs the HTTP server, or pushes requests through the same pipeline the
server uses (same cache directory, same provider client) without HTTP.

Usage Examples:
    # Run the server (PORT / TTS_PROXY_HOST, or flags)
    tts-proxy --serve --port 3000

    # Single synthesis
    tts-proxy --text "Hello there" --voice pNInz6obpgDQGcFmaJgB --out hello.mp3

    # Positional text, telephony format
    tts-proxy "Hello there" --voice pNInz6obpgDQGcFmaJgB --telephony --out hello.wav

    # Batch processing from file (1 line = 1 item)
    tts-proxy --file prompts.txt --voice pNInz6obpgDQGcFmaJgB --out prompts/

    # Dry run: cache key and cache state only, no provider call
    tts-proxy --text "Hello there" --voice pNInz6obpgDQGcFmaJgB --dry-run --json

Exit Codes:
    0 - success
    1 - request failed (provider, storage or internal error)
    2 - usage or validation error

Environment Variables:
    ELEVENLABS_API_KEY: Provider credential
    TTS_PROXY_CACHE_DIR: Cache root (default ./cache)
    TTS_PROXY_SETTINGS: Settings YAML path
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from tts_proxy.core.config import ConfigValidationError, load_settings
from tts_proxy.core.errors import ProxyError, ValidationError
from tts_proxy.core.logging import configure_logging, fail, get_logger, info, set_request_id
from tts_proxy.proxy.formats import AudioFormat
from tts_proxy.services.pipeline import RequestPipeline, SynthesisRequest


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tts-proxy", description="tts-proxy (caching ElevenLabs TTS proxy)")

    # Server mode
    parser.add_argument("--serve", action="store_true", help="Run the HTTP server")
    parser.add_argument("--host", help="Bind host (server mode)")
    parser.add_argument("--port", type=int, help="Bind port (server mode)")

    # Input options
    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--file", help="Batch input file (1 line = 1 item)")
    parser.add_argument("--voice", help="Provider voice id")
    parser.add_argument("--telephony", action="store_true",
                        help="Produce 16 kHz mono PCM WAV instead of MP3")

    # Output options
    parser.add_argument("--out", help="Output path (file, or dir in batch mode)")
    parser.add_argument("--settings", help="Settings YAML path")

    # Execution modes
    parser.add_argument("--dry-run", action="store_true",
                        help="Show cache key and cache state without synthesis")
    parser.add_argument("--json", action="store_true", help="Print JSON summary")

    return parser


def _load_texts(parser: argparse.ArgumentParser, args: argparse.Namespace) -> List[str]:
    """Collect input texts from --text, the positional argument or --file."""
    text = args.text or args.text_pos

    if args.file:
        if text:
            parser.error("use --file without --text or positional text")
        lines = Path(args.file).read_text(encoding="utf-8").splitlines()
        items = [line.strip() for line in lines if line.strip()]
        if not items:
            parser.error("input file is empty")
        return items

    if not text:
        parser.error("provide --text or a positional text")
    return [text]


def _resolve_output_paths(args: argparse.Namespace, count: int) -> List[Path]:
    """
    Output files: numbered files in a directory for --file, otherwise
    --out or out.<ext>. The extension follows the requested format; a
    telephony fallback still writes to the same path.
    """
    ext = AudioFormat.TELEPHONY.extension if args.telephony else AudioFormat.PRIMARY.extension

    if args.file:
        out_dir = Path(args.out or "out")
        out_dir.mkdir(parents=True, exist_ok=True)
        return [out_dir / f"item_{i + 1:03d}.{ext}" for i in range(count)]

    out_path = Path(args.out or f"out.{ext}")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    return [out_path]


def _serve(args: argparse.Namespace, settings) -> int:
    import uvicorn

    server = settings.get_proxy_config().server
    uvicorn.run(
        "tts_proxy.main:app",
        host=args.host or server.host,
        port=args.port or server.port,
        log_level="warning",
    )
    return 0


def _print_payload(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Exit code (see module docstring).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging()
    log = get_logger("tts-proxy.cli")
    set_request_id(uuid4().hex[:12])

    try:
        settings = load_settings(args.settings)
        settings.get_proxy_config()
    except (FileNotFoundError, ConfigValidationError) as e:
        fail(log, "config_error", error=str(e))
        return 2

    if args.serve:
        return _serve(args, settings)

    if not args.voice:
        parser.error("--voice is required")

    texts = _load_texts(parser, args)
    pipeline = RequestPipeline(settings)

    try:
        requests: List[SynthesisRequest] = [
            pipeline.build_request(t, args.voice, args.telephony) for t in texts
        ]
    except ValidationError as e:
        fail(log, "invalid_input", error=e.message)
        _print_payload(e.to_dict(), args.json)
        pipeline.close()
        return 2

    try:
        if args.dry_run:
            payload = {"ok": True, "dry_run": True, "items": [pipeline.describe(r) for r in requests]}
            info(log, "dry_run", items=len(requests), telephony=args.telephony)
            _print_payload(payload, args.json)
            return 0

        out_paths = _resolve_output_paths(args, len(requests))
        results = []
        for req, out_path in zip(requests, out_paths):
            info(log, "synth_start", chars=len(req.text), out=str(out_path))
            rid = uuid4().hex[:12]
            set_request_id(rid)
            try:
                result = pipeline.handle(req, rid)
            except ProxyError as e:
                _print_payload(e.to_dict(), args.json)
                return 1

            out_path.write_bytes(result.audio_bytes)
            results.append({
                "out": str(out_path),
                "bytes": len(result.audio_bytes),
                "format": result.audio_format.label,
                "cache": result.cache_status,
                "fallback": result.fallback,
            })

        _print_payload({"ok": True, "dry_run": False, "items": results}, args.json)
        return 0
    finally:
        pipeline.close()


if __name__ == "__main__":
    raise SystemExit(main())
