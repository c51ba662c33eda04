from __future__ import annotations

import argparse
import time
from dataclasses import dataclass
from typing import Optional, Tuple

import httpx


@dataclass
class BenchResult:
    cold_s: float
    warm_s: float
    telephony_s: float
    telephony_warm_s: float
    bytes_primary: int
    bytes_telephony: int
    telephony_fallback: bool


def _post_tts(
    client: httpx.Client, base_url: str, text: str, voice: str, telephony: bool = False
) -> Tuple[float, httpx.Response]:
    t0 = time.perf_counter()
    r = client.post(f"{base_url}/api/tts", json={"text": text, "voiceId": voice, "telephony": telephony})
    dt = time.perf_counter() - t0
    r.raise_for_status()
    return dt, r


def _check_audio(r: httpx.Response, telephony: bool) -> None:
    b = r.content
    if telephony and r.headers.get("x-telephony-fallback") != "1":
        if not (b[:4] == b"RIFF" and b[8:12] == b"WAVE"):
            raise RuntimeError("telephony response is not WAV (RIFF/WAVE header missing)")
    elif not b:
        raise RuntimeError("empty audio response")


def run_benchmark(
    base_url: str,
    text: str,
    voice: str,
    timeout_s: float = 120.0,
    client: Optional[httpx.Client] = None,
) -> BenchResult:
    own = client is None
    client = client or httpx.Client(timeout=timeout_s)
    try:
        cold_s, r1 = _post_tts(client, base_url, text, voice)
        _check_audio(r1, telephony=False)
        warm_s, _ = _post_tts(client, base_url, text, voice)
        tel_s, r2 = _post_tts(client, base_url, text, voice, telephony=True)
        _check_audio(r2, telephony=True)
        tel_warm_s, _ = _post_tts(client, base_url, text, voice, telephony=True)
    finally:
        if own:
            client.close()

    return BenchResult(
        cold_s=cold_s,
        warm_s=warm_s,
        telephony_s=tel_s,
        telephony_warm_s=tel_warm_s,
        bytes_primary=len(r1.content),
        bytes_telephony=len(r2.content),
        telephony_fallback=r2.headers.get("x-telephony-fallback") == "1",
    )


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--base-url", default="http://127.0.0.1:3000")
    ap.add_argument("--text", default="Hello! This is a benchmark. The same text is requested twice.")
    ap.add_argument("--voice", default="21m00Tcm4TlvDq8ikWAM")
    ap.add_argument("--timeout", type=float, default=180.0)
    ap.add_argument("--dry-run", action="store_true")
    args = ap.parse_args()

    if args.dry_run:
        print("BENCHMARK_DRY_RUN_OK")
        print({"base_url": args.base_url, "text_len": len(args.text), "voice": args.voice, "timeout": args.timeout})
        return

    res = run_benchmark(args.base_url, args.text, args.voice, timeout_s=args.timeout)

    print("BENCHMARK_OK")
    print(f"base_url: {args.base_url}")
    print(f"text_len: {len(args.text)}")
    print(f"primary   cold: {res.cold_s:.3f}s | bytes={res.bytes_primary}")
    print(f"primary   warm: {res.warm_s:.3f}s")
    print(f"telephony cold: {res.telephony_s:.3f}s | bytes={res.bytes_telephony} | fallback={res.telephony_fallback}")
    print(f"telephony warm: {res.telephony_warm_s:.3f}s")


if __name__ == "__main__":
    main()
