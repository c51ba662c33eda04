"""Tests for scripts/benchmark.py against a scripted server."""
import importlib.util
import sys
from pathlib import Path

import httpx
import pytest

_PATH = Path(__file__).parent.parent / "scripts" / "benchmark.py"
_spec = importlib.util.spec_from_file_location("benchmark", _PATH)
benchmark = importlib.util.module_from_spec(_spec)
sys.modules[_spec.name] = benchmark
_spec.loader.exec_module(benchmark)

WAV = b"RIFF\x24\x00\x00\x00WAVEfmt data"


def _server(fallback=False):
    def handler(request: httpx.Request) -> httpx.Response:
        import json
        body = json.loads(request.content)
        if body["telephony"] and not fallback:
            return httpx.Response(200, content=WAV, headers={"content-type": "audio/wav"})
        headers = {"x-telephony-fallback": "1"} if body["telephony"] else {}
        return httpx.Response(200, content=b"ID3mp3", headers=headers)
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_run_benchmark():
    res = benchmark.run_benchmark("http://proxy.test", "hello", "v1", client=_server())
    assert res.bytes_primary == 6
    assert res.bytes_telephony == len(WAV)
    assert res.telephony_fallback is False
    assert res.cold_s >= 0 and res.warm_s >= 0


def test_run_benchmark_reports_fallback():
    res = benchmark.run_benchmark("http://proxy.test", "hello", "v1", client=_server(fallback=True))
    assert res.telephony_fallback is True


def test_http_error_raises():
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    with pytest.raises(httpx.HTTPStatusError):
        benchmark.run_benchmark("http://proxy.test", "hello", "v1", client=client)
