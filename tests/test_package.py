"""Tests for pyproject.toml and package installation."""
from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).parent.parent


class TestPackage:

    def test_version_defined(self):
        import tts_proxy
        assert isinstance(tts_proxy.__version__, str)
        assert tts_proxy.__version__

    def test_modules_importable(self):
        from tts_proxy.api import routes, schemas
        from tts_proxy.core import config, errors, metrics
        from tts_proxy.proxy import converter, keys, provider, storage
        from tts_proxy.services import pipeline

        for module in (routes, schemas, config, errors, metrics, converter, keys, provider, storage, pipeline):
            assert module is not None

    def test_cli_help_exits_zero(self):
        result = subprocess.run(
            [sys.executable, "-m", "tts_proxy.cli", "--help"],
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert "tts-proxy" in result.stdout


class TestPyprojectToml:

    @pytest.fixture
    def data(self):
        tomllib = pytest.importorskip("tomllib")
        return tomllib.loads((ROOT / "pyproject.toml").read_text(encoding="utf-8"))

    def test_name_and_script(self, data):
        assert data["project"]["name"] == "tts-proxy"
        assert data["project"]["scripts"]["tts-proxy"] == "tts_proxy.cli:main"

    def test_dependencies(self, data):
        names = {d.split(">=")[0].split("[")[0] for d in data["project"]["dependencies"]}
        for dep in ("fastapi", "uvicorn", "pydantic", "pyyaml", "httpx", "tenacity", "prometheus-client"):
            assert dep in names
        assert "pytest" in " ".join(data["project"]["optional-dependencies"]["test"])


def test_benchmark_dry_run():
    p = subprocess.run(
        [sys.executable, str(ROOT / "scripts" / "benchmark.py"), "--dry-run"],
        capture_output=True,
        text=True,
        check=True,
    )
    assert "BENCHMARK_DRY_RUN_OK" in p.stdout
