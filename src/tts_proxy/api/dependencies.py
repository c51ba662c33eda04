"""
FastAPI Dependency Injection Providers.

Dependency hierarchy:
    1. get_settings() - Loads and caches application configuration
    2. get_pipeline() - Creates/returns the singleton RequestPipeline

Both are singletons: every request shares one provider HTTP connection
pool and one cache store.

Usage in Route Handlers:
    from fastapi import Depends
    from tts_proxy.api.dependencies import get_pipeline

    @router.post("/api/tts")
    def tts(req: TTSRequest, pipeline: RequestPipeline = Depends(get_pipeline)):
        ...

Tests override these through app.dependency_overrides.
"""
from __future__ import annotations

from functools import lru_cache

from tts_proxy.core.config import Settings, load_settings
from tts_proxy.services import pipeline as pipeline_module
from tts_proxy.services.pipeline import RequestPipeline


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    Reads $TTS_PROXY_SETTINGS or config/settings.yaml when present;
    otherwise defaults plus environment overrides apply.
    """
    return load_settings()


def get_pipeline() -> RequestPipeline:
    """Get the singleton RequestPipeline instance."""
    return pipeline_module.get_pipeline(get_settings())
