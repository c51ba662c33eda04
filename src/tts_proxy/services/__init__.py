"""
tts-proxy Services Layer.

This package provides the business logic that sits between the API/CLI
and the proxy building blocks.

Components:
    - pipeline.py: RequestPipeline (cache → provider → converter orchestration)
    - validators.py: Input validation functions
"""
from .pipeline import (
    PipelineResult,
    RequestPipeline,
    SynthesisRequest,
    check_startup,
    get_pipeline,
    reset_pipeline,
)

__all__ = [
    "RequestPipeline",
    "SynthesisRequest",
    "PipelineResult",
    "check_startup",
    "get_pipeline",
    "reset_pipeline",
]
