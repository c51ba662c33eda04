"""
FastAPI REST API Layer for tts-proxy.

This package defines all HTTP endpoints:
    - routes.py: /api/tts, /health, /metrics
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
