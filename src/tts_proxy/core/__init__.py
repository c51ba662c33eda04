"""
Core Infrastructure for tts-proxy.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - errors.py: Error taxonomy shared by all layers
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""
