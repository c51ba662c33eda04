"""
Utility Modules for tts-proxy.

    - timeit.py: Stage timing context manager
"""
