"""
Proxy Building Blocks.

The pieces the request pipeline is assembled from:
    - formats.py: AudioFormat and the telephony target spec
    - keys.py: Content-addressed cache key derivation
    - storage.py: Durable on-disk artifact store
    - provider.py: ElevenLabs client with retry/backoff
    - converter.py: ffmpeg telephony transcoder
"""
