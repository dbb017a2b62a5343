"""
Pipeline stages and external tool wrappers.

This package provides:
- Credential acquisition (cookie file or browser)
- Stream URL matching and page location
- ffmpeg and Whisper invocation
- The fetch-and-mux orchestrator
"""

from stream_grab.stream_helpers.utils import setup_logger
