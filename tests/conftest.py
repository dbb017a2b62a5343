"""Pytest configuration and fixtures for stream-grab tests."""

import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from loguru import logger

# Add the project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

NETSCAPE_COOKIES = (
    "# Netscape HTTP Cookie File\n"
    ".example.com\tTRUE\t/\tTRUE\t0\tsession\tabc123\n"
    "cdn.example\tFALSE\t/\tFALSE\t0\ttoken\txyz\n"
)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep config, logs, .env lookups and stray files inside tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("STREAMGRAB_"):
            monkeypatch.delenv(key)
    yield


@pytest.fixture(autouse=True)
def no_ffprobe():
    with patch("stream_grab.stream_helpers.media_engine.get_media_duration_seconds", return_value=0.0):
        yield


@pytest.fixture
def log_messages():
    """Capture loguru messages as (level, message) tuples."""
    records = []
    handler_id = logger.add(lambda m: records.append((m.record["level"].name, m.record["message"])),
                            level="DEBUG")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def cookie_file(tmp_path) -> Path:
    path = tmp_path / "exported_cookies.txt"
    path.write_text(NETSCAPE_COOKIES, encoding="utf-8")
    return path

