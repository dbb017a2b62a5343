"""Tests for the stream file hand-off format."""

from datetime import datetime

import pytest

from stream_grab.utils.models import StreamSet
from stream_grab.utils.streamfile import format_stream_file, read_stream_file, write_stream_file

EXTRACTED = datetime(2024, 5, 1, 12, 30, 0)


def test_absent_streams_written_as_comments():
    text = format_stream_file(StreamSet(source_url="https://www.example.com/w",
                                        video="https://cdn.example/a.m3u8", extracted_at=EXTRACTED))
    lines = text.splitlines()
    assert lines[0] == "# Stream URLs extracted from https://www.example.com/w"
    assert lines[1] == "# Extracted on 2024-05-01T12:30:00"
    assert 'VIDEO_URL="https://cdn.example/a.m3u8"' in lines
    assert "# No separate audio stream URL found" in lines
    assert "# No subtitle URL found" in lines
    assert not any(line.startswith(("AUDIO_URL=", "SUBTITLE_URL=")) for line in lines)


def test_written_file_reads_back(tmp_path):
    original = StreamSet(
        source_url="https://www.example.com/w",
        video="https://cdn.example/v.m3u8?sig=a&b=c",
        audio="https://cdn.example/audio.m3u8",
        subtitle="https://cdn.example/en.vtt",
        extracted_at=EXTRACTED,
    )
    path = write_stream_file(original, tmp_path / "streams.txt")
    loaded = read_stream_file(path)
    assert loaded.as_dict() == original.as_dict()


def test_quote_in_url_is_percent_encoded():
    text = format_stream_file(StreamSet(source_url="s", video='https://cdn.example/a"b.mp4'))
    assert 'VIDEO_URL="https://cdn.example/a%22b.mp4"' in text


def test_hand_written_file(tmp_path):
    path = tmp_path / "streams.txt"
    path.write_text(
        "# written by hand\n"
        "VIDEO_URL='https://cdn.example/v.mp4'\n"
        "AUDIO_URL=https://cdn.example/a.m4a\n"
        "this line is junk\n"
        "SUBTITLE_URL=\"\"\n",
        encoding="utf-8",
    )
    loaded = read_stream_file(path)
    assert loaded.video == "https://cdn.example/v.mp4"
    assert loaded.audio == "https://cdn.example/a.m4a"
    assert loaded.subtitle is None
    assert loaded.source_url == ""
    assert isinstance(loaded.extracted_at, datetime)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="Stream file not found"):
        read_stream_file(tmp_path / "nope.txt")
