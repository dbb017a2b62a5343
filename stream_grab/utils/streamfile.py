"""
Read and write the key=value stream file that hands a StreamSet from the
extract step to a separate download step.
"""
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Union
from loguru import logger

from stream_grab.utils.models import StreamKind, StreamSet

STREAM_KEYS = {
    StreamKind.VIDEO: "VIDEO_URL",
    StreamKind.AUDIO: "AUDIO_URL",
    StreamKind.SUBTITLE: "SUBTITLE_URL",
}

MISSING_COMMENTS = {
    StreamKind.VIDEO: "# No video stream URL found",
    StreamKind.AUDIO: "# No separate audio stream URL found",
    StreamKind.SUBTITLE: "# No subtitle URL found",
}

SOURCE_PREFIX = "# Stream URLs extracted from "
DATE_PREFIX = "# Extracted on "

_ASSIGNMENT = re.compile(r'^([A-Z_][A-Z0-9_]*)=(.*)$')


def format_stream_file(stream_set: StreamSet) -> str:
    lines = [
        f"{SOURCE_PREFIX}{stream_set.source_url}",
        f"{DATE_PREFIX}{stream_set.extracted_at.isoformat()}",
        "",
    ]
    for kind, key in STREAM_KEYS.items():
        url = stream_set.get(kind)
        if url:
            escaped = url.replace('"', '%22')
            lines.append(f'{key}="{escaped}"')
        else:
            lines.append(MISSING_COMMENTS[kind])
    lines.extend([
        "",
        "# To use with streamgrab:",
        "# streamgrab download --streams-file <this file> -o output.mp4",
    ])
    return "\n".join(lines) + "\n"


def write_stream_file(stream_set: StreamSet, path: Union[str, Path]) -> Path:
    """
    Save a StreamSet in the stream file format.

    Absent streams are written as comment lines, never as empty assignments.
    """
    path = Path(path)
    path.write_text(format_stream_file(stream_set), encoding="utf-8")
    logger.info(f"Stream URLs saved to: {path}")
    return path


def parse_assignments(text: str) -> Dict[str, str]:
    values = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = _ASSIGNMENT.match(line)
        if not match:
            logger.debug(f"Ignoring unparseable stream file line: {line}")
            continue
        name, value = match.groups()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        values[name] = value
    return values


def read_stream_file(path: Union[str, Path]) -> StreamSet:
    """Load a StreamSet written by write_stream_file (or by hand)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Stream file not found: {path}")

    text = path.read_text(encoding="utf-8")
    values = parse_assignments(text)

    source_url = ""
    extracted_at = None
    for line in text.splitlines():
        if line.startswith(SOURCE_PREFIX):
            source_url = line[len(SOURCE_PREFIX):].strip()
        elif line.startswith(DATE_PREFIX):
            try:
                extracted_at = datetime.fromisoformat(line[len(DATE_PREFIX):].strip())
            except ValueError:
                logger.debug(f"Unrecognised extraction date in {path}")

    urls = {kind.value: (values.get(key) or None) for kind, key in STREAM_KEYS.items()}
    if extracted_at is None:
        extracted_at = datetime.fromtimestamp(path.stat().st_mtime)
    return StreamSet(source_url=source_url, extracted_at=extracted_at, **urls)
