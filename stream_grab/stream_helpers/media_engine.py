"""
ffmpeg invocation for stream download, PCM extraction and muxing
"""
import re
import shutil
import subprocess
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union
from pydub import AudioSegment
from loguru import logger

from stream_grab.utils.errors import MediaEngineError
from stream_grab.utils.models import MuxMode, MuxPlan

# Text subtitle codec per output container for soft muxing
SOFT_SUBTITLE_CODECS = {
    ".mp4": "mov_text",
    ".m4v": "mov_text",
    ".mov": "mov_text",
    ".mkv": "srt",
    ".webm": "webvtt",
}

PCM_SAMPLE_RATE = 16000
PCM_CHANNELS = 1
PCM_CODEC = "pcm_s16le"

_TIME_RE = re.compile(r'time=(\d+):(\d+):(\d+\.\d+)')


@dataclass
class CaptionStyle:
    """Burn-in rendering and encoding settings."""
    font: str = "Arial"
    font_size: int = 24
    preset: str = "slow"
    crf: int = 18

    @classmethod
    def from_params(cls, params: dict) -> "CaptionStyle":
        return cls(
            font=params.get("caption_font", "Arial"),
            font_size=int(params.get("caption_font_size", 24)),
            preset=params.get("video_preset", "slow"),
            crf=int(params.get("video_crf", 18)),
        )

    def force_style(self) -> str:
        return f"FontName={self.font},FontSize={self.font_size}"


def escape_filter_value(value: str) -> str:
    """
    Escape a path for use inside an ffmpeg filter argument.

    The value ends up quoted with single quotes inside the filtergraph, so
    backslashes, quotes and the filter separators need escaping.
    """
    escaped = value.replace("\\", "\\\\")
    for ch in ("'", ":", ",", "[", "]", ";"):
        escaped = escaped.replace(ch, "\\" + ch)
    return escaped


def get_media_duration_seconds(path: Path, ffprobe: str = "ffprobe") -> float:
    """
    Get audio/video duration in seconds using ffprobe or pydub.

    Args:
        path: Path to a local audio/video file

    Returns:
        Duration in seconds, or 0.0 if unable to determine
    """
    # Try ffprobe first (faster)
    try:
        result = subprocess.run(
            [ffprobe, '-v', 'error', '-show_entries', 'format=duration',
             '-of', 'default=noprint_wrappers=1:nokey=1', str(path)],
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            timeout=10
        )
        if result.returncode == 0 and result.stdout.strip():
            return float(result.stdout.strip())
    except (subprocess.TimeoutExpired, FileNotFoundError, ValueError):
        pass

    # Fallback to pydub
    try:
        audio = AudioSegment.from_file(str(path))
        return len(audio) / 1000.0
    except Exception as e:
        logger.debug(f"Could not determine duration of {path}: {e}")
        return 0.0


class MediaEngine:
    """
    Thin wrapper around the ffmpeg command line.

    Every call is synchronous. A non-zero exit, a missing binary or an
    expired timeout raise MediaEngineError; output on stderr is only kept for
    diagnostics and progress logging.
    """

    def __init__(self, binary: str = "ffmpeg", timeout: Optional[float] = None):
        self.binary = binary
        self.timeout = timeout

    @classmethod
    def from_params(cls, params: dict) -> "MediaEngine":
        return cls(binary=params.get("ffmpeg_binary") or "ffmpeg",
                   timeout=params.get("process_timeout"))

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    @property
    def ffprobe(self) -> str:
        binary = Path(self.binary)
        return str(binary.with_name(binary.name.replace("ffmpeg", "ffprobe")))

    # ── command builders ─────────────────────────────────────────────

    def download_command(self, url: str, destination: Path, copy: bool = True,
                         headers: Optional[Dict[str, str]] = None) -> List[str]:
        cmd = [self.binary, '-y', '-hide_banner']
        if headers:
            header_block = "".join(f"{k}: {v}\r\n" for k, v in headers.items())
            cmd.extend(['-headers', header_block])
        cmd.extend(['-i', url])
        if copy:
            cmd.extend(['-c', 'copy'])
        cmd.append(str(destination))
        return cmd

    def pcm_command(self, source: Path, destination: Path) -> List[str]:
        return [
            self.binary, '-y', '-hide_banner',
            '-i', str(source),
            '-vn',  # No video
            '-ac', str(PCM_CHANNELS),
            '-ar', str(PCM_SAMPLE_RATE),
            '-c:a', PCM_CODEC,
            str(destination),
        ]

    def mux_command(self, plan: MuxPlan, output: Path, style: Optional[CaptionStyle] = None) -> List[str]:
        """
        Build the final mux command for a plan.

        copy:    stream copy of video (+ separate audio), no re-encode
        burn-in: captions rendered into the frames, video re-encoded, audio copied
        soft:    stream copy plus a text subtitle track
        """
        style = style or CaptionStyle()
        cmd = [self.binary, '-y', '-hide_banner']
        for path in plan.inputs:
            cmd.extend(['-i', str(path)])

        cmd.extend(['-map', '0:v:0'])
        if plan.audio:
            cmd.extend(['-map', '1:a:0'])
        else:
            cmd.extend(['-map', '0:a?'])

        if plan.mode == MuxMode.COPY:
            cmd.extend(['-c', 'copy'])
        elif plan.mode == MuxMode.BURN_IN:
            subtitle_filter = (f"subtitles='{escape_filter_value(str(plan.subtitle))}'"
                               f":force_style='{style.force_style()}'")
            cmd.extend([
                '-vf', subtitle_filter,
                '-c:v', 'libx264',
                '-preset', style.preset,
                '-crf', str(style.crf),
                '-c:a', 'copy',
            ])
        elif plan.mode == MuxMode.SOFT:
            subtitle_index = len(plan.inputs) - 1
            codec = SOFT_SUBTITLE_CODECS.get(output.suffix.lower(), "mov_text")
            cmd.extend([
                '-map', f'{subtitle_index}:s:0',
                '-c', 'copy',
                '-c:s', codec,
            ])
        cmd.append(str(output))
        return cmd

    # ── operations ───────────────────────────────────────────────────

    def download(self, url: str, destination: Path, copy: bool = True,
                 headers: Optional[Dict[str, str]] = None) -> Path:
        """Fetch one elementary stream into ``destination``."""
        self.run(self.download_command(url, destination, copy=copy, headers=headers),
                 f"Downloading {destination.name}")
        return destination

    def extract_pcm(self, source: Path, destination: Path) -> Path:
        """Extract mono 16 kHz signed 16-bit PCM audio."""
        duration = get_media_duration_seconds(source, self.ffprobe)
        self.run(self.pcm_command(source, destination), "Extracting audio", duration)
        return destination

    def mux(self, plan: MuxPlan, output: Path, style: Optional[CaptionStyle] = None) -> Path:
        duration = get_media_duration_seconds(plan.video, self.ffprobe)
        operation = "Burning in subtitles" if plan.mode == MuxMode.BURN_IN else "Combining streams"
        self.run(self.mux_command(plan, output, style), operation, duration)
        return output

    def run(self, cmd: List[str], operation: str, duration_seconds: float = 0.0) -> None:
        """
        Run an ffmpeg command with progress reporting.

        Args:
            cmd: ffmpeg command as list
            operation: Name of operation for logging
            duration_seconds: Expected media duration, 0 if unknown

        Raises:
            MediaEngineError: non-zero exit, missing binary or timeout
        """
        logger.debug(f"Running: {' '.join(cmd)}")
        tail = deque(maxlen=20)
        start_time = time.time()
        last_log_time = start_time

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                # Container metadata in stderr is not always UTF-8
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise MediaEngineError(f"Cannot run {cmd[0]}: {e}") from e

        timed_out = threading.Event()
        timer = None
        if self.timeout:
            def _expire():
                timed_out.set()
                process.kill()
            timer = threading.Timer(self.timeout, _expire)
            timer.daemon = True
            timer.start()

        try:
            # ffmpeg writes progress to stderr
            while True:
                line = process.stderr.readline()
                if not line:
                    break
                line = line.rstrip()
                if line:
                    tail.append(line)

                time_match = _TIME_RE.search(line)
                if time_match:
                    hours, minutes, seconds = time_match.groups()
                    elapsed_seconds = int(hours) * 3600 + int(minutes) * 60 + float(seconds)

                    # Log progress every 2 seconds
                    current_time = time.time()
                    if current_time - last_log_time >= 2.0:
                        elapsed_str = f"{int(elapsed_seconds // 60):02d}:{int(elapsed_seconds % 60):02d}"
                        if duration_seconds > 0:
                            progress_pct = min(100, (elapsed_seconds / duration_seconds) * 100)
                            total_str = f"{int(duration_seconds // 60):02d}:{int(duration_seconds % 60):02d}"
                            logger.info(f"{operation}... {progress_pct:.0f}% ({elapsed_str}/{total_str})")
                        else:
                            logger.info(f"{operation}... {elapsed_str}")
                        last_log_time = current_time

            process.wait()
        except BaseException:
            # Interrupted: do not leave ffmpeg running behind us
            process.kill()
            process.wait()
            raise
        finally:
            if timer is not None:
                timer.cancel()

        stderr_tail = "\n".join(tail)
        if timed_out.is_set():
            raise MediaEngineError(f"{operation} timed out after {self.timeout}s",
                                   returncode=process.returncode, stderr=stderr_tail)
        if process.returncode != 0:
            last_line = tail[-1] if tail else "no diagnostic output"
            raise MediaEngineError(f"{operation} failed (exit {process.returncode}): {last_line}",
                                   returncode=process.returncode, stderr=stderr_tail)
        logger.debug(f"{operation} finished in {time.time() - start_time:.1f}s")
