"""
Transcription Fallback: generate a subtitle track with Whisper when the page
offers none.
"""
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional
from loguru import logger

from stream_grab.stream_helpers.media_engine import MediaEngine
from stream_grab.utils.context import RunContext
from stream_grab.utils.errors import MediaEngineError, TranscriptionWarning
from stream_grab.utils.models import RunState, StreamSet

# On-screen captioning conventions
MAX_LINE_WIDTH = 42
MAX_LINE_COUNT = 2


class WhisperTranscriber:
    """
    Runs the openai-whisper command line tool.

    Whisper names its output after the input file, so the result is found by
    globbing ``<input stem>*.srt`` in the output directory.
    """

    def __init__(self, binary: str = "whisper", model: str = "medium", language: Optional[str] = "en",
                 timeout: Optional[float] = None):
        self.binary = binary
        self.model = model
        self.language = language
        self.timeout = timeout

    @classmethod
    def from_params(cls, params: dict) -> "WhisperTranscriber":
        return cls(
            binary=params.get("whisper_binary") or "whisper",
            model=params.get("whisper_model") or "medium",
            language=params.get("whisper_language"),
            timeout=params.get("process_timeout"),
        )

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def command(self, audio_path: Path, output_dir: Path) -> List[str]:
        cmd = [
            self.binary, str(audio_path),
            "--model", self.model,
            "--word_timestamps", "True",
            "--max_line_width", str(MAX_LINE_WIDTH),
            "--max_line_count", str(MAX_LINE_COUNT),
            "--output_format", "srt",
            "--output_dir", str(output_dir),
        ]
        if self.language:
            cmd.extend(["--language", self.language])
        return cmd

    def transcribe(self, audio_path: Path, output_dir: Path, destination: Path) -> Path:
        """
        Transcribe ``audio_path`` and move the subtitle file to ``destination``.

        Raises:
            TranscriptionWarning: engine missing, failed, timed out or produced no file
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        cmd = self.command(audio_path, output_dir)
        logger.info(f"Generating subtitles with Whisper ({self.model})...")
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, encoding="utf-8",
                                    errors="replace", timeout=self.timeout)
        except FileNotFoundError as e:
            raise TranscriptionWarning(f"Whisper is not installed: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise TranscriptionWarning(f"Whisper timed out after {self.timeout}s") from e

        if result.returncode != 0:
            stderr_lines = (result.stderr or "").strip().splitlines()
            detail = stderr_lines[-1] if stderr_lines else "no diagnostic output"
            raise TranscriptionWarning(f"Whisper failed (exit {result.returncode}): {detail}")

        outputs = sorted(output_dir.glob(f"{audio_path.stem}*.srt"))
        if not outputs:
            raise TranscriptionWarning(f"Whisper produced no subtitle file in {output_dir}")

        shutil.move(str(outputs[0]), str(destination))
        logger.debug(f"Whisper output {outputs[0].name} moved to {destination}")
        return destination


def prepare_audio(context: RunContext, video_path: Path, audio_path: Optional[Path],
                  engine: MediaEngine) -> Path:
    """
    Pick the audio material for transcription.

    A separately downloaded audio file is used as is; otherwise mono 16 kHz
    PCM is extracted from the video.
    """
    if audio_path is not None and audio_path.exists():
        logger.debug(f"Transcribing downloaded audio stream {audio_path.name}")
        return audio_path

    pcm_path = context.work_dir / f"transcribe-{context.run_id}.wav"
    try:
        return engine.extract_pcm(video_path, pcm_path)
    except MediaEngineError as e:
        raise TranscriptionWarning(f"Audio extraction for transcription failed: {e}") from e


def ensure_subtitle(stream_set: StreamSet, context: RunContext, video_path: Path,
                    audio_path: Optional[Path], opted_in: bool,
                    engine: MediaEngine, transcriber: WhisperTranscriber) -> Optional[Path]:
    """
    Generate a subtitle file when the StreamSet has none and the caller opted in.

    Args:
        stream_set: Located streams; nothing happens if it has a subtitle
        context: Run context providing the working directory
        video_path: Downloaded video file
        audio_path: Downloaded audio file, if the audio job succeeded
        opted_in: Whether the caller asked for transcription
        engine: Media engine for PCM extraction
        transcriber: Speech-to-text engine

    Returns:
        Path of the generated subtitle file, or None. Failures are logged as
        warnings and never abort the run.
    """
    if stream_set.subtitle or not opted_in:
        return None

    context.transition(RunState.TRANSCRIBING)
    destination = context.work_dir / f"subtitle-{context.run_id}-whisper.srt"
    try:
        material = prepare_audio(context, video_path, audio_path, engine)
        subtitle = transcriber.transcribe(material, context.scratch_dir("whisper"), destination)
    except TranscriptionWarning as w:
        logger.warning(f"{w}; continuing without subtitles")
        return None

    logger.success(f"Generated subtitles: {subtitle.name}")
    return subtitle
