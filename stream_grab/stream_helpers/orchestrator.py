"""
Fetch-and-Mux Orchestrator: download the located streams, fill a missing
subtitle track if asked to, and combine everything into one file.
"""
import dataclasses
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import urlparse
from loguru import logger

from stream_grab.stream_helpers.credentials import CookieSource, obtain
from stream_grab.stream_helpers.locator import StreamLocator
from stream_grab.stream_helpers.media_engine import CaptionStyle, MediaEngine
from stream_grab.stream_helpers.transcription import WhisperTranscriber, ensure_subtitle
from stream_grab.utils.context import RunContext
from stream_grab.utils.errors import FetchError, MediaEngineError, MuxError, VideoFetchError
from stream_grab.utils.models import (
    CredentialBundle, DownloadJob, JobStatus, MuxMode, MuxPlan, RunState, StreamKind, StreamSet,
)
from stream_grab.utils.streamfile import write_stream_file

DEFAULT_SUFFIXES = {
    StreamKind.VIDEO: ".mp4",
    StreamKind.AUDIO: ".aac",
    StreamKind.SUBTITLE: ".srt",
}

KNOWN_SUFFIXES = {
    StreamKind.VIDEO: {".mp4", ".m4v", ".mkv", ".webm", ".mov", ".ts"},
    StreamKind.AUDIO: {".aac", ".m4a", ".mp3", ".opus", ".ogg", ".wav", ".flac"},
    StreamKind.SUBTITLE: {".srt", ".ass", ".ssa"},
}

FETCH_STATES = {
    StreamKind.VIDEO: RunState.FETCHING_VIDEO,
    StreamKind.AUDIO: RunState.FETCHING_AUDIO,
    StreamKind.SUBTITLE: RunState.FETCHING_SUBTITLE,
}


@dataclass
class RunOptions:
    """Caller choices for one orchestrator run."""
    output: Path = Path("output.mp4")
    transcribe: bool = False
    burn_in: bool = True
    style: CaptionStyle = dataclasses.field(default_factory=CaptionStyle)
    download_attempts: int = 1

    @classmethod
    def from_params(cls, params: dict) -> "RunOptions":
        return cls(
            output=Path(params.get("output") or "output.mp4"),
            transcribe=bool(params.get("whisper", False)),
            burn_in=bool(params.get("burn_in", True)),
            style=CaptionStyle.from_params(params),
            download_attempts=max(1, int(params.get("download_attempts") or 1)),
        )


def destination_suffix(kind: StreamKind, url: str) -> str:
    """File suffix for a download: the URL's own when it is a known container."""
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    if suffix in KNOWN_SUFFIXES[kind]:
        return suffix
    return DEFAULT_SUFFIXES[kind]


def plan_mux(video: DownloadJob, audio: Optional[DownloadJob], subtitle: Optional[Path],
             burn_in: bool = True) -> MuxPlan:
    """
    Decide how to combine the succeeded downloads.

    No subtitle: stream copy. Subtitle: burn-in re-encode by default, soft
    subtitle track when burn_in is off.
    """
    audio_path = audio.destination if audio is not None and audio.succeeded else None
    if subtitle is None:
        mode = MuxMode.COPY
    elif burn_in:
        mode = MuxMode.BURN_IN
    else:
        mode = MuxMode.SOFT
    return MuxPlan(video=video.destination, audio=audio_path, subtitle=subtitle, mode=mode)


class StreamOrchestrator:
    """
    Runs INIT -> FETCHING_VIDEO -> (FETCHING_AUDIO) -> (FETCHING_SUBTITLE |
    TRANSCRIBING) -> MUXING -> DONE, one stage after another. Any fatal error
    moves the context to FAILED; the caller's RunContext removes the working
    directory afterwards.
    """

    def __init__(self, engine: Optional[MediaEngine] = None,
                 transcriber: Optional[WhisperTranscriber] = None):
        self.engine = engine or MediaEngine()
        self.transcriber = transcriber or WhisperTranscriber()

    def fetch(self, context: RunContext, kind: StreamKind, url: str, attempts: int = 1,
              credentials: Optional[CredentialBundle] = None) -> DownloadJob:
        """
        Download one stream with up to ``attempts`` tries.

        Returns the job with status SUCCEEDED or FAILED; raising is left to
        the caller, which knows whether the kind is fatal.
        """
        context.transition(FETCH_STATES[kind])
        headers = None
        if credentials is not None:
            cookie_header = credentials.cookie_header(url)
            if cookie_header:
                headers = {"Cookie": cookie_header}

        job = None
        for attempt in range(1, attempts + 1):
            destination = context.path_for(kind, attempt, destination_suffix(kind, url))
            job = DownloadJob(kind=kind, source_url=url, destination=destination, attempt=attempt)
            context.jobs.append(job)

            logger.info(f"Downloading {kind.value} stream...")
            job.status = JobStatus.IN_PROGRESS
            try:
                # Subtitles are converted (e.g. WebVTT to SRT) rather than copied
                self.engine.download(url, destination, copy=kind != StreamKind.SUBTITLE, headers=headers)
            except MediaEngineError as e:
                job.status = JobStatus.FAILED
                if attempt < attempts:
                    logger.warning(f"{kind.value.capitalize()} download failed: {e}. "
                                   f"Retrying (attempt {attempt + 1}/{attempts})")
                else:
                    logger.error(f"{kind.value.capitalize()} download failed: {e}")
                continue

            job.status = JobStatus.SUCCEEDED
            logger.success(f"Downloaded {kind.value} stream to {destination.name}")
            return job
        return job

    def run(self, stream_set: StreamSet, context: RunContext, options: RunOptions,
            credentials: Optional[CredentialBundle] = None) -> Path:
        """
        Download, (transcribe,) mux and deliver ``options.output``.

        Raises:
            VideoFetchError: no video URL, or the video download failed
            FetchError: a resolved audio stream failed to download
            MuxError: ffmpeg failed to combine the streams, or the output could not be written
        """
        if not stream_set.is_usable:
            context.transition(RunState.FAILED)
            raise VideoFetchError("No video stream URL resolved; nothing to download")

        video = self.fetch(context, StreamKind.VIDEO, stream_set.video,
                           options.download_attempts, credentials)
        if not video.succeeded:
            context.transition(RunState.FAILED)
            raise VideoFetchError(f"Failed to download video stream {stream_set.video}")

        audio = None
        if stream_set.audio:
            audio = self.fetch(context, StreamKind.AUDIO, stream_set.audio,
                               options.download_attempts, credentials)
            if not audio.succeeded:
                context.transition(RunState.FAILED)
                raise FetchError(f"Failed to download audio stream {stream_set.audio}",
                                 stage="audio fetch")

        subtitle_path = None
        transcribe_from = stream_set
        if stream_set.subtitle:
            subtitle = self.fetch(context, StreamKind.SUBTITLE, stream_set.subtitle,
                                  options.download_attempts, credentials)
            if subtitle.succeeded:
                subtitle_path = subtitle.destination
            else:
                logger.warning("Failed to download subtitle stream, continuing without subtitles")
                transcribe_from = dataclasses.replace(stream_set, subtitle=None)

        if subtitle_path is None and options.transcribe:
            subtitle_path = ensure_subtitle(
                transcribe_from, context, video.destination,
                audio.destination if audio is not None else None,
                options.transcribe, self.engine, self.transcriber,
            )

        plan = plan_mux(video, audio, subtitle_path, burn_in=options.burn_in)
        return self.mux(context, plan, options)

    def mux(self, context: RunContext, plan: MuxPlan, options: RunOptions) -> Path:
        """Mux inside the working directory, then move the result into place."""
        context.transition(RunState.MUXING)
        logger.info(f"Combining streams ({plan.mode.value})...")
        output = Path(options.output)
        staged = context.work_dir / f"output-{context.run_id}{output.suffix or '.mp4'}"

        try:
            self.engine.mux(plan, staged, options.style)
        except MediaEngineError as e:
            context.transition(RunState.FAILED)
            raise MuxError(f"Failed to combine streams: {e}") from e

        try:
            if output.parent and not output.parent.exists():
                output.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(staged), str(output))
        except OSError as e:
            context.transition(RunState.FAILED)
            raise MuxError(f"Cannot write {output}: {e}", stage="output") from e
        context.transition(RunState.DONE)
        logger.success(f"Successfully created: {output}")
        return output


def run_pipeline(page_url: str, source: CookieSource, params: dict,
                 locator: Optional[StreamLocator] = None,
                 orchestrator: Optional[StreamOrchestrator] = None,
                 save_streams: Optional[Path] = None) -> Path:
    """
    Credentials -> locate -> fetch/transcribe/mux inside one working directory.

    Args:
        page_url: Source page URL
        source: Cookie file or browser
        params: Effective parameters (see DefaultsManager)
        locator: Stream locator (built from params by default)
        orchestrator: Orchestrator (built from params by default)
        save_streams: Optionally write the located StreamSet here too

    Returns:
        Path of the output file
    """
    locator = locator or StreamLocator.from_params(params)
    orchestrator = orchestrator or StreamOrchestrator(
        MediaEngine.from_params(params), WhisperTranscriber.from_params(params))
    options = RunOptions.from_params(params)

    with RunContext() as context:
        credentials = obtain(page_url, source, context)
        stream_set = locator.locate(page_url, credentials)
        if save_streams:
            write_stream_file(stream_set, save_streams)
        return orchestrator.run(stream_set, context, options, credentials)
