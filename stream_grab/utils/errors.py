"""
Error types raised by the pipeline stages.

Fatal errors derive from StreamGrabError and carry the stage that failed and
the process exit code the CLI uses for them. TranscriptionWarning is never
fatal.
"""
from typing import Optional


class StreamGrabError(Exception):
    """Base class for fatal pipeline errors."""

    stage = "run"
    exit_code = 1

    def __init__(self, message: str, stage: Optional[str] = None):
        self.message = message
        if stage:
            self.stage = stage
        super().__init__(message)

    def diagnostic(self) -> str:
        """One-line message naming the failed stage."""
        return f"{self.stage} failed: {self.message}"


class CredentialExtractionError(StreamGrabError):
    stage = "credentials"
    exit_code = 3


class CookieFileNotFoundError(CredentialExtractionError, FileNotFoundError):
    """The explicit cookie store path does not exist."""


class FetchError(StreamGrabError):
    """Page or stream download failed."""
    stage = "fetch"
    exit_code = 4


class VideoFetchError(FetchError):
    stage = "video fetch"
    exit_code = 5


class MuxError(StreamGrabError):
    stage = "mux"
    exit_code = 6


class MediaEngineError(Exception):
    """An ffmpeg invocation failed, timed out or could not be started."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class StreamGrabWarning(UserWarning):
    pass


class TranscriptionWarning(StreamGrabWarning):
    """Subtitle generation failed; the run continues without subtitles."""
