"""
Per-run working directory and state.
"""
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import List, Optional
from loguru import logger

from stream_grab.utils.models import DownloadJob, RunState, StreamKind


class RunContext:
    """
    Owns the temporary working directory of one invocation.

    Use it as a context manager: the directory is removed on every exit path,
    including KeyboardInterrupt and SystemExit.
    """

    def __init__(self, root: Optional[Path] = None, prefix: str = "streamgrab-"):
        self.run_id = uuid.uuid4().hex[:12]
        self.work_dir = Path(tempfile.mkdtemp(prefix=prefix, dir=str(root) if root else None))
        self.state = RunState.INIT
        self.jobs: List[DownloadJob] = []
        logger.info(f"Created temporary directory: {self.work_dir}")

    def __enter__(self) -> "RunContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.transition(RunState.FAILED)
        self.cleanup()

    def transition(self, state: RunState) -> None:
        if state != self.state:
            logger.debug(f"Run {self.run_id}: {self.state.value} -> {state.value}")
            self.state = state

    def path_for(self, kind: StreamKind, attempt: int, suffix: str) -> Path:
        """Destination unique to (kind, run, attempt)."""
        return self.work_dir / f"{StreamKind(kind).value}-{self.run_id}-{attempt}{suffix}"

    def scratch_dir(self, name: str) -> Path:
        path = self.work_dir / name
        path.mkdir(parents=True, exist_ok=True)
        return path

    def cleanup(self) -> None:
        if self.work_dir.exists():
            logger.info("Cleaning up temporary files...")
            shutil.rmtree(self.work_dir, ignore_errors=True)
            if self.work_dir.exists():
                logger.warning(f"Failed to remove temporary directory {self.work_dir}")
