"""
Launching of background FFmpeg and rsync jobs.

Each dispatch starts exactly one process and returns at once. The
process writes its diagnostic output to a log file next to the
destination, named after the destination with a ``.log`` suffix.
"""

import logging
import shutil
import subprocess
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import psutil

from gopro_sync.daily.planner import ConcatPlan, Concatenate, Passthrough, LOG_SUFFIX
from gopro_sync.errors import ToolNotFoundError
from gopro_sync.jobs.models import Job, JobKind, JobStatus
from gopro_sync.media.models import MediaFile
from gopro_sync.timefmt import format_timestamp

logger = logging.getLogger(__name__)

CREATION_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def find_tool(name: str) -> str:
    """Resolve an executable on PATH."""
    path = shutil.which(name)
    if not path:
        raise ToolNotFoundError(f"Required tool not found on PATH: {name}")
    return path


def reference_creation_time(media: MediaFile) -> datetime:
    """
    Creation time stamped into a joined file.

    Uses the clip's captured time; when that came from a failed probe the
    file's modification time is read again.
    """
    if media.from_metadata and media.capture_time.timestamp() > 0:
        return media.capture_time
    return datetime.fromtimestamp(media.path.stat().st_mtime)


class JobDispatcher:
    """
    Starts background jobs for the join and convert stages.

    Processes are started through ``popen`` (``psutil.Popen`` by default)
    and reniced / moved to the idle I/O class after launch.
    """

    def __init__(self, config, popen: Optional[Callable] = None, clock: Callable[[], float] = time.time):
        """
        Initialize the dispatcher.

        Args:
            config: Configuration with tools, control and transcode settings
            popen: Process factory, ``psutil.Popen`` unless overridden
            clock: Time source used for job start times
        """
        self.config = config
        self.popen = popen or psutil.Popen
        self.clock = clock
        self._counter = 0

    def _next_id(self, kind: JobKind, destination: Path) -> str:
        self._counter += 1
        return f"{kind.value}_{destination.stem}_{self._counter}"

    # Command builders

    def concat_command(self, plan: Concatenate) -> List[str]:
        creation_time = reference_creation_time(plan.files[0])
        return [
            self.config.tools.ffmpeg, "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", str(plan.manifest_path),
            "-metadata", f"creation_time={creation_time.strftime(CREATION_TIME_FORMAT)}",
            "-c", "copy",
            str(plan.destination),
        ]

    def transfer_command(self, source: Path, destination: Path) -> List[str]:
        return [self.config.tools.rsync, "-ahv", str(source), str(destination)]

    def transcode_command(self, source: Path, destination: Path) -> List[str]:
        transcode = self.config.transcode
        return [
            self.config.tools.ffmpeg, "-y",
            "-i", str(source),
            "-c:a", transcode.audio_codec,
            "-c:v", transcode.video_codec,
            "-preset", transcode.preset,
            "-crf", str(transcode.crf),
            str(destination),
        ]

    # Dispatch

    def dispatch(self, plan: ConcatPlan) -> Job:
        """
        Start the job that produces the daily file for ``plan``.

        Returns:
            Running Job owning the plan's source clips
        """
        if isinstance(plan, Concatenate):
            job = Job(
                job_id=self._next_id(JobKind.CONCAT, plan.destination),
                kind=JobKind.CONCAT,
                command=self.concat_command(plan),
                destination=plan.destination,
                log_path=plan.log_path,
                sources=list(plan.sources),
                metadata={"day": plan.day_key, "manifest": str(plan.manifest_path)},
            )
            logger.info(f"Processing daily video with FFmpeg: {plan.manifest_path}")
        elif isinstance(plan, Passthrough):
            job = Job(
                job_id=self._next_id(JobKind.TRANSFER, plan.destination),
                kind=JobKind.TRANSFER,
                command=self.transfer_command(plan.source, plan.destination),
                destination=plan.destination,
                log_path=plan.log_path,
                sources=[plan.source],
                max_attempts=self.config.jobs.max_attempts,
                metadata={"day": plan.day_key},
            )
            logger.info(f"Processing daily video with Rsync: {plan.destination}")
        else:
            raise TypeError(f"Unsupported plan type: {type(plan).__name__}")

        return self.launch(job)

    def dispatch_transcode(self, source: Path, destination: Path) -> Job:
        """Start a transcode of ``source`` into ``destination``."""
        job = Job(
            job_id=self._next_id(JobKind.TRANSCODE, destination),
            kind=JobKind.TRANSCODE,
            command=self.transcode_command(source, destination),
            destination=destination,
            log_path=destination.with_suffix(LOG_SUFFIX),
            sources=[source],
            metadata={"input": str(source)},
        )
        logger.info(f"Processing daily video: {source}")
        return self.launch(job)

    def launch(self, job: Job) -> Job:
        """Start (or restart) the process for ``job``."""
        job.destination.parent.mkdir(parents=True, exist_ok=True)

        with open(job.log_path, "ab") as log_file:
            job.process = self.popen(
                job.command,
                stdin=subprocess.DEVNULL,
                stdout=log_file,
                stderr=subprocess.STDOUT,
            )

        job.attempts += 1
        job.started_at = self.clock()
        job.next_attempt_at = None
        job.status = JobStatus.RUNNING
        self._apply_priority(job.process)

        logger.info(f"  PID: {job.pid} [started on: {format_timestamp(job.started_at)}]")
        return job

    def relaunch(self, job: Job) -> Job:
        logger.info(f"Restarting {job.kind.value} job for {job.destination.name} (attempt {job.attempts + 1})")
        return self.launch(job)

    def _apply_priority(self, process) -> None:
        """Lower CPU and I/O priority of a job process."""
        control = self.config.control
        try:
            if control.niceness:
                process.nice(control.niceness)
            if control.idle_io and hasattr(psutil, "IOPRIO_CLASS_IDLE"):
                process.ionice(psutil.IOPRIO_CLASS_IDLE)
        except (psutil.Error, OSError, AttributeError) as e:
            logger.debug(f"Could not lower priority of PID {getattr(process, 'pid', '?')}: {e}")
