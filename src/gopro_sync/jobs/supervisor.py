"""
Polling supervisor for background jobs.

One loop wakes every poll interval and checks each active job's process.
A job that exited with status 0 (and, when output verification is on,
left a non-empty destination) is completed: the completion callback runs,
then the job's source files are deleted. Anything else is a failure and
the sources are kept. Transfer jobs that fail are restarted with
exponential backoff until their attempts run out.

There is no per-job timeout; a process that never exits is polled
forever.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import psutil

from gopro_sync.jobs.models import Job, JobKind, JobResult, JobStatus, backoff_delay
from gopro_sync.timefmt import format_interval, format_timestamp

logger = logging.getLogger(__name__)

JobCallback = Callable[[Job], None]

RETRYABLE_KINDS = (JobKind.TRANSFER,)


class JobSupervisor:
    """
    Owns the set of in-flight jobs until each reaches a terminal state.

    The active set is only modified from ``poll_once``/``supervise``;
    callbacks run synchronously inside the sweep.
    """

    def __init__(
        self,
        poll_interval: float = 60.0,
        verify_output: bool = True,
        relauncher: Optional[Callable[[Job], Job]] = None,
        retry_delay: float = 5.0,
        max_retry_delay: float = 300.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the supervisor.

        Args:
            poll_interval: Seconds between sweeps
            verify_output: Require a non-empty destination for success
            relauncher: Restarts a failed transfer job; no retries if None
            retry_delay: Base delay before a restart
            max_retry_delay: Upper bound for the backoff delay
            sleep: Sleep function, replaceable in tests
            clock: Time source, replaceable in tests
        """
        self.poll_interval = poll_interval
        self.verify_output = verify_output
        self.relauncher = relauncher
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self.sleep = sleep
        self.clock = clock

        self._active: Dict[str, Job] = {}
        self.completed: List[Job] = []
        self.failed: List[Job] = []

    @classmethod
    def from_config(cls, config, relauncher: Optional[Callable[[Job], Job]] = None, **kwargs) -> "JobSupervisor":
        """Build a supervisor from the control, jobs and transfer settings."""
        return cls(
            poll_interval=config.control.poll_interval_sec,
            verify_output=config.jobs.verify_output,
            relauncher=relauncher,
            retry_delay=config.transfer.retry_delay_sec,
            max_retry_delay=config.transfer.max_retry_delay_sec,
            **kwargs,
        )

    @property
    def active(self) -> List[Job]:
        return list(self._active.values())

    def add(self, job: Job) -> None:
        if job.job_id in self._active:
            raise ValueError(f"Job already supervised: {job.job_id}")
        self._active[job.job_id] = job

    def _result_for(self, job: Job, exit_code: int) -> JobResult:
        if exit_code != 0:
            return JobResult(exit_code=exit_code, succeeded=False, error=f"exited with status {exit_code}")

        if self.verify_output:
            destination = Path(job.destination)
            if not destination.is_file() or destination.stat().st_size == 0:
                return JobResult(exit_code=exit_code, succeeded=False, error="output missing or empty")

        return JobResult(exit_code=exit_code, succeeded=True)

    def check(self, job: Job) -> Optional[JobResult]:
        """
        Observe one job.

        Returns:
            JobResult once the process has exited or a restart could not
            be launched, None while it runs or waits for a restart
        """
        if job.status == JobStatus.RETRY_WAIT:
            if job.next_attempt_at is None or self.clock() < job.next_attempt_at:
                return None
            try:
                self.relauncher(job)
            except (OSError, psutil.Error) as e:
                # a launch that never started still uses up an attempt
                job.attempts += 1
                return JobResult(exit_code=None, succeeded=False, error=f"relaunch failed: {e}")
            return None

        exit_code = job.process.poll()
        if exit_code is None:
            return None
        return self._result_for(job, exit_code)

    def poll_once(
        self,
        on_complete: Optional[JobCallback] = None,
        on_failed: Optional[JobCallback] = None,
    ) -> List[Job]:
        """
        Run a single sweep over the active jobs.

        Returns:
            Jobs that reached a terminal state in this sweep, in the order
            they were found
        """
        finished = []

        for job in list(self._active.values()):
            result = self.check(job)
            if result is None:
                continue

            job.result = result
            if result.succeeded:
                self._complete(job, on_complete)
                finished.append(job)
            elif self._schedule_retry(job):
                continue
            else:
                self._fail(job, on_failed)
                finished.append(job)

        return finished

    def supervise(
        self,
        jobs: Iterable[Job] = (),
        on_complete: Optional[JobCallback] = None,
        on_failed: Optional[JobCallback] = None,
    ) -> List[Job]:
        """
        Poll until every job has completed or failed.

        Returns:
            All jobs that finished, in the order they were observed
        """
        for job in jobs:
            self.add(job)

        finished = []
        while self._active:
            self.sleep(self.poll_interval)
            finished.extend(self.poll_once(on_complete, on_failed))
        return finished

    def _elapsed(self, job: Job) -> str:
        if job.started_at is None:
            return format_interval(0)
        return format_interval(self.clock() - job.started_at)

    def _complete(self, job: Job, on_complete: Optional[JobCallback]) -> None:
        job.status = JobStatus.COMPLETED
        logger.info(
            f"Video file {job.kind.value} finished: {job.destination} PID: {job.pid} "
            f"[{format_timestamp(self.clock())}] [elapsed {self._elapsed(job)}]"
        )

        if on_complete:
            on_complete(job)

        self._delete_sources(job)
        del self._active[job.job_id]
        self.completed.append(job)

    def _schedule_retry(self, job: Job) -> bool:
        if job.kind not in RETRYABLE_KINDS or self.relauncher is None or not job.retryable:
            return False

        delay = backoff_delay(job.attempts, self.retry_delay, self.max_retry_delay)
        job.status = JobStatus.RETRY_WAIT
        job.next_attempt_at = self.clock() + delay
        logger.warning(
            f"{job.kind.value} job for {job.destination.name} {job.result.error} "
            f"(attempt {job.attempts}/{job.max_attempts or 'unlimited'}), retrying in {delay:.0f} seconds"
        )
        return True

    def _fail(self, job: Job, on_failed: Optional[JobCallback]) -> None:
        job.status = JobStatus.FAILED
        logger.error(
            f"Video file {job.kind.value} failed: {job.destination} PID: {job.pid} "
            f"({job.result.error}), keeping source file(s): {[str(s) for s in job.sources]} "
            f"see {job.log_path}"
        )

        del self._active[job.job_id]
        self.failed.append(job)

        if on_failed:
            on_failed(job)

    def _delete_sources(self, job: Job) -> List[str]:
        """Delete the source files of a completed job."""
        deleted = []
        logger.info(f"Deleting original video file(s): {[str(s) for s in job.sources]}")

        for source in job.sources:
            path = Path(source)
            if not path.exists():
                continue
            try:
                path.unlink()
                deleted.append(str(path))
            except OSError as e:
                logger.error(f"Error deleting {path}: {e}")

        return deleted
