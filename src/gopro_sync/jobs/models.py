"""
Background job records.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class JobKind(Enum):
    CONCAT = "concat"
    TRANSFER = "transfer"
    TRANSCODE = "transcode"


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    RETRY_WAIT = "retry_wait"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobResult:
    """Outcome of a finished process."""
    exit_code: Optional[int]
    succeeded: bool
    error: Optional[str] = None


@dataclass
class Job:
    """
    A dispatched external process.

    ``sources`` are deleted by the supervisor once the job is observed
    completed; they are never touched for a failed job.
    """
    job_id: str
    kind: JobKind
    command: List[str]
    destination: Path
    log_path: Path
    sources: List[Path] = field(default_factory=list)
    process: Any = None
    status: JobStatus = JobStatus.PENDING
    started_at: Optional[float] = None
    attempts: int = 0
    max_attempts: int = 1
    next_attempt_at: Optional[float] = None
    result: Optional[JobResult] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def pid(self) -> Optional[int]:
        return getattr(self.process, "pid", None)

    @property
    def retryable(self) -> bool:
        """``max_attempts`` of 0 allows unlimited attempts."""
        return self.max_attempts == 0 or self.attempts < self.max_attempts


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Exponential backoff: ``base * 2**(attempt - 1)`` limited to ``cap``."""
    if attempt < 1:
        return 0.0
    return min(base * (2 ** (attempt - 1)), cap)


@dataclass
class StageReport:
    """Summary of one pipeline stage run."""
    stage: str
    inputs: List[Path] = field(default_factory=list)
    outputs: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    aborted: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.aborted is None and not self.failed

    @property
    def has_outputs(self) -> bool:
        return bool(self.outputs)
