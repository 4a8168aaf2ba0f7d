"""
Background job dispatch and supervision.
"""

from gopro_sync.jobs.models import Job, JobKind, JobResult, JobStatus
from gopro_sync.jobs.dispatcher import JobDispatcher, find_tool
from gopro_sync.jobs.supervisor import JobSupervisor

__all__ = [
    "Job",
    "JobKind",
    "JobResult",
    "JobStatus",
    "JobDispatcher",
    "JobSupervisor",
    "find_tool",
]
