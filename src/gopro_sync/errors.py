"""
Exceptions raised by GoPro Sync.
"""


class GoProSyncError(Exception):
    """Base class for pipeline errors."""


class InsufficientStorageError(GoProSyncError):
    """Not enough free space to start a move stage."""

    def __init__(self, path: str, free_gb: float, required_gb: float):
        self.path = path
        self.free_gb = free_gb
        self.required_gb = required_gb
        super().__init__(
            f"Not enough space on {path}: {free_gb:.1f}GB free, "
            f"at least {required_gb:.0f}GB are required"
        )


class TransferError(GoProSyncError):
    """A transfer kept failing until its attempts were exhausted."""

    def __init__(self, source: str, attempts: int, detail: str = ""):
        self.source = source
        self.attempts = attempts
        message = f"Transfer of {source} failed after {attempts} attempts"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ToolNotFoundError(GoProSyncError):
    """A required external executable is not on PATH."""
