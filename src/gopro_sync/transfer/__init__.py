"""
Moving files off the camera.

Handles:
- Free space check before a move stage
- rsync moves that retry transient failures with exponential backoff
"""

import logging
import subprocess
import time
from pathlib import Path
from typing import Callable, Iterable, List, Tuple

import psutil

from gopro_sync.errors import InsufficientStorageError, TransferError
from gopro_sync.jobs.models import backoff_delay
from gopro_sync.timefmt import format_interval

logger = logging.getLogger(__name__)

GB = 1024 ** 3


def _existing_parent(path: Path) -> Path:
    path = Path(path)
    while not path.exists() and path.parent != path:
        path = path.parent
    return path


def free_space_gb(path: Path) -> float:
    """Free space in GB on the filesystem holding ``path``."""
    return psutil.disk_usage(str(_existing_parent(path))).free / GB


def check_free_space(path: Path, min_free_gb: float) -> float:
    """
    Make sure at least ``min_free_gb`` are available under ``path``.

    Returns:
        Free space in GB

    Raises:
        InsufficientStorageError: when less space is available
    """
    free_gb = free_space_gb(path)
    if free_gb < min_free_gb:
        raise InsufficientStorageError(str(path), free_gb, min_free_gb)
    logger.debug(f"Free space on {path}: {free_gb:.1f}GB")
    return free_gb


class ResilientTransfer:
    """
    Moves files with rsync, retrying until rsync reports success.

    ``max_attempts`` of 0 retries forever; otherwise a TransferError is
    raised once the attempts are used up.
    """

    def __init__(
        self,
        config,
        run: Callable = subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the transfer helper.

        Args:
            config: Configuration with tools and transfer settings
            run: Command runner, ``subprocess.run`` unless overridden
            sleep: Sleep function used between attempts
        """
        self.rsync = config.tools.rsync
        self.max_attempts = config.transfer.max_attempts
        self.retry_delay = config.transfer.retry_delay_sec
        self.max_retry_delay = config.transfer.max_retry_delay_sec
        self.run = run
        self.sleep = sleep

    def move_command(self, source: Path, destination_dir: Path) -> List[str]:
        return [
            self.rsync, "-aq", "--remove-source-files",
            str(source), f"{Path(destination_dir).resolve()}/",
        ]

    def move_file(self, source: Path, destination_dir: Path) -> Path:
        """
        Move ``source`` into ``destination_dir``.

        Returns:
            Path of the moved file

        Raises:
            TransferError: when the attempts are exhausted
        """
        source = Path(source)
        destination_dir = Path(destination_dir)
        destination_dir.mkdir(parents=True, exist_ok=True)

        cmd = self.move_command(source, destination_dir)
        started = time.time()
        attempt = 0
        error = ""

        while self.max_attempts == 0 or attempt < self.max_attempts:
            attempt += 1
            try:
                self.run(cmd, capture_output=True, text=True, check=True)
                logger.info(f"{source.name} [elapsed {format_interval(time.time() - started)}]")
                return (destination_dir / source.name).resolve()
            except (subprocess.CalledProcessError, OSError) as e:
                error = getattr(e, "stderr", None) or str(e)
                delay = backoff_delay(attempt, self.retry_delay, self.max_retry_delay)
                logger.warning(
                    f"Moving {source.name} failed (attempt {attempt}): {str(error).strip()}; "
                    f"retrying in {delay:.0f} seconds"
                )
                if self.max_attempts and attempt >= self.max_attempts:
                    break
                self.sleep(delay)

        raise TransferError(str(source), attempt, str(error).strip())

    def move_files(self, files: Iterable[Path], destination_dir: Path) -> Tuple[List[Path], List[Path]]:
        """
        Move several files one by one.

        Returns:
            (moved destination paths, sources that could not be moved)
        """
        moved, failed = [], []
        for source in files:
            try:
                moved.append(self.move_file(source, destination_dir))
            except TransferError as e:
                logger.error(str(e))
                failed.append(Path(source))
        return moved, failed
