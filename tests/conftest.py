from datetime import datetime
from pathlib import Path
from typing import List, Optional

import pytest

from gopro_sync.config import Config
from gopro_sync.media.models import MediaFile


class FakeProcess:
    """Stands in for a psutil.Popen handle."""

    _next_pid = 4000

    def __init__(self, cmd, exit_codes: Optional[List[Optional[int]]] = None, on_exit=None):
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.cmd = cmd
        self.exit_codes = list(exit_codes if exit_codes is not None else [0])
        self.on_exit = on_exit
        self.polls = 0
        self.niceness = None
        self.ioclass = None

    def poll(self):
        self.polls += 1
        code = self.exit_codes.pop(0) if len(self.exit_codes) > 1 else self.exit_codes[0]
        if code is not None and self.on_exit:
            self.on_exit(self)
            self.on_exit = None
        return code

    def nice(self, value):
        self.niceness = value

    def ionice(self, ioclass):
        self.ioclass = ioclass


class FakePopen:
    """Process factory recording every launch."""

    def __init__(self, exit_codes=None, write_output: bool = True, fail_launches=()):
        self.exit_codes = exit_codes
        self.write_output = write_output
        self.fail_launches = set(fail_launches)
        self.calls = 0
        self.launched: List[FakeProcess] = []

    def __call__(self, cmd, **kwargs):
        self.calls += 1
        if self.calls in self.fail_launches:
            raise OSError(24, "Too many open files")
        on_exit = self._write_destination if self.write_output else None
        process = FakeProcess(cmd, self.exit_codes, on_exit=on_exit)
        self.launched.append(process)
        return process

    @staticmethod
    def _write_destination(process: FakeProcess) -> None:
        destination = Path(process.cmd[-1])
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(b"video")


@pytest.fixture
def config(tmp_path: Path) -> Config:
    config = Config()
    config.paths.home = str(tmp_path / "gopro")
    config.paths.device_mount = str(tmp_path / "mnt")
    config.control.poll_interval_sec = 0.01
    config.transfer.retry_delay_sec = 0
    config.notify.enabled = False
    return config


def make_media(path: Path, when: str, duration: float = 60.0, from_metadata: bool = True) -> MediaFile:
    path = Path(path)
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"clip")
    return MediaFile(
        path=path,
        capture_time=datetime.fromisoformat(when),
        duration=duration,
        from_metadata=from_metadata,
    )
