import subprocess
from collections import namedtuple
from pathlib import Path

import pytest

from gopro_sync import transfer
from gopro_sync.errors import InsufficientStorageError, TransferError
from gopro_sync.transfer import ResilientTransfer, check_free_space

Usage = namedtuple("Usage", "total used free percent")
GB = 1024 ** 3


class FlakyRsync:
    """Fails ``failures`` times, then moves the file like rsync would."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        if len(self.calls) <= self.failures:
            raise subprocess.CalledProcessError(23, cmd, stderr="rsync: read errors mapping")
        source, destination = Path(cmd[-2]), Path(cmd[-1])
        (destination / source.name).write_bytes(source.read_bytes())
        source.unlink()
        return subprocess.CompletedProcess(cmd, 0, "", "")


@pytest.fixture
def clip(tmp_path: Path) -> Path:
    path = tmp_path / "device" / "GH010001.MP4"
    path.parent.mkdir()
    path.write_bytes(b"clip")
    return path


def test_move_retries_until_success(tmp_path: Path, config, clip: Path):
    config.transfer.max_attempts = 0
    config.transfer.retry_delay_sec = 2
    rsync = FlakyRsync(failures=3)
    delays = []
    mover = ResilientTransfer(config, run=rsync, sleep=delays.append)

    moved = mover.move_file(clip, tmp_path / "unprocessed")

    assert moved == (tmp_path / "unprocessed" / "GH010001.MP4").resolve()
    assert moved.read_bytes() == b"clip"
    assert not clip.exists()
    assert len(rsync.calls) == 4
    assert delays == [2, 4, 8]
    assert rsync.calls[0][:3] == ["rsync", "-aq", "--remove-source-files"]


def test_move_gives_up_after_max_attempts(tmp_path: Path, config, clip: Path):
    config.transfer.max_attempts = 2
    rsync = FlakyRsync(failures=10)
    mover = ResilientTransfer(config, run=rsync, sleep=lambda s: None)

    with pytest.raises(TransferError) as excinfo:
        mover.move_file(clip, tmp_path / "unprocessed")

    assert excinfo.value.attempts == 2
    assert len(rsync.calls) == 2
    assert clip.exists()


def test_move_files_reports_failures(tmp_path: Path, config, clip: Path):
    config.transfer.max_attempts = 1
    other = clip.parent / "GH020001.MP4"
    other.write_bytes(b"clip")

    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        if cmd[-2].endswith("GH010001.MP4"):
            raise subprocess.CalledProcessError(12, cmd)
        return FlakyRsync(0)(cmd)

    mover = ResilientTransfer(config, run=run, sleep=lambda s: None)

    moved, failed = mover.move_files([clip, other], tmp_path / "unprocessed")

    assert [p.name for p in moved] == ["GH020001.MP4"]
    assert failed == [clip]


def test_check_free_space_rejects_small_disks(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(transfer.psutil, "disk_usage", lambda path: Usage(100 * GB, 90 * GB, 10 * GB, 90.0))

    with pytest.raises(InsufficientStorageError) as excinfo:
        check_free_space(tmp_path / "not" / "created", 32)

    assert excinfo.value.free_gb == pytest.approx(10)


def test_check_free_space_returns_free_gb(monkeypatch, tmp_path: Path):
    seen = []

    def disk_usage(path):
        seen.append(path)
        return Usage(100 * GB, 50 * GB, 50 * GB, 50.0)

    monkeypatch.setattr(transfer.psutil, "disk_usage", disk_usage)

    assert check_free_space(tmp_path / "missing", 32) == pytest.approx(50)
    assert seen == [str(tmp_path)]
