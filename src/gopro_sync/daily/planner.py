"""
Concatenation planning for day buckets.

A single-clip day only needs a transfer to its daily file name. A day
with several clips gets an FFmpeg concat manifest listing the clips in
capture order, each followed by a comment with the running duration.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from gopro_sync.daily.bucketing import DayBucket
from gopro_sync.media.models import MediaFile
from gopro_sync.timefmt import format_offset, format_timestamp

logger = logging.getLogger(__name__)

MANIFEST_SUFFIX = ".txt"
LOG_SUFFIX = ".log"


def quote_concat_path(path: Path) -> str:
    """Quote a path for an FFmpeg concat ``file`` directive."""
    return "'" + str(path).replace("'", "'\\''") + "'"


@dataclass
class ConcatPlan:
    """How one day bucket becomes a daily file."""
    day_key: str
    destination: Path
    files: List[MediaFile] = field(default_factory=list)

    @property
    def sources(self) -> List[Path]:
        return [f.path for f in self.files]

    @property
    def log_path(self) -> Path:
        return self.destination.with_suffix(LOG_SUFFIX)


@dataclass
class Passthrough(ConcatPlan):
    """Single clip day: transfer ``source`` to ``destination``."""

    @property
    def source(self) -> Path:
        return self.files[0].path


@dataclass
class Concatenate(ConcatPlan):
    """Multi clip day: join the manifest entries into ``destination``."""
    manifest_path: Optional[Path] = None

    def __post_init__(self):
        if len(self.files) < 2:
            raise ValueError(f"Concatenate requires at least 2 sources, got {len(self.files)}")
        if self.manifest_path is None:
            raise ValueError("Concatenate requires a manifest path")


class ConcatPlanner:
    """
    Builds a ConcatPlan per day bucket.

    Daily files are named ``<YYYYMMDD><extension>`` inside ``output_dir``;
    manifests use the same stem with a ``.txt`` suffix so a re-run of the
    same day overwrites rather than accumulates.
    """

    def __init__(self, output_dir: Path, extension: str = ".mp4"):
        self.output_dir = Path(output_dir)
        self.extension = extension

    def destination_for(self, bucket: DayBucket) -> Path:
        return self.output_dir / f"{bucket.key}{self.extension}"

    def manifest_for(self, bucket: DayBucket) -> Path:
        return self.output_dir / f"{bucket.key}{MANIFEST_SUFFIX}"

    def plan(self, bucket: DayBucket) -> ConcatPlan:
        """
        Decide how to produce the daily file for ``bucket``.

        Writes the manifest file for multi clip days; single clip days
        touch nothing on disk.
        """
        if not bucket.files:
            raise ValueError(f"Day {bucket.key} has no files")

        destination = self.destination_for(bucket)

        if len(bucket.files) == 1:
            media = bucket.first
            logger.info(f"Date: {format_timestamp(media.capture_time)} [ {media.name} ]")
            return Passthrough(day_key=bucket.key, destination=destination, files=list(bucket.files))

        manifest_path = self.manifest_for(bucket)
        self.write_manifest(manifest_path, bucket.files)

        logger.info(
            f"Date: {bucket.first.capture_time:%Y-%m-%d} "
            f"[ {' '.join(f.name for f in bucket.files)} ]"
        )
        logger.info(f"Join file for {bucket.day.isoformat()} generated: {manifest_path.name}")

        return Concatenate(
            day_key=bucket.key,
            destination=destination,
            files=list(bucket.files),
            manifest_path=manifest_path,
        )

    def plan_all(self, buckets) -> List[ConcatPlan]:
        """Plan every bucket in day order."""
        return [self.plan(bucket) for bucket in buckets]

    def write_manifest(self, manifest_path: Path, files: List[MediaFile]) -> None:
        """Write the concat manifest for ``files`` in the given order."""
        manifest_path.parent.mkdir(parents=True, exist_ok=True)

        lines = [
            f"# {format_timestamp(files[0].capture_time)}",
            "# File to be used with FFmpeg",
            "#",
        ]
        elapsed = 0.0
        for media in files:
            elapsed += media.duration
            lines.append(f"file {quote_concat_path(media.path)}")
            lines.append(f"# [{format_offset(elapsed)}]")

        with open(manifest_path, "w") as f:
            f.write("\n".join(lines) + "\n")
