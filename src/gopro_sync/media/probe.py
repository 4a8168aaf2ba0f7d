"""
Capture time and duration extraction with ffprobe.

Cameras record the wall-clock start of a clip in the container's
``creation_time`` tag. When the tag cannot be read the file's
modification time is used instead and the duration is reported as 0.
"""

import json
import logging
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from gopro_sync.media.models import MediaFile

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SEC = 60
CREATION_TIME_FORMATS = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S")


def parse_creation_time(value: Any) -> Optional[datetime]:
    """
    Parse a ``creation_time`` tag into a naive wall-clock datetime.

    Fractional seconds and the zone designator are dropped: the camera
    writes local time even though the tag carries a ``Z`` suffix.
    """
    if not value:
        return None
    text = str(value).strip()[:19]
    for fmt in CREATION_TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_duration(value: Any) -> Optional[float]:
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    if duration < 0:
        return None
    return duration


class MetadataExtractor:
    """
    Reads capture timestamps and durations from media files.

    ``extract`` never raises for probe problems; it always returns a
    best-effort ``MediaFile``.
    """

    def __init__(self, ffprobe: str = "ffprobe", timeout: float = PROBE_TIMEOUT_SEC):
        self.ffprobe = ffprobe
        self.timeout = timeout

    def _probe(self, path: Path) -> Dict[str, Any]:
        """Run ffprobe and return its parsed JSON output."""
        result = subprocess.run(
            [
                self.ffprobe,
                "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                str(path),
            ],
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )
        if result.returncode != 0:
            raise RuntimeError(f"ffprobe exited with {result.returncode}")
        data = json.loads(result.stdout or "{}")
        if not isinstance(data, dict):
            raise ValueError(f"unexpected ffprobe output: {type(data).__name__}")
        return data

    @staticmethod
    def _read_fields(data: Dict[str, Any]) -> Tuple[Optional[datetime], Optional[float]]:
        fmt = data.get("format") or {}
        tags = fmt.get("tags") or {}
        creation = parse_creation_time(tags.get("creation_time"))

        if creation is None:
            for stream in data.get("streams") or []:
                creation = parse_creation_time((stream.get("tags") or {}).get("creation_time"))
                if creation is not None:
                    break

        return creation, parse_duration(fmt.get("duration"))

    def extract(self, path) -> MediaFile:
        """
        Return the capture time and duration of ``path``.

        Args:
            path: Media file to inspect

        Returns:
            MediaFile with metadata values, or the file's mtime and a zero
            duration when probing fails or the creation time is missing
        """
        path = Path(path).resolve()

        try:
            data = self._probe(path)
            capture_time, duration = self._read_fields(data)
            if capture_time is None:
                raise ValueError("creation_time not present")
            return MediaFile(
                path=path,
                capture_time=capture_time,
                duration=duration or 0.0,
                from_metadata=True,
            )
        except (OSError, ValueError, AttributeError, RuntimeError, subprocess.SubprocessError) as e:
            logger.debug(f"Probe failed for {path.name}, using modification time: {e}")

        return self.fallback(path)

    @staticmethod
    def fallback(path: Path) -> MediaFile:
        """
        Build a record from the filesystem modification time.

        A file that cannot be stat'ed gets the epoch as capture time.
        """
        try:
            mtime = path.stat().st_mtime
        except OSError as e:
            logger.warning(f"Cannot read modification time of {path}: {e}")
            mtime = 0
        return MediaFile(
            path=path,
            capture_time=datetime.fromtimestamp(mtime),
            duration=0.0,
            from_metadata=False,
        )

    def extract_all(self, paths: Iterable) -> List[MediaFile]:
        """Extract every path, logging each file as it is read."""
        files = []
        for path in paths:
            media = self.extract(path)
            files.append(media)
            logger.info(
                f"  {media.name}: {media.capture_time:%Y-%m-%d %H:%M:%S} "
                f"({media.duration:.0f}s{'' if media.from_metadata else ', mtime'})"
            )
        return files
