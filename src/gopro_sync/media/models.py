"""
Media file records produced by the metadata extractor.
"""

from dataclasses import dataclass
from datetime import datetime, date
from pathlib import Path


@dataclass(frozen=True)
class MediaFile:
    """
    A video file with its true capture time.

    ``from_metadata`` is False when the capture time came from the
    filesystem modification time because probing failed.
    """
    path: Path
    capture_time: datetime
    duration: float = 0.0
    from_metadata: bool = True

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def capture_date(self) -> date:
        return self.capture_time.date()
