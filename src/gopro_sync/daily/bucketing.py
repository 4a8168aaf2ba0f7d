"""
Grouping of clips into operational days.

An operational day starts at the configured reset hour rather than at
midnight, so an evening session that runs past midnight stays in one
bucket. With a reset hour of 6 the day ``20240101`` covers
2024-01-01 06:00:00 up to 2024-01-02 05:59:59.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List

from gopro_sync.media.models import MediaFile

logger = logging.getLogger(__name__)

DAY_KEY_FORMAT = "%Y%m%d"


@dataclass
class DayBucket:
    """The clips of one operational day, in capture order."""
    day: date
    files: List[MediaFile] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.day.strftime(DAY_KEY_FORMAT)

    @property
    def first(self) -> MediaFile:
        return self.files[0]

    def __len__(self) -> int:
        return len(self.files)


def sort_by_capture_time(files: Iterable[MediaFile]) -> List[MediaFile]:
    """Order files by capture time; ties are broken by path."""
    return sorted(files, key=lambda f: (f.capture_time, str(f.path)))


class DayBucketer:
    """
    Assigns clips to operational days.

    A clip recorded before the reset hour joins the previous calendar
    day's bucket only when that bucket already exists; otherwise it opens
    a bucket on its own calendar date.
    """

    def __init__(self, rollover_hour: int = 6):
        if not 0 <= rollover_hour <= 23:
            raise ValueError(f"rollover_hour must be between 0 and 23, got {rollover_hour}")
        self.rollover_hour = rollover_hour

    def bucket(self, files: Iterable[MediaFile]) -> Dict[date, DayBucket]:
        """
        Group ``files`` into day buckets.

        Args:
            files: Media files in any order

        Returns:
            Buckets keyed by operational day, in ascending day order; the
            files of each bucket are in ascending capture order
        """
        buckets: Dict[date, DayBucket] = {}

        for media in sort_by_capture_time(files):
            day = media.capture_date
            previous_day = day - timedelta(days=1)

            if media.capture_time.hour < self.rollover_hour and previous_day in buckets:
                day = previous_day

            if day not in buckets:
                buckets[day] = DayBucket(day=day)
            buckets[day].files.append(media)

        for bucket in buckets.values():
            logger.debug(f"Day {bucket.key}: {[f.name for f in bucket.files]}")

        return dict(sorted(buckets.items()))


def bucket_by_day(files: Iterable[MediaFile], rollover_hour: int = 6) -> Dict[date, DayBucket]:
    """Shortcut for ``DayBucketer(rollover_hour).bucket(files)``."""
    return DayBucketer(rollover_hour).bucket(files)
