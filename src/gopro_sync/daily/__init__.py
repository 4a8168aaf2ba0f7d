"""
Day bucketing and concatenation planning.
"""

from gopro_sync.daily.bucketing import DayBucket, DayBucketer, bucket_by_day
from gopro_sync.daily.planner import ConcatPlan, ConcatPlanner, Concatenate, Passthrough

__all__ = [
    "DayBucket",
    "DayBucketer",
    "bucket_by_day",
    "ConcatPlan",
    "ConcatPlanner",
    "Concatenate",
    "Passthrough",
]
