from datetime import date, timedelta
from pathlib import Path

import pytest

from gopro_sync.daily.bucketing import DayBucketer, bucket_by_day, sort_by_capture_time
from conftest import make_media


def _keys(buckets):
    return {bucket.key: [f.capture_time.strftime("%d %H:%M") for f in bucket.files] for bucket in buckets.values()}


def test_overnight_clips_stay_with_previous_day(tmp_path: Path):
    files = [
        make_media(tmp_path / "c.MP4", "2024-01-02T07:30:00"),
        make_media(tmp_path / "a.MP4", "2024-01-01T23:50:00"),
        make_media(tmp_path / "b.MP4", "2024-01-02T02:10:00"),
    ]

    buckets = bucket_by_day(files, rollover_hour=6)

    assert _keys(buckets) == {
        "20240101": ["01 23:50", "02 02:10"],
        "20240102": ["02 07:30"],
    }
    assert list(buckets) == [date(2024, 1, 1), date(2024, 1, 2)]


def test_first_early_clip_opens_its_own_day(tmp_path: Path):
    files = [
        make_media(tmp_path / "a.MP4", "2024-01-02T02:10:00"),
        make_media(tmp_path / "b.MP4", "2024-01-02T09:00:00"),
    ]

    buckets = bucket_by_day(files, rollover_hour=6)

    assert _keys(buckets) == {"20240102": ["02 02:10", "02 09:00"]}


def test_rollover_hour_boundary(tmp_path: Path):
    files = [
        make_media(tmp_path / "a.MP4", "2024-01-01T20:00:00"),
        make_media(tmp_path / "b.MP4", "2024-01-02T05:59:59"),
        make_media(tmp_path / "c.MP4", "2024-01-02T06:00:00"),
    ]

    buckets = bucket_by_day(files, rollover_hour=6)

    assert _keys(buckets) == {
        "20240101": ["01 20:00", "02 05:59"],
        "20240102": ["02 06:00"],
    }


def test_midnight_rollover_uses_calendar_days(tmp_path: Path):
    files = [
        make_media(tmp_path / "a.MP4", "2024-01-01T23:59:00"),
        make_media(tmp_path / "b.MP4", "2024-01-02T00:01:00"),
    ]

    buckets = bucket_by_day(files, rollover_hour=0)

    assert sorted(b.key for b in buckets.values()) == ["20240101", "20240102"]


def test_month_boundary(tmp_path: Path):
    files = [
        make_media(tmp_path / "a.MP4", "2024-02-29T22:00:00"),
        make_media(tmp_path / "b.MP4", "2024-03-01T01:00:00"),
    ]

    buckets = bucket_by_day(files, rollover_hour=6)

    assert _keys(buckets) == {"20240229": ["29 22:00", "01 01:00"]}


def test_every_file_assigned_once_and_within_its_day(tmp_path: Path):
    start = [
        "2024-05-01T08:00:00", "2024-05-01T13:00:00", "2024-05-02T03:00:00",
        "2024-05-02T05:30:00", "2024-05-02T06:15:00", "2024-05-03T04:00:00",
        "2024-05-05T01:00:00", "2024-05-05T18:00:00",
    ]
    files = [make_media(tmp_path / f"{i}.MP4", when) for i, when in enumerate(start)]
    rollover = 6

    buckets = bucket_by_day(files, rollover_hour=rollover)

    assigned = [f.path for bucket in buckets.values() for f in bucket.files]
    assert sorted(assigned) == sorted(f.path for f in files)
    assert len(set(assigned)) == len(files)

    for day, bucket in buckets.items():
        for media in bucket.files:
            if media.capture_date == day:
                continue
            assert media.capture_date == day + timedelta(days=1)
            assert media.capture_time.hour < rollover


def test_buckets_are_sorted_by_capture_time(tmp_path: Path):
    files = [
        make_media(tmp_path / "b.MP4", "2024-01-01T12:00:00"),
        make_media(tmp_path / "a.MP4", "2024-01-01T09:00:00"),
        make_media(tmp_path / "c.MP4", "2024-01-01T10:00:00"),
    ]

    bucket = bucket_by_day(files)[date(2024, 1, 1)]

    times = [f.capture_time for f in bucket.files]
    assert times == sorted(times)


def test_rebucketing_flattened_buckets_is_idempotent(tmp_path: Path):
    files = [
        make_media(tmp_path / "a.MP4", "2024-01-01T23:50:00"),
        make_media(tmp_path / "b.MP4", "2024-01-02T02:10:00"),
        make_media(tmp_path / "c.MP4", "2024-01-02T07:30:00"),
        make_media(tmp_path / "d.MP4", "2024-01-04T04:00:00"),
    ]
    bucketer = DayBucketer(6)

    first = bucketer.bucket(files)
    flattened = [f for bucket in first.values() for f in bucket.files]
    second = bucketer.bucket(reversed(flattened))

    assert {k: b.files for k, b in first.items()} == {k: b.files for k, b in second.items()}


def test_equal_timestamps_are_ordered_by_path(tmp_path: Path):
    files = [
        make_media(tmp_path / "b.MP4", "2024-01-01T10:00:00"),
        make_media(tmp_path / "a.MP4", "2024-01-01T10:00:00"),
    ]

    assert [f.name for f in sort_by_capture_time(files)] == ["a.MP4", "b.MP4"]


def test_invalid_rollover_hour_rejected():
    with pytest.raises(ValueError):
        DayBucketer(24)
