from datetime import datetime, timezone

from delivery_boy.core.window import (
    format_timestamp,
    iso_week,
    parse_timestamp,
    start_of_week,
    week_window,
)

from conftest import LA, WEDNESDAY, WEEK_START


def test_start_of_week_midweek():
    assert start_of_week(WEDNESDAY, LA) == WEEK_START


def test_start_of_week_on_sunday_midnight_is_itself():
    assert start_of_week(WEEK_START, LA) == WEEK_START


def test_start_of_week_saturday_night_still_previous_sunday():
    # Saturday 23:59:59 PDT
    now = datetime(2024, 5, 19, 6, 59, 59, tzinfo=timezone.utc)
    assert start_of_week(now, LA) == WEEK_START


def test_start_of_week_uses_reference_timezone():
    # Already Sunday in UTC, still Saturday evening in Los Angeles.
    now = datetime(2024, 5, 19, 3, 0, 0, tzinfo=timezone.utc)
    assert start_of_week(now, LA) == WEEK_START
    assert start_of_week(now, timezone.utc) == datetime(2024, 5, 19, tzinfo=timezone.utc)


def test_start_of_week_across_dst_change():
    # DST began at 02:00 on Sunday 2024-03-10, so that midnight was still PST (UTC-8).
    now = datetime(2024, 3, 12, 20, 0, 0, tzinfo=timezone.utc)
    assert start_of_week(now, LA) == datetime(2024, 3, 10, 8, 0, 0, tzinfo=timezone.utc)


def test_week_window_ends_at_now():
    start, end = week_window(WEDNESDAY, LA)
    assert start == WEEK_START
    assert end == WEDNESDAY


def test_iso_week_follows_reference_timezone():
    assert iso_week(WEDNESDAY, LA) == 20
    # Monday 2024-12-30 in UTC is ISO week 1, but it is still Sunday in Los Angeles.
    now = datetime(2024, 12, 30, 5, 0, 0, tzinfo=timezone.utc)
    assert iso_week(now, timezone.utc) == 1
    assert iso_week(now, LA) == 52


def test_timestamp_text_is_naive_utc_with_second_precision():
    local = datetime(2024, 5, 15, 5, 0, 0, 900000, tzinfo=LA)
    assert format_timestamp(local) == "2024-05-15T12:00:00"
    assert parse_timestamp("2024-05-15T12:00:00") == WEDNESDAY
