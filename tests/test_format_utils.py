from datetime import datetime, timedelta, timezone

import pytest

import serversense.util.format_utils as format_utils


def test_humanize_timestamp_converts_naive_to_utc():
    naive_value = datetime(2025, 1, 3, 12, 34, 56)

    result = format_utils.humanize_timestamp(naive_value)

    assert result == "2025-01-03 12:34:56 UTC"


def test_humanize_timestamp_normalizes_timezones():
    eastern = timezone(timedelta(hours=-5))
    aware_value = datetime(2024, 1, 1, 7, 30, tzinfo=eastern)

    result = format_utils.humanize_timestamp(aware_value)

    assert result == "2024-01-01 12:30:00 UTC"


@pytest.mark.parametrize(
    "duration, expected",
    [
        (timedelta(seconds=1), "1 second"),
        (timedelta(seconds=45), "45 seconds"),
        (timedelta(minutes=1), "1 minute"),
        (timedelta(minutes=15), "15 minutes"),
        (timedelta(hours=1), "1 hour"),
        (timedelta(hours=6), "6 hours"),
        (timedelta(days=1), "1 day"),
        (timedelta(weeks=1), "7 days"),
    ],
)
def test_format_timedelta_uses_largest_unit(duration, expected):
    assert format_utils.format_timedelta(duration) == expected


def test_truncate_keeps_short_text():
    assert format_utils.truncate("hello", 10) == "hello"


def test_truncate_adds_ellipsis_within_limit():
    result = format_utils.truncate("a" * 20, 10)

    assert result == "a" * 7 + "..."
    assert len(result) == 10
