from datetime import datetime, timezone

import pytest

from src.api.clock import ensure_utc, local_now, to_absolute, to_local

TORONTO = "America/Toronto"


def test_winter_time_converts_to_fixed_utc_instant():
    instant = to_absolute("2026-02-19T18:00", TORONTO)

    assert instant == datetime(2026, 2, 19, 23, 0, tzinfo=timezone.utc)
    assert instant.strftime("%Y-%m-%dT%H:%M:%SZ") == "2026-02-19T23:00:00Z"


def test_back_conversion_recovers_local_time():
    instant = to_absolute("2026-02-19T18:00", TORONTO)

    assert to_local(instant, TORONTO) == datetime(2026, 2, 19, 18, 0)


def test_summer_time_uses_daylight_offset():
    assert to_absolute("2026-07-01T09:30", TORONTO) == datetime(2026, 7, 1, 13, 30, tzinfo=timezone.utc)


def test_ambiguous_time_resolves_to_first_occurrence():
    # 2026-11-01 01:30 happens twice in Toronto; the EDT one comes first
    assert to_absolute("2026-11-01T01:30", TORONTO) == datetime(2026, 11, 1, 5, 30, tzinfo=timezone.utc)


def test_nonexistent_time_moves_forward_by_the_gap():
    # 2026-03-08 02:30 is skipped in Toronto
    instant = to_absolute("2026-03-08T02:30", TORONTO)

    assert instant == datetime(2026, 3, 8, 7, 30, tzinfo=timezone.utc)
    assert to_local(instant, TORONTO) == datetime(2026, 3, 8, 3, 30)


def test_accepts_seconds_and_naive_datetimes():
    assert to_absolute("2026-02-19T18:00:30", TORONTO).second == 30
    assert to_absolute(datetime(2026, 2, 19, 18, 0), TORONTO).hour == 23


@pytest.mark.parametrize("value", ["tomorrow at 5pm", "", "2026-02-19T18:00+01:00", "2026-02-19T18:00Z"])
def test_rejects_values_that_are_not_naive_local_times(value):
    with pytest.raises(ValueError):
        to_absolute(value, TORONTO)


def test_unknown_timezone_is_a_value_error():
    with pytest.raises(ValueError):
        to_absolute("2026-02-19T18:00", "Mars/Olympus_Mons")


def test_local_now_truncates_to_the_minute():
    now = datetime(2026, 2, 18, 15, 4, 59, 123, tzinfo=timezone.utc)

    assert local_now(TORONTO, now) == datetime(2026, 2, 18, 10, 4)


def test_ensure_utc_tags_naive_values():
    assert ensure_utc(datetime(2026, 1, 1, 12, 0)).tzinfo is timezone.utc
    assert ensure_utc(to_absolute("2026-01-01T07:00", TORONTO)) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
