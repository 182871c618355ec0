"""Tests for nextmeeting time helpers."""

import locale
from datetime import datetime, timedelta, timezone

import pytest

from nextmeeting.core import timezone_utils as tzu

pytestmark = pytest.mark.unit


def test_now_utc_is_aware():
    now = tzu.now_utc()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)


def test_now_utc_honours_test_time(monkeypatch):
    monkeypatch.setenv("NEXTMEETING_TEST_TIME", "2025-10-27T08:20:00-07:00")
    assert tzu.now_utc() == datetime(2025, 10, 27, 15, 20, tzinfo=timezone.utc)


def test_now_utc_naive_test_time_is_utc(monkeypatch):
    monkeypatch.setenv("NEXTMEETING_TEST_TIME", "2025-01-06T15:00:00")
    assert tzu.now_utc() == datetime(2025, 1, 6, 15, 0, tzinfo=timezone.utc)


def test_now_utc_ignores_invalid_test_time(monkeypatch, caplog):
    monkeypatch.setenv("NEXTMEETING_TEST_TIME", "not-a-time")

    now = tzu.now_utc()

    assert abs(now - datetime.now(timezone.utc)) < timedelta(minutes=1)
    assert "NEXTMEETING_TEST_TIME" in caplog.text


def test_ensure_utc_converts_offsets():
    plus_two = timezone(timedelta(hours=2))
    dt = tzu.ensure_utc(datetime(2025, 1, 6, 17, 0, tzinfo=plus_two))
    assert dt == datetime(2025, 1, 6, 15, 0, tzinfo=timezone.utc)
    assert dt.tzinfo == timezone.utc


def test_unknown_timezone_falls_back_to_local():
    assert tzu.get_local_timezone("Not/AZone") is not None


@pytest.mark.parametrize(
    ("dt", "expected"),
    [
        (datetime(2025, 1, 6, 0, 5, tzinfo=timezone.utc), "12:05 AM"),
        (datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc), "12:00 PM"),
        (datetime(2025, 1, 6, 9, 30, tzinfo=timezone.utc), "9:30 AM"),
    ],
)
def test_format_short_time(dt, expected):
    assert tzu.format_short_time(dt, "UTC") == expected


def test_format_short_time_24_hour():
    dt = datetime(2025, 1, 6, 14, 30, tzinfo=timezone.utc)
    assert tzu.format_short_time(dt, "UTC", use_24_hour=True) == "14:30"
    assert tzu.format_short_time(dt, "America/New_York", use_24_hour=True) == "09:30"


def test_c_locale_keeps_12_hour_clock():
    assert tzu.uses_24_hour_clock() is False


def test_format_short_time_follows_locale_clock(monkeypatch):
    monkeypatch.setattr(tzu, "uses_24_hour_clock", lambda: True)
    dt = datetime(2025, 1, 6, 0, 5, tzinfo=timezone.utc)
    assert tzu.format_short_time(dt, "UTC") == "00:05"


def test_24_hour_locale_is_detected():
    try:
        locale.setlocale(locale.LC_TIME, "de_DE.UTF-8")
    except locale.Error:
        pytest.skip("de_DE.UTF-8 locale not installed")
    assert tzu.uses_24_hour_clock() is True
