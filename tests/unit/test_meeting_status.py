"""Tests for countdown and status derivation."""

from datetime import datetime, timedelta, timezone

import pytest

from nextmeeting.domain import meeting_status as ms

pytestmark = pytest.mark.unit

NOW = datetime(2025, 1, 6, 15, 0, 0, tzinfo=timezone.utc)


def _range(start_in: timedelta, duration: timedelta = timedelta(minutes=30)):
    start = NOW + start_in
    return start, start + duration


class TestIsHappeningNow:
    def test_inside_range(self) -> None:
        start, end = _range(timedelta(minutes=-10))
        assert ms.is_happening_now(start, end, NOW) is True

    def test_inclusive_at_start_and_end(self) -> None:
        start, end = _range(timedelta(0))
        assert ms.is_happening_now(start, end, start) is True
        assert ms.is_happening_now(start, end, end) is True

    def test_outside_range(self) -> None:
        start, end = _range(timedelta(minutes=5))
        assert ms.is_happening_now(start, end, NOW) is False
        assert ms.is_happening_now(start, end, end + timedelta(seconds=1)) is False


class TestIsJustStarting:
    @pytest.mark.parametrize("elapsed", [0, 1, 30, 59.9])
    def test_within_first_minute(self, elapsed: float) -> None:
        start = NOW - timedelta(seconds=elapsed)
        assert ms.is_just_starting(start, NOW) is True

    @pytest.mark.parametrize("elapsed", [60, 61, 600])
    def test_after_first_minute(self, elapsed: float) -> None:
        start = NOW - timedelta(seconds=elapsed)
        assert ms.is_just_starting(start, NOW) is False

    def test_not_started_yet(self) -> None:
        assert ms.is_just_starting(NOW + timedelta(seconds=1), NOW) is False


class TestCountdownString:
    @pytest.mark.parametrize(
        "offset",
        [timedelta(0), timedelta(minutes=-10), timedelta(minutes=-30)],
    )
    def test_now_while_happening(self, offset: timedelta) -> None:
        start, end = _range(offset)
        assert ms.countdown_string(start, end, NOW) == "Now"

    def test_past_after_end(self) -> None:
        start, end = _range(timedelta(hours=-2))
        assert ms.countdown_string(start, end, NOW) == "Past"

    @pytest.mark.parametrize(
        ("start_in", "expected"),
        [
            (timedelta(minutes=90), "1h 30m"),
            (timedelta(minutes=120), "2h"),
            (timedelta(minutes=15), "15m"),
            (timedelta(seconds=30), "<1m"),
            (timedelta(seconds=59), "<1m"),
            (timedelta(seconds=60), "1m"),
            (timedelta(seconds=119), "1m"),
            (timedelta(hours=25, minutes=5), "25h 5m"),
        ],
    )
    def test_future_meetings(self, start_in: timedelta, expected: str) -> None:
        start, end = _range(start_in)
        assert ms.countdown_string(start, end, NOW) == expected


class TestMenuBarTitle:
    def test_long_title_is_truncated(self) -> None:
        start, end = _range(timedelta(minutes=15))
        title = ms.menu_bar_title(
            "Very Long Meeting Title That Should Be Truncated", start, end, NOW
        )

        assert "..." in title
        assert len(title) <= 30
        assert title == "15m: Very Long Meeting..."

    def test_short_title_unchanged(self) -> None:
        start, end = _range(timedelta(minutes=15))
        assert ms.menu_bar_title("Standup", start, end, NOW) == "15m: Standup"

    def test_twenty_characters_is_not_truncated(self) -> None:
        assert ms.truncate_title("a" * 20) == "a" * 20
        assert ms.truncate_title("a" * 21) == "a" * 17 + "..."

    def test_uses_now_prefix_while_happening(self) -> None:
        start, end = _range(timedelta(minutes=-1))
        assert ms.menu_bar_title("Standup", start, end, NOW) == "Now: Standup"


def test_seconds_until_start_negative_once_started() -> None:
    assert ms.seconds_until_start(NOW + timedelta(minutes=2), NOW) == 120
    assert ms.seconds_until_start(NOW - timedelta(seconds=5), NOW) == -5


def test_time_string_renders_short_time() -> None:
    start = datetime(2025, 1, 6, 14, 30, tzinfo=timezone.utc)
    assert ms.time_string(start, "UTC") == "2:30 PM"
    assert ms.time_string(start, "America/New_York") == "9:30 AM"
