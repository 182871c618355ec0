"""Shared fixtures for nextmeeting tests."""

from __future__ import annotations

import datetime
import locale
from collections.abc import Collection, Generator
from typing import Any, Callable, Optional

import pytest

from nextmeeting.exceptions import FetchError
from nextmeeting.models import Meeting, RawEvent

UTC = datetime.timezone.utc

# Monday 2025-01-06 15:00 UTC
FIXED_NOW = datetime.datetime(2025, 1, 6, 15, 0, 0, tzinfo=UTC)

NEXTMEETING_ENV_VARS = (
    "NEXTMEETING_TEST_TIME",
    "NEXTMEETING_DEBUG",
    "NEXTMEETING_LOG_LEVEL",
    "NEXTMEETING_ICS_URL",
    "NEXTMEETING_LOOKAHEAD_HOURS",
    "NEXTMEETING_REFRESH_INTERVAL",
    "NEXTMEETING_ALERT_MINUTES_BEFORE",
    "NEXTMEETING_EXCLUDED_CALENDARS",
    "NEXTMEETING_FULL_SCREEN_ALERTS",
)


class FakeCalendarProvider:
    """In-memory calendar provider recording every fetch."""

    def __init__(
        self,
        events: Optional[list[RawEvent]] = None,
        calendar_ids: Optional[list[str]] = None,
    ) -> None:
        self.events = list(events or [])
        self._calendar_ids = calendar_ids
        self.error: Optional[BaseException] = None
        self.calls: list[dict[str, Any]] = []

    def calendar_ids(self) -> list[str]:
        if self._calendar_ids is not None:
            return list(self._calendar_ids)
        return sorted({e.calendar_id for e in self.events})

    async def fetch_events(
        self,
        start: datetime.datetime,
        end: datetime.datetime,
        included_calendars: Optional[Collection[str]] = None,
    ) -> list[RawEvent]:
        self.calls.append({"start": start, "end": end, "included_calendars": included_calendars})
        if self.error is not None:
            raise self.error
        return [
            e
            for e in self.events
            if included_calendars is None or e.calendar_id in included_calendars
        ]


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear NEXTMEETING_* variables so host settings never leak into tests."""
    for name in NEXTMEETING_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def c_time_locale() -> Generator[None, Any, None]:
    """Run every test under the C LC_TIME locale and restore the previous one."""
    saved = locale.setlocale(locale.LC_TIME)
    locale.setlocale(locale.LC_TIME, "C")
    yield
    locale.setlocale(locale.LC_TIME, saved)


@pytest.fixture
def now() -> datetime.datetime:
    """Deterministic reference instant for time-dependent tests."""
    return FIXED_NOW


@pytest.fixture
def make_meeting(now: datetime.datetime) -> Callable[..., Meeting]:
    """Factory building Meetings relative to ``now``.

    ``start_in`` and ``duration`` are in seconds.
    """

    def _make(
        meeting_id: str = "m1",
        title: str = "Team Standup",
        start_in: float = 15 * 60,
        duration: float = 30 * 60,
        meeting_url: Optional[str] = None,
        calendar_id: str = "work",
    ) -> Meeting:
        start = now + datetime.timedelta(seconds=start_in)
        return Meeting(
            id=meeting_id,
            title=title,
            start_date=start,
            end_date=start + datetime.timedelta(seconds=duration),
            calendar_color="#1BADF8",
            calendar_name="Work",
            calendar_id=calendar_id,
            meeting_url=meeting_url,
        )

    return _make


@pytest.fixture
def make_raw_event(now: datetime.datetime) -> Callable[..., RawEvent]:
    """Factory building RawEvents relative to ``now`` (offsets in minutes)."""

    def _make(
        event_id: str = "e1",
        title: Optional[str] = "Design Review",
        start_in_minutes: float = 30,
        duration_minutes: float = 30,
        is_all_day: bool = False,
        calendar_id: str = "work",
        structured_url: Optional[str] = None,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> RawEvent:
        start = now + datetime.timedelta(minutes=start_in_minutes)
        return RawEvent(
            id=event_id,
            title=title,
            start=start,
            end=start + datetime.timedelta(minutes=duration_minutes),
            is_all_day=is_all_day,
            calendar_id=calendar_id,
            calendar_name=calendar_id.title(),
            calendar_color="#FF0000",
            structured_url=structured_url,
            location=location,
            notes=notes,
        )

    return _make


@pytest.fixture
def fake_provider() -> FakeCalendarProvider:
    return FakeCalendarProvider()


@pytest.fixture
def failing_provider() -> FakeCalendarProvider:
    provider = FakeCalendarProvider()
    provider.error = FetchError("Calendar access denied")
    return provider


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics_simple() -> str:
    """Single event 2025-01-06 15:30-16:00 UTC with a Zoom link in the description."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//NextMeeting Test//EN
CALSCALE:GREGORIAN
BEGIN:VEVENT
UID:simple-001@nextmeeting.test
DTSTART:20250106T153000Z
DTEND:20250106T160000Z
SUMMARY:Sprint Planning
LOCATION:Conference Room A
DESCRIPTION:Join us at https://zoom.us/j/123456789?pwd=abc123
DTSTAMP:20250101T090000Z
END:VEVENT
END:VCALENDAR"""


@pytest.fixture
def sample_ics_mixed() -> str:
    """Timed, all-day, cancelled and URL-only events on 2025-01-06."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//NextMeeting Test//EN
BEGIN:VEVENT
UID:timed-001@nextmeeting.test
DTSTART:20250106T170000Z
DTEND:20250106T173000Z
SUMMARY:1:1 with Sam
LOCATION:https://meet.google.com/abc-defg-hij
DTSTAMP:20250101T090000Z
END:VEVENT
BEGIN:VEVENT
UID:allday-001@nextmeeting.test
DTSTART;VALUE=DATE:20250106
DTEND;VALUE=DATE:20250107
SUMMARY:Company Holiday
DTSTAMP:20250101T090000Z
END:VEVENT
BEGIN:VEVENT
UID:cancelled-001@nextmeeting.test
DTSTART:20250106T160000Z
DTEND:20250106T163000Z
SUMMARY:Cancelled Sync
STATUS:CANCELLED
DTSTAMP:20250101T090000Z
END:VEVENT
BEGIN:VEVENT
UID:url-001@nextmeeting.test
DTSTART:20250106T160000Z
DTEND:20250106T170000Z
SUMMARY:Vendor Call
URL:https://example.com/vendor-call
DTSTAMP:20250101T090000Z
END:VEVENT
END:VCALENDAR"""


@pytest.fixture
def sample_ics_recurring() -> str:
    """Daily standup 16:00-16:15 UTC from 2025-01-06, five occurrences, 2025-01-08 excluded."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//NextMeeting Test//EN
BEGIN:VEVENT
UID:standup-001@nextmeeting.test
DTSTART:20250106T160000Z
DTEND:20250106T161500Z
SUMMARY:Daily Standup
DESCRIPTION:https://teams.microsoft.com/l/meetup-join/19%3ameeting_abc/0
RRULE:FREQ=DAILY;COUNT=5
EXDATE:20250108T160000Z
DTSTAMP:20250101T090000Z
END:VEVENT
END:VCALENDAR"""
