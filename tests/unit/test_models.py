"""Tests for nextmeeting data models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from nextmeeting.models import Meeting, PreferencesSnapshot, RawEvent, RefreshResult

pytestmark = pytest.mark.unit


def test_meeting_is_immutable(make_meeting) -> None:
    meeting = make_meeting()
    with pytest.raises(ValidationError):
        meeting.title = "Changed"  # type: ignore[misc]


def test_naive_datetimes_are_treated_as_utc() -> None:
    meeting = Meeting(
        id="m1",
        title="Standup",
        start_date=datetime(2025, 1, 6, 15, 0),
        end_date=datetime(2025, 1, 6, 15, 30),
    )
    assert meeting.start_date.tzinfo is not None
    assert meeting.start_date == datetime(2025, 1, 6, 15, 0, tzinfo=timezone.utc)


def test_aware_datetimes_are_converted_to_utc() -> None:
    plus_two = timezone(timedelta(hours=2))
    event = RawEvent(
        id="e1",
        start=datetime(2025, 1, 6, 17, 0, tzinfo=plus_two),
        end=datetime(2025, 1, 6, 18, 0, tzinfo=plus_two),
    )
    assert event.start.utcoffset() == timedelta(0)
    assert event.start.hour == 15


def test_explicit_now_methods(make_meeting, now) -> None:
    meeting = make_meeting(start_in=-30)
    assert meeting.is_happening_now_at(now) is True
    assert meeting.is_just_starting_at(now) is True
    assert meeting.countdown_at(now) == "Now"
    assert meeting.menu_bar_title_at(now) == "Now: Team Standup"


def test_properties_use_test_time_override(make_meeting, monkeypatch) -> None:
    meeting = make_meeting(start_in=90 * 60)
    monkeypatch.setenv("NEXTMEETING_TEST_TIME", "2025-01-06T15:00:00Z")

    assert meeting.countdown_string == "1h 30m"
    assert meeting.menu_bar_title == "1h 30m: Team Standup"
    assert meeting.is_happening_now is False
    assert meeting.is_just_starting is False


def test_meeting_serializes_dates_as_iso(make_meeting) -> None:
    data = make_meeting().model_dump()
    assert data["start_date"] == "2025-01-06T15:15:00+00:00"


def test_preferences_defaults() -> None:
    prefs = PreferencesSnapshot()
    assert prefs.lookahead_hours == 24
    assert prefs.refresh_interval_seconds == 30
    assert prefs.alert_minutes_before == 0
    assert prefs.excluded_calendar_ids == frozenset()
    assert prefs.full_screen_alerts_enabled is True


def test_preferences_reject_negative_alert_offset() -> None:
    with pytest.raises(ValidationError):
        PreferencesSnapshot(alert_minutes_before=-1)


def test_refresh_result_meetings_tuple(make_meeting) -> None:
    result = RefreshResult(success=True, meetings=(make_meeting(),))
    assert isinstance(result.meetings, tuple)
    assert result.skipped is False
    assert result.error_message is None


def test_refresh_result_fields() -> None:
    assert set(RefreshResult.model_fields) == {"success", "meetings", "error_message", "skipped"}
