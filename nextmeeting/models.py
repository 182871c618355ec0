"""Data models for calendar events and meetings."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .core.timezone_utils import ensure_utc
from .core.timezone_utils import now_utc as _now_utc
from .domain import meeting_status

DEFAULT_LOOKAHEAD_HOURS = 24
DEFAULT_REFRESH_INTERVAL_SECONDS = 30
UNTITLED = "Untitled"


class RawEvent(BaseModel):
    """Event as returned by a calendar provider, before mapping to a Meeting."""

    id: str = Field(..., description="Provider event identifier")
    title: Optional[str] = Field(default=None, description="Event title")
    start: datetime = Field(..., description="Event start time")
    end: datetime = Field(..., description="Event end time")
    is_all_day: bool = Field(default=False, description="All-day event flag")

    calendar_id: str = Field(default="", description="Identifier of the owning calendar")
    calendar_name: str = Field(default="", description="Display name of the owning calendar")
    calendar_color: str = Field(default="", description="Display color of the owning calendar")

    structured_url: Optional[str] = Field(default=None, description="Event URL property")
    location: Optional[str] = Field(default=None, description="Free-form location text")
    notes: Optional[str] = Field(default=None, description="Free-form description text")

    @field_validator("start", "end")
    @classmethod
    def _coerce_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class Meeting(BaseModel):
    """A time-boxed calendar event surfaced to the user.

    Derived display state is never stored. The ``*_at(now)`` methods take an
    explicit instant so that one refresh/alert cycle sees a single consistent
    time; the properties of the same name evaluate against ``now_utc()``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable meeting identifier")
    title: str = Field(..., description="Display title")
    start_date: datetime = Field(..., description="Meeting start (UTC)")
    end_date: datetime = Field(..., description="Meeting end (UTC)")
    calendar_color: str = Field(default="", description="Calendar display color")
    calendar_name: str = Field(default="", description="Calendar display name")
    calendar_id: str = Field(default="", description="Calendar identifier")
    meeting_url: Optional[str] = Field(default=None, description="Join URL, if any")

    @field_validator("start_date", "end_date")
    @classmethod
    def _coerce_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_serializer("start_date", "end_date")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()

    def is_happening_now_at(self, now: datetime) -> bool:
        return meeting_status.is_happening_now(self.start_date, self.end_date, now)

    def is_just_starting_at(self, now: datetime) -> bool:
        return meeting_status.is_just_starting(self.start_date, now)

    def countdown_at(self, now: datetime) -> str:
        return meeting_status.countdown_string(self.start_date, self.end_date, now)

    def menu_bar_title_at(self, now: datetime) -> str:
        return meeting_status.menu_bar_title(self.title, self.start_date, self.end_date, now)

    @property
    def is_happening_now(self) -> bool:
        return self.is_happening_now_at(_now_utc())

    @property
    def is_just_starting(self) -> bool:
        return self.is_just_starting_at(_now_utc())

    @property
    def countdown_string(self) -> str:
        return self.countdown_at(_now_utc())

    @property
    def menu_bar_title(self) -> str:
        return self.menu_bar_title_at(_now_utc())

    @property
    def time_string(self) -> str:
        return meeting_status.time_string(self.start_date)


class PreferencesSnapshot(BaseModel):
    """Immutable view of user preferences for one refresh/alert cycle."""

    model_config = ConfigDict(frozen=True)

    lookahead_hours: int = Field(default=DEFAULT_LOOKAHEAD_HOURS, description="Fetch window size")
    refresh_interval_seconds: int = Field(
        default=DEFAULT_REFRESH_INTERVAL_SECONDS, description="Poll cadence in seconds"
    )
    alert_minutes_before: int = Field(
        default=0, ge=0, description="0 = alert at start, else minutes before start"
    )
    excluded_calendar_ids: frozenset[str] = Field(
        default_factory=frozenset, description="Calendars to suppress"
    )
    full_screen_alerts_enabled: bool = Field(default=True, description="Alert toggle")


class RefreshResult(BaseModel):
    """Outcome of a single refresh request."""

    success: bool
    meetings: tuple[Meeting, ...] = Field(default_factory=tuple)
    error_message: Optional[str] = None
    skipped: bool = Field(default=False, description="True if a refresh was already in flight")
