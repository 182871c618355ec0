"""Protocol definitions for the collaborators the core depends on.

The core calls these; it does not implement them. Concrete implementations
live in ``nextmeeting.providers`` and ``nextmeeting.surfaces``.
"""

from __future__ import annotations

import datetime
from collections.abc import Collection
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from nextmeeting.models import Meeting, PreferencesSnapshot, RawEvent


class TimeProvider(Protocol):
    """Protocol for time provider callables."""

    def __call__(self) -> datetime.datetime:
        """Return current UTC time."""
        ...


class CalendarProvider(Protocol):
    """Source of raw calendar events."""

    async def fetch_events(
        self,
        start: datetime.datetime,
        end: datetime.datetime,
        included_calendars: Optional[Collection[str]] = None,
    ) -> list[RawEvent]:
        """Return events overlapping [start, end].

        Args:
            start: Window start (UTC)
            end: Window end (UTC)
            included_calendars: Calendar ids to query, or None for all calendars

        Raises:
            FetchError: on permission, transport or parse failures
        """
        ...

    def calendar_ids(self) -> list[str]:
        """Ids of all calendars this provider knows about."""
        ...


class PermissionGate(Protocol):
    """Calendar access state."""

    def has_access(self) -> bool:
        ...

    async def request_access(self) -> bool:
        """Ask for access; returns the resulting grant state."""
        ...


class AlertSurface(Protocol):
    """Full-screen prompt with Join/Dismiss actions."""

    def show_alert(self, meeting: Meeting) -> None:
        ...


class NotificationSurface(Protocol):
    """Fire-and-forget text notifications."""

    def notify(self, title: str, message: str) -> None:
        ...


class PreferencesSource(Protocol):
    """Read-only accessor for the current preferences."""

    def snapshot(self) -> PreferencesSnapshot:
        ...


@runtime_checkable
class UrlOpener(Protocol):
    """Opens a meeting URL (browser or native client)."""

    def __call__(self, url: str) -> bool:
        ...
