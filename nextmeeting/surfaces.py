"""Console implementations of the collaborator protocols.

These back the command-line front end: alerts and notifications are logged and
printed, join links open in the default browser, calendar access is always
granted and preferences come from the loaded Config.
"""

from __future__ import annotations

import logging
import sys
import webbrowser
from typing import TYPE_CHECKING, Optional, TextIO

if TYPE_CHECKING:
    from nextmeeting.config_loader import Config
    from nextmeeting.models import Meeting, PreferencesSnapshot
    from nextmeeting.protocols import UrlOpener

logger = logging.getLogger(__name__)

BANNER_WIDTH = 60


def open_url(url: str) -> bool:
    """Open ``url`` in the default browser; returns False if nothing handled it."""
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as exc:
        logger.warning("Failed to open %s: %s", url, exc)
        return False

    if not opened:
        logger.warning("No browser available to open %s", url)
    return opened


class ConsoleAlertSurface:
    """Prints a banner for a starting meeting and optionally joins it."""

    def __init__(
        self,
        auto_join: bool = False,
        opener: UrlOpener = open_url,
        stream: Optional[TextIO] = None,
    ) -> None:
        self.auto_join = auto_join
        self.opener = opener
        self.stream = stream or sys.stdout

    def show_alert(self, meeting: Meeting) -> None:
        logger.info("Meeting alert: %s at %s", meeting.title, meeting.start_date.isoformat())

        lines = [
            "=" * BANNER_WIDTH,
            f"  {meeting.title}",
            f"  {meeting.time_string}  ({meeting.countdown_string})",
        ]
        if meeting.calendar_name:
            lines.append(f"  Calendar: {meeting.calendar_name}")
        if meeting.meeting_url:
            lines.append(f"  Join: {meeting.meeting_url}")
        else:
            lines.append("  No meeting link")
        lines.append("=" * BANNER_WIDTH)
        print("\n".join(lines), file=self.stream, flush=True)

        if self.auto_join and meeting.meeting_url:
            self.opener(meeting.meeting_url)


class ConsoleNotificationSurface:
    """Fire-and-forget notifications written to the console."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream or sys.stdout

    def notify(self, title: str, message: str) -> None:
        logger.info("Notification: %s - %s", title, message)
        print(f"[{title}] {message}", file=self.stream, flush=True)


class AlwaysGrantedPermissionGate:
    """ICS feeds need no OS-level calendar permission."""

    def has_access(self) -> bool:
        return True

    async def request_access(self) -> bool:
        return True


class ConfigPreferencesSource:
    """Preferences snapshot backed by a Config instance."""

    def __init__(self, config: Config) -> None:
        self.config = config

    def snapshot(self) -> PreferencesSnapshot:
        return self.config.preferences()
