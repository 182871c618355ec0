"""Refresh-then-alert cycle and the background refresh loop.

One cycle refreshes the meeting list with the current preferences snapshot and
then asks the alert engine for (at most) one meeting to alert. Cycles never
overlap: the pipeline discards a refresh requested while another is running.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from nextmeeting.core.timezone_utils import now_utc
from nextmeeting.models import Meeting, RefreshResult

if TYPE_CHECKING:
    from nextmeeting.domain.alert_engine import AlertEngine
    from nextmeeting.domain.refresh_pipeline import MeetingRefreshPipeline
    from nextmeeting.protocols import (
        AlertSurface,
        NotificationSurface,
        PermissionGate,
        PreferencesSource,
        TimeProvider,
        UrlOpener,
    )

logger = logging.getLogger(__name__)

NO_ACCESS_LABEL = "No Access"
NO_MEETINGS_LABEL = "No Meetings"
MENU_MEETING_LIMIT = 5
ALERT_WINDOW_SECONDS = 60


class MeetingMonitor:
    """Drives the pipeline and alert engine on behalf of a host front end."""

    def __init__(
        self,
        pipeline: MeetingRefreshPipeline,
        alert_engine: AlertEngine,
        preferences: PreferencesSource,
        permission_gate: PermissionGate,
        alert_surface: AlertSurface,
        notification_surface: NotificationSurface,
        url_opener: UrlOpener,
        time_provider: TimeProvider = now_utc,
    ) -> None:
        self.pipeline = pipeline
        self.alert_engine = alert_engine
        self.preferences = preferences
        self.permission_gate = permission_gate
        self.alert_surface = alert_surface
        self.notification_surface = notification_surface
        self.url_opener = url_opener
        self.time_provider = time_provider

    async def run_cycle(self, now: Optional[datetime] = None) -> RefreshResult:
        """Refresh the meeting list, then fire at most one alert.

        Returns:
            The refresh outcome. Without calendar access nothing is fetched and
            the result carries the "No Access" message.
        """
        if not self.permission_gate.has_access():
            logger.info("Calendar access not granted; skipping refresh")
            return RefreshResult(
                success=False,
                meetings=self.pipeline.meetings,
                error_message=NO_ACCESS_LABEL,
            )

        now = now or self.time_provider()
        prefs = self.preferences.snapshot()
        self.alert_engine.alert_minutes_before = prefs.alert_minutes_before
        self.alert_engine.full_screen_alerts_enabled = prefs.full_screen_alerts_enabled

        result = await self.pipeline.refresh(
            now=now,
            lookahead_hours=prefs.lookahead_hours,
            excluded_calendar_ids=prefs.excluded_calendar_ids,
        )
        if result.skipped:
            return result

        meeting = self.alert_engine.meeting_to_alert(self.pipeline.meetings, now)
        if meeting is not None:
            # Marked first so a failing surface cannot cause a second alert.
            self.alert_engine.mark_alerted(meeting)
            try:
                self.alert_surface.show_alert(meeting)
            except Exception:
                logger.exception("Alert surface failed for meeting %s", meeting.id)

        return result

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        """Immediate cycle, then one cycle per refresh interval until stopped.

        The interval is re-read from the preferences source before each sleep.
        """
        logger.debug("Monitor loop starting")
        warned_for: Optional[tuple[int, int]] = None
        while not stop_event.is_set():
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Monitor cycle failed")

            prefs = self.preferences.snapshot()
            interval = prefs.refresh_interval_seconds
            may_miss = (
                interval > ALERT_WINDOW_SECONDS
                and prefs.alert_minutes_before > 0
                and prefs.full_screen_alerts_enabled
            )
            # Warn once per (interval, offset) combination.
            settings = (interval, prefs.alert_minutes_before)
            if may_miss and settings != warned_for:
                warned_for = settings
                logger.warning(
                    "Refresh interval %ds exceeds the one-minute alert window; "
                    "alerts %d minutes before start may be missed",
                    interval,
                    prefs.alert_minutes_before,
                )

            logger.debug("Sleeping for %d seconds until next cycle", interval)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

        logger.debug("Monitor loop stopped")

    async def on_access_granted(self) -> RefreshResult:
        """Permission was granted: refresh immediately."""
        logger.info("Calendar access granted; refreshing")
        return await self.run_cycle()

    def join_next_meeting(self, now: Optional[datetime] = None) -> Optional[Meeting]:
        """Open the link of the meeting in progress, or else the next one.

        Returns:
            The joined meeting, or None when there was nothing to join (a
            notification is sent instead).
        """
        now = now or self.time_provider()
        meeting = self.pipeline.current_meeting(now) or self.pipeline.next_meeting(now)

        if meeting is None:
            self.notification_surface.notify(
                "No upcoming meetings", "There are no meetings to join."
            )
            return None

        if not meeting.meeting_url:
            self.notification_surface.notify(
                "No meeting link", f"{meeting.title} has no video link."
            )
            return None

        logger.info("Joining %r via %s", meeting.title, meeting.meeting_url)
        self.url_opener(meeting.meeting_url)
        return meeting

    def menu_bar_label(self, now: Optional[datetime] = None) -> str:
        if not self.permission_gate.has_access():
            return NO_ACCESS_LABEL

        now = now or self.time_provider()
        meeting = self.pipeline.next_meeting(now)
        if meeting is None:
            return NO_MEETINGS_LABEL
        return meeting.menu_bar_title_at(now)

    def upcoming(self, limit: int = MENU_MEETING_LIMIT) -> tuple[Meeting, ...]:
        """First ``limit`` meetings of the published list, for the menu."""
        return self.pipeline.meetings[:limit]
