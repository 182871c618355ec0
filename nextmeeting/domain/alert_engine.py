"""Full-screen alert eligibility for upcoming meetings.

The engine decides, from the current meeting list and the set of meeting ids
that have already alerted, which meeting (at most one) should trigger a
full-screen alert right now. Alerted ids are garbage-collected whenever a
refresh publishes a list that no longer contains them, so a recurring
meeting's next occurrence (new id) can alert again.

The alerted-id set is in memory by default. Passing ``store_path`` persists it
as a JSON list with atomic writes so a relaunch does not re-alert an
occurrence that already fired.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Optional

from nextmeeting.domain import meeting_status
from nextmeeting.exceptions import ConfigurationError
from nextmeeting.models import Meeting

logger = logging.getLogger(__name__)


def validate_alert_minutes_before(value: object) -> int:
    """Return ``value`` as a non-negative int or raise ConfigurationError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"alert_minutes_before must be an integer, got {value!r}")
    if value < 0:
        raise ConfigurationError(f"alert_minutes_before must be >= 0, got {value}")
    return value


def is_in_alert_window(meeting: Meeting, now: datetime, alert_minutes_before: int) -> bool:
    """Check whether ``meeting`` is inside its alert window at ``now``.

    With an offset of 0 the window is the first minute after the start. Otherwise
    it is the one-minute-wide window ending exactly at the configured lead time.
    """
    if alert_minutes_before == 0:
        return meeting_status.is_just_starting(meeting.start_date, now)

    minutes_until_start = meeting_status.seconds_until_start(meeting.start_date, now) / 60
    return alert_minutes_before - 1 <= minutes_until_start <= alert_minutes_before


class AlertEngine:
    """Alert-eligibility state machine owning the alerted-id set."""

    def __init__(
        self,
        alert_minutes_before: int = 0,
        full_screen_alerts_enabled: bool = True,
        store_path: Optional[str | Path] = None,
    ) -> None:
        """Create an AlertEngine.

        Args:
            alert_minutes_before: 0 = alert at start, else minutes before start
            full_screen_alerts_enabled: master toggle for full-screen alerts
            store_path: Optional JSON file for persisting alerted ids

        Raises:
            ConfigurationError: if alert_minutes_before is invalid
        """
        self._alert_minutes_before = validate_alert_minutes_before(alert_minutes_before)
        self.full_screen_alerts_enabled = full_screen_alerts_enabled
        self._lock = threading.Lock()
        self._alerted_ids: set[str] = set()
        self._path = Path(store_path).expanduser() if store_path else None

        if self._path is not None:
            self.load()

    @property
    def alert_minutes_before(self) -> int:
        return self._alert_minutes_before

    @alert_minutes_before.setter
    def alert_minutes_before(self, value: int) -> None:
        self._alert_minutes_before = validate_alert_minutes_before(value)

    @property
    def alerted_ids(self) -> frozenset[str]:
        """Snapshot of ids that have already alerted."""
        with self._lock:
            return frozenset(self._alerted_ids)

    def meeting_to_alert(self, meetings: Sequence[Meeting], now: datetime) -> Optional[Meeting]:
        """Return the first meeting that should alert at ``now``, if any.

        Meetings are scanned in list order; a meeting qualifies when it has not
        alerted yet and is inside its alert window.
        """
        if not self.full_screen_alerts_enabled:
            return None

        with self._lock:
            alerted = set(self._alerted_ids)

        for meeting in meetings:
            if meeting.id in alerted:
                continue
            if is_in_alert_window(meeting, now, self._alert_minutes_before):
                logger.debug("Meeting %r (%s) is eligible for alert", meeting.title, meeting.id)
                return meeting

        return None

    def mark_alerted(self, meeting: Meeting) -> None:
        """Record that ``meeting`` has alerted. Idempotent."""
        with self._lock:
            if meeting.id in self._alerted_ids:
                return
            self._alerted_ids.add(meeting.id)
            self._persist_locked()
        logger.info("Marked meeting %r (%s) as alerted", meeting.title, meeting.id)

    def cleanup(self, current_meeting_ids: Iterable[str]) -> int:
        """Drop alerted ids that are no longer in the visible meeting list.

        Args:
            current_meeting_ids: Ids of the most recently published meeting list

        Returns:
            Number of ids removed
        """
        current = set(current_meeting_ids)
        with self._lock:
            stale = self._alerted_ids - current
            if not stale:
                return 0
            self._alerted_ids &= current
            self._persist_locked()

        logger.debug("Cleaned up %d stale alerted ids", len(stale))
        return len(stale)

    def load(self) -> None:
        """Load alerted ids from disk (if a store path is configured).

        A missing file starts empty. A corrupt file is logged and starts empty.
        """
        if self._path is None:
            return

        with self._lock:
            if not self._path.exists():
                logger.debug("Alert store file not found; starting empty: %s", self._path)
                self._alerted_ids = set()
                return

            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
                if not isinstance(data, list):
                    raise ValueError("alert store JSON root must be a list")  # noqa: TRY004
            except (OSError, ValueError) as exc:
                logger.warning("Failed to read alert store %s: %s", self._path, exc)
                self._alerted_ids = set()
                return

            self._alerted_ids = {item for item in data if isinstance(item, str) and item}
            logger.debug(
                "Loaded alert store %s (%d alerted ids)", self._path, len(self._alerted_ids)
            )

    def _persist_locked(self) -> None:
        """Write the alerted ids to disk atomically. Called with lock held."""
        if self._path is None:
            return

        tmp_path = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", dir=self._path.parent, delete=False, encoding="utf-8"
            ) as tf:
                tmp_path = Path(tf.name)
                json.dump(sorted(self._alerted_ids), tf, ensure_ascii=False)
                tf.flush()
                with contextlib.suppress(OSError):
                    os.fsync(tf.fileno())
            tmp_path.replace(self._path)
        except OSError as exc:
            # In-memory state stays authoritative for this process.
            logger.warning("Failed to persist alert store to %s: %s", self._path, exc)
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
