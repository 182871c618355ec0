"""Meeting refresh pipeline.

A refresh fetches raw events for ``[now, now + lookahead]`` from the calendar
provider, drops all-day events, sorts by start time, maps each event to a
Meeting (extracting the join URL once per refresh) and publishes the result by
replacing the meeting tuple in a single assignment, so readers never observe
a partially built list.

A failed fetch never clears the published list: the last-known-good meetings
stay available for countdowns and alerting, and ``error_message`` is set for
display until the next successful refresh.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection, Iterable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Optional

from nextmeeting.core.timezone_utils import now_utc
from nextmeeting.domain.url_extractor import MeetingUrlExtractor
from nextmeeting.exceptions import FetchError
from nextmeeting.models import DEFAULT_LOOKAHEAD_HOURS, UNTITLED, Meeting, RawEvent, RefreshResult

if TYPE_CHECKING:
    from nextmeeting.domain.alert_engine import AlertEngine
    from nextmeeting.protocols import CalendarProvider, TimeProvider

logger = logging.getLogger(__name__)

MeetingListener = Callable[[tuple[Meeting, ...]], None]


def filter_timed_events(events: Iterable[RawEvent]) -> list[RawEvent]:
    """Drop all-day events; they have no meaningful countdown."""
    return [e for e in events if not e.is_all_day]


def filter_excluded_calendars(
    events: Iterable[RawEvent], excluded_calendar_ids: Collection[str]
) -> list[RawEvent]:
    if not excluded_calendar_ids:
        return list(events)
    return [e for e in events if e.calendar_id not in excluded_calendar_ids]


def deduplicate_events(events: Iterable[RawEvent]) -> list[RawEvent]:
    """Keep the first event for each id, preserving order."""
    seen: set[str] = set()
    unique: list[RawEvent] = []
    for event in events:
        if event.id in seen:
            logger.debug("Dropping duplicate event id %s", event.id)
            continue
        seen.add(event.id)
        unique.append(event)
    return unique


def sort_events(events: Iterable[RawEvent]) -> list[RawEvent]:
    """Sort ascending by start; ties keep fetch order (sorted() is stable)."""
    return sorted(events, key=lambda e: e.start)


def to_meeting(event: RawEvent, extractor: MeetingUrlExtractor) -> Meeting:
    return Meeting(
        id=event.id,
        title=event.title or UNTITLED,
        start_date=event.start,
        end_date=event.end,
        calendar_color=event.calendar_color,
        calendar_name=event.calendar_name,
        calendar_id=event.calendar_id,
        meeting_url=extractor.extract(
            structured_url=event.structured_url,
            location=event.location,
            notes=event.notes,
        ),
    )


def build_meetings(
    events: Iterable[RawEvent],
    extractor: MeetingUrlExtractor,
    excluded_calendar_ids: Collection[str] = frozenset(),
) -> tuple[Meeting, ...]:
    """Filter, sort and map raw events into the canonical meeting tuple."""
    timed = filter_timed_events(events)
    visible = filter_excluded_calendars(timed, excluded_calendar_ids)
    ordered = sort_events(deduplicate_events(visible))
    return tuple(to_meeting(e, extractor) for e in ordered)


class MeetingRefreshPipeline:
    """Owns the published meeting list and refreshes it from a calendar provider."""

    def __init__(
        self,
        provider: CalendarProvider,
        extractor: Optional[MeetingUrlExtractor] = None,
        alert_engine: Optional[AlertEngine] = None,
        time_provider: TimeProvider = now_utc,
    ) -> None:
        self.provider = provider
        self.extractor = extractor or MeetingUrlExtractor()
        self.alert_engine = alert_engine
        self.time_provider = time_provider

        self._meetings: tuple[Meeting, ...] = ()
        self._error_message: Optional[str] = None
        self._last_refresh: Optional[datetime] = None
        self._refresh_lock = asyncio.Lock()
        self._listeners: list[MeetingListener] = []

    @property
    def meetings(self) -> tuple[Meeting, ...]:
        return self._meetings

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def last_refresh(self) -> Optional[datetime]:
        """Time of the last successful refresh."""
        return self._last_refresh

    def add_listener(self, listener: MeetingListener) -> None:
        """Register a callback invoked with the new meeting tuple after each publish."""
        self._listeners.append(listener)

    def remove_listener(self, listener: MeetingListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def next_meeting(self, now: Optional[datetime] = None) -> Optional[Meeting]:
        """First meeting in the list that is not happening now."""
        now = now or self.time_provider()
        return next((m for m in self._meetings if not m.is_happening_now_at(now)), None)

    def current_meeting(self, now: Optional[datetime] = None) -> Optional[Meeting]:
        """First meeting in the list that is happening now."""
        now = now or self.time_provider()
        return next((m for m in self._meetings if m.is_happening_now_at(now)), None)

    def _current_state(self, skipped: bool = False) -> RefreshResult:
        return RefreshResult(
            success=self._error_message is None,
            meetings=self._meetings,
            error_message=self._error_message,
            skipped=skipped,
        )

    async def refresh(
        self,
        now: Optional[datetime] = None,
        lookahead_hours: int = DEFAULT_LOOKAHEAD_HOURS,
        excluded_calendar_ids: Collection[str] = frozenset(),
    ) -> RefreshResult:
        """Fetch, build and publish a new meeting list.

        Only one refresh runs at a time; a request arriving while another is in
        flight is discarded and receives the current state with ``skipped=True``.

        Args:
            now: Reference time (defaults to the time provider)
            lookahead_hours: Size of the fetch window
            excluded_calendar_ids: Calendars to suppress

        Returns:
            RefreshResult describing the published (or retained) list
        """
        if self._refresh_lock.locked():
            logger.debug("Refresh already in flight; discarding request")
            return self._current_state(skipped=True)

        async with self._refresh_lock:
            return await self._refresh_locked(now, lookahead_hours, excluded_calendar_ids)

    async def _refresh_locked(
        self,
        now: Optional[datetime],
        lookahead_hours: int,
        excluded_calendar_ids: Collection[str],
    ) -> RefreshResult:
        now = now or self.time_provider()
        if lookahead_hours <= 0:
            logger.warning(
                "lookahead_hours %r is not positive; using default %d",
                lookahead_hours,
                DEFAULT_LOOKAHEAD_HOURS,
            )
            lookahead_hours = DEFAULT_LOOKAHEAD_HOURS

        window_end = now + timedelta(hours=lookahead_hours)
        excluded = frozenset(excluded_calendar_ids)
        included = self._included_calendars(excluded)

        logger.debug(
            "Refreshing meetings for window %s..%s (excluded calendars: %d)",
            now.isoformat(),
            window_end.isoformat(),
            len(excluded),
        )

        try:
            raw_events = await self.provider.fetch_events(now, window_end, included)
        except FetchError as exc:
            return self._record_failure(str(exc) or exc.__class__.__name__)
        except Exception as exc:
            logger.exception("Calendar provider raised unexpectedly")
            return self._record_failure(f"Calendar provider error: {exc}")

        meetings = build_meetings(raw_events, self.extractor, excluded)
        self._publish(meetings, now)

        logger.info(
            "Refreshed meetings: %d raw events, %d meetings published",
            len(raw_events),
            len(meetings),
        )
        return self._current_state()

    def _included_calendars(self, excluded: frozenset[str]) -> Optional[list[str]]:
        if not excluded:
            return None
        return [cid for cid in self.provider.calendar_ids() if cid not in excluded]

    def _record_failure(self, message: str) -> RefreshResult:
        self._error_message = message
        logger.warning(
            "Meeting refresh failed (%s); keeping %d previously published meetings",
            message,
            len(self._meetings),
        )
        return self._current_state()

    def _publish(self, meetings: tuple[Meeting, ...], now: datetime) -> None:
        self._meetings = meetings
        self._error_message = None
        self._last_refresh = now

        if self.alert_engine is not None:
            self.alert_engine.cleanup(m.id for m in meetings)

        for listener in list(self._listeners):
            try:
                listener(meetings)
            except Exception:
                logger.exception("Meeting listener %r failed", listener)
