"""ICS calendar provider.

Fetches one or more ICS feeds (remote URLs over httpx or local files), parses
them with icalendar and expands recurring events with dateutil so that each
occurrence in the requested window becomes its own RawEvent with a distinct id.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import uuid
from collections.abc import Collection
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo

import httpx
from dateutil.rrule import rruleset, rrulestr
from icalendar import Calendar, vRecur

from nextmeeting.core.timezone_utils import ensure_utc
from nextmeeting.exceptions import (
    CalendarPermissionError,
    CalendarProviderError,
    MalformedResponseError,
)
from nextmeeting.models import RawEvent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_EVENT_DURATION = datetime.timedelta(hours=1)

CLIENT_LIMITS = httpx.Limits(max_connections=4, max_keepalive_connections=2)

ICS_REQUEST_HEADERS: dict[str, str] = {
    "User-Agent": "nextmeeting/0.1 (+https://github.com/nextmeeting/nextmeeting)",
    "Accept": "text/calendar, text/plain, application/octet-stream, */*",
    "Cache-Control": "no-cache",
}


@dataclass(frozen=True)
class IcsSource:
    """Configuration for a single ICS calendar."""

    name: str
    url: Optional[str] = None
    path: Optional[str] = None
    calendar_id: Optional[str] = None
    color: str = ""

    @property
    def id(self) -> str:
        return self.calendar_id or self.name

    @classmethod
    def from_config(cls, raw: Any, index: int = 0) -> IcsSource:
        """Build a source from a config entry (a mapping or a bare URL/path string)."""
        if isinstance(raw, str):
            is_remote = raw.startswith(("http://", "https://", "webcal://"))
            return cls(
                name=f"calendar-{index + 1}",
                url=raw if is_remote else None,
                path=None if is_remote else raw,
            )
        if not isinstance(raw, dict):
            raise ValueError(f"Unsupported source entry: {raw!r}")
        if not raw.get("url") and not raw.get("path"):
            raise ValueError(f"Source entry needs `url` or `path`: {raw!r}")
        return cls(
            name=str(raw.get("name") or f"calendar-{index + 1}"),
            url=raw.get("url"),
            path=raw.get("path"),
            calendar_id=raw.get("calendar_id"),
            color=str(raw.get("color") or ""),
        )


def _to_utc_datetime(value: datetime.date | datetime.datetime) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return ensure_utc(value)
    return datetime.datetime(value.year, value.month, value.day, tzinfo=datetime.timezone.utc)


def _text(component: Any, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _collect_exdates(component: Any) -> list[datetime.datetime]:
    """Return EXDATE values as UTC datetimes.

    icalendar yields either a single vDDDLists or a list of them depending on how
    many EXDATE lines the event carries.
    """
    raw = component.get("EXDATE")
    if raw is None:
        return []
    props = raw if isinstance(raw, list) else [raw]

    exdates: list[datetime.datetime] = []
    for prop in props:
        for dt_prop in getattr(prop, "dts", []):
            exdates.append(_to_utc_datetime(dt_prop.dt))
    return exdates


def _event_times(component: Any) -> tuple[datetime.datetime, datetime.datetime, bool]:
    dtstart = component.get("DTSTART")
    if dtstart is None:
        raise ValueError("Event missing DTSTART")

    is_all_day = not isinstance(dtstart.dt, datetime.datetime)
    start = _to_utc_datetime(dtstart.dt)

    dtend = component.get("DTEND")
    duration = component.get("DURATION")
    if dtend is not None:
        end = _to_utc_datetime(dtend.dt)
    elif duration is not None and hasattr(duration, "dt"):
        end = start + duration.dt
    elif is_all_day:
        end = start + datetime.timedelta(days=1)
    else:
        end = start + DEFAULT_EVENT_DURATION

    return start, end, is_all_day


def _overlaps(
    start: datetime.datetime,
    end: datetime.datetime,
    window_start: datetime.datetime,
    window_end: datetime.datetime,
) -> bool:
    return start <= window_end and end >= window_start


def _rrule_text(rrule_prop: Any, rule_start: datetime.datetime) -> str:
    """Serialize an RRULE with UNTIL expressed in UTC.

    dateutil requires a UTC UNTIL once DTSTART is timezone-aware. A floating
    UNTIL is read in the DTSTART timezone; a date-only UNTIL covers that whole day.
    """
    recur = vRecur(rrule_prop)
    untils = recur.get("UNTIL")
    if untils:
        until = untils[0]
        if not isinstance(until, datetime.datetime):
            until = datetime.datetime.combine(until, datetime.time(23, 59, 59))
        if until.tzinfo is None:
            until = until.replace(tzinfo=rule_start.tzinfo)
        recur["UNTIL"] = [until.astimezone(ZoneInfo("UTC"))]
    return recur.to_ical().decode("utf-8")


def _expand_occurrences(
    component: Any,
    start: datetime.datetime,
    duration: datetime.timedelta,
    window_start: datetime.datetime,
    window_end: datetime.datetime,
) -> list[datetime.datetime]:
    """Occurrence starts of a recurring event that overlap the window."""
    # Expand in the event's own timezone so DST transitions keep the local time.
    dtstart_value = component.get("DTSTART").dt
    rule_start = (
        dtstart_value
        if isinstance(dtstart_value, datetime.datetime) and dtstart_value.tzinfo is not None
        else start
    )
    rrule_string = _rrule_text(component.get("RRULE"), rule_start)

    rule_set = rruleset()
    parsed_rule = rrulestr(rrule_string, dtstart=rule_start)
    if isinstance(parsed_rule, rruleset):
        rule_set = parsed_rule
    else:
        rule_set.rrule(parsed_rule)

    for exdate in _collect_exdates(component):
        rule_set.exdate(exdate)

    return list(rule_set.between(window_start - duration, window_end, inc=True))


def parse_ics_events(
    content: str,
    source: IcsSource,
    window_start: datetime.datetime,
    window_end: datetime.datetime,
) -> list[RawEvent]:
    """Parse ICS content into RawEvents overlapping [window_start, window_end].

    Raises:
        MalformedResponseError: if the content is not a parseable calendar
    """
    try:
        calendar = Calendar.from_ical(content)
    except (ValueError, KeyError, IndexError) as exc:
        raise MalformedResponseError(f"{source.name}: invalid ICS content: {exc}") from exc

    components = list(calendar.walk("VEVENT"))

    # Moved/edited occurrences of recurring events: (uid, original start) pairs.
    overridden: set[tuple[str, datetime.datetime]] = set()
    for component in components:
        recurrence_id = component.get("RECURRENCE-ID")
        if recurrence_id is not None:
            overridden.add((str(component.get("UID", "")), _to_utc_datetime(recurrence_id.dt)))

    events: list[RawEvent] = []
    for component in components:
        if _text(component, "STATUS") == "CANCELLED":
            continue

        try:
            start, end, is_all_day = _event_times(component)
        except ValueError as exc:
            logger.debug("Skipping event in %s: %s", source.name, exc)
            continue

        uid = str(component.get("UID", "")) or str(uuid.uuid4())
        base = {
            "title": _text(component, "SUMMARY"),
            "is_all_day": is_all_day,
            "calendar_id": source.id,
            "calendar_name": source.name,
            "calendar_color": source.color,
            "structured_url": _text(component, "URL"),
            "location": _text(component, "LOCATION"),
            "notes": _text(component, "DESCRIPTION"),
        }

        recurrence_id = component.get("RECURRENCE-ID")
        if recurrence_id is not None:
            if _overlaps(start, end, window_start, window_end):
                occurrence_key = _to_utc_datetime(recurrence_id.dt).isoformat()
                events.append(
                    RawEvent(id=f"{uid}::{occurrence_key}", start=start, end=end, **base)
                )
            continue

        if component.get("RRULE") is None:
            if _overlaps(start, end, window_start, window_end):
                events.append(RawEvent(id=uid, start=start, end=end, **base))
            continue

        duration = end - start
        try:
            occurrences = _expand_occurrences(component, start, duration, window_start, window_end)
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Failed to expand RRULE for %r in %s: %s", uid, source.name, exc)
            occurrences = [start] if _overlaps(start, end, window_start, window_end) else []

        for occurrence_start in occurrences:
            occurrence_start = ensure_utc(occurrence_start)
            if (uid, occurrence_start) in overridden:
                continue
            events.append(
                RawEvent(
                    id=f"{uid}::{occurrence_start.isoformat()}",
                    start=occurrence_start,
                    end=occurrence_start + duration,
                    **base,
                )
            )

    logger.debug("Parsed %d events from %s", len(events), source.name)
    return events


class IcsCalendarProvider:
    """Calendar provider backed by ICS feeds.

    Remote sources share one pooled httpx client across fetches; call
    ``aclose()`` when the provider is no longer needed.
    """

    def __init__(
        self,
        sources: list[IcsSource],
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.sources = list(sources)
        self.timeout = timeout
        self._client = client

    def calendar_ids(self) -> list[str]:
        return [s.id for s in self.sources]

    async def fetch_events(
        self,
        start: datetime.datetime,
        end: datetime.datetime,
        included_calendars: Optional[Collection[str]] = None,
    ) -> list[RawEvent]:
        """Fetch and parse every included source.

        Raises:
            FetchError: the first source failure; partial results are not returned
        """
        selected = [
            s for s in self.sources if included_calendars is None or s.id in included_calendars
        ]
        if not selected:
            logger.debug("No calendars selected; nothing to fetch")
            return []

        window_start = ensure_utc(start)
        window_end = ensure_utc(end)

        events: list[RawEvent] = []
        for source in selected:
            content = await self._read_source(source)
            events.extend(parse_ics_events(content, source, window_start, window_end))

        logger.debug("Fetched %d events from %d calendars", len(events), len(selected))
        return events

    async def _read_source(self, source: IcsSource) -> str:
        if source.path:
            path = Path(source.path).expanduser()
            try:
                return await asyncio.to_thread(path.read_text, encoding="utf-8")
            except OSError as exc:
                raise CalendarProviderError(f"{source.name}: cannot read {path}: {exc}") from exc

        url = str(source.url)
        if url.startswith("webcal://"):
            url = "https://" + url[len("webcal://") :]

        return await self._get(self._get_client(), source, url)

    def _get_client(self) -> httpx.AsyncClient:
        """Return the pooled client, creating it on first use."""
        if self._client is None:
            logger.debug("Creating shared HTTP client (timeout %.1fs)", self.timeout)
            self._client = httpx.AsyncClient(
                timeout=self.timeout, limits=CLIENT_LIMITS, follow_redirects=True
            )
        return self._client

    async def _get(self, client: httpx.AsyncClient, source: IcsSource, url: str) -> str:
        try:
            response = await client.get(url, headers=ICS_REQUEST_HEADERS)
        except httpx.HTTPError as exc:
            raise CalendarProviderError(f"{source.name}: request failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise CalendarPermissionError(
                f"{source.name}: access denied (HTTP {response.status_code})"
            )
        if response.status_code >= 400:
            raise CalendarProviderError(f"{source.name}: HTTP {response.status_code}")

        return response.text

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
