"""Time helpers for nextmeeting.

All core logic compares timezone-aware UTC instants. ``now_utc()`` is the single
source of the current time and can be frozen for testing via the
NEXTMEETING_TEST_TIME environment variable.
"""

from __future__ import annotations

import datetime
import locale
import logging
import os
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "NEXTMEETING_TEST_TIME"


def now_utc() -> datetime.datetime:
    """Return current UTC time with tzinfo.

    Can be overridden for testing via NEXTMEETING_TEST_TIME.
    Format: ISO 8601 datetime string (e.g., "2025-10-27T08:20:00-07:00").
    A naive value is assumed to already be UTC.

    Returns:
        Current time in UTC with timezone info
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            dt = date_parser.isoparse(test_time)
            return ensure_utc(dt)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.datetime.now(datetime.timezone.utc)


def ensure_utc(dt: datetime.datetime) -> datetime.datetime:
    """Return ``dt`` as an aware UTC datetime.

    Naive datetimes are interpreted as UTC rather than server-local time so that
    results do not depend on the host configuration.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def get_local_timezone(tz_name: Optional[str] = None) -> datetime.tzinfo:
    """Resolve a display timezone.

    Args:
        tz_name: Optional IANA timezone name. When omitted (or unknown) the host's
            local timezone is used.

    Returns:
        tzinfo suitable for ``datetime.astimezone``
    """
    if tz_name:
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r; falling back to local time", tz_name)

    local = datetime.datetime.now().astimezone().tzinfo
    return local if local is not None else datetime.timezone.utc


def uses_24_hour_clock() -> bool:
    """Whether the active LC_TIME locale renders times on a 24-hour clock.

    The C/POSIX locale carries no user preference and keeps the 12-hour form.
    """
    try:
        language = locale.getlocale(locale.LC_TIME)[0]
    except ValueError:
        return False
    if language in (None, "C", "POSIX"):
        return False
    return "13" in datetime.time(13, 0).strftime("%X")


def format_short_time(
    dt: datetime.datetime,
    tz_name: Optional[str] = None,
    use_24_hour: Optional[bool] = None,
) -> str:
    """Render a short time of day such as ``"2:30 PM"`` or ``"09:30"``.

    Args:
        dt: Instant to render
        tz_name: Optional IANA timezone for display (defaults to host local time)
        use_24_hour: Force the clock style; None follows the LC_TIME locale

    Returns:
        ``H:MM AM/PM`` on a 12-hour clock, ``HH:MM`` on a 24-hour clock
    """
    local_dt = ensure_utc(dt).astimezone(get_local_timezone(tz_name))
    if use_24_hour is None:
        use_24_hour = uses_24_hour_clock()
    if use_24_hour:
        return f"{local_dt.hour:02d}:{local_dt.minute:02d}"
    hour = local_dt.hour % 12 or 12
    return f"{hour}:{local_dt.minute:02d} {local_dt.strftime('%p')}"
