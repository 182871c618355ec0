"""Countdown and status derivation for meeting displays.

Pure functions over a meeting's time range and an explicit ``now``. This is the
single source of truth for the menu bar label, the countdown shown next to each
meeting and the "happening now" / "just starting" classification used by the
alert engine.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from nextmeeting.core.timezone_utils import format_short_time

JUST_STARTING_GRACE_SECONDS = 60
MENU_TITLE_MAX_LENGTH = 20
MENU_TITLE_KEEP_LENGTH = 17
ELLIPSIS = "..."


def seconds_until_start(start: datetime, now: datetime) -> float:
    """Seconds until ``start`` (negative once the meeting has started)."""
    return (start - now).total_seconds()


def is_happening_now(start: datetime, end: datetime, now: datetime) -> bool:
    """True when ``now`` lies within [start, end], inclusive at both ends."""
    return start <= now <= end


def is_just_starting(start: datetime, now: datetime) -> bool:
    """True during the first minute after ``start``.

    A meeting that has not started yet, or started 60 seconds ago or more, is
    not just starting.
    """
    elapsed = (now - start).total_seconds()
    return 0 <= elapsed < JUST_STARTING_GRACE_SECONDS


def countdown_string(start: datetime, end: datetime, now: datetime) -> str:
    """Human-readable time until ``start``.

    Returns:
        "Now" while the meeting is happening, "Past" once it has fully elapsed,
        "<1m" under a minute away, otherwise "{h}h {m}m", "{h}h" or "{m}m".
    """
    if is_happening_now(start, end, now):
        return "Now"

    if start < now:
        return "Past"

    minutes = math.floor(seconds_until_start(start, now) / 60)
    if minutes < 1:
        return "<1m"

    hours, remaining = divmod(minutes, 60)
    if hours > 0:
        if remaining > 0:
            return f"{hours}h {remaining}m"
        return f"{hours}h"

    return f"{minutes}m"


def truncate_title(title: str) -> str:
    """Shorten long titles to 17 characters plus an ellipsis."""
    if len(title) > MENU_TITLE_MAX_LENGTH:
        return title[:MENU_TITLE_KEEP_LENGTH] + ELLIPSIS
    return title


def menu_bar_title(title: str, start: datetime, end: datetime, now: datetime) -> str:
    """Label for the menu bar, e.g. ``"15m: Team Standup"``."""
    return f"{countdown_string(start, end, now)}: {truncate_title(title)}"


def time_string(start: datetime, tz_name: Optional[str] = None) -> str:
    """Short local time-of-day of the meeting start, e.g. ``"2:30 PM"``."""
    return format_short_time(start, tz_name)
