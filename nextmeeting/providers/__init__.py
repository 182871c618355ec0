"""Calendar providers for nextmeeting."""

from .ics_provider import IcsCalendarProvider, IcsSource, parse_ics_events

__all__ = ["IcsCalendarProvider", "IcsSource", "parse_ics_events"]
