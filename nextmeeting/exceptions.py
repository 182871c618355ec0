"""Custom exception hierarchy for nextmeeting.

Fetch failures are recovered locally by the refresh pipeline; configuration
errors are raised at the boundary where a bad value enters the system. No
exception in this module is meant to terminate the process.
"""


class NextMeetingError(Exception):
    """Base exception for all nextmeeting errors.

    All custom exceptions should inherit from this base class to enable
    centralized exception handling at the refresh loop boundary.
    """


class FetchError(NextMeetingError):
    """Fetching events from the calendar provider failed.

    Raised by calendar providers. The refresh pipeline catches it, keeps the
    last-known-good meeting list and surfaces the message for display.
    """


class CalendarPermissionError(FetchError):
    """Access to the calendar was denied or revoked.

    Raised when a remote calendar responds with 401 or 403.
    """


class CalendarProviderError(FetchError):
    """The calendar provider could not be reached or failed internally.

    Raised when:
    - A network transport error occurs
    - A remote calendar responds with another error status
    - A provider raises an unexpected exception
    """


class MalformedResponseError(FetchError):
    """The calendar provider returned content that could not be parsed."""


class ConfigurationError(NextMeetingError):
    """A configuration value is invalid.

    Raised when:
    - A URL pattern in the provider table is not a valid regular expression
    - alert_minutes_before is negative or not an integer
    - A pattern table document is malformed
    """
