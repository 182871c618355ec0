"""Meeting-join URL extraction from calendar event fields.

The extractor walks candidate text sources in priority order (the event's own
URL property, then location, then notes) and, for each source, the provider
pattern table in priority order. The first match that parses as an absolute
http(s) URL wins. If nothing matches, the event's structured URL is returned
verbatim when present.

The pattern table is data, not code: a versioned ordered list of
``(name, pattern)`` pairs that can be replaced or extended from a YAML file so
new providers are additive.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import httpx
import yaml

from nextmeeting.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PATTERN_TABLE_VERSION = 2

# Ordered from most to least common provider.
DEFAULT_URL_PATTERNS: tuple[tuple[str, str], ...] = (
    ("zoom", r"https?://[\w.-]*zoom\.us/j/[\d\w?=&]+"),
    ("google_meet", r"https?://meet\.google\.com/[\w-]+"),
    ("microsoft_teams", r"https?://teams\.microsoft\.com/l/meetup-join/[\w%/-]+"),
    ("webex", r"https?://[\w.-]+\.webex\.com/[\w/.-]+"),
    ("whereby", r"https?://whereby\.com/[\w-]+"),
    ("around", r"https?://around\.co/[\w/-]+"),
    ("discord_invite", r"https?://discord\.gg/[\w]+"),
    ("discord_channel", r"https?://discord\.com/channels/[\d/]+"),
    ("slack_huddle", r"https?://app\.slack\.com/huddle/[\w/]+"),
    ("jitsi", r"https?://meet\.jit\.si/[\w-]+"),
)


@dataclass(frozen=True)
class UrlPattern:
    """A named provider pattern, compiled case-insensitively."""

    name: str
    pattern: str
    regex: re.Pattern[str] = field(compare=False, repr=False)

    @classmethod
    def compile(cls, name: str, pattern: str) -> UrlPattern:
        """Compile a pattern, failing fast on invalid regular expressions.

        Raises:
            ConfigurationError: if ``pattern`` is not a valid regular expression
        """
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as exc:
            raise ConfigurationError(f"Invalid URL pattern {name!r}: {exc}") from exc
        return cls(name=name, pattern=pattern, regex=regex)


@dataclass(frozen=True)
class PatternTable:
    """Versioned, ordered provider pattern table."""

    version: int
    patterns: tuple[UrlPattern, ...]

    @property
    def names(self) -> list[str]:
        return [p.name for p in self.patterns]


def compile_patterns(
    pairs: Iterable[tuple[str, str]], version: int = PATTERN_TABLE_VERSION
) -> PatternTable:
    """Build a PatternTable from ``(name, pattern)`` pairs, preserving order."""
    return PatternTable(
        version=version,
        patterns=tuple(UrlPattern.compile(name, pattern) for name, pattern in pairs),
    )


def default_pattern_table() -> PatternTable:
    return compile_patterns(DEFAULT_URL_PATTERNS)


def _pairs_from_document(raw: Any, source: str) -> list[tuple[str, str]]:
    entries = raw.get("patterns")
    if not isinstance(entries, list):
        raise ConfigurationError(f"{source}: `patterns` must be a list")

    pairs: list[tuple[str, str]] = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict) or "pattern" not in entry:
            raise ConfigurationError(f"{source}: entry {i} must be a mapping with a `pattern`")
        name = str(entry.get("name") or f"pattern_{i}")
        pairs.append((name, str(entry["pattern"])))
    return pairs


def load_pattern_table(path: str | Path) -> PatternTable:
    """Load a pattern table from a YAML document.

    Document shape::

        version: 3
        extend: true          # optional: append to the defaults
        patterns:
          - name: gather
            pattern: 'https?://app\\.gather\\.town/[\\w/-]+'

    Raises:
        ConfigurationError: if the document is malformed or a pattern is invalid
    """
    p = Path(path).expanduser()
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to read URL pattern file {p}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{p}: pattern file must contain a mapping at top level")

    pairs = _pairs_from_document(raw, str(p))
    if raw.get("extend"):
        pairs = list(DEFAULT_URL_PATTERNS) + pairs

    try:
        version = int(raw.get("version", PATTERN_TABLE_VERSION))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{p}: `version` must be an integer") from exc

    table = compile_patterns(pairs, version=version)
    logger.info("Loaded URL pattern table v%d (%d patterns) from %s", version, len(pairs), p)
    return table


def parse_meeting_url(candidate: str) -> Optional[str]:
    """Return ``candidate`` if it is an absolute http(s) URL with a host, else None."""
    try:
        url = httpx.URL(candidate)
    except (httpx.InvalidURL, TypeError, ValueError):
        return None
    if url.scheme not in ("http", "https") or not url.host:
        return None
    return candidate


class MeetingUrlExtractor:
    """Pattern-ordered best-match extraction of a meeting-join URL."""

    def __init__(self, table: Optional[PatternTable] = None) -> None:
        self.table = table or default_pattern_table()
        logger.debug(
            "URL extractor using pattern table v%d: %s", self.table.version, self.table.names
        )

    def find_in_text(self, text: str) -> Optional[str]:
        """Return the first valid match in ``text``, trying patterns in priority order."""
        for url_pattern in self.table.patterns:
            match = url_pattern.regex.search(text)
            if match is None:
                continue
            url = parse_meeting_url(match.group(0))
            if url is not None:
                return url
            logger.debug("Discarding unparseable %s match %r", url_pattern.name, match.group(0))
        return None

    def extract_from_sources(
        self, sources: Sequence[Optional[str]], fallback: Optional[str] = None
    ) -> Optional[str]:
        """Search ``sources`` in order, falling back to ``fallback`` verbatim."""
        for text in sources:
            if not text:
                continue
            url = self.find_in_text(text)
            if url is not None:
                return url

        return fallback or None

    def extract(
        self,
        structured_url: Optional[str] = None,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Optional[str]:
        """Extract the best meeting URL from an event's fields.

        Args:
            structured_url: The event's own URL property
            location: Location text
            notes: Free-form notes / description

        Returns:
            The join URL, the structured URL when no pattern matched, or None
        """
        return self.extract_from_sources(
            [structured_url, location, notes], fallback=structured_url
        )
