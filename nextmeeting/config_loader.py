"""nextmeeting.config_loader

Config loader for nextmeeting.

- Reads YAML (PyYAML ``safe_load``) into a typed dataclass ``Config``.
- Coerces and bounds numeric values, logging a warning for every coercion.
- Exposes ``load_config()`` which accepts an optional path override.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .models import DEFAULT_LOOKAHEAD_HOURS, DEFAULT_REFRESH_INTERVAL_SECONDS, PreferencesSnapshot

logger = logging.getLogger(__name__)

MIN_REFRESH_INTERVAL_SECONDS = 10
MAX_REFRESH_INTERVAL_SECONDS = 3600
MIN_LOOKAHEAD_HOURS = 1
MAX_LOOKAHEAD_HOURS = 168

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "nextmeeting" / "config.yaml"


@dataclass
class Config:
    """Typed configuration for nextmeeting.

    Fields:
        sources: ICS source entries (URL/path strings or mappings)
        lookahead_hours: fetch window size (1..168)
        refresh_interval_seconds: poll cadence (10..3600)
        alert_minutes_before: 0 = alert at start, else minutes before start
        excluded_calendar_ids: calendars to suppress
        full_screen_alerts_enabled: toggle for full-screen alerts
        url_patterns_file: optional YAML file overriding the provider pattern table
        alert_store_path: optional JSON file persisting alerted meeting ids
        log_level: logging level name
    """

    sources: list[Any] = field(default_factory=list)
    lookahead_hours: int = DEFAULT_LOOKAHEAD_HOURS
    refresh_interval_seconds: int = DEFAULT_REFRESH_INTERVAL_SECONDS
    alert_minutes_before: int = 0
    excluded_calendar_ids: list[str] = field(default_factory=list)
    full_screen_alerts_enabled: bool = True
    url_patterns_file: str | None = None
    alert_store_path: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int and clamped to their allowed ranges;
        a negative alert offset falls back to 0 ("at start").
        """
        if data is None:
            data = {}

        sources_raw = data.get("sources", [])
        if sources_raw is None:
            sources_raw = []
        if not isinstance(sources_raw, (list, tuple)):
            logger.warning("Config `sources` is not a list; coercing to single-item list")
            sources_raw = [sources_raw]

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            if isinstance(raw, bool):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        def _clamp(key: str, value: int, low: int, high: int) -> int:
            if value < low:
                logger.warning("%s %d below minimum; coercing to %d", key, value, low)
                return low
            if value > high:
                logger.warning("%s %d above maximum; coercing to %d", key, value, high)
                return high
            return value

        lookahead = _clamp(
            "lookahead_hours",
            _coerce_int("lookahead_hours", DEFAULT_LOOKAHEAD_HOURS),
            MIN_LOOKAHEAD_HOURS,
            MAX_LOOKAHEAD_HOURS,
        )
        refresh = _clamp(
            "refresh_interval_seconds",
            _coerce_int("refresh_interval_seconds", DEFAULT_REFRESH_INTERVAL_SECONDS),
            MIN_REFRESH_INTERVAL_SECONDS,
            MAX_REFRESH_INTERVAL_SECONDS,
        )

        alert_minutes = _coerce_int("alert_minutes_before", 0)
        if alert_minutes < 0:
            logger.warning("alert_minutes_before %d is negative; using 0 (at start)", alert_minutes)
            alert_minutes = 0

        excluded_raw = data.get("excluded_calendar_ids") or []
        if isinstance(excluded_raw, str):
            excluded_raw = [s for s in excluded_raw.split(",") if s.strip()]
        excluded = [str(c).strip() for c in excluded_raw]

        alerts_raw = data.get("full_screen_alerts_enabled", True)
        if isinstance(alerts_raw, str):
            alerts_enabled = alerts_raw.strip().lower() in ("1", "true", "yes", "on")
        else:
            alerts_enabled = bool(alerts_raw)

        url_patterns_file = data.get("url_patterns_file")
        alert_store_path = data.get("alert_store_path")

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(
            sources=list(sources_raw),
            lookahead_hours=lookahead,
            refresh_interval_seconds=refresh,
            alert_minutes_before=alert_minutes,
            excluded_calendar_ids=excluded,
            full_screen_alerts_enabled=alerts_enabled,
            url_patterns_file=str(url_patterns_file) if url_patterns_file else None,
            alert_store_path=str(alert_store_path) if alert_store_path else None,
            log_level=log_level,
        )

    def preferences(self) -> PreferencesSnapshot:
        """Immutable preferences snapshot for one refresh/alert cycle."""
        return PreferencesSnapshot(
            lookahead_hours=self.lookahead_hours,
            refresh_interval_seconds=self.refresh_interval_seconds,
            alert_minutes_before=self.alert_minutes_before,
            excluded_calendar_ids=frozenset(self.excluded_calendar_ids),
            full_screen_alerts_enabled=self.full_screen_alerts_enabled,
        )


def load_config(path: str | None = None, overrides: dict[str, Any] | None = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to
              ~/.config/nextmeeting/config.yaml.
        overrides: Optional mapping applied on top of file values (e.g. from the
              environment).

    Returns:
        Config dataclass instance with values from file (or defaults).

    Behavior:
    - If file is missing: returns defaults (plus overrides).
    - If file exists but top-level is not a mapping: raises ValueError.
    """
    p = Path(path).expanduser() if path else DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)

    raw: Any = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
            raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
        logger.info("Loaded configuration from %s", p)
    else:
        logger.info("Config file %s not found; using defaults", p)

    if overrides:
        raw = {**raw, **overrides}

    cfg = Config.from_dict(raw)
    logger.debug("Configuration values: %s", cfg)
    return cfg
