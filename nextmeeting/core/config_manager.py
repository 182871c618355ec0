"""Environment-based configuration for nextmeeting."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Handles KEY=VALUE format with optional whitespace
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


class ConfigManager:
    """Manages configuration overrides from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment to avoid
        surprising overrides of user's environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        parsed = parse_env_file(self.env_file_path)

        set_keys = []
        for key, val in parsed.items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration overrides from environment variables.

        Recognizes:
        - NEXTMEETING_ICS_URL -> 'sources' (list with single URL)
        - NEXTMEETING_LOOKAHEAD_HOURS -> 'lookahead_hours' (int)
        - NEXTMEETING_REFRESH_INTERVAL -> 'refresh_interval_seconds' (int)
        - NEXTMEETING_ALERT_MINUTES_BEFORE -> 'alert_minutes_before' (int)
        - NEXTMEETING_EXCLUDED_CALENDARS -> 'excluded_calendar_ids' (comma separated)
        - NEXTMEETING_FULL_SCREEN_ALERTS -> 'full_screen_alerts_enabled' (bool)
        - NEXTMEETING_LOG_LEVEL -> 'log_level'

        Returns:
            Configuration mapping to merge over file values
        """
        cfg: dict[str, Any] = {}

        ics_url = os.environ.get("NEXTMEETING_ICS_URL")
        if ics_url:
            cfg["sources"] = [ics_url]

        int_keys = {
            "NEXTMEETING_LOOKAHEAD_HOURS": "lookahead_hours",
            "NEXTMEETING_REFRESH_INTERVAL": "refresh_interval_seconds",
            "NEXTMEETING_ALERT_MINUTES_BEFORE": "alert_minutes_before",
        }
        for env_key, cfg_key in int_keys.items():
            raw = os.environ.get(env_key)
            if not raw:
                continue
            try:
                cfg[cfg_key] = int(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_key, raw)

        excluded = os.environ.get("NEXTMEETING_EXCLUDED_CALENDARS")
        if excluded:
            cfg["excluded_calendar_ids"] = [c.strip() for c in excluded.split(",") if c.strip()]

        alerts = os.environ.get("NEXTMEETING_FULL_SCREEN_ALERTS")
        if alerts:
            cfg["full_screen_alerts_enabled"] = alerts.strip().lower() in ("1", "true", "yes", "on")

        log_level = os.environ.get("NEXTMEETING_LOG_LEVEL")
        if log_level:
            cfg["log_level"] = log_level

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration overrides from environment.

        This is the main entry point for loading environment configuration.

        Returns:
            Configuration mapping
        """
        self.load_env_file()
        return self.build_config_from_env()
