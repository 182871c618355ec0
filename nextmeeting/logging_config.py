"""
Central logging configuration for nextmeeting.

Keeps the menu bar process quiet in production by suppressing verbose debug
logs from third-party libraries while leaving nextmeeting's own diagnostics
available on demand.
"""

import logging
import os
from typing import Optional

NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "charset_normalizer": logging.WARNING,
    "icalendar": logging.INFO,
}

NEXTMEETING_MODULES = [
    "nextmeeting",
    "nextmeeting.domain.refresh_pipeline",
    "nextmeeting.domain.alert_engine",
    "nextmeeting.domain.url_extractor",
    "nextmeeting.providers.ics_provider",
    "nextmeeting.monitor",
]


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for nextmeeting.

    Args:
        debug_mode: Whether to enable debug logging for nextmeeting modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        NEXTMEETING_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        NEXTMEETING_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("NEXTMEETING_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("NEXTMEETING_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a plain handler if none exist (keep the colored one from _init_logging)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(handler)

    logger_config = dict(NOISY_LOGGERS)
    module_level = logging.DEBUG if final_debug else logging.INFO
    for module in NEXTMEETING_MODULES:
        logger_config[module] = module_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info(
            "Debug logging enabled for nextmeeting modules. Third-party debug logs suppressed."
        )
    else:
        root_logger.info("Production logging configuration applied.")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}

    for logger_name in ["nextmeeting", "httpx", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)

    return status
