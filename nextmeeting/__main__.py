"""Command-line entry for nextmeeting.

Loads configuration (YAML file, then .env / NEXTMEETING_* environment
overrides), wires the ICS provider, URL extractor, alert engine and refresh
pipeline into a MeetingMonitor and runs it.
"""

from __future__ import annotations

import argparse
import asyncio
import locale
import logging
import os
import sys
from typing import NoReturn, Optional, TextIO

from . import __version__, _init_logging
from .config_loader import Config, load_config
from .core.config_manager import ConfigManager
from .domain.alert_engine import AlertEngine
from .domain.refresh_pipeline import MeetingRefreshPipeline
from .domain.url_extractor import MeetingUrlExtractor, load_pattern_table
from .exceptions import ConfigurationError
from .logging_config import configure_logging
from .monitor import MeetingMonitor
from .providers import IcsCalendarProvider, IcsSource
from .surfaces import (
    AlwaysGrantedPermissionGate,
    ConfigPreferencesSource,
    ConsoleAlertSurface,
    ConsoleNotificationSurface,
    open_url,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the nextmeeting CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="nextmeeting",
        description="NextMeeting - your next meeting, its join link and a start-time alert",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nextmeeting                         # Monitor calendars and alert when meetings start
  nextmeeting --once                  # Print the menu bar label and next five meetings
  nextmeeting --join                  # Open the link of the current or next meeting
  NEXTMEETING_ICS_URL=https://... nextmeeting --once
        """,
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to config YAML (default: ~/.config/nextmeeting/config.yaml)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single refresh/alert cycle, print upcoming meetings and exit",
    )
    parser.add_argument(
        "--join",
        action="store_true",
        help="Refresh once and open the link of the current or next meeting",
    )
    parser.add_argument(
        "--auto-join",
        action="store_true",
        help="Open the meeting link automatically when an alert fires",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_monitor(config: Config, auto_join: bool = False) -> MeetingMonitor:
    """Wire the runtime components described by ``config``.

    Raises:
        ConfigurationError: if a source entry or the URL pattern table is invalid
    """
    try:
        sources = [IcsSource.from_config(raw, i) for i, raw in enumerate(config.sources)]
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    if not sources:
        logger.warning("No calendar sources configured; set `sources` or NEXTMEETING_ICS_URL")

    table = load_pattern_table(config.url_patterns_file) if config.url_patterns_file else None
    alert_engine = AlertEngine(
        alert_minutes_before=config.alert_minutes_before,
        full_screen_alerts_enabled=config.full_screen_alerts_enabled,
        store_path=config.alert_store_path,
    )
    pipeline = MeetingRefreshPipeline(
        provider=IcsCalendarProvider(sources),
        extractor=MeetingUrlExtractor(table),
        alert_engine=alert_engine,
    )
    return MeetingMonitor(
        pipeline=pipeline,
        alert_engine=alert_engine,
        preferences=ConfigPreferencesSource(config),
        permission_gate=AlwaysGrantedPermissionGate(),
        alert_surface=ConsoleAlertSurface(auto_join=auto_join),
        notification_surface=ConsoleNotificationSurface(),
        url_opener=open_url,
    )


def print_summary(monitor: MeetingMonitor, stream: Optional[TextIO] = None) -> None:
    """Print the menu bar label followed by the upcoming meetings."""
    out = stream or sys.stdout
    print(monitor.menu_bar_label(), file=out)

    error = monitor.pipeline.error_message
    if error:
        print(f"  ! {error}", file=out)

    for meeting in monitor.upcoming():
        link = f"  {meeting.meeting_url}" if meeting.meeting_url else ""
        print(
            f"  {meeting.time_string:>8}  {meeting.countdown_string:<7} {meeting.title}{link}",
            file=out,
        )


async def _run(args: argparse.Namespace, monitor: MeetingMonitor) -> int:
    try:
        return await _run_mode(args, monitor)
    finally:
        await monitor.pipeline.provider.aclose()


async def _run_mode(args: argparse.Namespace, monitor: MeetingMonitor) -> int:
    if args.join:
        prefs = monitor.preferences.snapshot()
        await monitor.pipeline.refresh(
            lookahead_hours=prefs.lookahead_hours,
            excluded_calendar_ids=prefs.excluded_calendar_ids,
        )
        monitor.join_next_meeting()
        return EXIT_OK

    if args.once:
        await monitor.run_cycle()
        print_summary(monitor)
        return EXIT_OK

    stop_event = asyncio.Event()
    await monitor.run_forever(stop_event)
    return EXIT_OK


def run(args: argparse.Namespace) -> int:
    """Load configuration, build the monitor and run the selected mode."""
    _init_logging(os.environ.get("NEXTMEETING_LOG_LEVEL"))
    try:
        locale.setlocale(locale.LC_TIME, "")
    except locale.Error:
        logger.debug("Unsupported LC_TIME locale; keeping the default time format")

    env_overrides = ConfigManager().load_full_config()
    try:
        config = load_config(args.config, overrides=env_overrides)
    except (ValueError, OSError) as exc:
        logger.error("Failed to load configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    configure_logging(debug_mode=args.debug or config.log_level == "DEBUG")
    if not args.debug:
        _init_logging(config.log_level)

    try:
        monitor = build_monitor(config, auto_join=args.auto_join)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    return asyncio.run(_run(args, monitor))


def main() -> NoReturn:
    """Run the nextmeeting CLI."""
    parser = _create_parser()
    args = parser.parse_args()

    try:
        sys.exit(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    main()
