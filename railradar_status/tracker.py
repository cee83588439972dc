#!/usr/bin/env python3
"""
railradar-status — Indian Railways Train Running Status TUI

A terminal user interface for checking a train's running status with
optional auto-refresh. Uses the RailRadar API (https://railradar.in).
Set RAIL_RADAR_API_KEY before running.

Usage:
    railradar-status <train_number>
    railradar-status 12301                     # Today's run of the Rajdhani #12301
    railradar-status 12301 --date 2025-10-05   # A specific journey date
    railradar-status 12301 --once              # Display once and exit
    railradar-status 12301 --compact           # Single-line for status bars
    railradar-status 12301 --all               # Show all stops (no auto-focus)
"""

import argparse
import logging
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from time import sleep

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.logging import RichHandler
from rich.text import Text

from .config import REFRESH_INTERVAL, Config
from .display import (
    build_compact_display, build_error_panel, build_header, build_not_found_panel,
    build_progress_bar, build_stations_table, build_stats_panel,
)
from .models import is_valid_train_number, parse_journey_date, today_in_display_zone
from .session import LookupResult, LookupSession

logger = logging.getLogger(__name__)


def _train_number(value: str) -> str:
    value = value.strip()
    if not is_valid_train_number(value):
        raise argparse.ArgumentTypeError(f"invalid train number {value!r} (expected 4-5 digits)")
    return value


def _journey_date(value: str) -> str:
    parsed = parse_journey_date(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"invalid date {value!r} (expected YYYY-MM-DD)")
    return parsed.isoformat()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="railradar-status",
        description="Check Indian Railways train running status",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    %(prog)s 12301                     # Today's run of train 12301
    %(prog)s 12301 --date 2025-10-05   # A specific journey date
    %(prog)s 12301 --once              # Display once and exit
    %(prog)s 12301 --compact           # Single-line output for status bars
    %(prog)s 12301 --all               # Show all stations (no auto-focus)

Journey dates default to today in IST.
        """
    )
    parser.add_argument(
        "train_number",
        type=_train_number,
        help="Train number to look up (4-5 digits, e.g. 12301)"
    )
    parser.add_argument(
        "-d", "--date",
        dest="journey_date",
        type=_journey_date,
        metavar="YYYY-MM-DD",
        help="Journey date (default: today in IST)"
    )
    parser.add_argument(
        "-r", "--refresh",
        type=int,
        default=REFRESH_INTERVAL,
        help=f"Refresh interval in seconds (default: {REFRESH_INTERVAL})"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Display once and exit (no auto-refresh)"
    )
    parser.add_argument(
        "--compact", "-c",
        action="store_true",
        help="Compact single-line output (for status bars, tmux, etc.)"
    )
    parser.add_argument(
        "--all", "-a",
        action="store_true",
        help="Show all stations without auto-focusing on current position"
    )
    parser.add_argument(
        "--include-passing",
        action="store_true",
        help="Also list stations the train passes without halting"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log API activity and data problems"
    )
    return parser


def config_from_args(argv: list[str] | None = None) -> Config:
    args = build_parser().parse_args(argv)
    return Config(
        train_number=args.train_number,
        journey_date=args.journey_date or today_in_display_zone().isoformat(),
        compact_mode=args.compact,
        once=args.once,
        focus_current=not args.all,
        refresh_interval=max(args.refresh, 5),
        include_passing=args.include_passing,
        verbose=args.verbose,
    )


def setup_logging(verbose: bool, console: Console) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.WARNING)


def build_display(session: LookupSession, config: Config, refresh: bool = False) -> Layout | Text:
    """
    Build the full TUI display or compact display from the session's latest lookup.

    When the latest lookup failed but an earlier one succeeded, the earlier
    result is shown with the error as a warning.
    """
    current = session.current
    if current is None:
        if config.compact_mode:
            return Text(f"🚆 Train #{config.train_number}: fetching...", style="dim")
        return Layout(build_error_panel("No data yet"))

    result: LookupResult = current
    last_error = None
    if current.error is not None:
        if session.last_successful is None or not refresh:
            if config.compact_mode:
                return Text(f"🚆 Train #{config.train_number} error: {current.error}", style="red")
            layout = Layout()
            if current.is_not_found:
                layout.update(build_not_found_panel(config.train_number, config.journey_date))
            else:
                layout.update(build_error_panel(current.error, current.error_code))
            return layout
        result = session.last_successful
        last_error = f"{current.error} (showing earlier data)"

    train = result.status.train
    view = result.view

    if config.compact_mode:
        return build_compact_display(train, view, result.fetched_at)

    layout = Layout()
    layout.split(
        Layout(name="header", size=10),
        Layout(name="stats", size=4),
        Layout(name="progress", size=3),
        Layout(name="stations"),
    )

    layout["header"].update(build_header(
        train,
        view,
        journey_date=config.journey_date,
        last_fetch_time=result.fetched_at,
        last_error=last_error,
        refresh_interval=config.refresh_interval if refresh else None,
    ))
    layout["stats"].update(build_stats_panel(train))
    layout["progress"].update(build_progress_bar(view))
    layout["stations"].update(build_stations_table(view, focus=config.focus_current))

    return layout


def run_once(session: LookupSession, config: Config, console: Console) -> int:
    result = session.lookup(config.train_number, config.journey_date)
    console.print(build_display(session, config))
    return 1 if result.error is not None else 0


def _log_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Background lookup failed: %s", exc)


def run_live(session: LookupSession, config: Config, console: Console) -> None:
    """
    Refresh on a timer. Lookups run in the background so a slow request never
    blocks the screen; the session only keeps the newest lookup's result.
    """
    def refresh() -> None:
        logger.debug("Refreshing train %s", config.train_number)
        future = executor.submit(session.lookup, config.train_number, config.journey_date)
        future.add_done_callback(_log_failure)

    session.lookup(config.train_number, config.journey_date)

    if config.compact_mode:
        console.print(build_display(session, config, refresh=True))
        while True:
            sleep(config.refresh_interval)
            session.lookup(config.train_number, config.journey_date)
            console.clear()
            console.print(build_display(session, config, refresh=True))

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="lookup") as executor:
        with Live(
            build_display(session, config, refresh=True),
            console=console,
            refresh_per_second=1,
            screen=True
        ) as live:
            elapsed = 0
            while True:
                sleep(1)
                elapsed += 1
                if elapsed >= config.refresh_interval:
                    elapsed = 0
                    refresh()
                live.update(build_display(session, config, refresh=True))


def main(argv: list[str] | None = None):
    config = config_from_args(argv)
    console = Console()
    setup_logging(config.verbose, console)

    session = LookupSession(include_passing=config.include_passing)

    if config.once:
        sys.exit(run_once(session, config, console))

    try:
        run_live(session, config, console)
    except KeyboardInterrupt:
        console.print("\n[dim]Tracking stopped.[/]")
        sys.exit(0)


if __name__ == "__main__":
    main()
