"""
Main entry point for mutil.

Wires the database, configuration, cmus client and recorder together and
dispatches the command line subcommands.
"""

import argparse
import logging
import os
import signal
import sys
from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from .chart import week_start, weekly_chart
from .cmus import CmusClient
from .config_manager import CONFIG_SCHEMA, ConfigManager
from .database import Database, ScrobRepository
from .errors import MutilError
from .recorder import Recorder
from .report import daily_summary, start_of_day

logger = logging.getLogger(__name__)


class MutilApp:
    """Builds and holds the components shared by all subcommands."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize all components.

        Args:
            db_path: SQLite file; MUTIL_DB or ~/.mutil/mutil.db when None
        """
        self.database = Database(db_path or os.environ.get("MUTIL_DB") or None)
        self.config_manager = ConfigManager(self.database)
        self.scrobs = ScrobRepository(self.database)

    def cmus_client(self) -> CmusClient:
        return CmusClient(
            self.config_manager.get("cmus_socket"),
            timeout=self.config_manager.get_float("source_timeout_seconds", 5.0),
        )

    def recorder(self, live_line: Optional[bool] = None) -> Recorder:
        if live_line is None:
            live_line = self.config_manager.get_bool("live_line", False)
        return Recorder(
            self.cmus_client(),
            self.scrobs,
            interval_ms=self.config_manager.get_int("poll_interval_ms", 2000),
            live_line=live_line,
            retry_attempts=self.config_manager.get_int("source_retry_attempts", 3),
            retry_backoff_ms=self.config_manager.get_int("source_retry_backoff_ms", 1000),
        )


def cmd_status(app: MutilApp, args) -> int:
    snapshot = app.cmus_client().fetch_status()
    for key, value in asdict(snapshot).items():
        if key == "status":
            value = value.value
        print(f"{key}: {value if value is not None else ''}")
    return 0


def cmd_record(app: MutilApp, args) -> int:
    recorder = app.recorder(live_line=True if args.live_line else None)

    def handle_signal(_signum, _frame):
        # Only flips a flag: no locks may be taken inside a signal handler
        recorder.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    recorder.run()
    return 0


def cmd_report_today(app: MutilApp, args) -> int:
    since = int(start_of_day(datetime.now()).timestamp())
    records = app.scrobs.query_range(since)
    print(daily_summary(records, limit=app.config_manager.get_int("report_top_albums", 5)))
    return 0


def cmd_report_week_chart(app: MutilApp, args) -> int:
    now = datetime.now()
    records = app.scrobs.query_range(int(week_start(now).timestamp()))
    sys.stdout.write(weekly_chart(records, now))
    return 0


def cmd_config(app: MutilApp, args) -> int:
    if args.action == "set":
        app.config_manager.set(args.key, args.value)
        return 0

    if args.action == "get":
        value = app.config_manager.get(args.key)
        print(value if value is not None else "")
        return 0

    for key, value in sorted(app.config_manager.get_all().items()):
        print(f"{key} = {value}")
        description = CONFIG_SCHEMA.get(key, {}).get("description")
        if description:
            print(f"    {description}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mutil", description="mutil - record and report cmus scrobs"
    )
    parser.add_argument("--db", help="SQLite database file (default: ~/.mutil/mutil.db)")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    status = subparsers.add_parser(
        "status", aliases=["cmus-status"], help="query cmus for the currently playing track"
    )
    status.set_defaults(func=cmd_status)

    record = subparsers.add_parser(
        "record", aliases=["scrobd"], help="poll cmus and record scrobs"
    )
    record.add_argument(
        "--live-line", "--term", action="store_true", help="write status to a single line"
    )
    record.set_defaults(func=cmd_record)

    today = subparsers.add_parser(
        "report-today", aliases=["today"], help="report on today's scrobs"
    )
    today.set_defaults(func=cmd_report_today)

    chart = subparsers.add_parser(
        "report-week-chart", aliases=["time-chart"], help="print an SVG chart of the last 7 days"
    )
    chart.set_defaults(func=cmd_report_week_chart)

    config = subparsers.add_parser("config", help="show or change stored settings")
    config_actions = config.add_subparsers(dest="action")
    config_get = config_actions.add_parser("get", help="print one setting")
    config_get.add_argument("key")
    config_set = config_actions.add_parser("set", help="store one setting")
    config_set.add_argument("key", choices=sorted(CONFIG_SCHEMA))
    config_set.add_argument("value")
    config.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        app = MutilApp(args.db)
    except MutilError as e:
        logger.error("%s", e)
        return 1

    try:
        return args.func(app, args)
    except MutilError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
