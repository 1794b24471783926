"""
Session history report
======================
Retrieves session history for directory principals, filters it and writes
a CSV report or opens an interactive viewer.

Usage:
    session-report --days 7 --category Audio --output-mode file --output-path audio.csv
    session-report --days 30 --category All --output-mode viewer --subject alice@example.com
    session-report --days 1 --category IM --output-mode file --output-path im.csv \\
        --subject-list users.csv --include-incomplete --full-detail

Connection settings (API URL, credentials) come from UCREPORT_* environment
variables; every flag below can also be set that way.
"""

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from .config import SESSION_CATEGORIES, ReportSettings
from .errors import ReportError
from .runner import run_report

logger = logging.getLogger("session_report")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="session-report",
        description="Export session history from the unified-communications directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--days", dest="days_to_search", type=int, help="Days of history to search")
    parser.add_argument(
        "--category", dest="session_category",
        help=f"Session category: {', '.join(SESSION_CATEGORIES)}",
    )
    parser.add_argument("--output-mode", dest="output_mode", choices=["file", "viewer"])
    parser.add_argument("--output-path", dest="output_path", help="CSV file to write (file mode)")
    parser.add_argument("--full-detail", dest="full_detail", action="store_true", default=None,
                        help="Include every field returned by the API")
    parser.add_argument("--include-incomplete", dest="include_incomplete", action="store_true", default=None,
                        help="Include sessions that never ended")
    parser.add_argument("--subject", help="Scan a single user address")
    parser.add_argument("--subject-list", dest="subject_list_file", help="CSV file with a 'User' column")
    parser.add_argument("--uri-filter", dest="uri_filter", help="Substring match on from/to URI")
    parser.add_argument("--client-version-filter", dest="client_version_filter",
                        help="Substring match on from/to client version")
    parser.add_argument("--end", dest="end_instant",
                        help="Window end as ISO-8601 (default: now, UTC)")
    parser.add_argument("--api-base-url", dest="api_base_url")
    parser.add_argument("--username", help="Pre-supplied credential user name")
    parser.add_argument("--viewer-port", dest="viewer_port", type=int)
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def settings_from_args(args: argparse.Namespace) -> ReportSettings:
    overrides = {
        k: v for k, v in vars(args).items()
        if k != "verbose" and v is not None
    }
    return ReportSettings(**overrides)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # per-request lines from httpx drown out progress
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        settings = settings_from_args(args)
    except ValidationError as e:
        logger.error("Invalid configuration:\n%s", e)
        return 2

    try:
        asyncio.run(run_report(settings))
    except ReportError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
