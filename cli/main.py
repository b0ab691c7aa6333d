#!/usr/bin/env python3
"""
GlobalUsage CLI - see where shared files are used across sites.
"""

import argparse
import asyncio
import logging
import sys
from typing import Awaitable, Callable, List, TypeVar

from rich.console import Console
from rich.table import Table

from api.database import database
from api.enums import Direction, Namespace
from api.errors import GlobalUsageError, InvalidTitleError, truncate_error
from api.routing import get_router
from api.schemas import TopUsagePage
from api.titles import parse_title
from api.top_usage import ReportRedirect, create_top_usage_report
from api.usage_query import UsageQuery, UsageQueryConfig, UsageResult, UsageTarget
from config import DEFAULT_LIMIT, LOG_LEVEL

T = TypeVar("T")

# Longest user input echoed back in error messages
ERROR_ECHO_MAX_LENGTH = 120

console = Console()


class CLIError(Exception):
    """Custom exception for CLI errors."""

    pass


def positive_int(value: str) -> int:
    """Argparse type converter that validates positive integers."""
    i = int(value)
    if i <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {i}")
    return i


def non_negative_int(value: str) -> int:
    """Argparse type converter that validates integers >= 0."""
    i = int(value)
    if i < 0:
        raise argparse.ArgumentTypeError(f"must be zero or greater, got {i}")
    return i


def build_target(names: List[str]) -> UsageTarget:
    """
    Turn command line target names into a usage target.

    A single name may be a file or a category ("Category:Maps"). Several names
    are looked up together and must all be files.

    Raises:
        CLIError: If a name is not a valid title, or a batch mixes in non-files
    """
    try:
        if len(names) == 1:
            return UsageTarget.from_title(names[0])
        parsed = [parse_title(name) for name in names]
    except InvalidTitleError as e:
        raise CLIError(str(e)) from e

    if any(title.namespace != Namespace.FILE for title in parsed):
        raise CLIError("When several targets are given they must all be files")
    return UsageTarget.files(title.dbkey for title in parsed)


def build_usage_config(args: argparse.Namespace) -> UsageQueryConfig:
    """
    Build the query configuration from parsed arguments.

    Raises:
        CLIError: If the target or continuation token is invalid
    """
    config = UsageQueryConfig(
        target=build_target(args.targets),
        limit=args.limit,
        direction=Direction.BACKWARD if args.reverse else Direction.FORWARD,
        exclude_local_site=args.filter_local,
        namespaces=frozenset(args.namespace or ()),
        sites=frozenset(args.site or ()),
    )

    if args.continue_token:
        resumed = config.with_cursor(args.continue_token)
        if resumed is None:
            token = truncate_error(args.continue_token, ERROR_ECHO_MAX_LENGTH)
            raise CLIError(f"Malformed continuation token '{token}' (expected target|site|page_id)")
        config = resumed

    return config


def render_usage_table(result: UsageResult) -> Table:
    """Render one page of usages as a table grouped by file and site."""
    table = Table(title=f"Global usage ({result.count()} files)")
    table.add_column("File")
    table.add_column("Site")
    table.add_column("Page")
    table.add_column("Page ID", justify="right")

    for target, by_site in result.usages.items():
        for site, records in by_site.items():
            for record in records:
                table.add_row(target, site, record.prefixed_title, str(record.page_id))
    return table


def render_top_table(page: TopUsagePage) -> Table:
    table = Table(title="Most globally linked files")
    table.add_column("#", justify="right")
    table.add_column("File")
    table.add_column("Uses", justify="right")

    for position, entry in enumerate(page.entries, start=page.offset + 1):
        table.add_row(str(position), entry.title, str(entry.value))
    return table


async def _with_database(operation: Callable[[], Awaitable[T]]) -> T:
    """Connect the shared database for the duration of one operation."""
    await database.connect()
    try:
        return await operation()
    finally:
        await database.disconnect()


def cmd_usage(args):
    """Show where one or more files are used."""
    config = build_usage_config(args)
    query = UsageQuery(get_router())
    result = asyncio.run(_with_database(lambda: query.execute(config)))

    if args.json:
        print(result.to_response().model_dump_json(indent=2))
        return

    if not result.count():
        print("No usage found.")
        return

    console.print(render_usage_table(result))
    if result.has_more:
        flag = " --reverse" if config.is_reversed else ""
        print(f"\nMore results available:{flag} --continue '{result.continuation_token}'")


def cmd_top(args):
    """Show the most globally linked files."""
    router = get_router()
    report = create_top_usage_report(router)

    if router.is_canonical_owner():
        outcome = asyncio.run(_with_database(lambda: report.run(args.offset, args.limit)))
    else:
        # Redirects never touch the database
        outcome = asyncio.run(report.run(args.offset, args.limit))

    if isinstance(outcome, ReportRedirect):
        print(f"This report is served by the shared repository: {outcome.url}")
        return

    if args.json:
        print(outcome.model_dump_json(indent=2))
        return

    console.print(render_top_table(outcome))
    if outcome.has_more:
        print(f"\nNext page: --offset {outcome.offset + outcome.limit}")


def main():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(
        prog="globalusage", description="GlobalUsage CLI - Find where shared files are used"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Usage command
    usage_parser = subparsers.add_parser("usage", help="List pages using a file or category of files")
    usage_parser.add_argument("targets", nargs="+", help="File name(s), or a single 'Category:Name'")
    usage_parser.add_argument(
        "-l", "--limit", type=positive_int, default=DEFAULT_LIMIT, help=f"Page size (default: {DEFAULT_LIMIT})"
    )
    usage_parser.add_argument(
        "-c", "--continue", dest="continue_token", metavar="TOKEN", help="Continue from a previous page"
    )
    usage_parser.add_argument(
        "--reverse", action="store_true", help="Page backwards from the continuation token"
    )
    usage_parser.add_argument(
        "-n", "--namespace", type=int, action="append", help="Only pages in this namespace id (repeatable)"
    )
    usage_parser.add_argument("-s", "--site", action="append", help="Only pages on this site (repeatable)")
    usage_parser.add_argument(
        "--filter-local", action="store_true", help="Hide usage on the local site"
    )
    usage_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    usage_parser.set_defaults(func=cmd_usage)

    # Top command
    top_parser = subparsers.add_parser("top", help="List the most globally linked files")
    top_parser.add_argument(
        "-l", "--limit", type=positive_int, default=DEFAULT_LIMIT, help=f"Page size (default: {DEFAULT_LIMIT})"
    )
    top_parser.add_argument("-o", "--offset", type=non_negative_int, default=0, help="Rows to skip")
    top_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    top_parser.set_defaults(func=cmd_top)

    args = parser.parse_args()
    try:
        args.func(args)
    except (CLIError, GlobalUsageError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
