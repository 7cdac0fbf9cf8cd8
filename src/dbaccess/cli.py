"""CLI for checking and querying the configured database."""

import argparse
import asyncio
import sys

from rich.table import Table

from common.logger import console, error, setup_logging, success

from .factory import get_pool
from .interface import ConnectionPool
from .types import DatabaseError, DatabaseResult, PoolStatus, QueryOptions


def render_rows(result: DatabaseResult) -> Table:
    """Render query rows as a rich table."""
    table = Table(show_header=True, header_style="bold")
    columns = list(result.rows[0].keys()) if result.rows else [f["name"] for f in result.fields]
    for column in columns:
        table.add_column(str(column))
    for row in result.rows:
        table.add_row(*("NULL" if row.get(c) is None else str(row.get(c)) for c in columns))
    return table


def render_status(status: PoolStatus) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total connections", str(status.total_connections))
    table.add_row("Active connections", str(status.active_connections))
    table.add_row("Idle connections", str(status.idle_connections))
    table.add_row("Pending requests", str(status.pending_requests))
    return table


async def _health(pool: ConnectionPool, args) -> int:
    healthy = await pool.health_check()
    if healthy:
        success(f"{pool.label} is reachable")
        return 0
    error(f"{pool.label} health check failed")
    return 1


async def _status(pool: ConnectionPool, args) -> int:
    await pool.initialize()
    console.print(f"{pool.label} {await pool.get_version()}")
    console.print(render_status(pool.get_pool_status()))
    return 0


async def _query(pool: ConnectionPool, args) -> int:
    result = await pool.query(args.sql, args.param or None, QueryOptions(timeout_ms=args.timeout_ms))
    if result.rows:
        console.print(render_rows(result))
    success(f"{result.row_count} row(s)")
    return 0


COMMANDS = {"health": _health, "status": _status, "query": _query}


async def run(args) -> int:
    """Run one command against a fresh pool, always closing it afterwards."""
    try:
        pool = get_pool(args.db_type)
    except ValueError as e:
        error(f"Invalid database configuration: {e}")
        return 1

    try:
        return await COMMANDS[args.command](pool, args)
    except DatabaseError as e:
        error(f"{type(e).__name__}: {e}")
        return 1
    finally:
        try:
            await pool.close()
        except DatabaseError as e:
            error(f"Failed to close pool: {e}")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbaccess",
        description="Database access checks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Connection settings come from the environment (.env is loaded):\n"
            "  DATABASE_TYPE=postgres|oracle, POSTGRES_* / ORACLE_* variables\n"
        ),
    )
    parser.add_argument(
        "--db-type",
        choices=["postgres", "oracle"],
        help="Override DATABASE_TYPE",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    subparsers.add_parser("health", help="Run a round-trip health check")
    subparsers.add_parser("status", help="Show server version and pool occupancy")

    query_parser = subparsers.add_parser("query", help="Run one statement and print the rows")
    query_parser.add_argument("sql", help="Statement text")
    query_parser.add_argument(
        "--param",
        "-p",
        action="append",
        help="Positional bind value (repeatable)",
    )
    query_parser.add_argument("--timeout-ms", type=int, help="Query deadline in milliseconds")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the dbaccess CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(level=args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
