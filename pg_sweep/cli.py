"""
CLI - Command-line interface for pg_sweep.

Connects to PostgreSQL, collects the database-wide and/or per-table
snapshot and writes the JSON document (or a table view) out.
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import Config, OUTPUT_FORMATS, create_example_config
from .protocol.errors import SnapshotError
from .snapshot.serializer import SnapshotSerializer
from .telemetry.collector import SnapshotCollector
from .telemetry.pgstat import check_tracking_settings
from .telemetry.source import ISOLATION_LEVELS, InstrumentationSource, PostgresSource, create_connection
from .ui.console import ConsoleUI

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="pg-sweep",
        description="Point-in-time PostgreSQL statistics snapshots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    pg-sweep -H 10.0.0.21 -U postgres -d app

    # Per-table counters only, written to a file
    pg-sweep -H dbserver -d app --table-stats -o tables.json

    # All database metrics from one read-only transaction
    pg-sweep -H dbserver -d app --database-stats --consistent

    # Human-readable view
    pg-sweep -H dbserver -d app --format table

Environment Variables:
    PGHOST, PGPORT, PGUSER, PGPASSWORD, PGDATABASE
    PG_SWEEP_CONSISTENT    Use a consistent snapshot (1/true/yes)
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Database connection
    parser.add_argument(
        "-H", "--host",
        help="PostgreSQL host"
    )
    parser.add_argument(
        "-p", "--port",
        type=int,
        help="PostgreSQL port (default: 5432)"
    )
    parser.add_argument(
        "-U", "--user",
        help="PostgreSQL user (default: postgres)"
    )
    parser.add_argument(
        "-W", "--password",
        help="PostgreSQL password (or use PGPASSWORD env var)"
    )
    parser.add_argument(
        "-d", "--database",
        help="Database name (default: postgres)"
    )
    parser.add_argument(
        "--statement-timeout",
        type=int,
        metavar="MS",
        help="Abort any statistics query running longer than MS milliseconds"
    )

    # What to collect
    collect_group = parser.add_argument_group('Collection')
    collect_group.add_argument(
        "--database-stats",
        action="store_true",
        help="Collect the database-wide snapshot"
    )
    collect_group.add_argument(
        "--table-stats",
        action="store_true",
        help="Collect the per-table snapshot"
    )
    collect_group.add_argument(
        "--consistent",
        action="store_true",
        default=None,
        help="Read all metrics from one read-only transaction"
    )
    collect_group.add_argument(
        "--isolation-level",
        choices=ISOLATION_LEVELS,
        help="Isolation level for --consistent (default: repeatable_read)"
    )
    collect_group.add_argument(
        "--check-tracking",
        action="store_true",
        help="Report track_activities / track_counts / track_io_timing"
    )

    # Output
    output_group = parser.add_argument_group('Output')
    output_group.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        help="json (default) or table"
    )
    output_group.add_argument(
        "-o", "--output",
        help="Write the JSON document to this file"
    )
    output_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=None,
        help="Suppress console output"
    )
    output_group.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose logging"
    )

    # Config
    config_group = parser.add_argument_group('Configuration')
    config_group.add_argument(
        "-c", "--config",
        help="Path to a TOML config file"
    )
    config_group.add_argument(
        "--init-config",
        metavar="PATH",
        nargs="?",
        const="pg_sweep.toml",
        help="Write an example config file and exit"
    )

    return parser.parse_args(argv)


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def run_collection(
    source: InstrumentationSource,
    config: Config,
    ui: ConsoleUI,
    database_stats: bool = True,
    table_stats: bool = True,
    check_tracking: bool = False,
) -> int:
    """
    Collect the requested snapshots and emit them.

    Returns the process exit code. Any SnapshotError aborts before
    anything is written, so a failed run never leaves a partial document.
    """
    serializer = SnapshotSerializer(indent=config.output.indent)
    collector = SnapshotCollector(source, config=config.collector, serializer=serializer)

    try:
        if check_tracking:
            ui.print_tracking_settings(check_tracking_settings(source))

        snapshot = collector.database_snapshot() if database_stats else None
        tables = collector.table_snapshots() if table_stats else None

        if snapshot is not None and tables is not None:
            document = serializer.dumps_all(snapshot, tables)
        elif snapshot is not None:
            document = serializer.dumps_database(snapshot)
        else:
            document = serializer.dumps_tables(tables)
    except SnapshotError as e:
        logger.debug("Snapshot failed: %s", e.to_json())
        ui.print_error(e.message)
        return 1

    if config.output.path:
        path = serializer.save(document, config.output.path)
        logger.info("Wrote snapshot to %s", path)

    if config.output.format == "table":
        if snapshot is not None:
            ui.print_database_snapshot(snapshot)
        if tables is not None:
            ui.print_table_snapshots(tables)
    elif not config.output.path and not config.output.quiet:
        ui.print_json(document)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    if args.init_config:
        ui = ConsoleUI()
        try:
            target = create_example_config(args.init_config)
        except FileExistsError as e:
            ui.print_error(str(e))
            return 1
        ui.print(f"Wrote example config to {target}")
        return 0

    try:
        config = Config.load(args.config).override_from_args(args)
    except (FileNotFoundError, ValueError) as e:
        ConsoleUI().print_error(str(e))
        return 1

    ui = ConsoleUI(quiet=config.output.quiet)

    errors = config.validate()
    if errors:
        for error in errors:
            ui.print_error(error)
        return 1

    logger.debug("%s", config.summary())

    # Neither flag given: collect both
    database_stats = args.database_stats or not args.table_stats
    table_stats = args.table_stats or not args.database_stats

    db = config.database
    try:
        conn = create_connection(
            host=db.host,
            port=db.port,
            user=db.user,
            password=db.password,
            database=db.name,
            connect_timeout=db.connect_timeout,
            statement_timeout_ms=db.statement_timeout_ms,
        )
    except SnapshotError as e:
        ui.print_error(e.message)
        return 1

    try:
        return run_collection(
            PostgresSource(conn),
            config,
            ui,
            database_stats=database_stats,
            table_stats=table_stats,
            check_tracking=args.check_tracking,
        )
    finally:
        conn.close()


if __name__ == "__main__":
    sys.exit(main())
