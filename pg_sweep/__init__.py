"""
pg_sweep - Point-in-time PostgreSQL statistics snapshots

Reads the cumulative counters PostgreSQL exposes in pg_stat_activity,
pg_stat_database, pg_stat_user_tables and pg_statio_user_tables, and
turns them into two immutable, JSON-serializable snapshots: one for the
whole database, one keyed by "<schema>.<table>".

Usage:
    # As a module
    python -m pg_sweep -H localhost -d mydb

    # Programmatically
    from pg_sweep import PostgresSource, collect_database_stats, collect_table_stats

    source = PostgresSource(conn)
    database_doc = collect_database_stats(source)
    tables_doc = collect_table_stats(source)

A metric the server reports as NULL, or does not report at all, is
stored as zero. Zero therefore means "zero or unavailable".
"""

__version__ = "0.3.0"

# Snapshot exports
from .snapshot.models import DatabaseSnapshot, TableSnapshot, TableSnapshotMap
from .snapshot.serializer import SnapshotSerializer

# Telemetry exports
from .telemetry.source import InstrumentationSource, InstrumentationSession, PostgresSource, QueryResult
from .telemetry.extract import extract_or_zero
from .telemetry.pgstat import DatabaseStatsCollector, TableStatsCollector, check_tracking_settings
from .telemetry.collector import (
    CollectorConfig,
    SnapshotCollector,
    collect_database_stats,
    collect_table_stats,
)

# Protocol exports
from .protocol.errors import (
    SnapshotError,
    SourceUnavailableError,
    SourceQueryError,
    RowDecodeError,
    SerializationError,
)

__all__ = [
    # Version
    "__version__",
    # Snapshots
    "DatabaseSnapshot",
    "TableSnapshot",
    "TableSnapshotMap",
    "SnapshotSerializer",
    # Telemetry
    "InstrumentationSource",
    "InstrumentationSession",
    "PostgresSource",
    "QueryResult",
    "extract_or_zero",
    "DatabaseStatsCollector",
    "TableStatsCollector",
    "check_tracking_settings",
    "CollectorConfig",
    "SnapshotCollector",
    "collect_database_stats",
    "collect_table_stats",
    # Errors
    "SnapshotError",
    "SourceUnavailableError",
    "SourceQueryError",
    "RowDecodeError",
    "SerializationError",
]
