"""
Telemetry module - Reads PostgreSQL statistics views into snapshots.

- InstrumentationSource / PostgresSource: read sessions over a connection
- query_scalar / extract_or_zero / RowDecoder: null-to-zero extraction
- DatabaseStatsCollector / TableStatsCollector: snapshot builders
- SnapshotCollector: builders plus serialization
"""

from .source import (
    QueryResult,
    InstrumentationSession,
    InstrumentationSource,
    PostgresSource,
    create_connection,
)
from .extract import extract_or_zero, query_scalar, RowDecoder
from .pgstat import DatabaseStatsCollector, TableStatsCollector, check_tracking_settings
from .collector import (
    CollectorConfig,
    SnapshotCollector,
    collect_database_stats,
    collect_table_stats,
)

__all__ = [
    "QueryResult",
    "InstrumentationSession",
    "InstrumentationSource",
    "PostgresSource",
    "create_connection",
    "extract_or_zero",
    "query_scalar",
    "RowDecoder",
    "DatabaseStatsCollector",
    "TableStatsCollector",
    "check_tracking_settings",
    "CollectorConfig",
    "SnapshotCollector",
    "collect_database_stats",
    "collect_table_stats",
]
