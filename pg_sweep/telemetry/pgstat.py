"""
PgStat collectors - Build snapshots from PostgreSQL statistics views.

Provides:
- DatabaseStatsCollector: pg_stat_activity + pg_stat_database
- TableStatsCollector: pg_stat_user_tables + pg_statio_user_tables
- check_tracking_settings: which track_* settings feed the counters
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

from ..protocol.errors import RowDecodeError
from ..snapshot.models import DatabaseSnapshot, TableSnapshot, TableSnapshotMap, table_key
from .extract import Number, RowDecoder, query_scalar
from .source import InstrumentationSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricQuery:
    """One database-wide metric and the fixed query that reads it."""
    field: str
    query: str
    kind: Type[Number] = int
    per_database: bool = True


def _database_metric(field: str, expression: str, kind: Type[Number] = int) -> MetricQuery:
    return MetricQuery(
        field=field,
        query=f"SELECT {expression} FROM pg_stat_database WHERE datname = %(datname)s",
        kind=kind,
    )


def _activity_metric(field: str, where: str = "") -> MetricQuery:
    query = "SELECT count(*) FROM pg_stat_activity"
    if where:
        query += f" WHERE {where}"
    return MetricQuery(field=field, query=query, per_database=False)


# Order matches DatabaseSnapshot. Connection counts cover the whole
# cluster, the rest are scoped to the current database.
DATABASE_METRICS: List[MetricQuery] = [
    _activity_metric("total_connections"),
    _activity_metric("active_connections", "state = 'active'"),
    _activity_metric("idle_connections", "state = 'idle'"),
    _database_metric("total_transactions", "xact_commit + xact_rollback"),
    _database_metric("commits", "xact_commit"),
    _database_metric("rollbacks", "xact_rollback"),
    _database_metric("blocks_read", "blks_read"),
    _database_metric("blocks_hit", "blks_hit"),
    _database_metric("tuples_returned", "tup_returned"),
    _database_metric("tuples_fetched", "tup_fetched"),
    _database_metric("tuples_inserted", "tup_inserted"),
    _database_metric("tuples_updated", "tup_updated"),
    _database_metric("tuples_deleted", "tup_deleted"),
    _database_metric("temp_files", "temp_files"),
    _database_metric("temp_bytes", "temp_bytes"),
    _database_metric("deadlocks", "deadlocks"),
    # pg_stat_database reports milliseconds
    _database_metric("block_read_time", "blk_read_time / 1000.0", kind=float),
    _database_metric("block_write_time", "blk_write_time / 1000.0", kind=float),
]


# pg_stat_user_tables / pg_statio_user_tables column -> TableSnapshot field
TABLE_COLUMNS: Dict[str, str] = {
    "seq_scan": "sequential_scans",
    "seq_tup_read": "sequential_rows_read",
    "idx_scan": "index_scans",
    "idx_tup_fetch": "index_rows_fetched",
    "n_tup_ins": "rows_inserted",
    "n_tup_upd": "rows_updated",
    "n_tup_del": "rows_deleted",
    "n_live_tup": "live_rows",
    "n_dead_tup": "dead_rows",
    "heap_blks_read": "heap_blocks_read",
    "heap_blks_hit": "heap_blocks_hit",
    "idx_blks_read": "index_blocks_read",
    "idx_blks_hit": "index_blocks_hit",
}

TABLE_STATS_QUERY = """
    SELECT
        t.schemaname,
        t.relname,
        t.seq_scan,
        t.seq_tup_read,
        t.idx_scan,
        t.idx_tup_fetch,
        t.n_tup_ins,
        t.n_tup_upd,
        t.n_tup_del,
        t.n_live_tup,
        t.n_dead_tup,
        io.heap_blks_read,
        io.heap_blks_hit,
        io.idx_blks_read,
        io.idx_blks_hit
    FROM pg_stat_user_tables t
    LEFT JOIN pg_statio_user_tables io ON io.relid = t.relid
"""

TRACKING_SETTINGS_QUERY = """
    SELECT name, setting
    FROM pg_settings
    WHERE name IN ('track_activities', 'track_counts', 'track_io_timing')
"""

# Which snapshot fields read zero when a setting is off
TRACKING_SETTINGS: Dict[str, str] = {
    "track_activities": "active_connections, idle_connections",
    "track_counts": "transaction, tuple and per-table counters",
    "track_io_timing": "block_read_time, block_write_time",
}


class DatabaseStatsCollector:
    """
    Collects one DatabaseSnapshot per call.

    Each metric is its own query. Without a consistent session the
    values can drift between the first and the last query; with one,
    they come from a single read-only transaction.
    """

    def __init__(
        self,
        source: InstrumentationSource,
        consistent: bool = False,
        isolation_level: str = "repeatable_read",
        clock: Callable[[], float] = time.time,
    ):
        self.source = source
        self.consistent = consistent
        self.isolation_level = isolation_level
        self.clock = clock

    def collect(self) -> DatabaseSnapshot:
        """Collect current database-wide statistics snapshot."""
        started = time.monotonic()

        with self.source.session(
            consistent=self.consistent,
            isolation_level=self.isolation_level,
        ) as session:
            timestamp = int(self.clock())
            params = {"datname": session.current_database}

            values: Dict[str, Number] = {}
            for metric in DATABASE_METRICS:
                values[metric.field] = query_scalar(
                    session,
                    metric.query,
                    metric.kind,
                    params if metric.per_database else None,
                )

        logger.debug(
            "Collected %d database metrics for %s in %.1fms",
            len(values), session.current_database, (time.monotonic() - started) * 1000,
        )
        return DatabaseSnapshot(timestamp=timestamp, **values)


class TableStatsCollector:
    """Collects one TableSnapshotMap per call, one entry per user table."""

    def __init__(
        self,
        source: InstrumentationSource,
        consistent: bool = False,
        isolation_level: str = "repeatable_read",
    ):
        self.source = source
        self.consistent = consistent
        self.isolation_level = isolation_level
        self._decoder = RowDecoder(
            identity_columns=["schemaname", "relname"],
            counter_columns=list(TABLE_COLUMNS),
        )

    def collect(self) -> TableSnapshotMap:
        """Collect pg_stat_user_tables + pg_statio_user_tables stats."""
        started = time.monotonic()

        with self.source.session(
            consistent=self.consistent,
            isolation_level=self.isolation_level,
        ) as session:
            result = session.execute(TABLE_STATS_QUERY)

        self._decoder.validate(result)

        tables: Dict[str, TableSnapshot] = {}
        for row in result.rows:
            (schema, table), counters = self._decoder.decode(row)
            key = table_key(schema, table)
            if key in tables:
                raise RowDecodeError(f"Duplicate table key in statistics view: {key}")
            tables[key] = TableSnapshot(
                **{TABLE_COLUMNS[column]: value for column, value in counters.items()}
            )

        logger.debug(
            "Collected stats for %d tables in %.1fms",
            len(tables), (time.monotonic() - started) * 1000,
        )
        return TableSnapshotMap(tables)


def check_tracking_settings(source: InstrumentationSource) -> Dict[str, Optional[bool]]:
    """
    Report whether the statistics collector settings are enabled.

    Returns {setting: True/False}, or None for a setting the server did
    not list. Disabled settings are logged, since the counters they feed
    read as zero rather than failing.
    """
    with source.session() as session:
        result = session.execute(TRACKING_SETTINGS_QUERY)

    decoder = RowDecoder(identity_columns=["name", "setting"], counter_columns=[])
    decoder.validate(result)

    reported = {}
    for row in result.rows:
        (name, setting), _ = decoder.decode(row)
        reported[name] = setting.lower() in ("on", "true", "1")

    status: Dict[str, Optional[bool]] = {}
    for name, affected in TRACKING_SETTINGS.items():
        status[name] = reported.get(name)
        if status[name] is False:
            logger.warning("%s is off; %s will read as zero", name, affected)

    return status
