"""
Tests for the database and table snapshot builders.
"""

import itertools
import logging

import pytest

from pg_sweep.protocol.errors import RowDecodeError, SourceQueryError
from pg_sweep.snapshot.models import DatabaseSnapshot, TableSnapshot, TableSnapshotMap
from pg_sweep.telemetry.pgstat import (
    DATABASE_METRICS,
    DatabaseStatsCollector,
    TableStatsCollector,
    check_tracking_settings,
)

from .mocks import (
    CURRENT_DATABASE,
    DATABASE_ROW,
    EXPECTED_DATABASE_SNAPSHOT,
    TABLE_COLUMNS,
    TABLE_ROWS,
    MockInstrumentationSource,
)


def fixed_clock(value=1_760_000_000.75):
    return lambda: value


class TestDatabaseStatsCollector:

    def test_metric_list_covers_every_counter(self):
        fields = [metric.field for metric in DATABASE_METRICS]
        assert fields == DatabaseSnapshot.field_names()[1:]

    def test_collects_all_metrics(self):
        source = MockInstrumentationSource()
        snapshot = DatabaseStatsCollector(source, clock=fixed_clock()).collect()

        assert isinstance(snapshot, DatabaseSnapshot)
        assert snapshot.timestamp == 1_760_000_000
        for name, expected in EXPECTED_DATABASE_SNAPSHOT.items():
            assert getattr(snapshot, name) == pytest.approx(expected), name

    def test_connection_counts_pass_through(self):
        source = MockInstrumentationSource(activity={"total": 10, "active": 3, "idle": 7})
        snapshot = DatabaseStatsCollector(source).collect()

        assert snapshot.total_connections == 10
        assert snapshot.active_connections == 3
        assert snapshot.idle_connections == 7

    def test_connection_counts_not_cross_checked(self):
        source = MockInstrumentationSource(activity={"total": 2, "active": 3, "idle": 7})
        snapshot = DatabaseStatsCollector(source).collect()

        assert (snapshot.total_connections, snapshot.active_connections, snapshot.idle_connections) == (2, 3, 7)

    def test_null_columns_read_as_zero(self):
        row = dict(DATABASE_ROW, deadlocks=None, blk_write_time=None, xact_rollback=None)
        snapshot = DatabaseStatsCollector(MockInstrumentationSource(database_row=row)).collect()

        assert snapshot.deadlocks == 0
        assert snapshot.block_write_time == 0.0
        assert isinstance(snapshot.block_write_time, float)
        assert snapshot.rollbacks == 0
        # NULL + anything is NULL in SQL
        assert snapshot.total_transactions == 0
        assert snapshot.commits == DATABASE_ROW["xact_commit"]

    def test_io_timing_reported_in_seconds(self):
        row = dict(DATABASE_ROW, blk_read_time=431.262, blk_write_time=12.5)
        snapshot = DatabaseStatsCollector(MockInstrumentationSource(database_row=row)).collect()

        assert snapshot.block_read_time == pytest.approx(0.431262)
        assert snapshot.block_write_time == pytest.approx(0.0125)
        timing_queries = [metric.query for metric in DATABASE_METRICS if metric.kind is float]
        assert all("/ 1000.0" in query for query in timing_queries)

    def test_missing_database_row_reads_as_zero(self):
        snapshot = DatabaseStatsCollector(MockInstrumentationSource(database_row=None)).collect()

        data = snapshot.to_dict()
        assert data["total_connections"] == 10
        for name in DatabaseSnapshot.field_names()[4:]:
            assert data[name] == 0, name
        assert type(data["block_read_time"]) is float
        assert type(data["temp_bytes"]) is int

    def test_database_name_bound_as_parameter(self):
        source = MockInstrumentationSource()
        DatabaseStatsCollector(source).collect()

        database_queries = [(q, p) for q, p in source.executed if "pg_stat_database" in q]
        assert len(database_queries) == 15
        for query, params in database_queries:
            assert "current_database()" not in query
            assert params == {"datname": CURRENT_DATABASE}

        activity_queries = [p for q, p in source.executed if "pg_stat_activity" in q]
        assert activity_queries == [None, None, None]

    def test_one_session_per_call(self):
        source = MockInstrumentationSource()
        DatabaseStatsCollector(source, consistent=True, isolation_level="serializable").collect()

        assert source.sessions == [{"consistent": True, "isolation_level": "serializable"}]
        assert source.open_sessions == 0

    def test_timestamps_non_decreasing(self):
        ticks = itertools.count(1_760_000_000, 0.4)
        source = MockInstrumentationSource()
        collector = DatabaseStatsCollector(source, clock=lambda: next(ticks))

        timestamps = [collector.collect().timestamp for _ in range(5)]
        assert timestamps == sorted(timestamps)

    def test_failure_aborts_snapshot(self):
        source = MockInstrumentationSource()
        source.fail_on("tup_deleted")

        with pytest.raises(SourceQueryError):
            DatabaseStatsCollector(source).collect()
        assert source.open_sessions == 0

        # Nothing after the failing metric was queried
        assert not any("temp_files" in q for q, _ in source.executed)

    def test_snapshot_is_immutable(self):
        snapshot = DatabaseStatsCollector(MockInstrumentationSource()).collect()
        with pytest.raises(AttributeError):
            snapshot.commits = 0


class TestTableStatsCollector:

    def test_keys_are_schema_qualified(self):
        tables = TableStatsCollector(MockInstrumentationSource()).collect()

        assert isinstance(tables, TableSnapshotMap)
        assert set(tables) == {"public.orders", "public.users", "app.events"}
        assert len(tables) == len(TABLE_ROWS)

    def test_counters_mapped_to_fields(self):
        tables = TableStatsCollector(MockInstrumentationSource()).collect()

        assert tables["public.orders"] == TableSnapshot(
            sequential_scans=5,
            sequential_rows_read=41_200,
            index_scans=88_412,
            index_rows_fetched=90_003,
            rows_inserted=20_600,
            rows_updated=4_410,
            rows_deleted=12,
            live_rows=20_588,
            dead_rows=301,
            heap_blocks_read=1_840,
            heap_blocks_hit=402_118,
            index_blocks_read=622,
            index_blocks_hit=250_871,
        )

    def test_null_counters_read_as_zero(self):
        events = TableStatsCollector(MockInstrumentationSource()).collect()["app.events"]

        assert events.live_rows == 1000
        assert events.dead_rows == 50
        assert events.heap_blocks_hit == 0
        assert events.index_scans == 0
        assert events.index_blocks_hit == 0

    def test_no_tables_is_empty_map(self):
        tables = TableStatsCollector(MockInstrumentationSource(table_rows=[])).collect()

        assert len(tables) == 0
        assert tables.to_dict() == {}

    def test_lookup_is_exact(self):
        tables = TableStatsCollector(MockInstrumentationSource()).collect()

        assert "orders" not in tables
        assert "PUBLIC.orders" not in tables
        with pytest.raises(KeyError):
            tables["public.order"]

    def test_permission_denied_aborts(self):
        source = MockInstrumentationSource()
        source.fail_on("pg_stat_user_tables")

        with pytest.raises(SourceQueryError) as exc_info:
            TableStatsCollector(source).collect()
        assert exc_info.value.code == "42501"
        assert source.open_sessions == 0

    def test_missing_identity_is_fatal(self):
        rows = [dict(TABLE_ROWS[0]), dict(TABLE_ROWS[1], relname=None)]
        with pytest.raises(RowDecodeError):
            TableStatsCollector(MockInstrumentationSource(table_rows=rows)).collect()

    def test_missing_column_is_fatal(self):
        columns = [c for c in TABLE_COLUMNS if c not in ("heap_blks_hit", "idx_blks_hit")]
        with pytest.raises(RowDecodeError) as exc_info:
            TableStatsCollector(MockInstrumentationSource(table_columns=columns)).collect()
        assert exc_info.value.missing_columns == ["heap_blks_hit", "idx_blks_hit"]

    def test_duplicate_key_is_fatal(self):
        # "a.b" + "c" and "a" + "b.c" both render as "a.b.c"
        rows = [
            dict(TABLE_ROWS[0], schemaname="a.b", relname="c"),
            dict(TABLE_ROWS[1], schemaname="a", relname="b.c"),
        ]
        with pytest.raises(RowDecodeError, match="a.b.c"):
            TableStatsCollector(MockInstrumentationSource(table_rows=rows)).collect()

    def test_single_query_per_call(self):
        source = MockInstrumentationSource()
        TableStatsCollector(source).collect()

        assert len(source.executed) == 1
        assert len(source.sessions) == 1

    def test_each_call_reflects_current_tables(self):
        source = MockInstrumentationSource()
        collector = TableStatsCollector(source)
        first = collector.collect()

        source.table_rows = source.table_rows[:1]
        second = collector.collect()

        assert len(first) == 3
        assert set(second) == {"public.orders"}


class TestCheckTrackingSettings:

    def test_reports_each_setting(self):
        status = check_tracking_settings(MockInstrumentationSource())
        assert status == {
            "track_activities": True,
            "track_counts": True,
            "track_io_timing": False,
        }

    def test_disabled_setting_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pg_sweep.telemetry.pgstat"):
            check_tracking_settings(MockInstrumentationSource())
        assert "track_io_timing is off" in caplog.text

    def test_unlisted_setting_is_unknown(self):
        source = MockInstrumentationSource(settings={"track_counts": "on"})
        status = check_tracking_settings(source)
        assert status["track_counts"] is True
        assert status["track_activities"] is None
