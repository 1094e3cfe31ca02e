"""
Tests for the psycopg2-backed instrumentation source.

The connection is a MagicMock; psycopg2 itself is only used for its
exception classes and isolation level constants.
"""

from unittest.mock import MagicMock, call, patch

import psycopg2
import pytest
from psycopg2 import extensions

from pg_sweep.protocol.errors import SourceQueryError, SourceUnavailableError
from pg_sweep.telemetry.source import PostgresSource, QueryResult, create_connection


def make_connection(current_database="app"):
    conn = MagicMock()
    conn.closed = 0
    conn.isolation_level = None
    conn.readonly = None
    conn.autocommit = True
    cursor = conn.cursor.return_value
    cursor.fetchone.return_value = (current_database,)
    cursor.description = [("count",)]
    cursor.fetchall.return_value = [(3,)]
    return conn, cursor


class TestPostgresSource:

    def test_session_resolves_current_database(self):
        conn, cursor = make_connection("inventory")

        with PostgresSource(conn).session() as session:
            assert session.current_database == "inventory"

        cursor.execute.assert_any_call("SELECT current_database()")

    def test_execute_returns_named_columns(self):
        conn, cursor = make_connection()

        with PostgresSource(conn).session() as session:
            result = session.execute("SELECT count(*) FROM pg_stat_activity")

        assert result == QueryResult(columns=["count"], rows=[(3,)])

    def test_params_passed_to_driver(self):
        conn, cursor = make_connection()
        query = "SELECT xact_commit FROM pg_stat_database WHERE datname = %(datname)s"

        with PostgresSource(conn).session() as session:
            session.execute(query, {"datname": session.current_database})

        cursor.execute.assert_called_with(query, {"datname": "app"})

    def test_default_session_is_readonly_autocommit(self):
        conn, cursor = make_connection()

        with PostgresSource(conn).session():
            pass

        assert conn.set_session.call_args_list == [
            call(readonly=True, autocommit=True),
            call(isolation_level="DEFAULT", readonly="DEFAULT", autocommit=True),
        ]
        conn.rollback.assert_not_called()
        cursor.close.assert_called_once()

    def test_consistent_session_uses_one_transaction(self):
        conn, cursor = make_connection()

        with PostgresSource(conn).session(consistent=True, isolation_level="serializable"):
            pass

        conn.set_session.assert_any_call(
            isolation_level=extensions.ISOLATION_LEVEL_SERIALIZABLE,
            readonly=True,
            autocommit=False,
        )
        conn.rollback.assert_called_once()
        assert conn.set_session.call_args == call(isolation_level="DEFAULT", readonly="DEFAULT", autocommit=True)

    def test_borrowed_connection_state_restored(self):
        conn, cursor = make_connection()
        conn.isolation_level = extensions.ISOLATION_LEVEL_READ_COMMITTED
        conn.readonly = True
        conn.autocommit = False

        with PostgresSource(conn).session(consistent=True):
            pass

        assert conn.set_session.call_args == call(
            isolation_level=extensions.ISOLATION_LEVEL_READ_COMMITTED,
            readonly=True,
            autocommit=False,
        )

    def test_unknown_isolation_level(self):
        conn, _ = make_connection()
        with pytest.raises(ValueError):
            with PostgresSource(conn).session(consistent=True, isolation_level="read_committed"):
                pass

    def test_driver_error_becomes_query_error(self):
        conn, cursor = make_connection()

        with PostgresSource(conn).session() as session:
            cursor.execute.side_effect = psycopg2.ProgrammingError("permission denied for view pg_stat_user_tables")
            with pytest.raises(SourceQueryError) as exc_info:
                session.execute("SELECT * FROM pg_stat_user_tables")

        assert "permission denied" in exc_info.value.message
        assert exc_info.value.failed_sql == "SELECT * FROM pg_stat_user_tables"

    def test_cursor_released_when_query_fails(self):
        conn, cursor = make_connection()

        with pytest.raises(SourceQueryError):
            with PostgresSource(conn).session(consistent=True) as session:
                cursor.execute.side_effect = psycopg2.OperationalError("server closed the connection")
                session.execute("SELECT count(*) FROM pg_stat_activity")

        cursor.close.assert_called_once()
        conn.rollback.assert_called_once()

    def test_reset_failure_does_not_mask_query_error(self):
        conn, cursor = make_connection()
        conn.rollback.side_effect = psycopg2.InterfaceError("connection already closed")

        with pytest.raises(SourceQueryError, match="server closed"):
            with PostgresSource(conn).session(consistent=True) as session:
                cursor.execute.side_effect = psycopg2.OperationalError("server closed the connection")
                session.execute("SELECT count(*) FROM pg_stat_activity")

        cursor.close.assert_called_once()

    def test_closed_connection_not_reset(self):
        conn, cursor = make_connection()

        with pytest.raises(SourceQueryError):
            with PostgresSource(conn).session() as session:
                conn.closed = 2
                cursor.execute.side_effect = psycopg2.OperationalError("terminating connection")
                session.execute("SELECT count(*) FROM pg_stat_activity")

        assert conn.set_session.call_count == 1

    def test_session_open_failure(self):
        conn, _ = make_connection()
        conn.set_session.side_effect = psycopg2.InterfaceError("connection already closed")

        with pytest.raises(SourceUnavailableError):
            with PostgresSource(conn).session():
                pass


class TestCreateConnection:

    def test_statement_timeout_applied_as_option(self):
        with patch("psycopg2.connect") as connect:
            conn = create_connection("db", 5433, "monitor", "secret", "app", statement_timeout_ms=5000)

        kwargs = connect.call_args.kwargs
        assert kwargs["options"] == "-c statement_timeout=5000"
        assert kwargs["port"] == 5433
        assert kwargs["dbname"] == "app"
        assert conn.autocommit is True

    def test_no_timeout_by_default(self):
        with patch("psycopg2.connect") as connect:
            create_connection("db", 5432, "monitor", "", "app")

        assert connect.call_args.kwargs["options"] is None

    def test_connect_failure(self):
        with patch("psycopg2.connect", side_effect=psycopg2.OperationalError("could not connect")):
            with pytest.raises(SourceUnavailableError, match="db:5432/app"):
                create_connection("db", 5432, "monitor", "", "app")
