"""
Instrumentation sources - where the pg_stat_* rows come from.

Collectors never touch a driver directly. They open a short-lived
session on an InstrumentationSource, run fixed queries through it and
get back QueryResults with named, nullable columns.

PostgresSource adapts a psycopg2 connection. Tests use an in-memory
source with the same interface.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..protocol.errors import SourceQueryError, SourceUnavailableError

logger = logging.getLogger(__name__)


ISOLATION_LEVELS = ("repeatable_read", "serializable")


@dataclass
class QueryResult:
    """Rows returned by one query, with their column names."""
    columns: List[str]
    rows: List[Tuple[Any, ...]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def first(self) -> Optional[Tuple[Any, ...]]:
        """First row, or None when the query returned nothing."""
        return self.rows[0] if self.rows else None


class InstrumentationSession(ABC):
    """
    A read session against the instrumentation views.

    current_database is passed explicitly into every query that filters
    pg_stat_database, instead of relying on current_database() in SQL.
    """

    current_database: str

    @abstractmethod
    def execute(self, query: str, params: Optional[Dict[str, Any]] = None) -> QueryResult:
        """Run a fixed query and return all of its rows."""


class InstrumentationSource(ABC):
    """Something collectors can open read sessions on."""

    @abstractmethod
    def session(self, consistent: bool = False, isolation_level: str = "repeatable_read"):
        """
        Open a session as a context manager.

        With consistent=True every query in the session reads from one
        read-only transaction at the given isolation level. Otherwise
        each query sees the statistics as of its own execution.
        """


class PostgresSession(InstrumentationSession):
    """Session backed by a psycopg2 cursor."""

    def __init__(self, cursor, current_database: str):
        self._cursor = cursor
        self.current_database = current_database

    def execute(self, query: str, params: Optional[Dict[str, Any]] = None) -> QueryResult:
        import psycopg2

        try:
            self._cursor.execute(query, params)
            columns = columns_from(self._cursor.description)
            rows = [tuple(row) for row in self._cursor.fetchall()] if columns else []
        except psycopg2.Error as e:
            logger.error("Query failed (%s): %s", e.pgcode or "no sqlstate", str(e).strip())
            raise SourceQueryError(
                f"Query against instrumentation views failed: {str(e).strip()}",
                failed_sql=query,
                code=e.pgcode,
            ) from e

        return QueryResult(columns=columns, rows=rows)


class PostgresSource(InstrumentationSource):
    """
    Instrumentation source over an open psycopg2 connection.

    The connection belongs to the caller; sessions only borrow it and
    leave it in autocommit mode when they are done.
    """

    def __init__(self, connection):
        self.conn = connection

    @contextmanager
    def session(
        self,
        consistent: bool = False,
        isolation_level: str = "repeatable_read",
    ) -> Iterator[PostgresSession]:
        import psycopg2
        from psycopg2 import extensions

        if isolation_level not in ISOLATION_LEVELS:
            raise ValueError(
                f"Unsupported isolation level: {isolation_level} "
                f"(expected one of {', '.join(ISOLATION_LEVELS)})"
            )

        try:
            previous = _session_state(self.conn)
            if consistent:
                self.conn.set_session(
                    isolation_level=_psycopg2_isolation_level(isolation_level, extensions),
                    readonly=True,
                    autocommit=False,
                )
            else:
                self.conn.set_session(readonly=True, autocommit=True)
            cursor = self.conn.cursor()
        except psycopg2.Error as e:
            raise SourceUnavailableError(f"Could not open instrumentation session: {str(e).strip()}") from e

        try:
            session = PostgresSession(cursor, current_database=_current_database(cursor))
            yield session
        finally:
            self._release(cursor, consistent, previous)

    def _release(self, cursor, consistent: bool, previous: Dict[str, Any]) -> None:
        """Close the cursor and hand the connection back in the state it was borrowed in."""
        import psycopg2

        try:
            cursor.close()
            if self.conn.closed:
                return
            if consistent:
                # Read-only transaction, nothing to keep
                self.conn.rollback()
            self.conn.set_session(**previous)
        except psycopg2.Error as e:
            logger.warning("Could not reset connection after session: %s", str(e).strip())


def _session_state(conn) -> Dict[str, Any]:
    # psycopg2 reports server defaults as None, but set_session(None) means "unchanged"
    return {
        "isolation_level": "DEFAULT" if conn.isolation_level is None else conn.isolation_level,
        "readonly": "DEFAULT" if conn.readonly is None else conn.readonly,
        "autocommit": conn.autocommit,
    }


def _psycopg2_isolation_level(name: str, extensions) -> int:
    return {
        "repeatable_read": extensions.ISOLATION_LEVEL_REPEATABLE_READ,
        "serializable": extensions.ISOLATION_LEVEL_SERIALIZABLE,
    }[name]


def _current_database(cursor) -> str:
    import psycopg2

    try:
        cursor.execute("SELECT current_database()")
        row = cursor.fetchone()
    except psycopg2.Error as e:
        raise SourceUnavailableError(f"Could not resolve current database: {str(e).strip()}") from e
    return row[0]


def create_connection(
    host: str,
    port: int,
    user: str,
    password: str,
    database: str,
    connect_timeout: int = 10,
    statement_timeout_ms: Optional[int] = None,
):
    """Create PostgreSQL connection."""
    import psycopg2

    options = None
    if statement_timeout_ms:
        options = f"-c statement_timeout={int(statement_timeout_ms)}"

    try:
        conn = psycopg2.connect(
            host=host,
            port=port,
            user=user,
            password=password,
            dbname=database,
            connect_timeout=connect_timeout,
            options=options,
            application_name="pg_sweep",
        )
    except psycopg2.Error as e:
        raise SourceUnavailableError(
            f"Error connecting to PostgreSQL at {host}:{port}/{database}: {str(e).strip()}"
        ) from e

    conn.autocommit = True
    return conn


def columns_from(description: Optional[Sequence]) -> List[str]:
    """Column names from a DB-API cursor description."""
    return [desc[0] for desc in (description or [])]
