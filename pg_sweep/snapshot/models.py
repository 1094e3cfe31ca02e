"""
Data models for statistics snapshots.

Both snapshot kinds are frozen: they are built once by a collector,
handed to the caller and never updated in place. Every field always
holds a number; a metric the server did not report is stored as zero.
"""

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Iterator, List, Mapping, Optional


@dataclass(frozen=True)
class DatabaseSnapshot:
    """Database-wide cumulative counters at one instant."""

    timestamp: int                     # epoch seconds

    # Sessions (pg_stat_activity)
    total_connections: int = 0
    active_connections: int = 0
    idle_connections: int = 0

    # Transactions (pg_stat_database)
    total_transactions: int = 0
    commits: int = 0
    rollbacks: int = 0

    # Buffer cache
    blocks_read: int = 0
    blocks_hit: int = 0

    # Row activity
    tuples_returned: int = 0
    tuples_fetched: int = 0
    tuples_inserted: int = 0
    tuples_updated: int = 0
    tuples_deleted: int = 0

    # Temp files and conflicts
    temp_files: int = 0
    temp_bytes: int = 0
    deadlocks: int = 0

    # I/O wait in seconds, only populated with track_io_timing = on
    block_read_time: float = 0.0
    block_write_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]


@dataclass(frozen=True)
class TableSnapshot:
    """Cumulative access counters for one user table."""

    # pg_stat_user_tables
    sequential_scans: int = 0
    sequential_rows_read: int = 0
    index_scans: int = 0
    index_rows_fetched: int = 0
    rows_inserted: int = 0
    rows_updated: int = 0
    rows_deleted: int = 0
    live_rows: int = 0
    dead_rows: int = 0

    # pg_statio_user_tables
    heap_blocks_read: int = 0
    heap_blocks_hit: int = 0
    index_blocks_read: int = 0
    index_blocks_hit: int = 0

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]


def table_key(schema: str, table: str) -> str:
    """Composite key identifying a table: "<schema>.<table>"."""
    return f"{schema}.{table}"


class TableSnapshotMap(Mapping[str, TableSnapshot]):
    """
    Read-only mapping of composite table key to TableSnapshot.

    Lookup is by exact key only. The map copies its input, so the dict
    a collector fills while iterating rows is never shared with callers.
    """

    __slots__ = ("_tables",)

    def __init__(self, tables: Optional[Mapping[str, TableSnapshot]] = None):
        self._tables: Dict[str, TableSnapshot] = dict(tables or {})

    def __getitem__(self, key: str) -> TableSnapshot:
        return self._tables[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tables)

    def __len__(self) -> int:
        return len(self._tables)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TableSnapshotMap):
            return self._tables == other._tables
        if isinstance(other, Mapping):
            return self._tables == dict(other)
        return NotImplemented

    def __hash__(self):
        return hash(frozenset(self._tables.items()))

    def __repr__(self) -> str:
        return f"TableSnapshotMap({len(self._tables)} tables)"

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        """Convert to dictionary for JSON serialization, keys sorted."""
        return {key: self._tables[key].to_dict() for key in sorted(self._tables)}
