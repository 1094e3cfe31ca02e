"""
SnapshotCollector - Entry points that return serialized snapshots.

collect_database_stats() and collect_table_stats() are independent:
each opens its own session, builds its snapshot completely and returns
the JSON document. A failure anywhere raises; nothing partial is
returned.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..snapshot.models import DatabaseSnapshot, TableSnapshotMap
from ..snapshot.serializer import SnapshotSerializer
from .pgstat import DatabaseStatsCollector, TableStatsCollector
from .source import InstrumentationSource


@dataclass
class CollectorConfig:
    """Configuration for snapshot collection."""
    consistent_snapshot: bool = False
    isolation_level: str = "repeatable_read"


class SnapshotCollector:
    """
    Builds database and table snapshots from one instrumentation source.

    Holds no state between calls; every collect_* call starts over.
    """

    def __init__(
        self,
        source: InstrumentationSource,
        config: Optional[CollectorConfig] = None,
        serializer: Optional[SnapshotSerializer] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.source = source
        self.config = config or CollectorConfig()
        self.serializer = serializer or SnapshotSerializer()
        self.clock = clock

    def database_snapshot(self) -> DatabaseSnapshot:
        """Build a DatabaseSnapshot."""
        return DatabaseStatsCollector(
            self.source,
            consistent=self.config.consistent_snapshot,
            isolation_level=self.config.isolation_level,
            clock=self.clock,
        ).collect()

    def table_snapshots(self) -> TableSnapshotMap:
        """Build a TableSnapshotMap."""
        return TableStatsCollector(
            self.source,
            consistent=self.config.consistent_snapshot,
            isolation_level=self.config.isolation_level,
        ).collect()

    def collect_database_stats(self) -> str:
        return self.serializer.dumps_database(self.database_snapshot())

    def collect_table_stats(self) -> str:
        return self.serializer.dumps_tables(self.table_snapshots())

    def collect_all(self) -> str:
        """Both snapshots in one document: {"database": ..., "tables": ...}."""
        snapshot = self.database_snapshot()
        tables = self.table_snapshots()
        return self.serializer.dumps_all(snapshot, tables)


def collect_database_stats(
    source: InstrumentationSource,
    config: Optional[CollectorConfig] = None,
) -> str:
    """Serialized DatabaseSnapshot for the source's current database."""
    return SnapshotCollector(source, config=config).collect_database_stats()


def collect_table_stats(
    source: InstrumentationSource,
    config: Optional[CollectorConfig] = None,
) -> str:
    """Serialized TableSnapshotMap, one entry per user table."""
    return SnapshotCollector(source, config=config).collect_table_stats()
