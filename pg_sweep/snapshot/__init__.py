"""
Snapshot models and serialization for pg_sweep.

- DatabaseSnapshot: database-wide counters at one instant
- TableSnapshot: per-table access counters
- TableSnapshotMap: read-only map of "<schema>.<table>" to TableSnapshot
- SnapshotSerializer: JSON documents for export
"""

from .models import DatabaseSnapshot, TableSnapshot, TableSnapshotMap, table_key
from .serializer import SnapshotSerializer

__all__ = [
    'DatabaseSnapshot',
    'TableSnapshot',
    'TableSnapshotMap',
    'table_key',
    'SnapshotSerializer',
]
