"""
Protocol definitions for pg_sweep.

Errors raised while collecting and encoding snapshots:
- SnapshotError: common base, carries an ErrorType
- SourceUnavailableError / SourceQueryError: instrumentation source failures
- RowDecodeError: unexpected result shape or value type
- SerializationError: document encoding failure
"""

from .errors import (
    ErrorType,
    SnapshotError,
    SourceUnavailableError,
    SourceQueryError,
    RowDecodeError,
    SerializationError,
)

__all__ = [
    "ErrorType",
    "SnapshotError",
    "SourceUnavailableError",
    "SourceQueryError",
    "RowDecodeError",
    "SerializationError",
]
