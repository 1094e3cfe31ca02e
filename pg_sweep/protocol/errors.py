"""
Error Protocols - Failures surfaced by snapshot collection.

Every failure aborts the snapshot being built. There is no partial
snapshot and no retry; the caller decides what to do with the error.

SourceUnavailableError: a session could not be opened
SourceQueryError: a fixed query was rejected by the server
RowDecodeError: a result did not have the expected shape or types
SerializationError: a snapshot could not be encoded
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import json


class ErrorType(str, Enum):
    """Types of errors that can occur."""
    SOURCE_UNAVAILABLE = "SOURCE_UNAVAILABLE"
    SQL_EXECUTION = "SQL_EXECUTION"
    ROW_DECODE = "ROW_DECODE"
    SERIALIZATION = "SERIALIZATION"


class SnapshotError(Exception):
    """Base class for all snapshot collection failures."""

    error_type: ErrorType = ErrorType.SQL_EXECUTION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.occurred_at = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "occurred_at": self.occurred_at,
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


class SourceUnavailableError(SnapshotError):
    """The instrumentation source could not be reached."""

    error_type = ErrorType.SOURCE_UNAVAILABLE


class SourceQueryError(SnapshotError):
    """
    A query against the instrumentation views failed.

    Covers permission denial, a lost connection mid-session and malformed
    SQL. The PostgreSQL SQLSTATE is kept when the driver reports one.
    """

    error_type = ErrorType.SQL_EXECUTION

    def __init__(
        self,
        message: str,
        failed_sql: Optional[str] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.failed_sql = failed_sql
        self.code = code

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.code:
            result["code"] = self.code
        if self.failed_sql:
            result["failed_sql"] = " ".join(self.failed_sql.split())
        return result


class RowDecodeError(SnapshotError):
    """A result row did not match the shape the collector expects."""

    error_type = ErrorType.ROW_DECODE

    def __init__(self, message: str, missing_columns: Optional[List[str]] = None):
        super().__init__(message)
        self.missing_columns = list(missing_columns or [])

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.missing_columns:
            result["missing_columns"] = self.missing_columns
        return result


class SerializationError(SnapshotError):
    """A snapshot could not be rendered as a document."""

    error_type = ErrorType.SERIALIZATION
