"""
Snapshot serializer - JSON documents for the export pipeline.

Field names are the dataclass field names and never change. Database
documents keep declaration order, table documents are sorted by key, so
the same snapshot always renders to the same text.
"""

import json
import math
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..protocol.errors import RowDecodeError, SerializationError
from .models import DatabaseSnapshot, TableSnapshot, TableSnapshotMap


class SnapshotSerializer:
    """Renders snapshots to JSON text and parses them back."""

    def __init__(self, indent: Optional[int] = None):
        self.indent = indent

    def dumps_database(self, snapshot: DatabaseSnapshot) -> str:
        """Serialize a DatabaseSnapshot."""
        return self._dumps(snapshot.to_dict())

    def dumps_tables(self, tables: TableSnapshotMap) -> str:
        """Serialize a TableSnapshotMap as an object keyed by "<schema>.<table>"."""
        return self._dumps(tables.to_dict())

    def dumps_all(self, snapshot: DatabaseSnapshot, tables: TableSnapshotMap) -> str:
        """Serialize both snapshots into one document."""
        return self._dumps({
            "database": snapshot.to_dict(),
            "tables": tables.to_dict(),
        })

    def loads_database(self, text: str) -> DatabaseSnapshot:
        """Parse a document produced by dumps_database()."""
        data = self._loads(text)
        missing = [name for name in DatabaseSnapshot.field_names() if name not in data]
        if missing:
            raise RowDecodeError(
                f"Database document is missing fields: {', '.join(missing)}",
                missing_columns=missing,
            )
        return DatabaseSnapshot(**_numeric_fields(DatabaseSnapshot, data, "Database document"))

    def loads_tables(self, text: str) -> TableSnapshotMap:
        """Parse a document produced by dumps_tables()."""
        data = self._loads(text)
        expected = TableSnapshot.field_names()
        for key, entry in data.items():
            if not isinstance(entry, dict):
                raise RowDecodeError(f"Table entry '{key}' is not an object")
            missing = [name for name in expected if name not in entry]
            if missing:
                raise RowDecodeError(
                    f"Table entry '{key}' is missing fields: {', '.join(missing)}",
                    missing_columns=missing,
                )
        return TableSnapshotMap({
            key: TableSnapshot(**_numeric_fields(TableSnapshot, entry, f"Table entry '{key}'"))
            for key, entry in data.items()
        })

    def save(self, document: str, path: Union[str, Path]) -> Path:
        """Write a serialized document to disk."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            f.write(document)
            f.write("\n")
        return path

    def _dumps(self, data: Dict[str, Any]) -> str:
        try:
            return json.dumps(data, indent=self.indent, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Could not encode snapshot: {e}") from e

    def _loads(self, text: str) -> Dict[str, Any]:
        try:
            data = json.loads(text)
        except ValueError as e:
            raise SerializationError(f"Could not parse snapshot document: {e}") from e
        if not isinstance(data, dict):
            raise SerializationError("Snapshot document must be a JSON object")
        return data


def _numeric_fields(cls, data: Dict[str, Any], owner: str) -> Dict[str, Any]:
    """Read every field of cls from data, rejecting anything but a number of the field's type."""
    values = {}
    for field in fields(cls):
        value = data[field.name]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise RowDecodeError(
                f"{owner} field '{field.name}' holds {type(value).__name__} {value!r}, expected a number"
            )
        if field.type is int and not isinstance(value, int):
            raise RowDecodeError(f"{owner} field '{field.name}' holds {value!r}, expected an integer")
        if not math.isfinite(value):
            raise RowDecodeError(f"{owner} field '{field.name}' holds {value!r}, expected a finite number")
        values[field.name] = field.type(value)
    return values
