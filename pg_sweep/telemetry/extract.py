"""
Value extraction with the absence-to-zero policy.

A NULL column, or a query that returns no row at all, reads as zero of
the requested type. This means "metric is zero" and "metric not
reported" look the same in a snapshot; consumers must not treat a zero
as proof that the server counted nothing.
"""

import numbers
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from ..protocol.errors import RowDecodeError
from .source import InstrumentationSession, QueryResult

Number = Union[int, float]


def extract_or_zero(value: Any, kind: Type[Number], column: str = "value") -> Number:
    """
    Coerce a nullable column value to int or float.

    None becomes 0 / 0.0. Integral values (int, integral Decimal) are
    accepted for int; any real number is accepted for float. Anything
    else is a decode error.
    """
    if kind not in (int, float):
        raise TypeError(f"Unsupported metric type: {kind!r}")

    if value is None:
        return kind()

    if isinstance(value, bool) or not isinstance(value, (numbers.Real, Decimal)):
        raise RowDecodeError(
            f"Column '{column}' holds {type(value).__name__} {value!r}, expected a number"
        )

    if kind is float:
        return float(value)

    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, Decimal) and value.is_finite() and value == value.to_integral_value():
        return int(value)

    raise RowDecodeError(f"Column '{column}' holds non-integral value {value!r}, expected an integer")


def query_scalar(
    session: InstrumentationSession,
    query: str,
    kind: Type[Number] = int,
    params: Optional[Dict[str, Any]] = None,
) -> Number:
    """
    Run a single-value query and return its first column.

    The query must return at most one row. No row, or NULL, is zero.
    Query failures propagate unchanged.
    """
    result = session.execute(query, params)
    if not result.columns:
        raise RowDecodeError(f"Query returned no columns: {' '.join(query.split())}")

    row = result.first()
    if row is None:
        return kind()
    return extract_or_zero(row[0], kind, column=result.columns[0])


class RowDecoder:
    """
    Decodes rows of one query shape into plain dicts.

    validate() is called once per result to check every expected column
    is there; decode() then maps each row by position. Identity columns
    must be non-null strings. Counter columns follow extract_or_zero.
    """

    def __init__(
        self,
        identity_columns: Sequence[str],
        counter_columns: Sequence[str],
        kind: Type[Number] = int,
    ):
        self.identity_columns = list(identity_columns)
        self.counter_columns = list(counter_columns)
        self.kind = kind
        self._positions: Optional[Dict[str, int]] = None

    @property
    def expected_columns(self) -> List[str]:
        return self.identity_columns + self.counter_columns

    def validate(self, result: QueryResult) -> None:
        """Check the result carries every expected column."""
        positions = {name: i for i, name in enumerate(result.columns)}
        missing = [name for name in self.expected_columns if name not in positions]
        if missing:
            raise RowDecodeError(
                f"Result is missing expected columns: {', '.join(missing)}",
                missing_columns=missing,
            )
        self._positions = positions

    def decode(self, row: Tuple[Any, ...]) -> Tuple[Tuple[str, ...], Dict[str, Number]]:
        """Return (identity values, counters) for one row."""
        if self._positions is None:
            raise RuntimeError("RowDecoder.decode() called before validate()")

        identity = []
        for name in self.identity_columns:
            value = row[self._positions[name]]
            if not isinstance(value, str) or not value:
                raise RowDecodeError(f"Identity column '{name}' is missing or not text: {value!r}")
            identity.append(value)

        counters = {
            name: extract_or_zero(row[self._positions[name]], self.kind, column=name)
            for name in self.counter_columns
        }
        return tuple(identity), counters
