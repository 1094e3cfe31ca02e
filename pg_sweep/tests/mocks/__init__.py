"""
Mock components for testing pg_sweep.

These mocks use realistic statistics rows (golden_data.py) to stand in
for a PostgreSQL server without opening a connection.
"""

from .golden_data import (
    ACTIVITY,
    CURRENT_DATABASE,
    DATABASE_ROW,
    EXPECTED_DATABASE_SNAPSHOT,
    TABLE_ROWS,
    TRACKING_SETTINGS,
)
from .mock_source import MockInstrumentationSource, MockSession, TABLE_COLUMNS

__all__ = [
    'MockInstrumentationSource',
    'MockSession',
    'TABLE_COLUMNS',
    # Golden data
    'ACTIVITY',
    'CURRENT_DATABASE',
    'DATABASE_ROW',
    'EXPECTED_DATABASE_SNAPSHOT',
    'TABLE_ROWS',
    'TRACKING_SETTINGS',
]
