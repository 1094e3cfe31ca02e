"""
UI module - Rich console output for snapshots.
"""

from .console import ConsoleUI

__all__ = [
    "ConsoleUI",
]
