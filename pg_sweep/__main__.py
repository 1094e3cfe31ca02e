"""
Entry point for running pg_sweep as a module.

Usage:
    python -m pg_sweep -H localhost -d mydb
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
