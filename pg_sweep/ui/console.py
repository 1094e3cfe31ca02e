"""
ConsoleUI - Rich-based console interface.

Renders snapshots as tables for a human at a terminal. The JSON
documents are the machine format; this is only a view of them.
"""

from typing import Dict, Optional

from rich.console import Console
from rich.table import Table
from rich import box

from ..snapshot.models import DatabaseSnapshot, TableSnapshotMap


# Short column headings for the per-table view
TABLE_HEADINGS = {
    "sequential_scans": "seq scans",
    "sequential_rows_read": "seq rows",
    "index_scans": "idx scans",
    "index_rows_fetched": "idx rows",
    "rows_inserted": "ins",
    "rows_updated": "upd",
    "rows_deleted": "del",
    "live_rows": "live",
    "dead_rows": "dead",
    "heap_blocks_read": "heap rd",
    "heap_blocks_hit": "heap hit",
    "index_blocks_read": "idx rd",
    "index_blocks_hit": "idx hit",
}


class ConsoleUI:
    """
    Rich console interface for pg_sweep.
    """

    def __init__(self, quiet: bool = False, console: Optional[Console] = None):
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = Console(stderr=True)

    def print(self, *args, **kwargs):
        """Print to console."""
        if self.quiet:
            return
        self.console.print(*args, **kwargs)

    def print_error(self, message: str):
        """Errors are printed even in quiet mode."""
        self.err_console.print(f"[bold red]Error:[/] {message}")

    def print_warning(self, message: str):
        if self.quiet:
            return
        self.err_console.print(f"[yellow]Warning:[/] {message}")

    def print_json(self, document: str):
        """Print a JSON document verbatim (no markup, no wrapping)."""
        self.console.print(document, markup=False, highlight=False, emoji=False, soft_wrap=True)

    def print_database_snapshot(self, snapshot: DatabaseSnapshot):
        """Show database-wide counters as a two-column table."""
        if self.quiet:
            return

        table = Table(title=f"Database statistics (t={snapshot.timestamp})", box=box.ROUNDED)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")

        for name, value in snapshot.to_dict().items():
            if name == "timestamp":
                continue
            table.add_row(name, _format_value(value))

        self.console.print(table)

    def print_table_snapshots(self, tables: TableSnapshotMap):
        """Show one row per table."""
        if self.quiet:
            return

        if not tables:
            self.console.print("[dim]No user tables found[/]")
            return

        table = Table(title=f"Table statistics ({len(tables)} tables)", box=box.SIMPLE_HEAVY)
        table.add_column("table", style="cyan", no_wrap=True)
        for heading in TABLE_HEADINGS.values():
            table.add_column(heading, justify="right")

        for key, stats in tables.to_dict().items():
            table.add_row(key, *(_format_value(stats[name]) for name in TABLE_HEADINGS))

        self.console.print(table)

    def print_tracking_settings(self, status: Dict[str, Optional[bool]]):
        if self.quiet:
            return

        table = Table(title="Statistics tracking", box=box.ROUNDED)
        table.add_column("Setting", style="cyan")
        table.add_column("State")
        for name, enabled in status.items():
            if enabled is None:
                state = "[dim]unknown[/]"
            elif enabled:
                state = "[green]on[/]"
            else:
                state = "[red]off[/]"
            table.add_row(name, state)

        self.console.print(table)


def _format_value(value) -> str:
    if isinstance(value, float):
        return f"{value:,.3f}"
    return f"{value:,}"
