"""Console output helpers built on rich."""

from typing import Any, Optional

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Formats user-facing output for the CLI.

    Log records go through :mod:`logging`; this class is only for messages
    meant for the person running the command.
    """

    def __init__(self, quiet: bool = False, console: Optional[Console] = None):
        """Initialize output formatter.

        Args:
            quiet: Suppress everything except errors
            console: Console to write to (defaults to stdout)
        """
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    def print(self, message: Any = "") -> None:
        """Print a plain message."""
        if not self.quiet:
            self.console.print(message)

    def info(self, message: str) -> None:
        """Print an informational message."""
        if not self.quiet:
            self.console.print(message)

    def success(self, message: str) -> None:
        """Print a success message."""
        if not self.quiet:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        """Print a warning message."""
        if not self.quiet:
            self.console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Print an error message (shown even in quiet mode)."""
        self.err_console.print(f"[red]Error:[/red] {message}")

    def print_table(
        self, columns: list[str], rows: list[list[str]], title: Optional[str] = None
    ) -> None:
        """Print rows as a table.

        Args:
            columns: Column headers
            rows: Table rows, one list of cell strings per row
            title: Optional table title
        """
        if self.quiet:
            return
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)
