"""Output formatting for the dagsync CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Prints human-readable or JSON output.

    Diagnostics (warnings and errors) go to stderr so that stdout can be
    piped, e.g. to capture the resulting address.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.err_console = err_console or Console(
            stderr=True, highlight=False, soft_wrap=True
        )

    def print(self, message: str = "") -> None:
        """Print a plain line, unless in quiet or JSON mode."""
        if self.quiet or self.json_output:
            return
        self.console.print(message, markup=False)

    def info(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(message, style="green", markup=False)

    def warning(self, message: str) -> None:
        # Warnings are shown even in quiet mode
        self.err_console.print(f"Warning: {message}", style="yellow", markup=False)

    def error(self, message: str) -> None:
        self.err_console.print(f"Error: {message}", style="bold red", markup=False)

    def result(self, message: str) -> None:
        """Print a primary result line; shown even in quiet mode."""
        if self.json_output:
            return
        self.console.print(message, markup=False)

    def output_json(self, data: Any) -> None:
        print(json.dumps(data, indent=2, default=str))

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two-column summary table."""
        if self.quiet or self.json_output:
            return
        table = Table(title=title, show_header=False)
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for key, value in items:
            table.add_row(key, value)
        self.console.print(table)

    def format_size(self, size_bytes: int) -> str:
        return format_size(size_bytes)
