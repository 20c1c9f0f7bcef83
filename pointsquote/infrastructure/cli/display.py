import json
import logging
from typing import Any, Dict, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pointsquote.domain.interfaces.user_interface import UserInterface
from pointsquote.domain.models.loyalty import PointsQuote

logger = logging.getLogger(__name__)

class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None, error_console: Optional[Console] = None):
        """Initializes the rich Consoles (quotes on stdout, diagnostics on stderr)."""
        self._console = console or Console()
        self._error_console = error_console or Console(stderr=True)

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_quote(self, quote: PointsQuote, **kwargs: Any) -> None:
        """Displays a quote as a table, or as JSON when as_json=True.

        Args:
            quote: The PointsQuote to display.
            **kwargs: Additional arguments including:
                - as_json: Print the camelCase JSON document instead of a table
        """
        if kwargs.get("as_json", False):
            self._print_json(quote.to_dict())
            return

        table = Table(title="Points Quote", box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Component", style="bold")
        table.add_column("Points", justify="right")
        table.add_row("Base points", f"{quote.base_points:,}")
        table.add_row("Tier bonus", f"{quote.tier_bonus:,}")
        table.add_row("Promo bonus", f"{quote.promo_bonus:,}")
        table.add_row("[bold cyan]Total[/bold cyan]", f"[bold cyan]{quote.total_points:,}[/bold cyan]")
        table.add_row("Effective FX rate", f"{quote.effective_fx_rate:.2f}")
        self.console.print(table)

        for warning in quote.warnings:
            self.display_warning(warning)

    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays plain text without markup or highlighting."""
        self.console.out(output, highlight=False)

    def display_settings(self, settings: Dict[str, Any]) -> None:
        table = Table(title="Effective Configuration", box=SIMPLE, show_header=True, padding=(0, 1))
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for key, value in _flatten(settings):
            table.add_row(key, str(value))
        self.console.print(table)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
            **kwargs: Additional arguments including:
                - code: Machine-readable error code (e.g. "VALIDATION_ERROR")
                - as_json: Print an error document on stdout instead of a panel
        """
        code = kwargs.get("code")
        if kwargs.get("as_json", False):
            self._print_json({"error": {"code": code, "message": error_message}})
            return

        title = f"[bold red]Error: {code}[/bold red]" if code else "[bold red]Error[/bold red]"
        panel = Panel(
            Text(error_message, style="white"),
            title=title,
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self._error_console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message.

        Args:
            info_message: The informational message to display.
        """
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self._error_console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message.

        Args:
            warning_message: The warning message to display.
        """
        logger.debug(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def _print_json(self, payload: Dict[str, Any]) -> None:
        self.console.out(json.dumps(payload, indent=2), highlight=False)


def _flatten(tree: Dict[str, Any], prefix: str = ""):
    for key, value in tree.items():
        if isinstance(value, dict) and value and all(isinstance(k, str) for k in value):
            yield from _flatten(value, prefix=f"{prefix}{key}.")
        else:
            yield f"{prefix}{key}", value
