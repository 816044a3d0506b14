"""Base prompt handling and UI components."""

from rich.console import Console
from rich.live import Live
from rich.table import Table

console = Console()


class PromptHandler:
    """Base class for terminal displays."""

    def __init__(self) -> None:
        self._refresh_rate = 1.0

    @staticmethod
    def _property_table() -> Table:
        """Two-column table used by every panel."""
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Property", style="cyan", no_wrap=True)
        table.add_column("Value", style="green", no_wrap=True)
        return table

    def create_live_display(self, content, refresh_per_second: int = 2) -> Live:
        """Create a live updating display."""
        return Live(
            content,
            console=console,
            refresh_per_second=refresh_per_second,
            transient=False,
            auto_refresh=False,
        )
