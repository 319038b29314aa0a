"""Rich console output for plugin operations."""

from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from aitoolsync.git.operations import redact_url

if TYPE_CHECKING:
    from aitoolsync.plugins.content import LoadResult
    from aitoolsync.plugins.models import CacheEntry
    from aitoolsync.plugins.update import UpdateCheck


def _clean(message: str) -> str:
    """Redact credentials and escape Rich markup in user-supplied text."""
    return escape(redact_url(message))


class PluginLogger:
    """Rich console output for plugin resolution and caching."""

    def __init__(self, console: Optional[Console] = None, verbose: bool = False):
        """Initialize logger.

        Args:
            console: Rich Console instance
            verbose: Enable debug output
        """
        self.console = console or Console()
        self.verbose = verbose

    @classmethod
    def quiet(cls) -> "PluginLogger":
        """Logger that prints nothing."""
        return cls(console=Console(quiet=True))

    def debug(self, message: str) -> None:
        """Dim debug message, only shown when verbose."""
        if self.verbose:
            self.console.print(f"[dim]· {_clean(message)}[/dim]")

    def info(self, message: str) -> None:
        """Blue info message."""
        self.console.print(f"[blue]ℹ[/blue] {_clean(message)}")

    def success(self, message: str) -> None:
        """Green success message."""
        self.console.print(f"[green]✓[/green] {_clean(message)}")

    def warning(self, message: str) -> None:
        """Yellow warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {_clean(message)}")

    def error(self, message: str) -> None:
        """Red error message."""
        self.console.print(f"[red]✗[/red] {_clean(message)}")

    def show_cache_table(self, entries: list["CacheEntry"]) -> None:
        """Display cached plugins in a table."""
        if not entries:
            self.info("Plugin cache is empty")
            return

        table = Table(title="Cached Plugins", show_header=True, header_style="bold")
        table.add_column("ID", style="cyan")
        table.add_column("Source")
        table.add_column("Version", style="magenta")
        table.add_column("Name")
        table.add_column("Cached", style="dim")
        table.add_column("Last Used", style="dim")

        for entry in entries:
            table.add_row(
                entry.id,
                _clean(entry.source),
                entry.version or "-",
                _clean(entry.manifest.name) if entry.manifest else "-",
                entry.cached_at[:10],
                (entry.last_accessed or entry.cached_at)[:10],
            )

        self.console.print()
        self.console.print(table)
        self.console.print()

    def show_update_table(self, checks: list["UpdateCheck"]) -> None:
        """Display update check results in a table."""
        table = Table(title="Plugin Updates", show_header=True, header_style="bold")
        table.add_column("Source")
        table.add_column("Current", style="magenta")
        table.add_column("Latest", style="magenta")
        table.add_column("Status")

        for check in checks:
            if check.error:
                status = f"[red]{_clean(check.error)}[/red]"
            elif check.has_update:
                status = "[green]update available[/green]"
            else:
                status = "[dim]up to date[/dim]"
            table.add_row(
                _clean(check.source),
                _clean(check.current_version or "not installed"),
                _clean(check.latest_version or "unknown"),
                status,
            )

        self.console.print()
        self.console.print(table)
        self.console.print()

    def summary(self, result: "LoadResult") -> None:
        """Display the outcome of loading one plugin."""
        name = _clean(result.plugin_info.name) if result.plugin_info else _clean(result.source)

        if not result.success:
            status = f"[red]✗ Failed to load {name}[/red]"
        elif result.has_errors:
            status = f"[yellow]⚠ Loaded {name} with errors[/yellow]"
        else:
            status = f"[green]✓ Loaded {name}[/green]"

        mcp_count = len(result.mcp_servers) if result.mcp_servers else 0
        summary_text = f"""
{status}

[bold]Content:[/bold]
  • Rules: [cyan]{len(result.rules)}[/cyan]
  • Personas: [cyan]{len(result.personas)}[/cyan]
  • Commands: [cyan]{len(result.commands)}[/cyan]
  • Hooks: [cyan]{len(result.hooks)}[/cyan]
  • MCP servers: [cyan]{mcp_count}[/cyan]
"""

        if result.plugin_path and self.verbose:
            summary_text += f"\n[dim]Path: {_clean(str(result.plugin_path))}[/dim]\n"

        if result.has_errors:
            summary_text += "\n[red]Errors:[/red]\n"
            for err in result.errors:
                summary_text += f"  • {_clean(str(err))}\n"

        if not result.success:
            border = "red"
        elif result.has_errors:
            border = "yellow"
        else:
            border = "green"
        panel = Panel(summary_text.strip(), title="Plugin", border_style=border)
        self.console.print(panel)
