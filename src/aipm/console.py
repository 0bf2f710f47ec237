"""Console output for the CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console as RichConsole
from rich.table import Table

if TYPE_CHECKING:
    from pathlib import Path

    from aipm.config import UserConfig
    from aipm.lockfile import LockEntry
    from aipm.registry import CollectionPlanEntry
    from aipm.types import CollectionResult, RestoreResult


class Console:
    """Rich-backed output for aipm commands (non-interactive)."""

    def __init__(self, console: RichConsole | None = None) -> None:
        """Initialize console.

        Args:
            console: Rich console to print to. Defaults to stdout.
        """
        self.console = console or RichConsole()

    def show_success(self, message: str) -> None:
        """Show success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def show_error(self, message: str, hints: list[str] | None = None) -> None:
        """Show error message followed by its next steps.

        Args:
            message: Error message.
            hints: Concrete next steps.
        """
        self.console.print(f"[red]✗[/red] {message}")
        for hint in hints or []:
            self.console.print(f"  [dim]hint:[/dim] {hint}")

    def show_warning(self, message: str) -> None:
        """Show warning message."""
        self.console.print(f"[yellow]![/yellow] {message}")

    def show_info(self, message: str) -> None:
        """Show info message."""
        self.console.print(f"[blue]i[/blue] {message}")

    def show_installed(self, entries: list[tuple[str, LockEntry]]) -> None:
        """Display installed packages table.

        Args:
            entries: (package id, lock entry) pairs.
        """
        if not entries:
            self.console.print("[yellow]No packages installed[/yellow]")
            return

        table = Table(title="Installed Packages")
        table.add_column("Package", style="cyan")
        table.add_column("Version")
        table.add_column("Format")
        table.add_column("Path")
        table.add_column("Installed")

        for package_id, entry in entries:
            fmt = f"{entry.format}/{entry.subtype}"
            if entry.effective_format != entry.format:
                fmt += f" as {entry.effective_format}"
            installed_at = entry.installed_at.strftime("%Y-%m-%d %H:%M") if entry.installed_at else ""
            table.add_row(package_id, entry.version, fmt, entry.installed_path or "?", installed_at)

        self.console.print(table)

    def show_plan(self, title: str, members: list[CollectionPlanEntry]) -> None:
        """Display a collection plan (dry run)."""
        self.console.print(f"\n[bold]{title}[/bold] - would install:")
        total = len(members)
        for position, member in enumerate(members, 1):
            marker = "[green]✓[/green]" if member.required else "[dim]○[/dim]"
            fmt = f" ({member.format})" if member.format else ""
            self.console.print(f"  {position}/{total} {marker} {member.package_id}@{member.version}{fmt}")

    def show_collection_result(self, result: CollectionResult) -> None:
        """Summarize a collection install."""
        self.show_success(f"Collection {result.collection_key} installed")
        self.console.print(
            f"  {result.installed} installed, {result.skipped} skipped, {result.failed} failed"
        )
        for failure in result.failures:
            label = "required" if failure.required else "optional"
            self.show_warning(f"{failure.package_id} ({label}): {failure.error}")

    def show_restore_result(self, result: RestoreResult) -> None:
        """Summarize an install from the lock file."""
        self.console.print(f"  {result.installed} installed, {result.skipped} already in place")
        for package_id, error in result.failures:
            self.show_error(f"{package_id}: {error}")

    def show_config(self, config: UserConfig, config_file: Path, registry: Path) -> None:
        """Display the effective configuration."""
        self.console.print("\n[bold]Configuration[/bold]")
        self.console.print(f"  Config file: {config_file}")
        self.console.print(f"  Registry: {registry}")
        self.console.print(f"  Default format: {config.default_format or 'native'}")
        self.console.print(f"  Client: {config.client}")
