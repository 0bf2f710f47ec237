"""CLI commands using Typer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

if TYPE_CHECKING:
    from aipm.context import AppContext
    from aipm.registry import CollectionPlanEntry

import typer
from rich.console import Console as RichConsole
from rich.logging import RichHandler

from aipm import __version__
from aipm.console import Console
from aipm.context import create_context
from aipm.exceptions import AipmError, RequiredCollectionMemberFailed
from aipm.types import CollectionOptions, InstallOptions

app = typer.Typer(
    name="aipm",
    help="Package manager for AI-assistant rules, agents, skills and hooks",
    no_args_is_help=True,
)

collection_app = typer.Typer(help="Install collections of packages")
config_app = typer.Typer(help="Configuration commands")

app.add_typer(collection_app, name="collection")
app.add_typer(config_app, name="config")

stderr = RichConsole(stderr=True)
out = Console()

ProjectOption = Annotated[
    Path | None,
    typer.Option("--project", "-C", help="Project directory (defaults to the current directory)"),
]


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        out.console.print(f"aipm v{__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route log records through Rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=stderr, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
) -> None:
    """Package manager for AI-assistant rules, agents, skills and hooks."""
    configure_logging(verbose)


def _context_for(project: Path | None) -> AppContext:
    return create_context(project_root=(project or Path.cwd()).resolve())


def _fail(error: AipmError) -> typer.Exit:
    out.show_error(error.message, error.hints)
    return typer.Exit(1)


# ============================================================================
# Package Commands
# ============================================================================


@app.command()
def install(
    package: Annotated[
        str | None,
        typer.Argument(help="Package reference (name, name@version, @scope/name[@version])"),
    ] = None,
    as_format: Annotated[
        str | None, typer.Option("--as", help="Install converted to this format")
    ] = None,
    version: Annotated[str | None, typer.Option("--version", help="Version to install")] = None,
    frozen: Annotated[
        bool, typer.Option("--frozen", help="Require the version pinned in aipm.lock")
    ] = False,
    force: Annotated[bool, typer.Option("--force", "-f", help="Reinstall even if up to date")] = False,
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Install a package, or every package in aipm.lock when none is given."""
    ctx = _context or _context_for(project)
    target_format = as_format or ctx.config.default_format

    try:
        if package is None:
            result = ctx.installer.install_from_lockfile(force=force, as_format=as_format)
            out.show_info("Installed packages from aipm.lock")
            out.show_restore_result(result)
            if not result.success:
                raise typer.Exit(1)
            return

        options = InstallOptions(
            version=version,
            as_format=target_format,
            frozen=frozen,
            force=force,
        )
        installed = ctx.installer.install(package, options)
    except AipmError as e:
        raise _fail(e) from e

    if installed.skipped:
        out.show_info(f"{installed.package_id}@{installed.version} is already installed")
    else:
        out.show_success(
            f"Installed {installed.package_id}@{installed.version} to {installed.installed_path}"
        )


@app.command()
def uninstall(
    package_id: Annotated[str, typer.Argument(help="Package id as shown by 'aipm list'")],
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Uninstall a package."""
    ctx = _context or _context_for(project)

    try:
        entry = ctx.installer.uninstall(package_id)
    except AipmError as e:
        raise _fail(e) from e

    out.show_success(f"Uninstalled {package_id}@{entry.version}")


@app.command("list")
def list_packages(
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Show installed packages."""
    ctx = _context or _context_for(project)

    try:
        entries = ctx.installer.list_installed()
    except AipmError as e:
        raise _fail(e) from e
    out.show_installed(entries)


# ============================================================================
# Collection Commands
# ============================================================================


def _report_member(position: int, total: int, member: CollectionPlanEntry, state: str) -> None:
    prefix = f"{position}/{total}"
    if state == "failed":
        out.show_error(f"{prefix} {member.package_id}")
    elif state == "skipped":
        out.show_info(f"{prefix} {member.package_id} already installed")
    else:
        out.show_success(f"{prefix} {member.package_id}")


@collection_app.command("install")
def collection_install(
    collection: Annotated[str, typer.Argument(help="Collection reference (scope/name[@version])")],
    as_format: Annotated[
        str | None, typer.Option("--as", help="Install every member in this format")
    ] = None,
    skip_optional: Annotated[
        bool, typer.Option("--skip-optional", help="Skip optional members")
    ] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Only show the plan")] = False,
    force: Annotated[bool, typer.Option("--force", "-f", help="Reinstall up-to-date members")] = False,
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Install every package of a collection."""
    ctx = _context or _context_for(project)
    options = CollectionOptions(
        as_format=as_format or ctx.config.default_format,
        skip_optional=skip_optional,
        dry_run=dry_run,
        force=force,
    )

    try:
        result = ctx.collections.install(collection, options, progress=_report_member)
    except RequiredCollectionMemberFailed as e:
        if e.result is not None:
            out.console.print(
                f"  {e.result.installed} installed before the failure, {e.result.failed} failed"
            )
        raise _fail(e) from e
    except AipmError as e:
        raise _fail(e) from e

    if result.dry_run:
        out.show_plan(result.collection_key, result.planned)
        return
    out.show_collection_result(result)


# ============================================================================
# Config Commands
# ============================================================================


@config_app.command("show")
def config_show(
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Show current configuration."""
    ctx = _context or _context_for(project)
    manager = ctx.config_manager
    out.show_config(ctx.config, manager.config_file, manager.registry_path(ctx.config))


@config_app.command("set")
def config_set(
    key: Annotated[str, typer.Argument(help="registry, default-format or client")],
    value: Annotated[str, typer.Argument(help="Configuration value")],
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Set a configuration value."""
    ctx = _context or _context_for(project)

    try:
        ctx.config_manager.set_value(key, value)
    except ValueError as e:
        out.show_error(str(e))
        raise typer.Exit(1) from e
    out.show_success(f"Set {key} to {value}")


if __name__ == "__main__":
    app()
