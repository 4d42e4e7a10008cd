"""Command-line interface for dotlink."""

from __future__ import annotations

import io
import logging
import os
from pathlib import Path
from typing import Any

import tomli_w
import typer
from rich.console import Console
from rich.filesize import decimal
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config import DEFAULT_CONFIG_FILENAME, ConfigError, load_config
from .errors import DotlinkError
from .manager import DotlinkManager
from .models import (
    ArchiveInfo,
    BackupReport,
    DeployReport,
    LinkAction,
    LinkState,
    RemoveReport,
    SnapshotOutcome,
    StatusReport,
)
from .naming import timestamp
from .retention import DEFAULT_RETENTION_LIMIT

app = typer.Typer(help="Deploy dotfiles from a repository as symlinks, with backups")
console = Console()
err_console = Console(stderr=True)

CONFIG_OPTION_HELP = f"Path to {DEFAULT_CONFIG_FILENAME} (or its directory)"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _absolute(path: Path | None) -> str | None:
    if path is None:
        return None
    return os.path.abspath(Path(path).expanduser())


def _load_manager(config: Path | None, *, require_source: bool = True, **overrides: Any) -> DotlinkManager:
    for key in ("source_dir", "target_dir", "backup_root"):
        if key in overrides:
            overrides[key] = _absolute(overrides[key])
    config_obj = load_config(config, overrides=overrides, require_source=require_source)
    return DotlinkManager(config_obj.settings)


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, PermissionError):
        console.print("[red]Permission denied.[/red] Re-run the command with elevated privileges (e.g. `sudo`).")
        raise typer.Exit(code=1)
    if isinstance(exc, ConfigError):
        message = str(exc)
        console.print(f"[red]{escape(message)}[/red]")
        if "does not exist" in message or "No source directory" in message:
            console.print("[yellow]Use 'dotlink init --config <path>' to create a configuration file.[/yellow]")
        elif "Expected to find" in message:
            console.print(
                "[yellow]Make sure you pointed to the directory containing the config file, or to the file itself.[/yellow]"
            )
        raise typer.Exit(code=1)
    if isinstance(exc, DotlinkError):
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    raise exc


def _format_deploy_report(report: DeployReport) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Entry", no_wrap=True)
    table.add_column("Action", no_wrap=True)
    table.add_column("Details", overflow="fold")

    action_styles = {
        LinkAction.LINKED: "green",
        LinkAction.RELINKED: "green",
        LinkAction.BACKED_UP: "yellow",
        LinkAction.UNCHANGED: "dim",
        LinkAction.SKIPPED: "red",
    }

    for result in report.results:
        style = action_styles.get(result.action, "white")
        if result.error:
            details = result.error
        elif result.backup is not None:
            details = f"backup: {result.backup.name}"
        else:
            details = ""
        table.add_row(result.item.name, f"[{style}]{result.action.value}[/{style}]", escape(details))

    console.print(table)
    console.print(
        f"Linked {report.linked}, backed up {report.backed_up}, "
        f"unchanged {report.unchanged}, skipped {report.skipped}."
    )


def _format_status(report: StatusReport) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Entry", no_wrap=True)
    table.add_column("State", no_wrap=True)
    table.add_column("Details", overflow="fold")

    status_styles = {
        LinkState.CORRECT_LINK: "green",
        LinkState.ABSENT: "yellow",
        LinkState.WRONG_LINK: "red",
        LinkState.BLOCKED: "red",
    }

    for entry in report.entries:
        style = status_styles.get(entry.state, "white")
        label = entry.state.value.upper()
        table.add_row(entry.item.name, f"[{style}]{label}[/{style}]", escape(entry.details or ""))

    console.print(table)
    console.print(f"{report.ok} ok, {report.errors} error(s).")


def _format_remove_report(report: RemoveReport, *, remove_backups: bool) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Entry", no_wrap=True)
    table.add_column("Action", no_wrap=True)
    table.add_column("Backups removed", justify="right")
    table.add_column("Details", overflow="fold")

    for result in report.results:
        table.add_row(
            result.item.name,
            result.action.value,
            str(len(result.removed_backups)),
            escape(result.error or ""),
        )

    console.print(table)
    console.print(f"Removed {report.links_removed} link(s) and {report.backups_removed} backup(s).")

    stray = report.stray_backups
    if stray and not remove_backups:
        console.print(
            f"[yellow]{len(stray)} backup file(s) remain next to their targets. "
            "Re-run with --backups to delete them.[/yellow]"
        )


def _format_backup_report(report: BackupReport) -> None:
    snapshot = report.snapshot
    if snapshot.outcome is SnapshotOutcome.EMPTY:
        console.print("[yellow]No regular files occupy managed targets; nothing to back up.[/yellow]")
    elif snapshot.archive is not None:
        console.print(
            f"[green]Backup created:[/green] {snapshot.archive.name} "
            f"({snapshot.file_count} file(s), {decimal(snapshot.size)})"
        )

    for path in report.retention.removed:
        console.print(f"Removed old backup {path.name}")
    for path, reason in report.retention.failed:
        console.print(f"[yellow]Failed to remove {path.name}: {escape(reason)}[/yellow]")


def _format_archives(archives: list[ArchiveInfo]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Archive", no_wrap=True)
    table.add_column("Size", justify="right")

    for archive in archives:
        table.add_row(archive.path.name, decimal(archive.size))

    console.print(table)


def _render_init_config(*, source_dir: str, target_dir: str, backup_root: str, retention_limit: int) -> str:
    data = {
        "settings": {
            "source_dir": source_dir,
            "target_dir": target_dir,
            "backup_root": backup_root,
            "retention_limit": retention_limit,
            "exclude": ["README.md"],
            "dot_prefix": False,
        }
    }

    buffer = io.StringIO()
    buffer.write("# dotlink configuration\n\n")
    buffer.write(tomli_w.dumps(data))
    return buffer.getvalue()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every filesystem change"),
) -> None:
    """Deploy dotfiles from a repository as symlinks, with backups."""

    _configure_logging(verbose)


@app.command()
def init(
    config: Path = typer.Option(
        Path(DEFAULT_CONFIG_FILENAME),
        "--config",
        "-c",
        help="Path to write the configuration file",
        dir_okay=False,
        writable=True,
    ),
    source: str = typer.Option("./home", "--source", help="Source directory to record in the template"),
    target: str = typer.Option("~", "--target", help="Target directory to record in the template"),
    backup_root: str = typer.Option("./_backups", "--backup-root", help="Backup root to record in the template"),
    bootstrap: bool = typer.Option(
        False,
        "--bootstrap/--no-bootstrap",
        help="Create the source directory after writing the config",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite existing config if present"),
) -> None:
    """Create a starter dotlink configuration file."""

    config_path = config
    if config_path.exists() and not force:
        console.print(f"[red]Configuration '{config_path}' already exists. Use --force to overwrite.[/red]")
        raise typer.Exit(code=1)

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_text = _render_init_config(
        source_dir=source,
        target_dir=target,
        backup_root=backup_root,
        retention_limit=DEFAULT_RETENTION_LIMIT,
    )
    config_path.write_text(config_text)
    console.print(f"[green]Created '{config_path}'.[/green]")

    if bootstrap:
        source_path = Path(source).expanduser()
        if not source_path.is_absolute():
            source_path = (config_path.parent / source_path).resolve()
        source_path.mkdir(parents=True, exist_ok=True)
        console.print(f"[green]Ensured source directory '{source_path}'.[/green]")


@app.command()
def deploy(
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    source: Path | None = typer.Option(None, "--source", "-s", help="Directory holding the managed files"),
    target: Path | None = typer.Option(None, "--target", "-t", help="Directory receiving the symlinks"),
) -> None:
    """Link every managed file into the target directory, backing up what is in the way."""

    try:
        manager = _load_manager(config, source_dir=source, target_dir=target)
        report = manager.deploy(timestamp())
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)
        return

    _format_deploy_report(report)
    if report.skipped:
        raise typer.Exit(code=1)


app.command("install", help="Alias for 'deploy'.")(deploy)


@app.command()
def status(
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    source: Path | None = typer.Option(None, "--source", "-s", help="Directory holding the managed files"),
    target: Path | None = typer.Option(None, "--target", "-t", help="Directory receiving the symlinks"),
) -> None:
    """Show whether every managed file is correctly linked."""

    try:
        manager = _load_manager(config, source_dir=source, target_dir=target)
        report = manager.status()
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)
        return

    _format_status(report)
    if report.errors:
        console.print("[yellow]Some entries are not linked. Run 'dotlink deploy' to fix them.[/yellow]")
        raise typer.Exit(code=1)


@app.command()
def remove(
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    source: Path | None = typer.Option(None, "--source", "-s", help="Directory holding the managed files"),
    target: Path | None = typer.Option(None, "--target", "-t", help="Directory receiving the symlinks"),
    backups: bool = typer.Option(False, "--backups", help="Also delete the .bak_* files left by deploy"),
) -> None:
    """Remove deployed symlinks. Regular files are never touched."""

    try:
        manager = _load_manager(config, source_dir=source, target_dir=target)
        report = manager.remove(remove_backups=backups)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)
        return

    _format_remove_report(report, remove_backups=backups)
    if report.failed:
        raise typer.Exit(code=1)


@app.command()
def backup(
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    source: Path | None = typer.Option(None, "--source", "-s", help="Directory holding the managed files"),
    target: Path | None = typer.Option(None, "--target", "-t", help="Directory receiving the symlinks"),
    backup_root: Path | None = typer.Option(None, "--backup-root", "-b", help="Directory holding snapshot archives"),
    keep: int | None = typer.Option(None, "--keep", "-k", help="Number of snapshot archives to retain"),
) -> None:
    """Archive files occupying managed targets and prune old archives."""

    try:
        manager = _load_manager(
            config,
            source_dir=source,
            target_dir=target,
            backup_root=backup_root,
            retention_limit=keep,
        )
        report = manager.backup(timestamp())
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)
        return

    _format_backup_report(report)


@app.command()
def backups(
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    backup_root: Path | None = typer.Option(None, "--backup-root", "-b", help="Directory holding snapshot archives"),
) -> None:
    """List retained snapshot archives, newest first."""

    try:
        manager = _load_manager(config, require_source=False, backup_root=backup_root)
        archives = manager.snapshots()
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)
        return

    if not archives:
        console.print(f"[yellow]No backups found in '{manager.settings.snapshot_dir}'.[/yellow]")
        return
    _format_archives(archives)


def run() -> None:
    """Entry point used for console_script bindings."""

    app()
