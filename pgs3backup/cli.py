# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Command-line entry point.

Every verb builds the working paths and runtime state, runs one async
operation and maps PGS3BackupError to exit status 1. With no verb the
interactive menu opens.
"""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import structlog
import typer
from rich.console import Console
from rich.markup import escape

from pgs3backup import __version__
from pgs3backup.config import AppPaths, BackupFormat, BackupOptions, RestoreOptions
from pgs3backup.core import RunState, initialize_state
from pgs3backup.env import paths_from_env, schedule_from_env
from pgs3backup.exceptions import PGS3BackupError, SubprocessFailure
from pgs3backup.logging import configure_logging
from pgs3backup.prompts import ConsolePrompter

logger = structlog.get_logger()
console = Console()

T = TypeVar("T")

app = typer.Typer(
    name="pgs3backup",
    help="PostgreSQL backups to S3 and restores from S3.",
    invoke_without_command=True,
    add_completion=False,
)


def build_paths() -> AppPaths:
    return paths_from_env().ensure()


def build_state() -> RunState:
    return initialize_state(ConsolePrompter(console))


def _report(error: PGS3BackupError) -> None:
    console.print(f"[red]Error:[/red] {escape(error.message)}", highlight=False)
    if isinstance(error, SubprocessFailure) and error.log_path is not None:
        if str(error.log_path) not in error.message:
            console.print(f"  Check log file: {error.log_path}", highlight=False)
    logger.debug("command_failed", error_type=type(error).__name__, details=error.details)


def _execute(operation: Callable[[AppPaths, RunState], Awaitable[T]]) -> T:
    """Run one async operation; package errors exit with status 1."""
    try:
        paths = build_paths()
        state = build_state()
        return asyncio.run(operation(paths, state))
    except PGS3BackupError as e:
        _report(e)
        raise typer.Exit(1) from None


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"pgs3backup v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """PostgreSQL S3 Backup Manager.

    Run without a command for the interactive menu.
    """
    configure_logging()
    if ctx.invoked_subcommand is None:
        from pgs3backup.menu import run_menu

        _execute(run_menu)


@app.command("version")
def version_command() -> None:
    """Print the version."""
    console.print(f"pgs3backup v{__version__}")


@app.command("backup")
def backup_command(
    plain: bool = typer.Option(False, "--plain", help="Use plain SQL format"),
    schema_only: bool = typer.Option(False, "--schema-only", help="Backup schema only"),
    data_only: bool = typer.Option(False, "--data-only", help="Backup data only"),
    compress: bool = typer.Option(False, "--compress", help="Compress backup file with gzip"),
    no_upload: bool = typer.Option(False, "--no-upload", help="Keep the backup local only"),
) -> None:
    """Backup the source database (and upload it to S3).

    Examples:

        pgs3backup backup --compress

        pgs3backup backup --plain --schema-only --no-upload
    """
    from pgs3backup.backup.manager import run_backup

    async def operation(paths: AppPaths, state: RunState) -> None:
        options = BackupOptions(
            format=BackupFormat.PLAIN if plain else BackupFormat.CUSTOM,
            schema_only=schema_only,
            data_only=data_only,
            compress=compress,
            upload=not no_upload,
        )
        result = await run_backup(paths, options, state)
        console.print(f"[green]Backup completed:[/green] {result.artifact_path}", highlight=False)
        if result.object_uri:
            console.print(f"  S3: {result.object_uri}", highlight=False)

    _execute(operation)


@app.command("restore")
def restore_command(
    uri: str | None = typer.Argument(None, help="S3 URI of the backup to restore"),
    file: str | None = typer.Option(None, "--file", help="S3 URI of the backup to restore"),
    clean: bool = typer.Option(False, "--clean", help="Drop existing data before restore"),
    create_db: bool = typer.Option(False, "--create-db", help="Create the database if needed"),
    db_only: Path | None = typer.Option(
        None, "--db-only", help="Skip S3 and restore from this local file",
    ),
    list_only: bool = typer.Option(False, "--list", help="List available backups and exit"),
) -> None:
    """Restore a backup into the destination database.

    Examples:

        pgs3backup restore --clean

        pgs3backup restore s3://bucket/path/backup.dump

        pgs3backup restore --db-only backups/appdb_backup_20240104_020000.dump
    """
    from pgs3backup.backup.restore import run_restore

    async def operation(paths: AppPaths, state: RunState) -> None:
        options = RestoreOptions(
            source_uri=file or uri,
            local_path=db_only,
            list_only=list_only,
            clean=clean,
            create_db=create_db,
        )
        await run_restore(paths, options, state)

    _execute(operation)


@app.command("list")
def list_command() -> None:
    """List available backups in S3."""
    from pgs3backup.backup.restore import list_remote

    _execute(list_remote)


@app.command("config")
def config_command(
    kind: str | None = typer.Argument(
        None, help="postgres | dest | aws | s3 | all (default: all)",
    ),
) -> None:
    """Configure connection profiles."""
    from pgs3backup.menu import configure_all
    from pgs3backup.store import configure_profile, parse_kind

    async def operation(paths: AppPaths, state: RunState) -> None:
        if kind is None or kind == "all":
            await configure_all(paths, state)
            return
        await configure_profile(paths, parse_kind(kind), state["prompter"])

    _execute(operation)


@app.command("reset")
def reset_command(
    kind: str = typer.Argument(..., help="postgres | dest | aws | s3 | all"),
) -> None:
    """Delete saved profile(s)."""
    from pgs3backup.store import reset_profile

    async def operation(paths: AppPaths, state: RunState) -> None:
        removed = reset_profile(paths, kind)
        if removed:
            console.print(f"Removed: {', '.join(k.value for k in removed)}", highlight=False)
        else:
            console.print("Nothing to reset")

    _execute(operation)


@app.command("status")
def status_command() -> None:
    """Show the current configuration (secrets masked)."""
    from pgs3backup.maintenance import show_status

    _execute(show_status)


@app.command("logs")
def logs_command(
    show: str | None = typer.Option(None, "--show", help="Print this log file"),
) -> None:
    """List recent log files."""
    from pgs3backup.maintenance import show_logs

    async def operation(paths: AppPaths, state: RunState) -> None:
        show_logs(paths, state, show)

    _execute(operation)


@app.command("health")
def health_command() -> None:
    """Run the backup health check."""
    from pgs3backup.maintenance import health_check, render_health

    async def operation(paths: AppPaths, state: RunState) -> int:
        report = await health_check(paths, state)
        render_health(report, state)
        return report.issues

    if _execute(operation) > 0:
        raise typer.Exit(1)


@app.command("cron")
def cron_command(
    schedule: str | None = typer.Option(
        None, "--schedule", help="Crontab expression (default: $CRON_SCHEDULE)",
    ),
    plain: bool = typer.Option(False, "--plain", help="Use plain SQL format"),
    compress: bool = typer.Option(False, "--compress", help="Compress backup file with gzip"),
    no_upload: bool = typer.Option(False, "--no-upload", help="Keep backups local only"),
) -> None:
    """Run the backup repeatedly on a cron schedule."""
    from pgs3backup.scheduler import run_cron

    async def operation(paths: AppPaths, state: RunState) -> None:
        expression = schedule_from_env(schedule, state["environ"])
        options = BackupOptions(
            format=BackupFormat.PLAIN if plain else BackupFormat.CUSTOM,
            compress=compress,
            upload=not no_upload,
        )
        await run_cron(paths, options, state, expression)

    try:
        _execute(operation)
    except KeyboardInterrupt:
        console.print("Cron mode stopped")


@app.command("menu")
def menu_command() -> None:
    """Open the interactive menu."""
    from pgs3backup.menu import run_menu

    _execute(run_menu)
