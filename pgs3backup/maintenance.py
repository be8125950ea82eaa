# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Maintenance tools - status, logs, health check, connection tests,
local cleanup and history.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Tuple

import structlog
from rich.markup import escape

from pgs3backup.config import AppPaths, ProfileKind
from pgs3backup.core import RunState
from pgs3backup.errors import explain_missing_profile
from pgs3backup.exceptions import (
    ConfigurationMissing,
    ConnectivityError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from pgs3backup.listing import format_size
from pgs3backup.store import (
    PROFILE_TITLES,
    describe_profiles,
    load_optional,
    profile_from_env,
    profile_path,
)
from pgs3backup.tools import postgres

logger = structlog.get_logger()

RECENT_LOG_COUNT = 10
HISTORY_COUNT = 10
DEFAULT_KEEP = 5
REQUIRED_COMMANDS = (
    postgres.PG_DUMP,
    postgres.PG_RESTORE,
    postgres.PSQL,
    postgres.PG_ISREADY,
)


@dataclass
class HealthCheck:
    section: str
    name: str
    ok: bool
    detail: str = ""


@dataclass
class HealthReport:
    """Outcome of a health check; `issues` counts failed checks."""

    checks: List[HealthCheck] = field(default_factory=list)

    @property
    def issues(self) -> int:
        return sum(1 for check in self.checks if not check.ok)

    def add(self, section: str, name: str, ok: bool, detail: str = "") -> None:
        self.checks.append(HealthCheck(section, name, ok, detail))


async def _configured(paths: AppPaths, kind: ProfileKind, state: RunState):
    value = await load_optional(paths, kind)
    if value is None:
        value = profile_from_env(kind, state["environ"])
    return value


async def _require_configured(paths: AppPaths, kind: ProfileKind, state: RunState):
    value = await _configured(paths, kind, state)
    if value is None:
        raise ConfigurationMissing(kind.value, explain_missing_profile(kind.value))
    return value


# ============================================================================
# Status & logs
# ============================================================================

async def show_status(paths: AppPaths, state: RunState) -> None:
    """Print every profile with secrets masked."""
    echo = state["prompter"].echo
    profiles = await describe_profiles(paths, state["environ"])

    echo("\n[cyan]Current Configuration[/cyan]")
    for kind in (ProfileKind.SOURCE, ProfileKind.DESTINATION, ProfileKind.AWS, ProfileKind.S3):
        echo(f"\n  [bold]{PROFILE_TITLES[kind]}[/bold]")
        summary = profiles[kind]
        if summary is None:
            if kind == ProfileKind.DESTINATION:
                echo("    Not configured (will use source)")
            else:
                echo("    [yellow]Not configured[/yellow]")
            continue
        for key, value in summary.items():
            echo(f"    {key.replace('_', ' ').title():<12} {value}")


def recent_logs(paths: AppPaths, limit: int = RECENT_LOG_COUNT) -> List[Tuple[Path, int, datetime]]:
    """Most recently modified log files first."""
    if not paths.log_dir.exists():
        return []

    files = [path for path in paths.log_dir.iterdir() if path.is_file()]
    files.sort(key=lambda path: path.stat().st_mtime, reverse=True)
    entries = []
    for path in files[:limit]:
        stat = path.stat()
        entries.append((path, stat.st_size, datetime.fromtimestamp(stat.st_mtime)))
    return entries


def read_log(paths: AppPaths, name: str) -> str:
    """
    Return the contents of one log file by name.

    Raises:
        ValidationError: Name is not a plain filename
        NotFoundError: No such log
    """
    if not name or Path(name).name != name:
        raise ValidationError(f"Invalid log file name: {name!r}")

    path = paths.log_dir / name
    if not path.is_file():
        raise NotFoundError(f"Log file not found: {name}", details={"log_dir": str(paths.log_dir)})
    return path.read_text(encoding="utf-8", errors="replace")


def show_logs(paths: AppPaths, state: RunState, name: str | None = None) -> None:
    echo = state["prompter"].echo
    entries = recent_logs(paths)
    if not entries:
        echo("[yellow]No log files found[/yellow]")
        return

    echo("\n[cyan]Recent log files[/cyan]")
    for path, size, modified in entries:
        echo(f"  {modified:%Y-%m-%d %H:%M}  {format_size(size):>8}  {path.name}")

    if name:
        echo(f"\n--- Contents of {name} ---")
        echo(escape(read_log(paths, name)))
        echo("--- End of file ---")


# ============================================================================
# Connection tests
# ============================================================================

async def check_db_connection(paths: AppPaths, state: RunState) -> str:
    """
    Probe the source database and report its server version.

    Raises:
        ConnectivityError: Probe or query failed
    """
    from pgs3backup.backup.manager import probe_database

    echo = state["prompter"].echo
    profile = await _require_configured(paths, ProfileKind.SOURCE, state)

    echo("Testing connection to:")
    for key, value in profile.summary().items():
        echo(f"  {key.title()}: {value}")

    if not await probe_database(state, profile):
        raise ConnectivityError(
            "Database connection failed. Please check your configuration.",
            details={"host": profile.host, "port": profile.port},
        )

    result = await state["runner"].run(postgres.psql_version(profile))
    if not result.ok:
        raise ConnectivityError(
            "Database connection failed. Please check your configuration.",
            details={"database": profile.database},
        )

    version = result.output.strip().splitlines()[0] if result.output.strip() else ""
    echo("[green]Database connection successful[/green]")
    echo(f"  {escape(version)}")
    logger.info("db_connection_tested", host=profile.host, database=profile.database)
    return version


async def check_s3_connection(paths: AppPaths, state: RunState) -> List[str]:
    """
    Check credentials (STS), bucket access and show the first keys.

    Returns:
        Up to five keys under the backup prefix
    """
    from pgs3backup.storage.s3 import (
        caller_identity,
        check_bucket_access,
        iter_objects,
        open_s3_client,
    )

    echo = state["prompter"].echo
    credentials = await _require_configured(paths, ProfileKind.AWS, state)
    target = await _require_configured(paths, ProfileKind.S3, state)

    echo("Testing AWS credentials...")
    echo(f"  Region: {credentials.region}")
    account = await caller_identity(state["s3_session"], credentials)
    echo("[green]AWS credentials valid[/green]")
    echo(f"  Account ID: {account}")

    echo(f"Testing S3 bucket access: {target.bucket}")
    keys: List[str] = []
    async with open_s3_client(state["s3_session"], credentials) as s3_client:
        await check_bucket_access(s3_client, target.bucket)
        echo("[green]S3 bucket accessible[/green]")
        async for obj in iter_objects(s3_client, target.bucket, target.prefix):
            keys.append(obj.key)
            if len(keys) >= 5:
                break

    echo("Backup path contents:")
    for key in keys:
        echo(f"  {key}")
    logger.info("s3_connection_tested", bucket=target.bucket, sample=len(keys))
    return keys


# ============================================================================
# Local artifacts
# ============================================================================

def clean_backups(paths: AppPaths, state: RunState, keep: int = DEFAULT_KEEP) -> List[Path]:
    from pgs3backup.backup.manager import clean_local_backups

    echo = state["prompter"].echo
    echo(f"Local backup directory: {paths.backup_dir}")
    deleted = clean_local_backups(paths.backup_dir, keep)
    for path in deleted:
        echo(f"  Deleting: {path.name}")
    echo(f"[green]Cleanup completed[/green] ({len(deleted)} deleted, keeping {keep})")
    return deleted


def show_history(paths: AppPaths, state: RunState) -> None:
    from pgs3backup.backup.manager import list_local_backups

    echo = state["prompter"].echo
    entries = list_local_backups(paths.backup_dir, limit=HISTORY_COUNT)
    if not entries:
        echo("[yellow]No local backups found[/yellow]")
        return

    echo("\n[cyan]Recent local backups[/cyan]")
    for path, size, modified in entries:
        echo(f"  {path.name}")
        echo(f"    Size: {format_size(size)} | Date: {modified:%Y-%m-%d %H:%M}")


# ============================================================================
# Health check
# ============================================================================

async def health_check(paths: AppPaths, state: RunState) -> HealthReport:
    """
    Check directories, profiles, required commands and bucket access.

    Returns:
        HealthReport; the caller decides the exit status from `issues`
    """
    from pgs3backup.storage.s3 import check_bucket_access, open_s3_client

    report = HealthReport()

    for directory in (paths.backup_dir, paths.log_dir, paths.config_dir):
        report.add("directories", str(directory), directory.is_dir())

    for kind in (ProfileKind.SOURCE, ProfileKind.AWS, ProfileKind.S3):
        path = profile_path(paths, kind)
        report.add("configuration", path.name, path.is_file())

    for command in REQUIRED_COMMANDS:
        report.add("commands", command, state["runner"].which(command) is not None)

    credentials = await _configured(paths, ProfileKind.AWS, state)
    target = await _configured(paths, ProfileKind.S3, state)
    if credentials is not None and target is not None:
        try:
            async with open_s3_client(state["s3_session"], credentials) as s3_client:
                await check_bucket_access(s3_client, target.bucket)
            report.add("s3", target.bucket, True, "S3 bucket accessible")
        except StorageError as e:
            report.add("s3", target.bucket, False, str(e))

    logger.info("health_check_completed", issues=report.issues, checks=len(report.checks))
    return report


def render_health(report: HealthReport, state: RunState) -> None:
    echo = state["prompter"].echo
    section = None
    for check in report.checks:
        if check.section != section:
            section = check.section
            echo(f"\nChecking {section}...")
        status = "[green]OK[/green]" if check.ok else "[red]MISSING[/red]"
        if check.section == "s3" and not check.ok:
            status = "[red]FAILED[/red]"
        echo(f"  {status} - {check.name}")

    echo()
    if report.issues == 0:
        echo("[green]Health check passed - no issues found[/green]")
    else:
        echo(f"[yellow]Health check found {report.issues} issue(s)[/yellow]")
