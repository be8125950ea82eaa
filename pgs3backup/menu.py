# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Interactive numbered menu.

Each action runs one verb; errors are printed and the loop continues.
"""

from typing import Awaitable, Callable, Dict, List

import structlog
from rich.markup import escape

from pgs3backup import __version__
from pgs3backup.config import AppPaths, BackupOptions, ProfileKind, RestoreOptions
from pgs3backup.core import RunState
from pgs3backup.exceptions import PGS3BackupError
from pgs3backup.store import configure_profile, reset_profile

logger = structlog.get_logger()

Action = Callable[[AppPaths, RunState], Awaitable[object]]

MAIN_MENU = [
    ("1", "Backup Database to S3"),
    ("2", "Restore Database from S3"),
    ("3", "List Available Backups"),
    ("4", "Configure Settings"),
    ("5", "Show Current Configuration"),
    ("6", "View Backup Logs"),
    ("7", "Maintenance Tools"),
    ("0", "Exit"),
]

CONFIG_MENU = [
    ("1", "Configure Source Database (for Backup)"),
    ("2", "Configure Destination Database (for Restore)"),
    ("3", "Configure AWS Credentials"),
    ("4", "Configure S3 Bucket"),
    ("5", "Configure All Settings"),
    ("6", "Reset Configuration"),
    ("0", "Back to Main Menu"),
]

MAINTENANCE_MENU = [
    ("1", "Test Database Connection"),
    ("2", "Test AWS/S3 Connection"),
    ("3", "Clean Old Local Backups"),
    ("4", "View Backup History"),
    ("5", "Backup Health Check"),
    ("0", "Back to Main Menu"),
]

RESET_CHOICES = {"1": "postgres", "2": "dest", "3": "aws", "4": "s3", "5": "all"}

CONFIGURE_ALL_ORDER = (ProfileKind.SOURCE, ProfileKind.AWS, ProfileKind.S3)


async def configure_all(paths: AppPaths, state: RunState) -> None:
    """Source, AWS and S3 in order; the destination is only set up on request."""
    for kind in CONFIGURE_ALL_ORDER:
        await configure_profile(paths, kind, state["prompter"])
    state["prompter"].echo("\n[green]All configurations saved[/green]")


def _render(title: str, entries: List[tuple], state: RunState) -> None:
    echo = state["prompter"].echo
    echo(f"\n[bold cyan]{title}[/bold cyan]\n")
    for key, label in entries:
        echo(f"  [cyan]{key}.[/cyan] {label}")
    echo()


async def run_action(action: Action, paths: AppPaths, state: RunState) -> bool:
    """Run one menu action; False when it failed."""
    try:
        await action(paths, state)
        return True
    except PGS3BackupError as e:
        logger.error("menu_action_failed", error=e.message, error_type=type(e).__name__)
        state["prompter"].echo(f"[red]Error:[/red] {escape(e.message)}")
        return False


def _pause(state: RunState) -> None:
    state["prompter"].prompt("Press Enter to continue", default="")


async def _backup(paths: AppPaths, state: RunState) -> None:
    from pgs3backup.backup.manager import run_backup

    await run_backup(paths, BackupOptions(), state)


async def _restore(paths: AppPaths, state: RunState) -> None:
    from pgs3backup.backup.restore import run_restore

    await run_restore(paths, RestoreOptions(), state)


async def _list(paths: AppPaths, state: RunState) -> None:
    from pgs3backup.backup.restore import list_remote

    await list_remote(paths, state)


async def _status(paths: AppPaths, state: RunState) -> None:
    from pgs3backup.maintenance import show_status

    await show_status(paths, state)


async def _logs(paths: AppPaths, state: RunState) -> None:
    from pgs3backup.maintenance import show_logs

    show_logs(paths, state)
    name = state["prompter"].prompt("Enter log filename to view (or press Enter to skip)", default="")
    if name:
        show_logs(paths, state, name)


def _profile_action(kind: ProfileKind) -> Action:
    async def action(paths: AppPaths, state: RunState) -> None:
        await configure_profile(paths, kind, state["prompter"])

    return action


async def _reset(paths: AppPaths, state: RunState) -> None:
    prompter = state["prompter"]
    prompter.echo("Reset Configuration:")
    prompter.echo("  1) Source database only")
    prompter.echo("  2) Destination database only")
    prompter.echo("  3) AWS only")
    prompter.echo("  4) S3 only")
    prompter.echo("  5) All configurations")
    which = RESET_CHOICES.get(prompter.prompt("Select [1-5]"))
    if which is None:
        prompter.echo("Invalid option")
        return

    removed = reset_profile(paths, which)
    if removed:
        prompter.echo(f"[green]Removed:[/green] {', '.join(kind.value for kind in removed)}")
    else:
        prompter.echo("Nothing to reset")


async def _test_db(paths: AppPaths, state: RunState) -> None:
    from pgs3backup.maintenance import check_db_connection

    await check_db_connection(paths, state)


async def _test_s3(paths: AppPaths, state: RunState) -> None:
    from pgs3backup.maintenance import check_s3_connection

    await check_s3_connection(paths, state)


async def _clean(paths: AppPaths, state: RunState) -> None:
    from pgs3backup.backup.manager import list_local_backups
    from pgs3backup.listing import format_size
    from pgs3backup.maintenance import DEFAULT_KEEP, clean_backups

    prompter = state["prompter"]
    prompter.echo("Current local backups:")
    for path, size, _ in list_local_backups(paths.backup_dir):
        prompter.echo(f"  {path.name} - {format_size(size)}")

    raw = prompter.prompt("Keep how many recent backups?", default=str(DEFAULT_KEEP))
    try:
        keep = int(raw or DEFAULT_KEEP)
    except ValueError:
        prompter.echo(f"[red]Invalid number: {escape(raw)}[/red]")
        return
    if keep < 0:
        prompter.echo(f"[red]Invalid number: {keep}[/red]")
        return
    clean_backups(paths, state, keep)


async def _history(paths: AppPaths, state: RunState) -> None:
    from pgs3backup.maintenance import show_history

    show_history(paths, state)


async def _health(paths: AppPaths, state: RunState) -> None:
    from pgs3backup.maintenance import health_check, render_health

    render_health(await health_check(paths, state), state)


CONFIG_ACTIONS: Dict[str, Action] = {
    "1": _profile_action(ProfileKind.SOURCE),
    "2": _profile_action(ProfileKind.DESTINATION),
    "3": _profile_action(ProfileKind.AWS),
    "4": _profile_action(ProfileKind.S3),
    "5": configure_all,
    "6": _reset,
}

MAINTENANCE_ACTIONS: Dict[str, Action] = {
    "1": _test_db,
    "2": _test_s3,
    "3": _clean,
    "4": _history,
    "5": _health,
}


async def _submenu(
    title: str,
    entries: List[tuple],
    actions: Dict[str, Action],
    paths: AppPaths,
    state: RunState,
) -> None:
    prompter = state["prompter"]
    while True:
        _render(title, entries, state)
        choice = prompter.prompt(f"Select option [0-{len(actions)}]")
        if choice == "0":
            return
        action = actions.get(choice)
        if action is None:
            prompter.echo("Invalid option")
            continue
        await run_action(action, paths, state)
        _pause(state)


async def _configure_menu(paths: AppPaths, state: RunState) -> None:
    await _submenu("Configuration Menu", CONFIG_MENU, CONFIG_ACTIONS, paths, state)


async def _maintenance_menu(paths: AppPaths, state: RunState) -> None:
    await _submenu("Maintenance Tools", MAINTENANCE_MENU, MAINTENANCE_ACTIONS, paths, state)


MAIN_ACTIONS: Dict[str, Action] = {
    "1": _backup,
    "2": _restore,
    "3": _list,
    "4": _configure_menu,
    "5": _status,
    "6": _logs,
    "7": _maintenance_menu,
}

SUBMENUS = {"4", "7"}


async def run_menu(paths: AppPaths, state: RunState) -> None:
    """Main menu loop; returns on 0, q or Q."""
    prompter = state["prompter"]
    logger.debug("menu_started")
    while True:
        _render(f"PostgreSQL S3 Backup Manager v{__version__}", MAIN_MENU, state)
        choice = prompter.prompt("Select option [0-7]")
        if choice in ("0", "q", "Q"):
            prompter.echo("Goodbye!")
            return
        action = MAIN_ACTIONS.get(choice)
        if action is None:
            prompter.echo("Invalid option")
            continue
        await run_action(action, paths, state)
        if choice not in SUBMENUS:
            _pause(state)
