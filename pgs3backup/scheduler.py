# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Cron mode - repeat the backup on a crontab schedule.

Runs in the foreground until interrupted. Overlapping ticks are skipped
(max_instances=1, coalesce) and a failed tick never stops the scheduler.
"""

import asyncio
import os
from typing import Any, Mapping

import structlog

from pgs3backup.config import AppPaths, BackupOptions, ProfileKind
from pgs3backup.core import BackupResult, RunState
from pgs3backup.errors import explain_invalid_cron_schedule
from pgs3backup.exceptions import ConfigurationError
from pgs3backup.prompts import UnattendedPrompter
from pgs3backup.store import load_configured

logger = structlog.get_logger()

JOB_ID = "pgs3backup_scheduled"
DEFAULT_TIMEZONE = "UTC"


def schedule_timezone(environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    return env.get("TZ") or DEFAULT_TIMEZONE


def parse_schedule(expression: str, timezone: str = DEFAULT_TIMEZONE) -> Any:
    """
    Build a CronTrigger from a five-field crontab expression.

    Raises:
        ConfigurationError: If the expression is not valid crontab syntax
    """
    from apscheduler.triggers.cron import CronTrigger

    try:
        return CronTrigger.from_crontab(expression, timezone=timezone)
    except ValueError as e:
        raise ConfigurationError(
            explain_invalid_cron_schedule(expression, e),
            details={"schedule": expression},
        ) from e


async def scheduled_backup(
    paths: AppPaths, options: BackupOptions, state: RunState
) -> BackupResult | None:
    """One scheduled tick; failures are logged and swallowed."""
    from pgs3backup.backup.manager import run_backup

    logger.info("scheduled_backup_starting")
    try:
        result = await run_backup(paths, options, state)
    except Exception as e:
        logger.error("scheduled_backup_failed", error=str(e), error_type=type(e).__name__)
        return None

    logger.info(
        "scheduled_backup_completed",
        operation_id=result.operation_id,
        path=str(result.artifact_path),
        uri=result.object_uri,
    )
    return result


def build_scheduler(
    paths: AppPaths,
    options: BackupOptions,
    state: RunState,
    expression: str,
) -> Any:
    """
    Create an AsyncIOScheduler with the backup job registered.

    The scheduler is returned unstarted.
    """
    from apscheduler.schedulers.asyncio import AsyncIOScheduler

    trigger = parse_schedule(expression, schedule_timezone(state["environ"]))
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        scheduled_backup,
        trigger=trigger,
        args=(paths, options, state),
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


async def run_cron(
    paths: AppPaths,
    options: BackupOptions,
    state: RunState,
    expression: str,
    stop: asyncio.Event | None = None,
) -> None:
    """
    Start the scheduler and block until `stop` is set (or forever).

    Profiles are resolved before the scheduler starts. Ticks run with an
    unattended prompter.

    Raises:
        ConfigurationMissing: If a required profile is neither saved nor
            in the environment
    """
    kinds = [ProfileKind.SOURCE]
    if options.upload:
        kinds += [ProfileKind.AWS, ProfileKind.S3]
    for kind in kinds:
        await load_configured(paths, kind, state["environ"])

    tick_state: RunState = {**state, "prompter": UnattendedPrompter(state["prompter"])}
    scheduler = build_scheduler(paths, options, tick_state, expression)
    scheduler.start()

    job = scheduler.get_job(JOB_ID)
    next_run = job.next_run_time.isoformat() if job and job.next_run_time else None
    logger.info("scheduler_started", schedule=expression, next_run=next_run)
    state["prompter"].echo(f"Cron mode: running backup on schedule '{expression}'")

    stop = stop or asyncio.Event()
    try:
        await stop.wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")
