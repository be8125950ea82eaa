# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for cron mode and logging configuration.
"""

import asyncio
import logging

import pytest

from pgs3backup import scheduler as cron
from pgs3backup.config import BackupOptions, ProfileKind
from pgs3backup.exceptions import ConfigurationError, ConfigurationMissing
from pgs3backup.logging import resolve_level
from pgs3backup.prompts import UnattendedPrompter
from pgs3backup.scheduler import (
    JOB_ID,
    build_scheduler,
    parse_schedule,
    run_cron,
    schedule_timezone,
    scheduled_backup,
)
from pgs3backup.store import save_profile


# ============================================================================
# Test 1: SCHEDULE PARSING
# ============================================================================

def test_daily_schedule_parses():
    trigger = parse_schedule("0 2 * * *")
    assert "hour='2'" in str(trigger)


@pytest.mark.parametrize("expression", ["not a schedule", "61 * * * *", "* * *"])
def test_invalid_schedule_is_configuration_error(expression):
    with pytest.raises(ConfigurationError):
        parse_schedule(expression)


def test_timezone_defaults_to_utc():
    assert schedule_timezone({}) == "UTC"
    assert schedule_timezone({"TZ": "Europe/Berlin"}) == "Europe/Berlin"


def test_timezone_reads_process_environment(monkeypatch):
    monkeypatch.setenv("TZ", "Asia/Tokyo")
    assert schedule_timezone() == "Asia/Tokyo"
    monkeypatch.delenv("TZ")
    assert schedule_timezone() == "UTC"


# ============================================================================
# Test 2: JOB REGISTRATION
# ============================================================================

@pytest.mark.asyncio
async def test_overlapping_ticks_are_skipped(paths, state):
    scheduler = build_scheduler(paths, BackupOptions(), state, "*/5 * * * *")

    job = scheduler.get_job(JOB_ID)
    assert job.max_instances == 1
    assert job.coalesce is True
    assert job.args[0] == paths


@pytest.mark.asyncio
async def test_failed_tick_is_swallowed(paths, state, runner):
    runner.missing = {"pg_dump"}

    assert await scheduled_backup(paths, BackupOptions(), state) is None


@pytest.mark.asyncio
async def test_successful_tick_returns_result(configured, state):
    result = await scheduled_backup(configured, BackupOptions(upload=False), state)

    assert result is not None
    assert result.artifact_path.exists()


@pytest.mark.asyncio
async def test_cron_runs_until_stopped(configured, state, prompter):
    stop = asyncio.Event()
    stop.set()

    await run_cron(configured, BackupOptions(), state, "0 2 * * *", stop=stop)

    assert "Cron mode: running backup on schedule '0 2 * * *'" in prompter.output


@pytest.mark.asyncio
async def test_unconfigured_cron_refuses_to_start(paths, state, prompter):
    stop = asyncio.Event()
    stop.set()

    with pytest.raises(ConfigurationMissing):
        await run_cron(paths, BackupOptions(), state, "0 2 * * *", stop=stop)

    assert prompter.questions == []
    assert "Cron mode" not in prompter.output


@pytest.mark.asyncio
async def test_local_cron_needs_only_the_database_profile(paths, state, source_profile):
    await save_profile(paths, ProfileKind.SOURCE, source_profile)
    stop = asyncio.Event()
    stop.set()

    await run_cron(paths, BackupOptions(upload=False), state, "0 2 * * *", stop=stop)

    with pytest.raises(ConfigurationMissing):
        await run_cron(paths, BackupOptions(), state, "0 2 * * *", stop=stop)


@pytest.mark.asyncio
async def test_cron_ticks_run_unattended(configured, state, monkeypatch):
    registered = {}
    original = cron.build_scheduler

    def capture(paths, options, tick_state, expression):
        registered["state"] = tick_state
        return original(paths, options, tick_state, expression)

    monkeypatch.setattr(cron, "build_scheduler", capture)
    stop = asyncio.Event()
    stop.set()

    await run_cron(configured, BackupOptions(), state, "0 2 * * *", stop=stop)

    assert isinstance(registered["state"]["prompter"], UnattendedPrompter)
    assert state["prompter"] is not registered["state"]["prompter"]


@pytest.mark.asyncio
async def test_unattended_tick_fails_without_asking(paths, state, prompter):
    tick_state = {**state, "prompter": UnattendedPrompter(prompter)}

    assert await scheduled_backup(paths, BackupOptions(), tick_state) is None
    assert prompter.questions == []


def test_unattended_prompter_refuses_questions(prompter):
    unattended = UnattendedPrompter(prompter)

    with pytest.raises(ConfigurationError) as exc_info:
        unattended.prompt("  Database name")
    assert exc_info.value.details["question"] == "Database name"
    with pytest.raises(ConfigurationError):
        unattended.confirm("Start restore?", default=False)
    with pytest.raises(ConfigurationError):
        unattended.secret("  Password")

    unattended.echo("still visible")
    assert "still visible" in prompter.output
    assert prompter.questions == []


# ============================================================================
# Test 3: LOG LEVEL
# ============================================================================

def test_debug_flag_forces_debug():
    assert resolve_level({"DEBUG": "1", "PGS3BACKUP_LOG_LEVEL": "ERROR"}) == logging.DEBUG


def test_log_level_from_environment():
    assert resolve_level({"PGS3BACKUP_LOG_LEVEL": "warning"}) == logging.WARNING
    assert resolve_level({}) == logging.INFO
    assert resolve_level({"PGS3BACKUP_LOG_LEVEL": "chatty"}) == logging.INFO
