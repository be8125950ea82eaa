# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for status, logs, connection checks, cleanup and the health check.
"""

import os

import pytest

from pgs3backup.exceptions import (
    ConfigurationMissing,
    ConnectivityError,
    NotFoundError,
    ValidationError,
)
from pgs3backup.maintenance import (
    check_db_connection,
    check_s3_connection,
    clean_backups,
    health_check,
    read_log,
    recent_logs,
    render_health,
    show_history,
    show_status,
)


# ============================================================================
# Test 1: STATUS
# ============================================================================

@pytest.mark.asyncio
async def test_status_masks_secrets(configured, state, prompter):
    await show_status(configured, state)

    assert "AKIAEXAM..." in prompter.output
    assert "secret-access-key" not in prompter.output
    assert "s3cret" not in prompter.output
    assert "Not configured (will use source)" in prompter.output


@pytest.mark.asyncio
async def test_status_without_configuration(paths, state, prompter):
    await show_status(paths, state)

    assert prompter.output.count("Not configured") == 4


# ============================================================================
# Test 2: LOGS
# ============================================================================

def test_recent_logs_newest_first(paths):
    older = paths.log_dir / "backup_20240101_000000.log"
    newer = paths.log_dir / "restore_20240102_000000.log.restore"
    older.write_text("old")
    newer.write_text("new")
    os.utime(older, (1_700_000_000, 1_700_000_000))
    os.utime(newer, (1_700_000_100, 1_700_000_100))

    assert [path for path, _, _ in recent_logs(paths)] == [newer, older]


def test_read_log_rejects_paths(paths):
    with pytest.raises(ValidationError):
        read_log(paths, "../config/postgres.conf")


def test_read_missing_log(paths):
    with pytest.raises(NotFoundError):
        read_log(paths, "backup_20240101_000000.log")


def test_read_log_contents(paths):
    (paths.log_dir / "backup_20240101_000000.log").write_text("pg_dump: done\n")
    assert read_log(paths, "backup_20240101_000000.log") == "pg_dump: done\n"


# ============================================================================
# Test 3: CONNECTION CHECKS
# ============================================================================

@pytest.mark.asyncio
async def test_db_check_reports_server_version(configured, state, runner):
    runner.outputs["psql_version"] = " PostgreSQL 16.2 on x86_64-pc-linux-gnu\n"

    version = await check_db_connection(configured, state)

    assert version == "PostgreSQL 16.2 on x86_64-pc-linux-gnu"
    assert runner.labels() == ["pg_isready", "psql_version"]


@pytest.mark.asyncio
async def test_db_check_unreachable(configured, state, runner):
    runner.results["pg_isready"] = 2

    with pytest.raises(ConnectivityError):
        await check_db_connection(configured, state)


@pytest.mark.asyncio
async def test_db_check_requires_a_profile(paths, state):
    with pytest.raises(ConfigurationMissing):
        await check_db_connection(paths, state)


@pytest.mark.asyncio
async def test_s3_check_lists_first_five_keys(configured, state, fake_s3, prompter):
    for day in range(1, 8):
        fake_s3.put("test-bucket", f"prefix/2024-01-0{day}/appdb_backup_2024010{day}_000000.dump", b"x")

    keys = await check_s3_connection(configured, state)

    assert len(keys) == 5
    assert "create_client:sts" in fake_s3.calls
    assert "head_bucket" in fake_s3.calls
    assert "Account ID: 123456789012" in prompter.output


# ============================================================================
# Test 4: LOCAL CLEANUP AND HISTORY
# ============================================================================

def test_clean_backups_keeps_five_by_default(paths, state, prompter):
    for day in range(1, 8):
        (paths.backup_dir / f"appdb_backup_202401{day:02d}_000000.dump").write_bytes(b"x")

    deleted = clean_backups(paths, state)

    assert len(deleted) == 2
    assert len(list(paths.backup_dir.iterdir())) == 5
    assert "Deleting: appdb_backup_20240101_000000.dump" in prompter.output


def test_history_without_backups(paths, state, prompter):
    show_history(paths, state)
    assert "No local backups found" in prompter.output


# ============================================================================
# Test 5: HEALTH CHECK
# ============================================================================

@pytest.mark.asyncio
async def test_healthy_installation(configured, state, prompter):
    report = await health_check(configured, state)
    render_health(report, state)

    assert report.issues == 0
    assert any(check.section == "s3" and check.ok for check in report.checks)
    assert "Health check passed" in prompter.output


@pytest.mark.asyncio
async def test_missing_configuration_and_commands_are_issues(paths, state, runner, fake_s3):
    runner.missing = {"pg_restore"}

    report = await health_check(paths, state)

    failed = {check.name for check in report.checks if not check.ok}
    assert failed == {"postgres.conf", "aws.conf", "s3.conf", "pg_restore"}
    assert report.issues == 4
    assert fake_s3.calls == []


@pytest.mark.asyncio
async def test_inaccessible_bucket_is_an_issue(configured, state, fake_s3):
    fake_s3.buckets.clear()

    report = await health_check(configured, state)

    assert report.issues == 1
    assert [check.section for check in report.checks if not check.ok] == ["s3"]
