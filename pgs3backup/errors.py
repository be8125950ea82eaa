# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for pgs3backup.

These helpers centralize wording for common configuration and runtime
errors so that all modules present consistent, actionable messages.
"""

from pathlib import Path


def explain_missing_profile(kind: str) -> str:
    """
    Explain that a configuration profile has not been set up.
    """

    return (
        f"{kind} configuration not found. "
        f"Run `pgs3backup config {kind}` or set the matching environment variables."
    )


def explain_prompt_unavailable(question: str) -> str:
    """
    Explain that a scheduled run needed operator input.
    """

    return (
        f"Cron mode cannot ask for input ({question.strip()}). "
        "Save the configuration with `pgs3backup config` or set the environment variables."
    )


def explain_missing_aws_env() -> str:
    """
    Explain that AWS credentials are incomplete in the environment.
    """

    return (
        "AWS credentials are incomplete. "
        "Set both AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY, or run `pgs3backup config aws`."
    )


def explain_invalid_port(value: str | None) -> str:
    """
    Explain that a PostgreSQL port value is invalid.
    """

    return (
        f"Invalid PostgreSQL port: {value!r}. "
        "It must be an integer between 1 and 65535."
    )


def explain_missing_cron_schedule() -> str:
    """
    Explain that cron mode needs a schedule.
    """

    return (
        "CRON_SCHEDULE environment variable is required for cron mode. "
        "Pass --schedule '0 2 * * *' or set CRON_SCHEDULE."
    )


def explain_invalid_cron_schedule(value: str, error: Exception) -> str:
    """
    Explain that a crontab expression could not be parsed.
    """

    return (
        f"Invalid cron schedule {value!r}: {error}. "
        "Expected five fields: minute hour day month weekday."
    )


def explain_db_unreachable(host: str, port: int, database: str) -> str:
    """
    Explain that pg_isready could not reach the database.
    """

    return (
        f"Cannot connect to database {database!r} at {host}:{port}. "
        "Please check your connection details and try again."
    )


def explain_restore_target_unreachable(database: str) -> str:
    """
    Explain that the restore destination is unreachable.
    """

    return (
        f"Cannot connect to database {database!r}. "
        "The database may not exist; use --create-db to create it automatically."
    )


def explain_subprocess_failure(tool: str, log_path: Path | None) -> str:
    """
    Explain that an external tool failed and where to look.
    """

    if log_path is None:
        return f"{tool} failed"
    return f"{tool} failed. Check log file: {log_path}"


def explain_operation_locked(lock_path: Path) -> str:
    """
    Explain that another operation is holding the lock.
    """

    return (
        "Another backup or restore is already running. "
        f"Wait for it to finish (lock file: {lock_path})."
    )


def explain_conflicting_dump_scope() -> str:
    """
    Explain that --schema-only and --data-only cannot be combined.
    """

    return (
        "--schema-only and --data-only are mutually exclusive. "
        "Omit both for a full backup."
    )
