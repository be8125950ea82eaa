# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

These read the well-known PostgreSQL/AWS/S3 variables used by the
container image and turn them into the same frozen profiles the
persisted config files produce. A profile that is absent from the
environment comes back as None so callers can fall back to the
config files or prompt; a profile that is present but incomplete is a
ConfigurationError.

Recognized variables:
    - PGHOST, PGPORT (default 5432), PGDATABASE, PGUSER, PGPASSWORD
    - AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_DEFAULT_REGION (default us-east-1)
    - S3_ENDPOINT_URL: endpoint of an S3-compatible store (optional)
    - S3_BUCKET, S3_BACKUP_PATH (default postgres-backups)
    - CRON_SCHEDULE: crontab expression for cron mode
    - PGS3BACKUP_HOME: root of config/, backups/ and logs/ (default: cwd)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from pgs3backup.config import (
    DEFAULT_PORT,
    DEFAULT_PREFIX,
    DEFAULT_REGION,
    AppPaths,
    BucketTarget,
    CloudCredentials,
    ConnectionProfile,
)
from pgs3backup.errors import (
    explain_invalid_port,
    explain_missing_aws_env,
    explain_missing_cron_schedule,
)
from pgs3backup.exceptions import ConfigurationError


def _environ(environ: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if environ is None else environ


def parse_port(value: str | None) -> int:
    if not value:
        return DEFAULT_PORT
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_port(value)) from exc
    if not 1 <= port <= 65535:
        raise ConfigurationError(explain_invalid_port(value))
    return port


def source_profile_from_env(
    environ: Mapping[str, str] | None = None,
) -> ConnectionProfile | None:
    """
    Build the source database profile from PG* variables.

    PGHOST switches environment mode on; PGDATABASE, PGUSER and PGPASSWORD
    are then all required.
    """
    env = _environ(environ)
    host = env.get("PGHOST")
    if not host:
        return None

    missing = [
        name for name in ("PGDATABASE", "PGUSER", "PGPASSWORD") if not env.get(name)
    ]
    if missing:
        raise ConfigurationError(
            f"{', '.join(missing)} required when PGHOST is set",
            details={"missing": missing},
        )

    return ConnectionProfile(
        host=host,
        port=parse_port(env.get("PGPORT")),
        database=env["PGDATABASE"],
        user=env["PGUSER"],
        password=env["PGPASSWORD"],
    )


def credentials_from_env(
    environ: Mapping[str, str] | None = None,
) -> CloudCredentials | None:
    env = _environ(environ)
    access_key = env.get("AWS_ACCESS_KEY_ID")
    if not access_key:
        return None
    secret_key = env.get("AWS_SECRET_ACCESS_KEY")
    if not secret_key:
        raise ConfigurationError(explain_missing_aws_env())

    return CloudCredentials(
        access_key_id=access_key,
        secret_access_key=secret_key,
        region=env.get("AWS_DEFAULT_REGION") or DEFAULT_REGION,
        endpoint_url=env.get("S3_ENDPOINT_URL") or None,
    )


def bucket_from_env(environ: Mapping[str, str] | None = None) -> BucketTarget | None:
    env = _environ(environ)
    bucket = env.get("S3_BUCKET")
    if not bucket:
        return None
    return BucketTarget(bucket=bucket, prefix=env.get("S3_BACKUP_PATH") or DEFAULT_PREFIX)


def paths_from_env(environ: Mapping[str, str] | None = None) -> AppPaths:
    home = _environ(environ).get("PGS3BACKUP_HOME")
    return AppPaths(root=Path(home)) if home else AppPaths()


def schedule_from_env(
    explicit: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    schedule = explicit or _environ(environ).get("CRON_SCHEDULE")
    if not schedule or not schedule.strip():
        raise ConfigurationError(explain_missing_cron_schedule())
    return schedule.replace("\r", "").strip()
