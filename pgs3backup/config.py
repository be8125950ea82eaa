# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgs3backup Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation and passed
explicitly into each operation. Nothing is read from or exported to the
process environment once a value has been built.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List
import re

# Defaults shared by prompts, env parsing and the persisted files
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 5432
DEFAULT_USER = "postgres"
DEFAULT_REGION = "us-east-1"
DEFAULT_PREFIX = "postgres-backups"

# Local artifacts kept per database after each backup
RETENTION_COUNT = 10

# pg_isready timeout in seconds
PROBE_TIMEOUT = 5

# Database used for CREATE DATABASE during restore
ADMIN_DATABASE = "postgres"


class ProfileKind(str, Enum):
    """Persisted configuration profiles."""

    SOURCE = "postgres"
    DESTINATION = "dest"
    AWS = "aws"
    S3 = "s3"


class BackupFormat(str, Enum):
    """pg_dump output format."""

    CUSTOM = "custom"  # -F c, restored with pg_restore
    PLAIN = "plain"  # -F p, restored with psql


def _validate_bucket_name(bucket: str) -> bool:
    """
    Validate S3 bucket name according to AWS rules.

    Rules:
    - 3-63 characters
    - Lowercase letters, numbers, hyphens
    - Must start and end with letter or number
    - No consecutive periods
    - Not formatted as IP address
    """
    if not bucket or len(bucket) < 3 or len(bucket) > 63:
        return False

    if not re.match(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$", bucket):
        return False

    if ".." in bucket:
        return False

    if re.match(r"^\d+\.\d+\.\d+\.\d+$", bucket):
        return False

    return True


def _raise_if_errors(errors: List[str], what: str) -> None:
    if errors:
        from pgs3backup.exceptions import ConfigurationError

        raise ConfigurationError(
            f"{what} validation failed",
            details={"errors": errors},
        )


@dataclass(frozen=True)
class ConnectionProfile:
    """
    PostgreSQL connection details for the source or destination database.

    The password is excluded from repr() so profiles can be logged safely.
    """

    database: str
    password: str = field(repr=False)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    user: str = DEFAULT_USER

    def __post_init__(self) -> None:
        errors: List[str] = []

        if not self.database:
            errors.append("database name is required")
        if not self.password:
            errors.append("password is required")
        if not self.host:
            errors.append("host is required")
        if not self.user:
            errors.append("user is required")
        if not isinstance(self.port, int) or not 1 <= self.port <= 65535:
            errors.append(f"port must be between 1 and 65535, got {self.port!r}")

        _raise_if_errors(errors, "PostgreSQL profile")

    def summary(self) -> dict:
        """Non-secret fields for display."""
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
        }


@dataclass(frozen=True)
class CloudCredentials:
    """AWS credentials handed to the S3 client for one invocation."""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    region: str = DEFAULT_REGION
    endpoint_url: str | None = None

    def __post_init__(self) -> None:
        errors: List[str] = []

        if not self.access_key_id:
            errors.append("access key id is required")
        if not self.secret_access_key:
            errors.append("secret access key is required")
        if not self.region:
            errors.append("region is required")

        _raise_if_errors(errors, "AWS credentials")

    @property
    def masked_access_key(self) -> str:
        return f"{self.access_key_id[:8]}..."

    def summary(self) -> dict:
        data = {"access_key": self.masked_access_key, "region": self.region}
        if self.endpoint_url:
            data["endpoint_url"] = self.endpoint_url
        return data


@dataclass(frozen=True)
class BucketTarget:
    """Root of the remote backup namespace."""

    bucket: str
    prefix: str = DEFAULT_PREFIX

    def __post_init__(self) -> None:
        # Normalize "/postgres-backups/" to "postgres-backups"
        object.__setattr__(self, "prefix", self.prefix.strip("/"))

        errors: List[str] = []
        if not _validate_bucket_name(self.bucket):
            errors.append(f"Invalid bucket name: {self.bucket}")
        if not self.prefix:
            errors.append("backup path prefix must not be empty")

        _raise_if_errors(errors, "S3 target")

    def summary(self) -> dict:
        return {"bucket": self.bucket, "prefix": self.prefix}


@dataclass(frozen=True)
class AppPaths:
    """On-disk layout: config/, backups/ and logs/ under one root."""

    root: Path = field(default_factory=Path.cwd)

    @property
    def config_dir(self) -> Path:
        return self.root / "config"

    @property
    def backup_dir(self) -> Path:
        return self.root / "backups"

    @property
    def log_dir(self) -> Path:
        return self.root / "logs"

    @property
    def lock_path(self) -> Path:
        return self.root / ".pgs3backup.lock"

    def ensure(self) -> "AppPaths":
        """Create the working directories if needed."""
        for directory in (self.config_dir, self.backup_dir, self.log_dir):
            directory.mkdir(parents=True, exist_ok=True)
        return self


@dataclass(frozen=True)
class BackupOptions:
    """Flags for a single backup invocation."""

    format: BackupFormat = BackupFormat.CUSTOM
    schema_only: bool = False
    data_only: bool = False
    compress: bool = False
    upload: bool = True

    def __post_init__(self) -> None:
        if self.schema_only and self.data_only:
            from pgs3backup.errors import explain_conflicting_dump_scope
            from pgs3backup.exceptions import ValidationError

            raise ValidationError(explain_conflicting_dump_scope())


@dataclass(frozen=True)
class RestoreOptions:
    """Flags for a single restore invocation."""

    source_uri: str | None = None
    local_path: Path | None = None
    list_only: bool = False
    clean: bool = False
    create_db: bool = False

    def __post_init__(self) -> None:
        if self.source_uri and self.local_path:
            from pgs3backup.exceptions import ValidationError

            raise ValidationError(
                "An S3 URI and a local file cannot both be given",
                details={"source_uri": self.source_uri, "local_path": str(self.local_path)},
            )
