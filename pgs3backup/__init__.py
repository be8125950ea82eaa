# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgs3backup - PostgreSQL backups to S3 and restores back.

Wraps pg_dump, pg_restore, psql and pg_isready with persisted connection
profiles, deterministic artifact naming, optional gzip, S3 upload and
verification, interactive backup selection and guarded clean restores.
"""

__version__ = "1.0.0"

# Core state and results
from pgs3backup.core import (
    BackupResult,
    RestoreResult,
    RunState,
    initialize_state,
)

# Orchestrators
from pgs3backup.backup import (
    run_backup,
    run_restore,
    list_remote,
)

# Configuration values
from pgs3backup.config import (
    AppPaths,
    BackupFormat,
    BackupOptions,
    BucketTarget,
    CloudCredentials,
    ConnectionProfile,
    ProfileKind,
    RestoreOptions,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "BackupResult",
    "RestoreResult",
    "RunState",
    "initialize_state",
    # Orchestrators
    "run_backup",
    "run_restore",
    "list_remote",
    # Configuration
    "AppPaths",
    "BackupFormat",
    "BackupOptions",
    "BucketTarget",
    "CloudCredentials",
    "ConnectionProfile",
    "ProfileKind",
    "RestoreOptions",
]
