# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - Backup lifecycle and restore operations.
"""

from pgs3backup.backup.manager import (
    run_backup,
    prune_local_backups,
    list_local_backups,
    clean_local_backups,
)

from pgs3backup.backup.restore import (
    run_restore,
    list_remote,
    resolve_destination,
)

__all__ = [
    # Manager
    "run_backup",
    "prune_local_backups",
    "list_local_backups",
    "clean_local_backups",
    # Restore
    "run_restore",
    "list_remote",
    "resolve_destination",
]
