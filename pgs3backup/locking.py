# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Advisory lock that makes "one backup or restore at a time" enforced.

The lock is an exclusive, non-blocking flock() on a file in the working
root, held for the whole operation. A second process (or a scheduled
tick that overlaps a running one) fails immediately.
"""

import fcntl
import os
from contextlib import contextmanager
from typing import Iterator

import structlog

from pgs3backup.config import AppPaths
from pgs3backup.errors import explain_operation_locked
from pgs3backup.exceptions import OperationLockedError

logger = structlog.get_logger()


@contextmanager
def operation_lock(paths: AppPaths, operation: str) -> Iterator[None]:
    """
    Hold the working-directory lock for the duration of the block.

    Raises:
        OperationLockedError: If another operation holds it
    """
    paths.root.mkdir(parents=True, exist_ok=True)
    lock_path = paths.lock_path

    with open(lock_path, "a+") as f:
        try:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            raise OperationLockedError(
                explain_operation_locked(lock_path),
                details={"operation": operation},
            ) from None

        try:
            f.seek(0)
            f.truncate()
            f.write(f"{os.getpid()} {operation}\n")
            f.flush()
            logger.debug("operation_lock_acquired", operation=operation)
            yield
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)
            logger.debug("operation_lock_released", operation=operation)
