# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
gzip compression of backup artifacts.

Compression is file-to-file and runs in a worker thread so the event
loop is not blocked while large dumps are processed. Callers still await
the result: compression is synchronous from the operation's point of
view.
"""

import asyncio
import gzip
import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import structlog

from pgs3backup.exceptions import BackupError, RestoreError
from pgs3backup.naming import COMPRESSED_SUFFIX, strip_compressed_suffix

logger = structlog.get_logger()

_executor = ThreadPoolExecutor(max_workers=1)

DEFAULT_GZIP_LEVEL = 6
CHUNK_SIZE = 1024 * 1024


def _gzip(source: Path, target: Path, level: int) -> None:
    temp = target.with_name(target.name + ".tmp")
    try:
        with open(source, "rb") as src, gzip.open(temp, "wb", compresslevel=level) as dst:
            shutil.copyfileobj(src, dst, CHUNK_SIZE)
        temp.replace(target)
    finally:
        temp.unlink(missing_ok=True)


def _gunzip(source: Path, target: Path) -> None:
    temp = target.with_name(target.name + ".tmp")
    try:
        with gzip.open(source, "rb") as src, open(temp, "wb") as dst:
            shutil.copyfileobj(src, dst, CHUNK_SIZE)
        temp.replace(target)
    finally:
        temp.unlink(missing_ok=True)


async def compress_file(path: Path, level: int = DEFAULT_GZIP_LEVEL) -> Path:
    """
    Compress an artifact in place.

    Writes <path>.gz and removes the uncompressed original, like gzip -f.

    Returns:
        Path of the .gz file
    """
    target = path.with_name(path.name + COMPRESSED_SUFFIX)
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(_executor, _gzip, path, target, level)
        original_size = path.stat().st_size
        path.unlink()
    except OSError as e:
        raise BackupError(
            f"Compression failed for {path.name}: {e}",
            details={"path": str(path)},
        ) from e

    logger.info(
        "artifact_compressed",
        path=str(target),
        original_size=original_size,
        compressed_size=target.stat().st_size,
    )
    return target


async def decompress_file(path: Path) -> Path:
    """
    Decompress <name>.gz next to itself as <name>.

    The compressed file is left in place.
    """
    target = path.with_name(strip_compressed_suffix(path.name))
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(_executor, _gunzip, path, target)
    except (OSError, EOFError) as e:
        raise RestoreError(
            f"Decompression failed for {path.name}: {e}",
            details={"path": str(path)},
        ) from e

    logger.info("artifact_decompressed", path=str(target), size=target.stat().st_size)
    return target
