# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Listing service - enumerate remote backups and pick one interactively.
"""

from typing import Any, AsyncIterator, List, Sequence

import structlog
from rich.markup import escape

from pgs3backup.config import BucketTarget
from pgs3backup.exceptions import InvalidSelectionError, NoBackupsFoundError
from pgs3backup.naming import basename
from pgs3backup.prompts import Prompter
from pgs3backup.storage.s3 import RemoteObject, iter_objects

logger = structlog.get_logger()


def format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "K", "M", "G", "T"):
        if value < 1024 or unit == "T":
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{size}B"


def iter_backups(s3_client: Any, bucket: str, prefix: str) -> AsyncIterator[RemoteObject]:
    """One paginated listing per call, in remote order."""
    return iter_objects(s3_client, bucket, prefix)


async def list_backups(s3_client: Any, target: BucketTarget) -> List[RemoteObject]:
    """All objects under the backup prefix, in remote order. Empty is fine."""
    objects = [obj async for obj in iter_backups(s3_client, target.bucket, target.prefix)]
    logger.info(
        "backups_listed", bucket=target.bucket, prefix=target.prefix, count=len(objects)
    )
    return objects


def newest_first(objects: Sequence[RemoteObject]) -> List[RemoteObject]:
    """
    Order for interactive selection.

    Keys embed the YYYY-MM-DD partition and the fixed-width timestamp,
    so reverse key order is newest-first.
    """
    return sorted(objects, key=lambda obj: obj.key, reverse=True)


def render_listing(objects: Sequence[RemoteObject], prompter: Prompter) -> None:
    for obj in objects:
        modified = obj.last_modified.strftime("%Y-%m-%d %H:%M:%S") if obj.last_modified else "-"
        prompter.echo(f"  {modified}  {format_size(obj.size):>8}  {escape(obj.key)}")


def parse_selection(raw: str, count: int) -> int:
    """
    Convert 1-based operator input into a 0-based index.

    Raises:
        InvalidSelectionError: Non-numeric or outside [1, count]
    """
    try:
        number = int(raw.strip())
    except (ValueError, AttributeError):
        raise InvalidSelectionError(
            f"Invalid selection: {raw!r}", details={"valid": f"1-{count}"}
        ) from None
    if not 1 <= number <= count:
        raise InvalidSelectionError(
            f"Invalid selection: {number}", details={"valid": f"1-{count}"}
        )
    return number - 1


def select_backup(objects: Sequence[RemoteObject], prompter: Prompter) -> RemoteObject:
    """
    Present a numbered newest-first list and read a single choice.

    There is no retry loop: an invalid answer aborts the restore.

    Raises:
        NoBackupsFoundError: Nothing to choose from
        InvalidSelectionError: Bad answer
    """
    ordered = newest_first(objects)
    if not ordered:
        raise NoBackupsFoundError("No backups found in S3")

    for index, obj in enumerate(ordered, start=1):
        modified = obj.last_modified.strftime("%Y-%m-%d %H:%M:%S") if obj.last_modified else "-"
        prompter.echo(f"  [{index}] {escape(basename(obj.key))}")
        prompter.echo(f"       Size: {format_size(obj.size)} | Date: {modified}")

    answer = prompter.prompt(f"Select backup number [1-{len(ordered)}]")
    selected = ordered[parse_selection(answer, len(ordered))]
    logger.info("backup_selected", key=selected.key)
    return selected
