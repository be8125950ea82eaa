# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Naming and layout policy for artifacts, object keys and log files.

Everything here is a pure function. Timestamps are fixed-width and
zero-padded, so reverse lexicographic order of artifact names is
newest-first order.
"""

from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath
from typing import Iterable, List, Tuple

from pgs3backup.config import BackupFormat
from pgs3backup.exceptions import ValidationError

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
DATE_FORMAT = "%Y-%m-%d"
COMPRESSED_SUFFIX = ".gz"
BINARY_EXTENSIONS = {"dump", "backup"}


class RestorePath(str, Enum):
    """Which tool restores an artifact."""

    BINARY = "pg_restore"
    SQL = "psql"


def timestamp(now: datetime | None = None) -> str:
    """Local time at second resolution, e.g. 20240104_020000."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def date_partition(ts: str) -> str:
    """Date partition (YYYY-MM-DD) of a YYYYMMDD_HHMMSS timestamp."""
    try:
        return datetime.strptime(ts, TIMESTAMP_FORMAT).strftime(DATE_FORMAT)
    except ValueError as e:
        raise ValidationError(f"Invalid timestamp: {ts!r}") from e


def artifact_name(
    database: str,
    ts: str,
    fmt: BackupFormat = BackupFormat.CUSTOM,
    compressed: bool = False,
) -> str:
    """
    Build the local/remote filename of a backup artifact.

    Args:
        database: Logical database name
        ts: Timestamp from timestamp()
        fmt: Dump format; custom -> .dump, plain -> .sql
        compressed: Append .gz

    Returns:
        e.g. appdb_backup_20240104_020000.dump.gz
    """
    extension = "dump" if fmt == BackupFormat.CUSTOM else "sql"
    name = f"{database}_backup_{ts}.{extension}"
    if compressed:
        name += COMPRESSED_SUFFIX
    return name


def artifact_prefix(database: str) -> str:
    """Filename prefix shared by every artifact of one database."""
    return f"{database}_backup_"


def object_key(prefix: str, partition: str, name: str) -> str:
    """{prefix}/{YYYY-MM-DD}/{name}"""
    return f"{prefix.strip('/')}/{partition}/{name}"


def s3_uri(bucket: str, key: str) -> str:
    return f"s3://{bucket}/{key}"


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """
    Split s3://bucket/key into (bucket, key).

    Raises:
        ValidationError: If the URI is not an s3:// URI with a key
    """
    if not uri.startswith("s3://"):
        raise ValidationError(f"Not an S3 URI: {uri!r}")

    bucket, _, key = uri[len("s3://"):].partition("/")
    if not bucket or not key or key.endswith("/"):
        raise ValidationError(
            f"S3 URI must name an object: {uri!r}",
            details={"expected": "s3://bucket/path/file.dump"},
        )
    return bucket, key


def basename(key: str) -> str:
    return PurePosixPath(key).name


def is_compressed(name: str) -> bool:
    return name.endswith(COMPRESSED_SUFFIX)


def strip_compressed_suffix(name: str) -> str:
    if is_compressed(name):
        return name[: -len(COMPRESSED_SUFFIX)]
    return name


def restore_path_for(name: str) -> RestorePath:
    """
    Map a filename to its restore tool.

    .dump and .backup go through pg_restore; every other extension is
    executed as plain SQL. A trailing .gz is ignored.
    """
    base = strip_compressed_suffix(basename(name))
    _, _, extension = base.rpartition(".")
    if extension in BINARY_EXTENSIONS:
        return RestorePath.BINARY
    return RestorePath.SQL


def log_name(kind: str, ts: str, suffix: str | None = None) -> str:
    """{kind}_{ts}.log with an optional .download/.restore/.s3 suffix."""
    name = f"{kind}_{ts}.log"
    if suffix:
        name += f".{suffix}"
    return name


def newest_first(names: Iterable[str]) -> List[str]:
    return sorted(names, reverse=True)
