# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgs3backup Backup Manager - Backup lifecycle management.

This module runs a backup end to end (probe, pg_dump, optional gzip,
optional upload and verification) and prunes old local artifacts.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Tuple

import aiofiles
import structlog

from pgs3backup.config import (
    PROBE_TIMEOUT,
    RETENTION_COUNT,
    AppPaths,
    BackupOptions,
    BucketTarget,
    CloudCredentials,
    ConnectionProfile,
    ProfileKind,
)
from pgs3backup.core import BackupResult, RunState
from pgs3backup.errors import explain_db_unreachable, explain_subprocess_failure
from pgs3backup.exceptions import (
    BackupError,
    ConnectivityError,
    StorageError,
    SubprocessFailure,
)
from pgs3backup.locking import operation_lock
from pgs3backup.naming import (
    artifact_name,
    artifact_prefix,
    date_partition,
    log_name,
    newest_first,
    object_key,
    s3_uri,
    timestamp,
)
from pgs3backup.store import resolve_profile
from pgs3backup.tools import postgres
from pgs3backup.tools.compressor import compress_file
from pgs3backup.tools.runner import require_commands

logger = structlog.get_logger()

ARTIFACT_SUFFIXES = (".dump", ".sql", ".dump.gz", ".sql.gz")


async def append_log(log_path: Path, text: str) -> None:
    """Append a line to an operation log file."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(log_path, "a", encoding="utf-8") as f:
        await f.write(text.rstrip("\n") + "\n")


async def probe_database(state: RunState, profile: ConnectionProfile) -> bool:
    """pg_isready against the profile's server with the standard timeout."""
    result = await state["runner"].run(
        postgres.pg_isready(profile), timeout=PROBE_TIMEOUT + 1
    )
    return result.ok


async def run_backup(
    paths: AppPaths,
    options: BackupOptions,
    state: RunState,
) -> BackupResult:
    """
    Run a complete backup.

    This is the main entry point for backups. It:
    1. Checks that pg_dump and pg_isready are installed
    2. Resolves the source profile (and AWS/S3 when uploading)
    3. Probes the database, then runs pg_dump into backups/
    4. Compresses, uploads and verifies as requested
    5. Keeps the 10 most recent local artifacts of this database

    Args:
        paths: Working directory layout
        options: Backup flags
        state: Runtime state

    Returns:
        BackupResult with operation details
    """
    require_commands(state["runner"], [postgres.PG_DUMP, postgres.PG_ISREADY])
    paths.ensure()

    with operation_lock(paths, "backup"):
        return await _run_backup_locked(paths, options, state)


async def _run_backup_locked(
    paths: AppPaths,
    options: BackupOptions,
    state: RunState,
) -> BackupResult:
    from ulid import ULID

    prompter = state["prompter"]
    operation_id = str(ULID())
    started = state["now"]()
    log = logger.bind(operation_id=operation_id)

    source = await resolve_profile(paths, ProfileKind.SOURCE, prompter, state["environ"])
    credentials: CloudCredentials | None = None
    target: BucketTarget | None = None
    if options.upload:
        credentials = await resolve_profile(paths, ProfileKind.AWS, prompter, state["environ"])
        target = await resolve_profile(paths, ProfileKind.S3, prompter, state["environ"])

    _show_plan(state, source, options, credentials, target)

    log.info(
        "backup_started",
        database=source.database,
        host=source.host,
        format=options.format.value,
        upload=options.upload,
    )

    if not await probe_database(state, source):
        log.error("database_unreachable", host=source.host, port=source.port)
        raise ConnectivityError(
            explain_db_unreachable(source.host, source.port, source.database),
            details={"host": source.host, "port": source.port},
        )
    prompter.echo("[green]Database connection successful[/green]")

    ts = timestamp(started)
    artifact = paths.backup_dir / artifact_name(source.database, ts, options.format)
    log_path = paths.log_dir / log_name("backup", ts)

    command = postgres.pg_dump(
        source,
        artifact,
        fmt=options.format,
        schema_only=options.schema_only,
        data_only=options.data_only,
    )
    log.info("pg_dump_started", command=command.display(), log_path=str(log_path))
    dump = await state["runner"].run(command, log_path=log_path)
    if not dump.ok:
        artifact.unlink(missing_ok=True)
        log.error("pg_dump_failed", returncode=dump.returncode, log_path=str(log_path))
        raise SubprocessFailure(
            explain_subprocess_failure("pg_dump", log_path),
            log_path=log_path,
            returncode=dump.returncode,
        )
    if not artifact.exists():
        raise BackupError(
            "pg_dump reported success but produced no file",
            details={"path": str(artifact), "log_path": str(log_path)},
        )

    log.info("pg_dump_completed", path=str(artifact), size=artifact.stat().st_size)
    prompter.echo(f"[green]Backup created:[/green] {artifact}")

    if options.compress:
        artifact = await compress_file(artifact)
        prompter.echo(f"Compressed file: {artifact}")

    result = BackupResult(
        operation_id=operation_id,
        database=source.database,
        artifact_path=artifact,
        log_path=log_path,
        compressed=options.compress,
        uploaded=False,
    )

    try:
        if options.upload and credentials is not None and target is not None:
            await _upload_and_verify(state, credentials, target, ts, result, log_path)
    finally:
        result.pruned = prune_local_backups(
            paths.backup_dir, source.database, keep=RETENTION_COUNT
        )

    result.size_bytes = artifact.stat().st_size
    result.duration_seconds = (state["now"]() - started).total_seconds()

    log.info(
        "backup_completed",
        path=str(artifact),
        uri=result.object_uri,
        verified=result.verified,
        pruned=len(result.pruned),
        duration=result.duration_seconds,
    )
    return result


async def _upload_and_verify(
    state: RunState,
    credentials: CloudCredentials,
    target: BucketTarget,
    ts: str,
    result: BackupResult,
    log_path: Path,
) -> None:
    """Upload the artifact, then confirm the exact key is listed."""
    from pgs3backup.storage.s3 import object_exists, open_s3_client, upload_file

    log = logger.bind(operation_id=result.operation_id)
    artifact = result.artifact_path
    key = object_key(target.prefix, date_partition(ts), artifact.name)
    uri = s3_uri(target.bucket, key)
    s3_log = log_path.with_name(log_path.name + ".s3")

    state["prompter"].echo(f"Uploading to: {uri}")
    async with open_s3_client(state["s3_session"], credentials) as s3_client:
        try:
            await upload_file(s3_client, target.bucket, key, artifact)
        except StorageError as e:
            await append_log(s3_log, f"upload failed: {artifact} to {uri}: {e}")
            log.error("upload_failed", uri=uri, error=str(e))
            raise SubprocessFailure(
                explain_subprocess_failure("Upload", s3_log), log_path=s3_log
            ) from e

        await append_log(s3_log, f"upload: {artifact} to {uri}")
        result.uploaded = True
        result.object_uri = uri
        state["prompter"].echo(f"[green]Upload completed:[/green] {uri}")

        try:
            result.verified = await object_exists(s3_client, target.bucket, key)
        except StorageError as e:
            log.warning("upload_verification_error", uri=uri, error=str(e))
            result.verified = False

    if result.verified:
        log.info("upload_verified", uri=uri)
    else:
        log.warning("upload_not_verified", uri=uri)
        state["prompter"].echo("[yellow]Could not verify upload[/yellow]")


def _show_plan(
    state: RunState,
    source: ConnectionProfile,
    options: BackupOptions,
    credentials: CloudCredentials | None,
    target: BucketTarget | None,
) -> None:
    echo = state["prompter"].echo
    echo("\n[cyan]Backup Configuration[/cyan]")
    echo("  PostgreSQL:")
    for key, value in source.summary().items():
        echo(f"    {key.title():<9} {value}")
    if credentials is not None and target is not None:
        echo("  S3 Destination:")
        echo(f"    Bucket:   {target.bucket}")
        echo(f"    Path:     {target.prefix}/")
        echo(f"    Region:   {credentials.region}")
    echo("  Options:")
    echo(f"    Format:   {options.format.value}")
    if options.schema_only:
        echo("    Schema:   Only")
    if options.data_only:
        echo("    Data:     Only")
    if options.compress:
        echo("    Compress: Yes")
    if not options.upload:
        echo("    Upload:   No (local only)")


def _is_artifact(path: Path) -> bool:
    return path.is_file() and path.name.endswith(ARTIFACT_SUFFIXES)


def prune_local_backups(backup_dir: Path, database: str, keep: int = RETENTION_COUNT) -> List[Path]:
    """
    Delete local artifacts of one database beyond the most recent `keep`.

    Recency is filename order: the embedded timestamp is fixed-width, so
    the reverse-sorted names are newest first.

    Returns:
        Paths that were deleted
    """
    if not backup_dir.exists():
        return []

    prefix = artifact_prefix(database)
    candidates = {
        path.name: path
        for path in backup_dir.iterdir()
        if path.name.startswith(prefix) and _is_artifact(path)
    }
    doomed = newest_first(candidates)[keep:]

    deleted: List[Path] = []
    for name in doomed:
        path = candidates[name]
        try:
            path.unlink()
            deleted.append(path)
        except OSError as e:
            logger.warning("prune_file_error", path=str(path), error=str(e))

    if deleted:
        logger.info("retention_pruned", database=database, deleted=len(deleted), kept=keep)
    return deleted


def list_local_backups(backup_dir: Path, limit: int | None = None) -> List[Tuple[Path, int, datetime]]:
    """
    Local artifacts newest-first with size and modification time.

    Returns:
        List of (path, size_bytes, modified_at)
    """
    if not backup_dir.exists():
        return []

    # Order by the embedded timestamp so different databases interleave
    artifacts = sorted(
        (path for path in backup_dir.iterdir() if _is_artifact(path)),
        key=lambda path: (path.name.rpartition("_backup_")[2], path.name),
        reverse=True,
    )
    if limit is not None:
        artifacts = artifacts[:limit]

    entries = []
    for path in artifacts:
        stat = path.stat()
        entries.append((path, stat.st_size, datetime.fromtimestamp(stat.st_mtime)))
    return entries


def clean_local_backups(backup_dir: Path, keep: int) -> List[Path]:
    """Keep the `keep` most recent artifacts across all databases."""
    if keep < 0:
        raise ValueError(f"keep must be >= 0, got {keep}")

    doomed = [path for path, _, _ in list_local_backups(backup_dir)][keep:]
    for path in doomed:
        path.unlink(missing_ok=True)
        logger.info("local_backup_deleted", path=str(path))
    return doomed
