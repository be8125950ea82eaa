# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgs3backup Restore - Restore a database from a local or remote backup.

Handles source selection, download, destination pre-flight (with optional
CREATE DATABASE), the destructive clean step and dispatch to pg_restore
or psql based on the artifact's extension.
"""

from pathlib import Path
from typing import List, Tuple

import structlog

from pgs3backup.backup.manager import append_log, probe_database
from pgs3backup.config import (
    PROBE_TIMEOUT,
    AppPaths,
    ConnectionProfile,
    ProfileKind,
    RestoreOptions,
)
from pgs3backup.core import RestoreResult, RunState
from pgs3backup.errors import (
    explain_db_unreachable,
    explain_restore_target_unreachable,
    explain_subprocess_failure,
)
from pgs3backup.exceptions import (
    ConnectivityError,
    NotFoundError,
    RestoreCancelled,
    StorageError,
    SubprocessFailure,
)
from pgs3backup.locking import operation_lock
from pgs3backup.naming import (
    RestorePath,
    basename,
    is_compressed,
    log_name,
    parse_s3_uri,
    restore_path_for,
    s3_uri,
    timestamp,
)
from pgs3backup.storage.s3 import RemoteObject
from pgs3backup.store import (
    load_optional,
    profile_from_env,
    prompt_new_profile,
    resolve_profile,
    save_profile,
)
from pgs3backup.tools import postgres
from pgs3backup.tools.compressor import decompress_file
from pgs3backup.tools.runner import require_commands

logger = structlog.get_logger()


async def list_remote(paths: AppPaths, state: RunState) -> List[RemoteObject]:
    """
    Print every remote backup under the configured prefix.

    Returns:
        The objects in remote order (empty when nothing is stored)
    """
    from pgs3backup.listing import list_backups, render_listing
    from pgs3backup.storage.s3 import open_s3_client

    prompter = state["prompter"]
    credentials = await resolve_profile(paths, ProfileKind.AWS, prompter, state["environ"])
    target = await resolve_profile(paths, ProfileKind.S3, prompter, state["environ"])

    prompter.echo(f"\n[cyan]Available backups in s3://{target.bucket}/{target.prefix}/[/cyan]")
    async with open_s3_client(state["s3_session"], credentials) as s3_client:
        objects = await list_backups(s3_client, target)

    if objects:
        render_listing(objects, prompter)
    else:
        prompter.echo("[yellow]No backups found[/yellow]")
    return objects


async def resolve_destination(paths: AppPaths, state: RunState) -> ConnectionProfile:
    """
    Pick the database to restore into.

    Order: saved destination profile, complete environment profile,
    then an explicit offer to configure one (declining falls back to
    the source profile).
    """
    prompter = state["prompter"]

    destination = await load_optional(paths, ProfileKind.DESTINATION)
    if destination is not None:
        logger.debug("destination_from_file")
        return destination

    from_env = profile_from_env(ProfileKind.SOURCE, state["environ"])
    if from_env is not None:
        logger.debug("destination_from_env")
        return from_env

    prompter.echo("[yellow]No destination database configured[/yellow]")
    if prompter.confirm("Configure a different destination database?", False):
        destination = prompt_new_profile(ProfileKind.DESTINATION, prompter)
        await save_profile(paths, ProfileKind.DESTINATION, destination)
        return destination

    prompter.echo("Using source database as destination")
    return await resolve_profile(paths, ProfileKind.SOURCE, prompter, state["environ"])


async def run_restore(
    paths: AppPaths,
    options: RestoreOptions,
    state: RunState,
) -> RestoreResult | None:
    """
    Restore a backup into the destination database.

    Args:
        paths: Working directory layout
        options: Restore flags
        state: Runtime state

    Returns:
        RestoreResult, or None when the operator declined at the final
        "Start restore?" gate (or in list-only mode)

    Raises:
        RestoreCancelled: The destructive clean step was declined
        ConnectivityError: Destination unreachable
        SubprocessFailure: A tool exited non-zero
    """
    if options.list_only:
        await list_remote(paths, state)
        return None

    require_commands(
        state["runner"], [postgres.PSQL, postgres.PG_ISREADY, postgres.PG_RESTORE]
    )
    paths.ensure()

    with operation_lock(paths, "restore"):
        return await _run_restore_locked(paths, options, state)


async def _run_restore_locked(
    paths: AppPaths,
    options: RestoreOptions,
    state: RunState,
) -> RestoreResult | None:
    from ulid import ULID

    prompter = state["prompter"]
    runner = state["runner"]
    operation_id = str(ULID())
    started = state["now"]()
    ts = timestamp(started)
    log = logger.bind(operation_id=operation_id)
    log_path = paths.log_dir / log_name("restore", ts)

    if options.local_path is not None and not Path(options.local_path).is_file():
        raise NotFoundError(
            f"Backup file not found: {options.local_path}",
            details={"path": str(options.local_path)},
        )

    destination = await resolve_destination(paths, state)
    if options.local_path is not None:
        local = Path(options.local_path)
        source_label = str(local)
    else:
        local, source_label = await _acquire_remote(paths, options, state, ts)

    restore_kind = restore_path_for(local.name)

    prompter.echo("\n[cyan]Restore Configuration[/cyan]")
    prompter.echo(f"  Source:      {source_label}")
    prompter.echo(f"  Target DB:   {destination.database}@{destination.host}:{destination.port}")
    prompter.echo(f"  Restore via: {restore_kind.value}")
    if options.clean:
        prompter.echo("  [yellow]Clean:       existing schema will be dropped[/yellow]")

    log.info(
        "restore_started",
        source=source_label,
        database=destination.database,
        host=destination.host,
        tool=restore_kind.value,
    )

    created = await _preflight(state, destination, options.create_db, log_path)

    if not prompter.confirm("Start restore?", True):
        log.info("restore_cancelled_by_operator")
        prompter.echo("Restore cancelled")
        return None

    working = local
    if is_compressed(local.name):
        working = await decompress_file(local)

    result = RestoreResult(
        operation_id=operation_id,
        source=source_label,
        database=destination.database,
        restore_tool=restore_kind.value,
        log_path=log_path.with_name(log_path.name + ".restore"),
        database_created=created,
    )

    try:
        if options.clean:
            await _clean_schema(state, destination, log_path)
            result.cleaned = True

        if restore_kind == RestorePath.BINARY:
            command = postgres.pg_restore(destination, working)
        else:
            command = postgres.psql_file(destination, working)

        log.info("restore_tool_started", command=command.display(), log_path=str(result.log_path))
        outcome = await runner.run(command, log_path=result.log_path)
        if not outcome.ok:
            log.error("restore_failed", returncode=outcome.returncode, log_path=str(result.log_path))
            raise SubprocessFailure(
                explain_subprocess_failure(command.tool, result.log_path),
                log_path=result.log_path,
                returncode=outcome.returncode,
            )
    finally:
        if working != local:
            working.unlink(missing_ok=True)

    result.duration_seconds = (state["now"]() - started).total_seconds()
    log.info(
        "restore_completed",
        database=destination.database,
        cleaned=result.cleaned,
        duration=result.duration_seconds,
    )
    prompter.echo("[green]Restore completed successfully[/green]")
    return result


async def _acquire_remote(
    paths: AppPaths,
    options: RestoreOptions,
    state: RunState,
    ts: str,
) -> Tuple[Path, str]:
    """Resolve the remote object and make sure a local copy exists."""
    from pgs3backup.listing import list_backups, select_backup
    from pgs3backup.storage.s3 import download_file, open_s3_client

    prompter = state["prompter"]
    credentials = await resolve_profile(paths, ProfileKind.AWS, prompter, state["environ"])

    async with open_s3_client(state["s3_session"], credentials) as s3_client:
        if options.source_uri:
            bucket, key = parse_s3_uri(options.source_uri)
        else:
            target = await resolve_profile(paths, ProfileKind.S3, prompter, state["environ"])
            prompter.echo(f"\n[cyan]Available backups in s3://{target.bucket}/{target.prefix}/[/cyan]")
            selected = select_backup(await list_backups(s3_client, target), prompter)
            bucket, key = target.bucket, selected.key

        uri = s3_uri(bucket, key)
        local = paths.backup_dir / basename(key)

        if local.exists():
            if prompter.confirm(f"File already exists locally: {local.name}. Use existing file?", True):
                logger.info("local_copy_reused", path=str(local))
                return local, uri
            local.unlink()

        download_log = paths.log_dir / log_name("restore", ts, "download")
        prompter.echo(f"Downloading: {uri}")
        try:
            size = await download_file(s3_client, bucket, key, local)
        except (NotFoundError, StorageError) as e:
            await append_log(download_log, f"download failed: {uri}: {e}")
            logger.error("download_failed", uri=uri, error=str(e))
            if isinstance(e, NotFoundError):
                raise
            raise SubprocessFailure(
                explain_subprocess_failure("Download", download_log), log_path=download_log
            ) from e

    await append_log(download_log, f"download: {uri} to {local} ({size} bytes)")
    prompter.echo(f"[green]Downloaded:[/green] {local}")
    return local, uri


async def _database_reachable(state: RunState, profile: ConnectionProfile) -> bool:
    result = await state["runner"].run(
        postgres.psql_check(profile), timeout=PROBE_TIMEOUT + 1
    )
    return result.ok


async def _preflight(
    state: RunState,
    destination: ConnectionProfile,
    create_db: bool,
    log_path: Path,
) -> bool:
    """
    Ensure the destination database accepts connections.

    Returns:
        True when the database had to be created
    """
    if not await probe_database(state, destination):
        raise ConnectivityError(
            explain_db_unreachable(destination.host, destination.port, destination.database),
            details={"host": destination.host, "port": destination.port},
        )

    if await _database_reachable(state, destination):
        state["prompter"].echo("[green]Target database connection successful[/green]")
        return False

    if not create_db:
        raise ConnectivityError(
            explain_restore_target_unreachable(destination.database),
            details={"database": destination.database},
        )

    state["prompter"].echo(f"Creating database {destination.database}...")
    outcome = await state["runner"].run(postgres.psql_create_database(destination), log_path=log_path)
    if not outcome.ok:
        raise SubprocessFailure(
            explain_subprocess_failure("CREATE DATABASE", log_path),
            log_path=log_path,
            returncode=outcome.returncode,
        )
    logger.info("database_created", database=destination.database)

    if not await _database_reachable(state, destination):
        raise ConnectivityError(
            explain_restore_target_unreachable(destination.database),
            details={"database": destination.database, "created": True},
        )
    return True


async def _clean_schema(state: RunState, destination: ConnectionProfile, log_path: Path) -> None:
    """Drop and recreate the public schema after explicit confirmation."""
    prompter = state["prompter"]
    prompter.echo("[yellow]WARNING: This will DELETE all existing data![/yellow]")
    if not prompter.confirm("This will DELETE all existing data. Continue?", False):
        logger.info("clean_declined", database=destination.database)
        raise RestoreCancelled(
            "Restore cancelled: clean not confirmed",
            details={"database": destination.database},
        )

    outcome = await state["runner"].run(postgres.psql_clean_schema(destination), log_path=log_path)
    if not outcome.ok:
        raise SubprocessFailure(
            explain_subprocess_failure("Schema clean", log_path),
            log_path=log_path,
            returncode=outcome.returncode,
        )
    logger.info("schema_cleaned", database=destination.database)
