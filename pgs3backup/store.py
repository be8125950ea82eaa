# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgs3backup Configuration Store - Persisted key=value profiles.

Each profile lives in its own file under config/:

    postgres.conf       source database (PG_HOST, PG_PORT, ...)
    postgres-dest.conf  restore destination (DEST_PG_HOST, ...)
    aws.conf            AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, ...
    s3.conf             S3_BUCKET, S3_BACKUP_PATH

Files are parsed as data (never executed), written atomically and
created with owner-only permissions.
"""

import os
import tempfile
from pathlib import Path
from typing import Dict, List, Mapping, Union

import aiofiles
import structlog

from pgs3backup import env as envconfig
from pgs3backup.config import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_PREFIX,
    DEFAULT_REGION,
    DEFAULT_USER,
    AppPaths,
    BucketTarget,
    CloudCredentials,
    ConnectionProfile,
    ProfileKind,
)
from pgs3backup.errors import explain_invalid_port, explain_missing_profile
from pgs3backup.exceptions import ConfigurationError, ConfigurationMissing
from pgs3backup.naming import timestamp
from pgs3backup.prompts import Prompter, ask_required, ask_with_default

logger = structlog.get_logger()

Profile = Union[ConnectionProfile, CloudCredentials, BucketTarget]

FILE_MODE = 0o600

PROFILE_FILES: Dict[ProfileKind, str] = {
    ProfileKind.SOURCE: "postgres.conf",
    ProfileKind.DESTINATION: "postgres-dest.conf",
    ProfileKind.AWS: "aws.conf",
    ProfileKind.S3: "s3.conf",
}

PROFILE_TITLES: Dict[ProfileKind, str] = {
    ProfileKind.SOURCE: "PostgreSQL",
    ProfileKind.DESTINATION: "Destination PostgreSQL",
    ProfileKind.AWS: "AWS",
    ProfileKind.S3: "S3",
}

_KIND_ALIASES = {
    "postgres": ProfileKind.SOURCE,
    "pg": ProfileKind.SOURCE,
    "source": ProfileKind.SOURCE,
    "dest": ProfileKind.DESTINATION,
    "destination": ProfileKind.DESTINATION,
    "aws": ProfileKind.AWS,
    "s3": ProfileKind.S3,
}


def parse_kind(value: str) -> ProfileKind:
    try:
        return _KIND_ALIASES[value.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown config type: {value}",
            details={"valid": ["postgres", "dest", "aws", "s3", "all"]},
        ) from None


def profile_path(paths: AppPaths, kind: ProfileKind) -> Path:
    return paths.config_dir / PROFILE_FILES[kind]


# ============================================================================
# Serialization
# ============================================================================

def _pg_prefix(kind: ProfileKind) -> str:
    return "DEST_PG_" if kind == ProfileKind.DESTINATION else "PG_"


def _check_type(kind: ProfileKind, value: Profile, expected: type) -> None:
    if not isinstance(value, expected):
        raise ConfigurationError(
            f"{PROFILE_TITLES[kind]} profile must be a {expected.__name__}",
            details={"profile": kind.value, "type": type(value).__name__},
        )


def _to_fields(kind: ProfileKind, value: Profile) -> Dict[str, str]:
    if kind in (ProfileKind.SOURCE, ProfileKind.DESTINATION):
        _check_type(kind, value, ConnectionProfile)
        p = _pg_prefix(kind)
        return {
            f"{p}HOST": value.host,
            f"{p}PORT": str(value.port),
            f"{p}DATABASE": value.database,
            f"{p}USER": value.user,
            f"{p}PASSWORD": value.password,
        }
    if kind == ProfileKind.AWS:
        _check_type(kind, value, CloudCredentials)
        fields = {
            "AWS_ACCESS_KEY_ID": value.access_key_id,
            "AWS_SECRET_ACCESS_KEY": value.secret_access_key,
            "AWS_DEFAULT_REGION": value.region,
        }
        if value.endpoint_url:
            fields["S3_ENDPOINT_URL"] = value.endpoint_url
        return fields
    _check_type(kind, value, BucketTarget)
    return {"S3_BUCKET": value.bucket, "S3_BACKUP_PATH": value.prefix}


def _require(fields: Mapping[str, str], kind: ProfileKind, *names: str) -> None:
    missing = [name for name in names if not fields.get(name)]
    if missing:
        raise ConfigurationError(
            f"{PROFILE_TITLES[kind]} configuration is incomplete",
            details={"missing": missing, "file": PROFILE_FILES[kind]},
        )


def _from_fields(kind: ProfileKind, fields: Mapping[str, str]) -> Profile:
    if kind in (ProfileKind.SOURCE, ProfileKind.DESTINATION):
        p = _pg_prefix(kind)
        _require(fields, kind, f"{p}DATABASE", f"{p}PASSWORD")
        return ConnectionProfile(
            host=fields.get(f"{p}HOST") or DEFAULT_HOST,
            port=envconfig.parse_port(fields.get(f"{p}PORT")),
            database=fields[f"{p}DATABASE"],
            user=fields.get(f"{p}USER") or DEFAULT_USER,
            password=fields[f"{p}PASSWORD"],
        )
    if kind == ProfileKind.AWS:
        _require(fields, kind, "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY")
        return CloudCredentials(
            access_key_id=fields["AWS_ACCESS_KEY_ID"],
            secret_access_key=fields["AWS_SECRET_ACCESS_KEY"],
            region=fields.get("AWS_DEFAULT_REGION") or DEFAULT_REGION,
            endpoint_url=fields.get("S3_ENDPOINT_URL") or None,
        )
    _require(fields, kind, "S3_BUCKET")
    return BucketTarget(
        bucket=fields["S3_BUCKET"],
        prefix=fields.get("S3_BACKUP_PATH") or DEFAULT_PREFIX,
    )


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def _unquote(raw: str) -> str:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ('"', "'"):
        quote = raw[0]
        body = raw[1:-1]
        if quote == "'":
            return body
        out: List[str] = []
        chars = iter(body)
        for ch in chars:
            if ch == "\\":
                nxt = next(chars, "")
                out.append("\n" if nxt == "n" else nxt)
            else:
                out.append(ch)
        return "".join(out)
    return raw


def render_profile(kind: ProfileKind, value: Profile) -> str:
    lines = [
        f"# {PROFILE_TITLES[kind]} Configuration",
        f"# Generated: {timestamp()}",
    ]
    for key, field_value in _to_fields(kind, value).items():
        lines.append(f"{key}={_quote(field_value)}")
    return "\n".join(lines) + "\n"


def parse_profile_text(text: str) -> Dict[str, str]:
    """Parse KEY="value" lines; blank lines and # comments are skipped."""
    fields: Dict[str, str] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export "):]
        key, sep, raw = stripped.partition("=")
        key = key.strip()
        if not sep or not key.replace("_", "").isalnum():
            raise ConfigurationError(
                f"Malformed configuration line {lineno}",
                details={"line": lineno},
            )
        fields[key] = _unquote(raw)
    return fields


# ============================================================================
# Store operations
# ============================================================================

async def save_profile(paths: AppPaths, kind: ProfileKind, value: Profile) -> Path:
    """
    Persist a profile, replacing any previous file.

    The content goes to a 0600 temp file in config/ which is then renamed
    over the target, so readers see either the old or the new file and
    the secret is never world-readable.
    """
    paths.config_dir.mkdir(parents=True, exist_ok=True)
    target = profile_path(paths, kind)
    content = render_profile(kind, value)

    fd, temp_name = tempfile.mkstemp(
        dir=paths.config_dir, prefix=f".{target.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_name)
    try:
        os.fchmod(fd, FILE_MODE)
        async with aiofiles.open(fd, "w", encoding="utf-8") as f:
            await f.write(content)
        os.replace(temp_path, target)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise ConfigurationError(
            f"Failed to save {PROFILE_TITLES[kind]} configuration: {e}",
            details={"path": str(target)},
        ) from e

    logger.info("profile_saved", profile=kind.value, path=str(target))
    return target


async def load_profile(paths: AppPaths, kind: ProfileKind) -> Profile:
    """
    Load a persisted profile.

    Raises:
        ConfigurationMissing: If the file does not exist
        ConfigurationError: If it exists but is incomplete or invalid
    """
    path = profile_path(paths, kind)
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            text = await f.read()
    except FileNotFoundError:
        raise ConfigurationMissing(kind.value, explain_missing_profile(kind.value)) from None

    value = _from_fields(kind, parse_profile_text(text))
    logger.debug("profile_loaded", profile=kind.value)
    return value


async def load_optional(paths: AppPaths, kind: ProfileKind) -> Profile | None:
    try:
        return await load_profile(paths, kind)
    except ConfigurationMissing:
        return None


def reset_profile(paths: AppPaths, which: str) -> List[ProfileKind]:
    """Delete one profile (or "all"); returns the kinds actually removed."""
    kinds = list(ProfileKind) if which == "all" else [parse_kind(which)]
    removed: List[ProfileKind] = []
    for kind in kinds:
        path = profile_path(paths, kind)
        if path.exists():
            path.unlink()
            removed.append(kind)
            logger.info("profile_deleted", profile=kind.value)
    return removed


def profile_from_env(
    kind: ProfileKind, environ: Mapping[str, str] | None = None
) -> Profile | None:
    if kind == ProfileKind.SOURCE:
        return envconfig.source_profile_from_env(environ)
    if kind == ProfileKind.AWS:
        return envconfig.credentials_from_env(environ)
    if kind == ProfileKind.S3:
        return envconfig.bucket_from_env(environ)
    return None


async def load_configured(
    paths: AppPaths, kind: ProfileKind, environ: Mapping[str, str] | None = None
) -> Profile:
    """
    Resolve a profile from the environment or its file, never prompting.

    Raises:
        ConfigurationMissing: If neither source provides the profile
    """
    from_env = profile_from_env(kind, environ)
    if from_env is not None:
        return from_env
    return await load_profile(paths, kind)


# ============================================================================
# Prompting
# ============================================================================

def _ask_port(prompter: Prompter) -> int:
    while True:
        raw = ask_with_default(prompter, "  Port", str(DEFAULT_PORT))
        try:
            return envconfig.parse_port(raw)
        except ConfigurationError:
            prompter.echo(f"[red]{explain_invalid_port(raw)}[/red]")


def prompt_new_profile(kind: ProfileKind, prompter: Prompter) -> Profile:
    """Collect a fresh profile; required fields are asked until non-empty."""
    if kind in (ProfileKind.SOURCE, ProfileKind.DESTINATION):
        if kind == ProfileKind.DESTINATION:
            prompter.echo("[yellow]This is the database where backups will be restored[/yellow]")
        prompter.echo("Enter PostgreSQL connection details:")
        host = ask_with_default(prompter, "  Host", DEFAULT_HOST)
        port = _ask_port(prompter)
        database = ask_required(prompter, "  Database name")
        user = ask_with_default(prompter, "  Username", DEFAULT_USER)
        password = ask_required(prompter, "  Password", secret=True)
        return ConnectionProfile(
            host=host, port=port, database=database, user=user, password=password
        )

    if kind == ProfileKind.AWS:
        prompter.echo("Enter AWS credentials:")
        access_key = ask_required(prompter, "  AWS Access Key ID")
        secret_key = ask_required(prompter, "  AWS Secret Access Key", secret=True)
        region = ask_with_default(prompter, "  AWS Region", DEFAULT_REGION)
        endpoint = prompter.prompt("  S3 endpoint URL (blank for AWS)", default="")
        return CloudCredentials(
            access_key_id=access_key,
            secret_access_key=secret_key,
            region=region,
            endpoint_url=endpoint or None,
        )

    prompter.echo("Enter S3 bucket details:")
    while True:
        bucket = ask_required(prompter, "  S3 Bucket Name")
        prefix = ask_with_default(prompter, "  Backup Path Prefix", DEFAULT_PREFIX)
        try:
            return BucketTarget(bucket=bucket, prefix=prefix)
        except ConfigurationError as e:
            prompter.echo(f"[red]{e.details.get('errors', [e.message])[0]}[/red]")


def show_profile(kind: ProfileKind, value: Profile, prompter: Prompter) -> None:
    for key, field_value in value.summary().items():
        prompter.echo(f"  {key.replace('_', ' ').title():<12} {field_value}")


async def configure_profile(
    paths: AppPaths, kind: ProfileKind, prompter: Prompter
) -> Profile:
    """
    Interactive setup used by the config verb and the menu.

    An existing profile is offered for reuse first; new values are only
    collected on decline or absence.
    """
    prompter.echo(f"\n[cyan]{PROFILE_TITLES[kind]} Configuration[/cyan]")
    existing = await load_optional(paths, kind)
    if existing is not None:
        if prompter.confirm(
            f"Existing {PROFILE_TITLES[kind]} configuration found. Load it?", True
        ):
            show_profile(kind, existing, prompter)
            if prompter.confirm("Use this configuration?", True):
                return existing

    value = prompt_new_profile(kind, prompter)
    await save_profile(paths, kind, value)
    return value


async def resolve_profile(
    paths: AppPaths,
    kind: ProfileKind,
    prompter: Prompter,
    environ: Mapping[str, str] | None = None,
) -> Profile:
    """
    Load-or-prompt used by the orchestrators.

    Order: complete environment profile, persisted file, then a fresh
    prompt which is saved for next time.
    """
    from_env = profile_from_env(kind, environ)
    if from_env is not None:
        logger.debug("profile_from_env", profile=kind.value)
        return from_env

    existing = await load_optional(paths, kind)
    if existing is not None:
        return existing

    logger.info("profile_not_configured", profile=kind.value)
    prompter.echo(f"\n[cyan]{PROFILE_TITLES[kind]} Configuration[/cyan]")
    value = prompt_new_profile(kind, prompter)
    await save_profile(paths, kind, value)
    return value


async def describe_profiles(
    paths: AppPaths, environ: Mapping[str, str] | None = None
) -> Dict[ProfileKind, Dict[str, object] | None]:
    """Masked summaries of every profile; None marks "not configured"."""
    result: Dict[ProfileKind, Dict[str, object] | None] = {}
    for kind in ProfileKind:
        value = await load_optional(paths, kind)
        source = "file"
        if value is None:
            value = profile_from_env(kind, environ)
            source = "env"
        if value is None:
            result[kind] = None
            continue
        summary: Dict[str, object] = dict(value.summary())
        summary["source"] = (
            str(profile_path(paths, kind)) if source == "file" else "environment"
        )
        result[kind] = summary
    return result
