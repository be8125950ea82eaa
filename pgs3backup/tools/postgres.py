# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Command builders for the PostgreSQL client tools.

Each builder returns a ToolCommand: the exact argument vector plus the
extra environment (PGPASSWORD) the child needs. Nothing here executes
anything, so the vectors can be asserted directly in tests.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from pgs3backup.config import ADMIN_DATABASE, PROBE_TIMEOUT, BackupFormat, ConnectionProfile

PG_DUMP = "pg_dump"
PG_RESTORE = "pg_restore"
PSQL = "psql"
PG_ISREADY = "pg_isready"


@dataclass(frozen=True)
class ToolCommand:
    """A fully built external tool invocation."""

    tool: str
    args: List[str]
    env: Dict[str, str] = field(default_factory=dict, repr=False)

    @property
    def argv(self) -> List[str]:
        return [self.tool, *self.args]

    def display(self) -> str:
        """Shell-like rendering for logs; the password only lives in env."""
        return " ".join(self.argv)


def quote_ident(name: str) -> str:
    """Quote a PostgreSQL identifier."""
    return '"' + name.replace('"', '""') + '"'


def _connection_args(profile: ConnectionProfile, database: str | None = None) -> List[str]:
    return [
        "-h", profile.host,
        "-p", str(profile.port),
        "-U", profile.user,
        "-d", database or profile.database,
    ]


def _password_env(profile: ConnectionProfile) -> Dict[str, str]:
    return {"PGPASSWORD": profile.password}


def pg_isready(profile: ConnectionProfile, timeout: int = PROBE_TIMEOUT) -> ToolCommand:
    """Server reachability probe."""
    return ToolCommand(
        PG_ISREADY,
        [
            "-h", profile.host,
            "-p", str(profile.port),
            "-U", profile.user,
            "-t", str(timeout),
        ],
        _password_env(profile),
    )


def pg_dump(
    profile: ConnectionProfile,
    output: Path,
    fmt: BackupFormat = BackupFormat.CUSTOM,
    schema_only: bool = False,
    data_only: bool = False,
) -> ToolCommand:
    """
    pg_dump writing straight to the final artifact path.

    Custom format uses -F c, plain uses -F p; both write with -f so the
    verbose progress on stderr can go to the operation log.
    """
    args = _connection_args(profile) + ["-v"]
    if fmt == BackupFormat.CUSTOM:
        args += ["-F", "c"]
    else:
        args += ["-F", "p"]
    args += ["-f", str(output)]
    if schema_only:
        args.append("--schema-only")
    if data_only:
        args.append("--data-only")
    return ToolCommand(PG_DUMP, args, _password_env(profile))


def pg_restore(profile: ConnectionProfile, archive: Path) -> ToolCommand:
    """Binary restore; ownership and ACLs are not carried over."""
    args = _connection_args(profile) + ["--no-owner", "--no-acl", "-v", str(archive)]
    return ToolCommand(PG_RESTORE, args, _password_env(profile))


def psql_file(profile: ConnectionProfile, script: Path) -> ToolCommand:
    """Plain SQL restore."""
    args = _connection_args(profile) + ["-f", str(script)]
    return ToolCommand(PSQL, args, _password_env(profile))


def psql_clean_schema(profile: ConnectionProfile) -> ToolCommand:
    """Drop and recreate the public schema, then restore default grants."""
    args = _connection_args(profile) + [
        "-v", "ON_ERROR_STOP=1",
        "-c", "DROP SCHEMA public CASCADE;",
        "-c", "CREATE SCHEMA public;",
        "-c", f"GRANT ALL ON SCHEMA public TO {quote_ident(profile.user)};",
        "-c", "GRANT ALL ON SCHEMA public TO public;",
    ]
    return ToolCommand(PSQL, args, _password_env(profile))


def psql_create_database(
    profile: ConnectionProfile, admin_database: str = ADMIN_DATABASE
) -> ToolCommand:
    """CREATE DATABASE issued against the administrative database."""
    args = _connection_args(profile, admin_database) + [
        "-v", "ON_ERROR_STOP=1",
        "-c", f"CREATE DATABASE {quote_ident(profile.database)};",
    ]
    return ToolCommand(PSQL, args, _password_env(profile))


def psql_check(profile: ConnectionProfile, timeout: int = PROBE_TIMEOUT) -> ToolCommand:
    """Connect to the database itself; fails when it does not exist."""
    args = _connection_args(profile) + ["-tAc", "SELECT 1;"]
    env = _password_env(profile)
    env["PGCONNECT_TIMEOUT"] = str(timeout)
    return ToolCommand(PSQL, args, env)


def psql_version(profile: ConnectionProfile) -> ToolCommand:
    args = _connection_args(profile) + ["-tAc", "SELECT version();"]
    return ToolCommand(PSQL, args, _password_env(profile))
