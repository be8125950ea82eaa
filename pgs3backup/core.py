# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgs3backup Core - Runtime state and operation results.

Orchestrators receive immutable configuration plus a RunState holding
the collaborators they talk to: the tool runner, the prompter and the
S3 session. Swapping those is how the CLI, the scheduler and the tests
drive the same code.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Mapping, TypedDict

from pgs3backup.prompts import Prompter
from pgs3backup.tools.runner import ToolRunner


@dataclass
class BackupResult:
    """Result of a backup operation."""

    operation_id: str  # ULID
    database: str
    artifact_path: Path
    log_path: Path
    compressed: bool
    uploaded: bool
    object_uri: str | None = None
    verified: bool = False
    pruned: List[Path] = field(default_factory=list)
    size_bytes: int = 0
    duration_seconds: float = 0.0


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    operation_id: str  # ULID
    source: str
    database: str
    restore_tool: str
    log_path: Path
    cleaned: bool = False
    database_created: bool = False
    duration_seconds: float = 0.0


class RunState(TypedDict):
    """Runtime collaborators for one CLI invocation."""

    runner: ToolRunner
    prompter: Prompter
    s3_session: Any  # aiobotocore session
    environ: Mapping[str, str] | None  # None means os.environ
    now: Callable[[], datetime]


def initialize_state(
    prompter: Prompter,
    runner: ToolRunner | None = None,
    s3_session: Any = None,
    environ: Mapping[str, str] | None = None,
    now: Callable[[], datetime] | None = None,
) -> RunState:
    """
    Build the runtime state with production defaults.

    Args:
        prompter: Operator interaction
        runner: Tool runner (default: real subprocesses)
        s3_session: aiobotocore session (default: a new session)
        environ: Environment used for profile lookup
        now: Clock used for timestamps

    Returns:
        Initialized RunState dictionary
    """
    from pgs3backup.storage.s3 import get_session
    from pgs3backup.tools.runner import SubprocessRunner

    return RunState(
        runner=runner or SubprocessRunner(),
        prompter=prompter,
        s3_session=s3_session if s3_session is not None else get_session(),
        environ=environ,
        now=now or datetime.now,
    )
