# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Subprocess execution for ToolCommands.

Output of long-running tools (pg_dump, pg_restore, psql -f) is appended
to a per-operation log file instead of being captured in memory.
"""

import asyncio
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Protocol

import structlog

from pgs3backup.exceptions import MissingCommandError
from pgs3backup.tools.postgres import ToolCommand

logger = structlog.get_logger()


@dataclass
class ToolResult:
    """Outcome of one tool invocation."""

    returncode: int
    output: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


class ToolRunner(Protocol):
    """Seam between orchestrators and the operating system."""

    def which(self, name: str) -> str | None: ...

    async def run(
        self,
        command: ToolCommand,
        log_path: Path | None = None,
        timeout: float | None = None,
    ) -> ToolResult: ...


class SubprocessRunner:
    """Runs ToolCommands with asyncio subprocesses."""

    def which(self, name: str) -> str | None:
        return shutil.which(name)

    async def run(
        self,
        command: ToolCommand,
        log_path: Path | None = None,
        timeout: float | None = None,
    ) -> ToolResult:
        """
        Run a command to completion.

        Args:
            command: Command to execute
            log_path: Append stdout+stderr here; captured in memory if None
            timeout: Kill the child after this many seconds

        Returns:
            ToolResult; a timeout is reported, not raised
        """
        env = {**os.environ, **command.env}
        logger.debug("tool_started", command=command.display(), log_path=str(log_path))

        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(log_path, "ab") as log_file:
                return await self._execute(command, env, log_file, timeout)
        return await self._execute(command, env, asyncio.subprocess.PIPE, timeout)

    async def _execute(self, command: ToolCommand, env: dict, stdout, timeout) -> ToolResult:
        try:
            process = await asyncio.create_subprocess_exec(
                *command.argv,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=stdout,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError:
            raise MissingCommandError([command.tool]) from None

        try:
            out, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("tool_timed_out", tool=command.tool, timeout=timeout)
            return ToolResult(returncode=-1, timed_out=True)

        output = out.decode("utf-8", errors="replace") if out else ""
        logger.debug("tool_finished", tool=command.tool, returncode=process.returncode)
        return ToolResult(returncode=process.returncode or 0, output=output)


def missing_commands(runner: ToolRunner, names: Iterable[str]) -> List[str]:
    return [name for name in names if runner.which(name) is None]


def require_commands(runner: ToolRunner, names: Iterable[str]) -> None:
    """
    Fail fast when any executable is not resolvable on PATH.

    Raises:
        MissingCommandError: Listing every missing command
    """
    missing = missing_commands(runner, names)
    if missing:
        raise MissingCommandError(missing)
