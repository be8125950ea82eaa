# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Operator interaction.

Orchestrators never read stdin directly; they receive a Prompter. The
console implementation uses rich; tests pass a scripted one.
"""

from typing import Protocol

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from pgs3backup.errors import explain_prompt_unavailable
from pgs3backup.exceptions import ConfigurationError


class Prompter(Protocol):
    """Input/output seam used by every interactive flow."""

    def confirm(self, message: str, default: bool) -> bool: ...

    def prompt(self, message: str, default: str | None = None) -> str: ...

    def secret(self, message: str) -> str: ...

    def echo(self, message: str = "") -> None: ...


class ConsolePrompter:
    """Prompter backed by a rich Console."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def confirm(self, message: str, default: bool) -> bool:
        return Confirm.ask(escape(message), default=default, console=self.console)

    def prompt(self, message: str, default: str | None = None) -> str:
        if default is None:
            answer = Prompt.ask(escape(message), console=self.console, default="")
        else:
            answer = Prompt.ask(escape(message), console=self.console, default=default)
        return (answer or "").strip()

    def secret(self, message: str) -> str:
        answer = Prompt.ask(
            escape(message), console=self.console, password=True, default=""
        )
        return answer or ""

    def echo(self, message: str = "") -> None:
        self.console.print(message, highlight=False)


class UnattendedPrompter:
    """
    Prompter for runs with nobody at the terminal.

    Output is forwarded; any question raises ConfigurationError.
    """

    def __init__(self, output: Prompter):
        self.output = output

    def _refuse(self, message: str) -> ConfigurationError:
        return ConfigurationError(
            explain_prompt_unavailable(message), details={"question": message.strip()}
        )

    def confirm(self, message: str, default: bool) -> bool:
        raise self._refuse(message)

    def prompt(self, message: str, default: str | None = None) -> str:
        raise self._refuse(message)

    def secret(self, message: str) -> str:
        raise self._refuse(message)

    def echo(self, message: str = "") -> None:
        self.output.echo(message)


def ask_required(prompter: Prompter, label: str, secret: bool = False) -> str:
    """Re-prompt until a non-empty value is entered."""
    while True:
        value = prompter.secret(label) if secret else prompter.prompt(label)
        if value:
            return value
        prompter.echo(f"[red]{escape(label)} is required[/red]")


def ask_with_default(prompter: Prompter, label: str, default: str) -> str:
    return prompter.prompt(label, default=default) or default
