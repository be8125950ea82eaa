# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
pgs3backup Exceptions - Custom exceptions for the pgs3backup package.
"""

from pathlib import Path


class PGS3BackupError(Exception):
    """Base exception for all pgs3backup errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PGS3BackupError):
    """Raised when configuration is invalid."""

    pass


class ConfigurationMissing(ConfigurationError):
    """Raised when a required profile has not been configured."""

    def __init__(self, kind: str, message: str | None = None):
        self.kind = kind
        super().__init__(
            message or f"{kind} configuration not found",
            details={"profile": kind},
        )


class BackupError(PGS3BackupError):
    """Raised when backup operations fail."""

    pass


class RestoreError(PGS3BackupError):
    """Raised when restore operations fail."""

    pass


class ValidationError(PGS3BackupError):
    """Raised when operator input or options are invalid."""

    pass


class InvalidSelectionError(ValidationError):
    """Raised when an interactive backup selection is out of range."""

    pass


class ConnectivityError(PGS3BackupError):
    """Raised when the database or storage backend is unreachable."""

    pass


class MissingCommandError(PGS3BackupError):
    """Raised when required external executables are not on PATH."""

    def __init__(self, commands: list[str]):
        self.commands = commands
        super().__init__(
            f"Missing required commands: {' '.join(commands)}",
            details={"commands": commands},
        )


class SubprocessFailure(PGS3BackupError):
    """Raised when an external tool exits non-zero."""

    def __init__(
        self,
        message: str,
        log_path: Path | None = None,
        returncode: int | None = None,
        details: dict | None = None,
    ):
        self.log_path = log_path
        self.returncode = returncode
        super().__init__(message, details=details)


class NotFoundError(PGS3BackupError):
    """Raised when a local file or remote object is absent."""

    pass


class NoBackupsFoundError(NotFoundError):
    """Raised when interactive selection finds nothing to choose from."""

    pass


class StorageError(PGS3BackupError):
    """Raised when S3 operations fail."""

    pass


class OperationLockedError(PGS3BackupError):
    """Raised when another backup or restore holds the operation lock."""

    pass


class RestoreCancelled(PGS3BackupError):
    """Raised when the operator declines a destructive confirmation."""

    pass
