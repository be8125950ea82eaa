# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
structlog configuration for the CLI.

Events go to stderr so stdout stays clean for operator output. The level
comes from PGS3BACKUP_LOG_LEVEL; DEBUG=1 forces debug.
"""

import logging
import os
import sys
from typing import Mapping

import structlog

DEFAULT_LEVEL = "INFO"


def resolve_level(environ: Mapping[str, str] | None = None) -> int:
    env = os.environ if environ is None else environ
    if env.get("DEBUG") == "1":
        return logging.DEBUG

    name = env.get("PGS3BACKUP_LOG_LEVEL", DEFAULT_LEVEL).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(environ: Mapping[str, str] | None = None) -> None:
    """Configure structlog once at start-up."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolve_level(environ)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
