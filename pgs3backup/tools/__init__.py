# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
External tools - PostgreSQL client command builders, subprocess runner
and gzip compression.
"""

from pgs3backup.tools.postgres import ToolCommand
from pgs3backup.tools.runner import (
    SubprocessRunner,
    ToolResult,
    ToolRunner,
    require_commands,
)
from pgs3backup.tools.compressor import compress_file, decompress_file

__all__ = [
    "ToolCommand",
    "SubprocessRunner",
    "ToolResult",
    "ToolRunner",
    "require_commands",
    "compress_file",
    "decompress_file",
]
