# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

from pgs3backup.cli import app

if __name__ == "__main__":
    app(prog_name="pgs3backup")
