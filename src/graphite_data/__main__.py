# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""CLI entry point for graphite-data.

Usage:
    python -m graphite_data --help
    python -m graphite_data ddl create Login Role LoginLog --prefix g_
    python -m graphite_data fields Login
    python -m graphite_data check --config db.ini
"""

from .cli import main

if __name__ == "__main__":
    main()
