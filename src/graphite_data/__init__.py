# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Graphite data layer: MySQL records, query building and connections."""

from .auth import ANONYMOUS, AuthContext, StaticAuth
from .config import DbConfig, DbSourceConfig
from .database import Database

__version__ = "0.1.0"

__all__ = [
    "ANONYMOUS",
    "AuthContext",
    "Database",
    "DbConfig",
    "DbSourceConfig",
    "StaticAuth",
    "__version__",
]
