# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Database drivers: the physical links wrapped by Connection.

Components:
    DbDriver: Abstract base class defining the driver interface.
    MySQLDriver: MySQL/MariaDB driver using mysql-connector-python.
    get_driver: Factory creating a driver by registered name.

Drivers never raise on statement errors. They convert client exceptions
into a failed QueryResult so Connection can log, retry or report them.

Example:
    Registering an alternative driver (tests use an in-memory fake)::

        from graphite_data.data.drivers import register_driver

        register_driver("fake", FakeDriver)
        conn = Connection(credentials, driver="fake")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import DbDriver
from .mysql import MySQLDriver, escape_string

if TYPE_CHECKING:
    from ...config import DbSourceConfig

__all__ = ["DbDriver", "MySQLDriver", "DRIVERS", "escape_string", "get_driver", "register_driver"]

# Driver registry
DRIVERS: dict[str, type[DbDriver]] = {
    "mysql": MySQLDriver,
}


def register_driver(name: str, driver_class: type[DbDriver]) -> None:
    """Register a driver class under a name."""
    DRIVERS[name.lower()] = driver_class


def get_driver(name: str, credentials: DbSourceConfig) -> DbDriver:
    """Create a driver instance.

    Args:
        name: Registered driver name ("mysql").
        credentials: Source the driver will connect to.

    Raises:
        ValueError: If no driver is registered under that name.
    """
    driver_class = DRIVERS.get(name.lower())
    if driver_class is None:
        raise ValueError(f"Unknown database driver: '{name}'. Supported: {', '.join(sorted(DRIVERS))}")
    return driver_class(credentials)
