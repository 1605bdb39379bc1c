# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base class for database drivers used by Connection."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ...config import DbSourceConfig
    from ..result import QueryResult


class DbDriver(ABC):
    """Abstract physical link to one database server.

    A driver owns exactly one network connection at a time. It never raises
    on statement errors: query() returns a failed QueryResult instead, and
    open() returns False with the reason in ``connect_error``.

    Connection drives the lifecycle: it calls open() lazily, close() between
    statements in sparse mode, and again open() after a dropped link.
    """

    def __init__(self, credentials: DbSourceConfig):
        self.credentials = credentials
        self.connect_error: str = ""
        self.connect_errno: int = 0

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True while the physical link is established."""
        ...

    @property
    def host_info(self) -> str:
        """Human readable description of the link."""
        if self.credentials.socket:
            return f"Localhost via UNIX socket {self.credentials.socket}"
        port = self.credentials.port or 3306
        return f"{self.credentials.host} via TCP/IP port {port}"

    @abstractmethod
    def open(self) -> bool:
        """Establish the link. Returns True on success."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the link. Safe to call when already closed."""
        ...

    @abstractmethod
    def query(self, statement: str) -> QueryResult:
        """Execute one statement and fetch its rows."""
        ...

    @abstractmethod
    def escape(self, value: str) -> str:
        """Escape text for inclusion in a single-quoted SQL literal."""
        ...
