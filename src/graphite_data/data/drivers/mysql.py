# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""MySQL driver based on mysql-connector-python."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mysql.connector
from mysql.connector.conversion import MySQLConverter

from ..result import QueryResult
from .base import DbDriver

if TYPE_CHECKING:
    from ...config import DbSourceConfig

logger = logging.getLogger(__name__)

_converter = MySQLConverter()


def escape_string(value: Any) -> str:
    """Escape a value for a single-quoted MySQL string literal."""
    escaped = _converter.escape(str(value))
    if isinstance(escaped, bytes):
        return escaped.decode("utf-8")
    return escaped


class MySQLDriver(DbDriver):
    """Driver for MySQL/MariaDB servers.

    Runs in autocommit mode: every statement stands alone, so a sparse
    reopen never loses an open transaction. Rows are fetched as dicts
    with a buffered cursor.
    """

    charset = "utf8mb4"

    def __init__(self, credentials: DbSourceConfig):
        super().__init__(credentials)
        self._conn: Any = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def host_info(self) -> str:
        if self._conn is not None and getattr(self._conn, "server_host", None):
            return f"{self._conn.server_host} via {'UNIX socket' if self.credentials.socket else 'TCP/IP'}"
        return super().host_info

    def connect_args(self) -> dict[str, Any]:
        """Keyword arguments for mysql.connector.connect()."""
        creds = self.credentials
        args: dict[str, Any] = {
            "user": creds.user,
            "password": creds.password,
            "database": creds.name,
            "charset": self.charset,
            "autocommit": True,
        }
        if creds.socket:
            args["unix_socket"] = creds.socket
        else:
            args["host"] = creds.host
            if creds.port:
                args["port"] = int(creds.port)
        return args

    def open(self) -> bool:
        if self._conn is not None:
            return True
        try:
            self._conn = mysql.connector.connect(**self.connect_args())
        except mysql.connector.Error as e:
            self._conn = None
            self.connect_errno = e.errno or 0
            self.connect_error = e.msg or str(e)
            logger.warning("MySQL connect to %s failed: %s", self.host_info, self.connect_error)
            return False
        self.connect_errno = 0
        self.connect_error = ""
        return True

    def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            conn.close()
        except mysql.connector.Error as e:
            logger.debug("Error closing MySQL link: %s", e)

    def query(self, statement: str) -> QueryResult:
        if self._conn is None:
            return QueryResult.failure(2006, "MySQL server has gone away")
        try:
            cursor = self._conn.cursor(dictionary=True, buffered=True)
            try:
                cursor.execute(statement)
                if cursor.with_rows:
                    rows = [dict(row) for row in cursor.fetchall()]
                    columns = list(cursor.column_names)
                    return QueryResult(rows=rows, columns=columns, affected_rows=len(rows))
                return QueryResult(
                    affected_rows=max(cursor.rowcount, 0),
                    insert_id=cursor.lastrowid or 0,
                )
            finally:
                cursor.close()
        except mysql.connector.Error as e:
            return QueryResult.failure(e.errno or 0, e.msg or str(e))

    def escape(self, value: str) -> str:
        return escape_string(value)
