# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Connection: lazy, logging, self-healing wrapper around a database driver.

A Connection keeps two notions of "open":

- outer: the logical connection, open from a successful open() until
  close(). Statements are refused once it is closed.
- inner: the physical link held by the driver. In sparse mode it is
  closed after every statement and reopened on the next one.

State machine::

    Unopened -> Open -> [Closed(sparse, reopenable) <-> Open] -> Closed(final)

Execution never raises. A statement that fails returns a falsy QueryResult
with errno/error set. A dropped link (2006 "server has gone away" and
friends) is reopened and the statement retried exactly once.

Example:
    conn = Connection(config.primary, table_prefix="g_", log_level=1)
    if conn.open():
        result = conn.execute("SELECT 1 AS one")
        if result:
            print(result.rows)
        print(conn.query_log.total_time)
    conn.close()
"""

from __future__ import annotations

import logging
import os
import time
import traceback
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .drivers import DbDriver, get_driver
from .result import QueryResult

if TYPE_CHECKING:
    from ..config import DbSourceConfig

logger = logging.getLogger(__name__)

# Statement types allowed on a read-only connection
READ_ONLY_STATEMENTS = ("select", "explain", "describe", "show")

# "Connection lost" error class: gone away, lost during query, lost on reconnect
CONNECTION_LOST_ERRNOS = frozenset({2006, 2013, 2055})

READ_ONLY_SERVER_ERRNO = 1290
READ_ONLY_SERVER_MESSAGE = "The MySQL server is running with the --read-only"

_DATA_DIR = os.path.dirname(os.path.abspath(__file__)) + os.sep


@dataclass
class QueryLogEntry:
    """One logged statement.

    ``time`` is None for statements refused by the read-only guard.
    """

    query: str
    time: float | None = None
    error: str = ""
    errno: int = 0
    stack: str = ""
    rows: int = 0
    host_info: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "error": self.error,
            "errno": self.errno,
            "stack": self.stack,
            "rows": self.rows,
            "host_info": self.host_info,
            "query": self.query,
        }


@dataclass
class QueryLog:
    """Ordered log of executed statements with a running total time."""

    entries: list[QueryLogEntry] = field(default_factory=list)
    total_time: float = 0.0

    def append(self, entry: QueryLogEntry) -> None:
        self.entries.append(entry)
        if entry.time is not None:
            self.total_time += entry.time

    @property
    def last(self) -> QueryLogEntry | None:
        return self.entries[-1] if self.entries else None

    def clear(self) -> None:
        self.entries.clear()
        self.total_time = 0.0

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)


def is_read_only_statement(statement: str) -> bool:
    """True for select/explain/describe/show statements."""
    words = statement.lstrip().lstrip("(").split(None, 1)
    return bool(words) and words[0].lower() in READ_ONLY_STATEMENTS


def call_stack(limit: int = 8) -> str:
    """Describe the caller chain outside this package, innermost first."""
    frames = [
        frame
        for frame in reversed(traceback.extract_stack()[:-1])
        if not os.path.abspath(frame.filename).startswith(_DATA_DIR)
    ]
    if not frames:
        frames = list(reversed(traceback.extract_stack()[:-1]))
    parts = [f"{frames[0].filename}:{frames[0].lineno}"]
    parts.extend(frame.name for frame in frames[:limit])
    return " - ".join(parts)


class Connection:
    """Wrapper around one physical database link.

    Args:
        credentials: Source to connect to.
        table_prefix: Prefix prepended to table names by the data provider.
        log_level: 0 = off, 1 = keep a query log, 2 = also escalate errors.
        sparse: Close the physical link between statements.
        readonly: Refuse non read-only statements (convenience guard only,
            not an access control mechanism).
        slow_query_threshold: Seconds above which a logged statement is
            reported as slow.
        driver: Registered driver name or a DbDriver instance.
    """

    def __init__(
        self,
        credentials: DbSourceConfig,
        *,
        table_prefix: str = "",
        log_level: int = 0,
        sparse: bool = False,
        readonly: bool = False,
        slow_query_threshold: float = 1.0,
        driver: str | DbDriver = "mysql",
    ):
        self.credentials = credentials
        self.readonly = readonly
        self.log_level = int(log_level)
        self.sparse = sparse
        self.slow_query_threshold = slow_query_threshold
        self.query_log = QueryLog()
        self._driver = driver if isinstance(driver, DbDriver) else get_driver(driver, credentials)
        self._table_prefix = table_prefix
        self._outer_open = False
        self._closed = False
        self._last = QueryResult()

    def __repr__(self) -> str:
        state = "open" if self._outer_open else "closed"
        return f"<Connection {self._driver.host_info} {state}{' ro' if self.readonly else ''}>"

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> bool:
        """Open the connection. Returns True when usable.

        In sparse mode the physical link is released right after the check.
        """
        if self._closed:
            logger.warning("Refusing to reopen a closed connection to %s", self._driver.host_info)
            return False
        if self._outer_open:
            return True
        if not self._driver.open():
            self._last = QueryResult.failure(self._driver.connect_errno, self._driver.connect_error)
            return False
        self._outer_open = True
        self._table_prefix = self._driver.escape(self._table_prefix)
        self._inner_close()
        return True

    def close(self) -> None:
        """Close for good. Idempotent."""
        self._driver.close()
        self._outer_open = False
        self._closed = True

    def __del__(self) -> None:
        driver = getattr(self, "_driver", None)
        if driver is not None:
            driver.close()

    def __enter__(self) -> Connection:
        self.open()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _inner_open(self) -> bool:
        if self._outer_open and not self._driver.is_open:
            self._driver.open()
        return self._driver.is_open

    def _inner_close(self, force: bool = False) -> None:
        if self._driver.is_open and (self.sparse or force):
            self._driver.close()

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def execute(self, statement: str) -> QueryResult:
        """Execute one statement.

        Returns:
            QueryResult; falsy when the connection is closed, the statement
            was refused by the read-only guard, or it failed.
        """
        if not self._outer_open:
            logger.warning("Refusing to run a query against a closed connection")
            return QueryResult.failure(error="connection is closed")

        skip = self.readonly and not is_read_only_statement(statement)
        if skip and not self.log_level:
            return QueryResult.failure(error="statement refused on read-only connection")

        if not skip and not self._inner_open():
            self._last = QueryResult.failure(self._driver.connect_errno, self._driver.connect_error)
            return self._last

        try:
            if not self.log_level:
                result = self._execute_with_retry(statement)
            else:
                result = self._execute_logged(statement, skip)
        finally:
            self._inner_close()
        self._last = result
        return result

    def _execute_with_retry(self, statement: str) -> QueryResult:
        logger.debug("SQL: %s", statement)
        result = self._driver.query(statement)
        if result.errno in CONNECTION_LOST_ERRNOS:
            logger.info("Connection to %s lost (%s), reconnecting", self._driver.host_info, result.errno)
            self._inner_close(force=True)
            if self._inner_open():
                result = self._driver.query(statement)
        return result

    def _execute_logged(self, statement: str, skip: bool) -> QueryResult:
        stack = call_stack()
        if skip:
            result = QueryResult.failure(error="statement refused on read-only connection")
            elapsed: float | None = None
        else:
            site = stack.split(" - ", 1)[0].rsplit(os.sep, 1)[-1].replace("*/", "* /")
            start = time.perf_counter()
            result = self._execute_with_retry(f"/* {site} */ {statement}")
            elapsed = time.perf_counter() - start
            if elapsed > self.slow_query_threshold:
                logger.warning("Slow query (%.3fs): %s", elapsed, statement)
                logger.warning("Slow query @%s", stack)

        entry = QueryLogEntry(
            query=statement,
            time=elapsed,
            stack=stack,
            rows=result.affected_rows if result else 0,
            host_info=self._driver.host_info,
        )
        if result.errno:
            entry.error = result.error
            entry.errno = result.errno
            expected = result.errno == READ_ONLY_SERVER_ERRNO and result.error.startswith(READ_ONLY_SERVER_MESSAGE)
            if self.log_level >= 2 and not expected:
                logger.error("Query failed: %s", entry.to_dict())
        self.query_log.append(entry)
        return result

    def execute_to_map(self, statement: str, key_column: str | None = None) -> dict[Any, dict[str, Any]] | bool:
        """Execute and fold the rows into a dict.

        Rows are keyed by ``key_column`` when the first row has it, else by
        position (0, 1, 2...).

        Returns:
            The mapping, or False on failure.
        """
        result = self.execute(statement)
        if not result:
            return False
        if not result.rows:
            return {}
        if key_column is not None and key_column not in result.rows[0]:
            logger.warning("Invalid key column %r, falling back to positional indexing", key_column)
            key_column = None
        if key_column is None:
            return dict(enumerate(result.rows))
        return {row[key_column]: row for row in result.rows}

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._outer_open

    @property
    def inner_open(self) -> bool:
        return self._driver.is_open

    @property
    def table_prefix(self) -> str:
        return self._table_prefix

    @property
    def affected_rows(self) -> int:
        return self._last.affected_rows

    @property
    def insert_id(self) -> int:
        return self._last.insert_id

    @property
    def errno(self) -> int:
        return self._last.errno

    @property
    def error(self) -> str:
        return self._last.error

    @property
    def host_info(self) -> str:
        return self._driver.host_info

    @property
    def driver(self) -> DbDriver:
        return self._driver

    def escape(self, value: Any) -> str:
        """Escape a value for a single-quoted string literal."""
        return self._driver.escape(str(value))

    def queries(self) -> list[QueryLogEntry]:
        return list(self.query_log.entries)

    def last_query(self) -> QueryLogEntry | None:
        return self.query_log.last


__all__ = [
    "CONNECTION_LOST_ERRNOS",
    "Connection",
    "QueryLog",
    "QueryLogEntry",
    "QueryResult",
    "READ_ONLY_STATEMENTS",
    "call_stack",
    "is_read_only_statement",
]
