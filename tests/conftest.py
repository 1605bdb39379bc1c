# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: an in-memory fake MySQL server and database contexts.

Tests never need a running MySQL. The ``fake`` driver talks to a
FakeServer object that:

- records every statement it receives (site comments stripped)
- answers statements from scripted responses matched by substring
- keeps per-link session variables (``SET @x = ...`` / ``SELECT @x``),
  lost when the link is closed
- counts physical opens and closes
- can refuse connections per host and drop the link on demand

Example:
    def test_find(server, provider):
        server.respond("FROM `Login`", rows=[{"login_id": 1, "loginname": "ada"}])
        logins = provider.find(Login)
        assert server.last.startswith("SELECT")
"""

from __future__ import annotations

import copy
import re
from typing import Any

import pytest

from graphite_data.config import DbConfig, DbSourceConfig
from graphite_data.data.drivers import DRIVERS, DbDriver, register_driver
from graphite_data.data.provider import MySQLDataProvider
from graphite_data.data.result import QueryResult
from graphite_data.database import Database

_SITE_COMMENT_RE = re.compile(r"^/\*.*?\*/\s*", re.DOTALL)
_SET_VAR_RE = re.compile(r"^SET\s+@(\w+)\s*=\s*(.+?);?$", re.IGNORECASE)
_GET_VAR_RE = re.compile(r"^SELECT\s+@(\w+)\s*;?$", re.IGNORECASE)


class FakeServer:
    """Scriptable stand-in for a MySQL server."""

    def __init__(self) -> None:
        self.raw: list[str] = []
        self.statements: list[str] = []
        self.hosts: list[str | None] = []
        self.opens = 0
        self.closes = 0
        self.fail_hosts: set[str | None] = set()
        self.drop_next = 0
        self.next_insert_id = 0
        self._rules: list[tuple[str, dict[str, Any]]] = []

    def respond(
        self,
        match: str,
        rows: list[dict[str, Any]] | None = None,
        *,
        errno: int = 0,
        error: str = "",
        affected_rows: int | None = None,
        insert_id: int = 0,
    ) -> None:
        """Answer statements containing ``match``. Later rules win."""
        self._rules.append(
            (
                match,
                {
                    "rows": rows,
                    "errno": errno,
                    "error": error,
                    "affected_rows": affected_rows,
                    "insert_id": insert_id,
                },
            )
        )

    def fail(self, match: str, errno: int = 1064, error: str = "You have an error in your SQL syntax") -> None:
        self.respond(match, errno=errno, error=error)

    @property
    def last(self) -> str:
        return self.statements[-1] if self.statements else ""

    def handle(self, driver: FakeDriver, statement: str) -> QueryResult:
        self.raw.append(statement)
        text = _SITE_COMMENT_RE.sub("", statement, count=1).strip()
        self.statements.append(text)
        self.hosts.append(driver.credentials.host)

        if self.drop_next > 0:
            self.drop_next -= 1
            driver.session.clear()
            return QueryResult.failure(2006, "MySQL server has gone away")

        match = _SET_VAR_RE.match(text)
        if match:
            driver.session[match.group(1)] = match.group(2).strip("'\"")
            return QueryResult()
        match = _GET_VAR_RE.match(text)
        if match:
            key = f"@{match.group(1)}"
            return QueryResult(rows=[{key: driver.session.get(match.group(1))}], columns=[key], affected_rows=1)

        for needle, answer in reversed(self._rules):
            if needle in text:
                return self._answer(answer)

        if text.split(None, 1)[0].lower() in ("select", "show", "explain", "describe"):
            return QueryResult()
        if text.upper().startswith("INSERT"):
            return QueryResult(affected_rows=1, insert_id=self.next_insert_id)
        return QueryResult(affected_rows=1)

    @staticmethod
    def _answer(answer: dict[str, Any]) -> QueryResult:
        if answer["errno"]:
            return QueryResult.failure(answer["errno"], answer["error"])
        rows = copy.deepcopy(answer["rows"]) if answer["rows"] is not None else []
        affected = answer["affected_rows"]
        return QueryResult(
            rows=rows,
            columns=list(rows[0]) if rows else [],
            affected_rows=len(rows) if affected is None else affected,
            insert_id=answer["insert_id"],
        )


class FakeDriver(DbDriver):
    """DbDriver bound to a FakeServer (set by the ``fake_driver`` fixture)."""

    server: FakeServer

    def __init__(self, credentials: DbSourceConfig):
        super().__init__(credentials)
        self._open = False
        self.session: dict[str, Any] = {}

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> bool:
        if self._open:
            return True
        if self.credentials.host in self.server.fail_hosts:
            self.connect_errno = 2002
            self.connect_error = f"Can't connect to MySQL server on '{self.credentials.host}'"
            return False
        self.server.opens += 1
        self._open = True
        self.connect_errno = 0
        self.connect_error = ""
        return True

    def close(self) -> None:
        if not self._open:
            return
        self.server.closes += 1
        self._open = False
        self.session = {}

    def query(self, statement: str) -> QueryResult:
        if not self._open:
            return QueryResult.failure(2006, "MySQL server has gone away")
        return self.server.handle(self, statement)

    def escape(self, value: str) -> str:
        return value.replace("\\", "\\\\").replace("'", "\\'")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def server() -> FakeServer:
    """Fresh fake server."""
    return FakeServer()


@pytest.fixture
def fake_driver(server: FakeServer):
    """Register the ``fake`` driver bound to the test's server."""

    class BoundFakeDriver(FakeDriver):
        pass

    BoundFakeDriver.server = server
    register_driver("fake", BoundFakeDriver)
    yield "fake"
    DRIVERS.pop("fake", None)


@pytest.fixture
def credentials() -> DbSourceConfig:
    """Complete credentials of the primary source."""
    return DbSourceConfig(host="db1", user="app", password="secret", name="app")


@pytest.fixture
def config() -> DbConfig:
    """Primary-only configuration."""
    return DbConfig(host="db1", user="app", password="secret", name="app")


@pytest.fixture
def db(config: DbConfig, fake_driver: str):
    """Connected Database on the fake server."""
    database = Database(config, driver=fake_driver)
    database.connect()
    yield database
    database.close()


@pytest.fixture
def provider(db: Database) -> MySQLDataProvider:
    """MySQLDataProvider over the fake database."""
    return MySQLDataProvider(db)
