# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Database configuration dataclasses.

DbConfig describes the primary source plus the global settings shared by
every connection of a request (table prefix, logging, sparse mode). An
optional read-only replica (``ro``) and named secondary sources hang off
it as DbSourceConfig instances.

Usage:
    config = DbConfig(host="localhost", user="app", password="secret", name="app")

    config = DbConfig.from_mapping({
        "host": "db1", "user": "app", "pass": "secret", "name": "app",
        "tabl": "g_", "log": 1,
        "ro": {"host": "db2", "user": "ro", "pass": "secret", "name": "app"},
        "archive": {"host": "db3", "user": "app", "pass": "secret", "name": "old"},
    })

    config = DbConfig.from_ini("/etc/graphite/db.ini")

INI layout::

    [db]
    host = localhost
    user = app
    password = secret
    name = app
    tabl = g_
    log = 1
    sparse = false
    slow_query_threshold = 1.0

    [db:ro]
    host = replica
    ...

    [db:archive]
    host = archive
    ...
"""

from __future__ import annotations

import configparser
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Original configuration keys mapped to attribute names
_KEY_ALIASES = {
    "pass": "password",
    "sock": "socket",
    "slowQueryThreshold": "slow_query_threshold",
}

_SOURCE_KEYS = ("host", "user", "password", "name", "port", "socket", "sparse")
_GLOBAL_KEYS = ("tabl", "log", "slow_query_threshold")
_TRUE = ("1", "true", "yes", "on")


def _normalize(mapping: Mapping[str, Any]) -> dict[str, Any]:
    return {_KEY_ALIASES.get(key, key): value for key, value in mapping.items()}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE
    return bool(value)


def _as_port(value: Any) -> int | None:
    if value in (None, ""):
        return None
    return int(value)


@dataclass(frozen=True)
class DbSourceConfig:
    """Credentials of one database source.

    Attributes:
        host: Server host name.
        user: Login user.
        password: Login password.
        name: Schema (database) name.
        port: TCP port, server default when None.
        socket: Unix socket path, used instead of host/port when set.
        sparse: Per-source sparse mode; None inherits the global setting.
    """

    host: str | None = None
    user: str | None = None
    password: str | None = None
    name: str | None = None
    port: int | None = None
    socket: str | None = None
    sparse: bool | None = None

    @property
    def is_complete(self) -> bool:
        """True when host, user, password and schema name are all set."""
        return all(value not in (None, "") for value in (self.host, self.user, self.password, self.name))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> DbSourceConfig:
        values = _normalize(mapping)
        sparse = values.get("sparse")
        return cls(
            host=values.get("host"),
            user=values.get("user"),
            password=values.get("password"),
            name=values.get("name"),
            port=_as_port(values.get("port")),
            socket=values.get("socket") or None,
            sparse=None if sparse in (None, "") else _as_bool(sparse),
        )

    def __repr__(self) -> str:
        return (
            f"DbSourceConfig(host={self.host!r}, user={self.user!r}, name={self.name!r}, "
            f"port={self.port!r}, socket={self.socket!r}, sparse={self.sparse!r})"
        )


@dataclass
class DbConfig:
    """Primary source plus settings shared by all connections.

    Attributes:
        host: Primary server host.
        user: Primary login user.
        password: Primary login password.
        name: Primary schema name.
        port: Primary TCP port.
        socket: Primary unix socket.
        tabl: Table name prefix.
        log: 0 = off, 1 = keep a query log, 2 = also escalate errors.
        sparse: Close the physical link between statements.
        slow_query_threshold: Seconds above which a logged statement is
            reported as slow.
        ro: Read-only replica used for reads.
        sources: Named secondary sources.
    """

    host: str | None = None
    user: str | None = None
    password: str | None = None
    name: str | None = None
    port: int | None = None
    socket: str | None = None
    tabl: str = ""
    log: int = 0
    sparse: bool = False
    slow_query_threshold: float = 1.0
    ro: DbSourceConfig | None = None
    sources: dict[str, DbSourceConfig] = field(default_factory=dict)

    @property
    def primary(self) -> DbSourceConfig:
        return DbSourceConfig(
            host=self.host,
            user=self.user,
            password=self.password,
            name=self.name,
            port=self.port,
            socket=self.socket,
            sparse=self.sparse,
        )

    def source(self, name: str) -> DbSourceConfig | None:
        """Return the named secondary source, or None."""
        return self.sources.get(name)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> DbConfig:
        """Build from the flat mapping shape (``pass``, ``sock``, nested sources)."""
        values = _normalize(mapping)
        ro = values.get("ro")
        sources = {
            key: DbSourceConfig.from_mapping(value)
            for key, value in values.items()
            if isinstance(value, Mapping) and key != "ro"
        }
        return cls(
            host=values.get("host"),
            user=values.get("user"),
            password=values.get("password"),
            name=values.get("name"),
            port=_as_port(values.get("port")),
            socket=values.get("socket") or None,
            tabl=values.get("tabl") or "",
            log=int(values.get("log") or 0),
            sparse=_as_bool(values.get("sparse", False)),
            slow_query_threshold=float(values.get("slow_query_threshold", 1.0)),
            ro=DbSourceConfig.from_mapping(ro) if isinstance(ro, Mapping) else None,
            sources=sources,
        )

    @classmethod
    def from_ini(cls, path: str | Path, section: str = "db") -> DbConfig:
        """Build from an INI file: ``[db]``, ``[db:ro]`` and ``[db:<name>]``."""
        config = configparser.ConfigParser(interpolation=None)
        config.optionxform = str  # type: ignore[assignment,method-assign]
        if not config.read(path):
            raise FileNotFoundError(f"Config file not found: {path}")

        mapping: dict[str, Any] = dict(config[section]) if config.has_section(section) else {}
        prefix = f"{section}:"
        for name in config.sections():
            if name.startswith(prefix):
                mapping[name[len(prefix):]] = dict(config[name])
        return cls.from_mapping(mapping)

    def to_mapping(self) -> dict[str, Any]:
        """Flat mapping (password omitted) for diagnostics."""
        result: dict[str, Any] = {key: getattr(self, key) for key in _SOURCE_KEYS[:-1] if key != "password"}
        result.update({key: getattr(self, key) for key in _GLOBAL_KEYS})
        result["sparse"] = self.sparse
        if self.ro is not None:
            result["ro"] = self.ro.host
        result["sources"] = sorted(self.sources)
        return result

    def __repr__(self) -> str:
        return f"DbConfig({self.to_mapping()!r})"


__all__ = ["DbConfig", "DbSourceConfig"]
