# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Database: request-scope owner of connections, entities and auth."""

from __future__ import annotations

import importlib
import logging
import pkgutil
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .auth import ANONYMOUS
from .data.connection import Connection, QueryLogEntry
from .data.errors import UnknownEntityError
from .data.record import PassiveRecord

if TYPE_CHECKING:
    from .auth import AuthContext
    from .config import DbConfig, DbSourceConfig

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[..., Connection]


class Database:
    """Connections, entity registry and auth context of one request.

    Replaces process-wide singletons: every request (or test) builds its
    own Database, so table prefix, query logs and cached connections never
    leak between instances.

    Features:
    - Primary (writer) and read (reader) connections with replica fallback
    - Lazy named secondary connections via build_for_source()
    - Entity registration via register() or discover()
    - Entity construction via build(), with the auth context injected

    Usage:
        db = Database(DbConfig.from_ini("db.ini"), auth=StaticAuth(login_id=7))
        db.connect()
        db.discover("graphite_data.entities")

        provider = MySQLDataProvider(db)
        logins = provider.find("Login", {"disabled": False})

        db.close()
    """

    def __init__(
        self,
        config: DbConfig,
        auth: AuthContext | None = None,
        driver: str = "mysql",
    ):
        """Initialize the database context.

        Args:
            config: Primary source, replica, secondary sources and globals.
            auth: Authenticated actor, anonymous when None.
            driver: Registered driver name used for every connection.
        """
        self.config = config
        self.auth: AuthContext = auth if auth is not None else ANONYMOUS
        self.driver = driver
        self.entities: dict[str, type[PassiveRecord]] = {}
        self._writer: Connection | None = None
        self._reader: Connection | None = None
        self._sources: dict[str, Connection | None] = {}

    def __enter__(self) -> Database:
        self.connect()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def make_connection(self, credentials: DbSourceConfig, *, readonly: bool = False) -> Connection:
        """Create a connection sharing this database's global settings."""
        sparse = credentials.sparse if credentials.sparse is not None else self.config.sparse
        return Connection(
            credentials,
            table_prefix=self.config.tabl,
            log_level=self.config.log,
            sparse=sparse,
            readonly=readonly,
            slow_query_threshold=self.config.slow_query_threshold,
            driver=self.driver,
        )

    def connect(self) -> bool:
        """Open the primary connection and, when configured, the replica.

        The replica becomes the read connection. If the primary cannot be
        opened but the replica can, the replica serves writes too and the
        site runs read-only. Calling it again while connected reuses the
        open connections.

        Returns:
            True when at least one connection is open.
        """
        if self._writer is not None:
            if self._writer.is_open or self.reader.is_open:
                return True
            # previous attempt failed, release what it left behind
            for conn in (self._writer, self._reader):
                if conn is not None:
                    conn.close()
            self._writer = self._reader = None

        if not self.config.host:
            logger.info("No database host configured, skipping connect")
            return False

        writer = self.make_connection(self.config.primary)
        writer.open()
        reader = writer

        ro = self.config.ro
        if ro is not None and ro.user:
            replica = self.make_connection(ro, readonly=True)
            if replica.open():
                reader = replica
            else:
                logger.warning("Could not connect to read-only database, reading from primary")

        if not writer.is_open:
            logger.error("Could not connect to read/write database!")
            if reader.is_open:
                logger.error("Site operating in read-only mode.")
                writer = reader
            else:
                logger.error("Could not connect to read-only database!")

        self._writer, self._reader = writer, reader
        return writer.is_open or reader.is_open

    @property
    def writer(self) -> Connection:
        """Read/write connection (the replica in read-only mode)."""
        if self._writer is None:
            self.connect()
        if self._writer is None:
            self._writer = self.make_connection(self.config.primary)
        return self._writer

    @property
    def reader(self) -> Connection:
        """Connection used for reads: the replica when available."""
        if self._reader is None:
            return self.writer
        return self._reader

    def build_for_source(self, source: str) -> Connection | None:
        """Connection to a named secondary source, cached per name.

        Returns None for "default", for unknown or incomplete sources and
        when the source cannot be opened (callers fall back to the primary).
        """
        if source == "default":
            return None
        if source in self._sources:
            return self._sources[source]

        credentials = self.config.source(source)
        conn: Connection | None = None
        if credentials is not None and credentials.is_complete:
            conn = self.make_connection(credentials)
            if not conn.open():
                logger.warning("Falling back to primary on secondary db query (source %r)", source)
                conn = None
        self._sources[source] = conn
        return conn

    def reader_for(self, record_class: type[PassiveRecord]) -> Connection:
        """Read connection for an entity, honoring its data source."""
        return self.build_for_source(record_class.source) or self.reader

    def writer_for(self, record_class: type[PassiveRecord]) -> Connection:
        """Write connection for an entity, honoring its data source."""
        return self.build_for_source(record_class.source) or self.writer

    def connections(self) -> list[Connection]:
        """Distinct connections opened so far."""
        result: list[Connection] = []
        for conn in (self._writer, self._reader, *self._sources.values()):
            if conn is not None and all(conn is not seen for seen in result):
                result.append(conn)
        return result

    def queries(self) -> list[QueryLogEntry]:
        """Query log entries of every connection, writer first."""
        return [entry for conn in self.connections() for entry in conn.queries()]

    @property
    def total_query_time(self) -> float:
        return sum(conn.query_log.total_time for conn in self.connections())

    def close(self) -> None:
        """Close every connection. Idempotent."""
        for conn in self.connections():
            conn.close()

    # -------------------------------------------------------------------------
    # Entities
    # -------------------------------------------------------------------------

    def register(self, record_class: type[PassiveRecord]) -> type[PassiveRecord]:
        """Register an entity class under its class name.

        Raises:
            SchemaError: If the class has no usable schema.
        """
        record_class.check_schema()
        self.entities[record_class.__name__] = record_class
        return record_class

    def discover(self, *packages: str) -> list[type[PassiveRecord]]:
        """Register PassiveRecord classes found in ``<package>.<entity>.record``.

        Example:
            db.discover("graphite_data.entities")
            # Registers: Login, LoginLog, Role
        """
        registered: list[type[PassiveRecord]] = []
        for package_path in packages:
            for record_class in self._find_record_classes(package_path):
                if record_class.__name__ not in self.entities:
                    registered.append(self.register(record_class))
        return registered

    def resolve(self, entity: str | type[PassiveRecord]) -> type[PassiveRecord]:
        """Entity class for a registered name or a PassiveRecord subclass.

        Raises:
            UnknownEntityError: If the entity cannot be resolved.
        """
        if isinstance(entity, type) and issubclass(entity, PassiveRecord):
            return entity
        if isinstance(entity, str) and entity in self.entities:
            return self.entities[entity]
        raise UnknownEntityError(entity)

    def build(self, entity: str | type[PassiveRecord], *args: Any, **kwargs: Any) -> PassiveRecord:
        """New instance of an entity, bound to this database's auth context."""
        record_class = self.resolve(entity)
        kwargs.setdefault("auth", self.auth)
        return record_class(*args, **kwargs)

    def _find_record_classes(self, package_path: str) -> list[type[PassiveRecord]]:
        result: list[type[PassiveRecord]] = []
        try:
            package = importlib.import_module(package_path)
        except ImportError:
            return result

        package_dir = getattr(package, "__path__", None)
        if not package_dir:
            return result

        for _, name, is_pkg in pkgutil.iter_modules(package_dir):
            if not is_pkg:
                continue
            try:
                module = importlib.import_module(f"{package_path}.{name}.record")
            except ImportError:
                continue
            for attr_name in dir(module):
                obj = getattr(module, attr_name)
                if (
                    isinstance(obj, type)
                    and issubclass(obj, PassiveRecord)
                    and obj is not PassiveRecord
                    and obj.__module__ == module.__name__
                    and obj.table
                ):
                    result.append(obj)
        return result


__all__ = ["Database"]
