# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""MySQLDataProvider: record queries and CRUD over a Database.

The provider turns record state into SQL text and executes it on the
connections owned by a Database:

- reads (find, count, load) go to the entity's data source when one is
  configured and reachable, else to the read connection
- writes (insert, upsert, update, delete) go to the entity's data source
  when one is configured and reachable, else to the primary connection

Routing writes to an entity's own source is deliberate: an entity that
lives on a secondary database is written there, not on the primary.

Execution failures never raise. Methods return ``False`` when a
statement failed and ``None`` when there was nothing to do.

Example:
    provider = MySQLDataProvider(db)

    logins = provider.find(Login, {"disabled": False}, {"loginname": "asc"}, 20, 0)
    for login_id, login in logins.items():
        print(login_id, login["loginname"])

    login = db.build(Login, {"loginname": "ada", "password": "secret"})
    provider.insert(login)          # -> new login_id
    login["realname"] = "Ada"
    provider.update(login)          # -> True
    provider.update(login)          # -> None, nothing changed
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from .ddl import is_required_column
from .errors import SchemaError
from .record import PassiveRecord
from .where import OrderBuilder, WhereBuilder, limit_clause

if TYPE_CHECKING:
    from ..database import Database
    from .connection import Connection
    from .result import QueryResult

logger = logging.getLogger(__name__)


class MySQLDataProvider:
    """Query builder and CRUD engine for PassiveRecord entities.

    Args:
        db: Database providing connections and the entity registry.
    """

    def __init__(self, db: Database):
        self.db = db

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def resolve(self, entity: str | type[PassiveRecord]) -> type[PassiveRecord]:
        return self.db.resolve(entity)

    def where_clause(self, record_class: type[PassiveRecord], params: Mapping[str, Any] | None, conn: Connection) -> str:
        builder = WhereBuilder(record_class, conn.escape, factory=lambda: self.db.build(record_class))
        return builder.build(params)

    def select_sql(
        self,
        record_class: type[PassiveRecord],
        conn: Connection,
        params: Mapping[str, Any] | None = None,
        orders: Mapping[str, Any] | None = None,
        limit: Any = None,
        offset: Any = 0,
        allowed_orders: Iterable[str] | None = None,
    ) -> str:
        """Full SELECT text for find()."""
        allowed = record_class.get_fields().names() if allowed_orders is None else allowed_orders
        return (
            record_class.select_sql(conn.table_prefix)
            + self.where_clause(record_class, params, conn)
            + f"\nGROUP BY t.`{record_class.pkey}`"
            + OrderBuilder(allowed).build(orders)
            + limit_clause(limit, offset)
        )

    @staticmethod
    def _literal(record: PassiveRecord, name: str, conn: Connection) -> str:
        return record.fields[name].to_sql(record.get_stored(name), conn.escape)

    def _pkey_condition(self, record: PassiveRecord, conn: Connection) -> str:
        return f"`{record.pkey}` = {self._literal(record, record.pkey, conn)}"

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def find(
        self,
        entity: str | type[PassiveRecord],
        params: Mapping[str, Any] | None = None,
        orders: Mapping[str, Any] | None = None,
        limit: Any = None,
        offset: Any = 0,
        *,
        allowed_orders: Iterable[str] | None = None,
    ) -> dict[Any, PassiveRecord] | bool:
        """Fetch records matching search parameters.

        Args:
            entity: Entity class or registered name.
            params: Field name to value (a sequence means IN). Unknown keys
                are ignored.
            orders: Field name to direction (True/"asc", False/"desc").
            limit: Row count; paging applies only when limit and offset
                are both numeric.
            offset: First row.
            allowed_orders: Orderable fields, every declared field by default.

        Returns:
            Records keyed by primary key value in result order, or False
            if the statement failed.
        """
        record_class = self.resolve(entity)
        conn = self.db.reader_for(record_class)
        result = conn.execute(
            self.select_sql(record_class, conn, params, orders, limit, offset, allowed_orders)
        )
        if not result:
            return False

        records: dict[Any, PassiveRecord] = {}
        for row in result.rows:
            record = self.db.build(record_class)
            if record.load_from_row(row) is False:
                logger.warning("Skipping %s row without primary key", record_class.__name__)
                continue
            records[record.pkey_value] = record
        return records

    def count(self, entity: str | type[PassiveRecord], params: Mapping[str, Any] | None = None) -> int | bool:
        """Count records matching search parameters. False on failure."""
        record_class = self.resolve(entity)
        conn = self.db.reader_for(record_class)
        sql = (
            f"SELECT COUNT(t.`{record_class.pkey}`) AS `count`"
            f" FROM `{record_class.table_name(conn.table_prefix)}` t"
            + self.where_clause(record_class, params, conn)
        )
        result = conn.execute(sql)
        if not result:
            return False
        row = result.first()
        if row is None:
            return False
        return int(row["count"])

    def load(self, record: PassiveRecord) -> bool | None:
        """Reload a record by its primary key.

        Returns:
            True when found and loaded, False when not found or failed,
            None when the primary key is unset.
        """
        if record.pkey_value is None:
            return None
        record_class = type(record)
        conn = self.db.reader_for(record_class)
        sql = self.select_sql(record_class, conn, {record.pkey: record.get_stored(record.pkey)}, limit=1)
        result = conn.execute(sql)
        if not result or not result.rows:
            return False
        return record.load_from_row(result.rows[0]) is not False

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def insert(self, record: PassiveRecord) -> Any:
        """INSERT the changed columns of a record.

        Returns:
            The primary key value, None when the record has no changes,
            False when the statement failed.
        """
        return self._insert(record, upsert=False)

    def upsert(self, record: PassiveRecord) -> Any:
        """INSERT ... ON DUPLICATE KEY UPDATE the changed columns.

        The primary key is always sent when set. Columns that the table
        requires (NOT NULL, no default) must be part of the statement.

        Raises:
            SchemaError: If a required column has no value.
        """
        return self._insert(record, upsert=True)

    def _insert(self, record: PassiveRecord, upsert: bool) -> Any:
        if not record.has_diff():
            return None
        snapshot = dict(record._values)
        record.before_insert()
        columns = list(record.get_diff())
        if not columns:
            return None

        if upsert:
            if record.get_stored(record.pkey) is not None and record.pkey not in columns:
                columns.append(record.pkey)
            try:
                columns.extend(self._required_columns(record, columns))
            except SchemaError:
                # undo the hook stamps, the record was never written
                record._values.update(snapshot)
                raise

        conn = self.db.writer_for(type(record))
        values = [self._literal(record, name, conn) for name in columns]
        sql = (
            f"INSERT INTO `{record.table_name(conn.table_prefix)}`"
            f" (`{'`, `'.join(columns)}`)"
            f"\nVALUES ({', '.join(values)})"
        )
        if upsert:
            updates = ", ".join(f"`{name}` = {value}" for name, value in zip(columns, values))
            sql += f"\nON DUPLICATE KEY UPDATE {updates}"

        result = conn.execute(sql)
        if not result:
            return False
        if result.insert_id:
            record.set(record.pkey, result.insert_id)
        record.un_diff()
        record.after_insert()
        return record.pkey_value

    def _required_columns(self, record: PassiveRecord, columns: list[str]) -> list[str]:
        extra: list[str] = []
        missing: list[str] = []
        for name, field in record.fields.items():
            if name in columns or not is_required_column(field, record.pkey):
                continue
            if record.get_stored(name) is None:
                missing.append(name)
            else:
                extra.append(name)
        if missing:
            raise SchemaError(
                type(record),
                f"upsert needs values for required columns without default: {', '.join(missing)}",
            )
        return extra

    def update(self, record: PassiveRecord) -> bool | None:
        """UPDATE the changed columns of a record by primary key.

        Returns:
            True on success, None when the primary key is unset or nothing
            changed, False when the statement failed.
        """
        if record.pkey_value is None or not record.has_diff():
            return None
        record.before_update()
        diff = record.get_diff()
        if not diff:
            return None

        conn = self.db.writer_for(type(record))
        assignments = ", ".join(f"`{name}` = {self._literal(record, name, conn)}" for name in diff)
        sql = (
            f"UPDATE `{record.table_name(conn.table_prefix)}` SET {assignments}"
            f"\nWHERE {self._pkey_condition(record, conn)}"
        )
        if not conn.execute(sql):
            return False
        record.un_diff()
        record.after_update()
        return True

    def delete(self, record: PassiveRecord) -> bool | None:
        """DELETE a record by primary key. None when the key is unset."""
        if record.pkey_value is None:
            return None
        record.before_delete()
        conn = self.db.writer_for(type(record))
        sql = f"DELETE FROM `{record.table_name(conn.table_prefix)}`\nWHERE {self._pkey_condition(record, conn)}"
        return bool(conn.execute(sql))

    def delete_batch(self, records: Iterable[PassiveRecord]) -> bool | None:
        """DELETE several records, one statement per entity type.

        Records without a primary key are skipped.

        Returns:
            None when nothing was deleted, else True if every statement
            succeeded.
        """
        groups: dict[type[PassiveRecord], list[PassiveRecord]] = {}
        for record in records:
            if not isinstance(record, PassiveRecord):
                logger.warning("Skipping %r: not a PassiveRecord", record)
                continue
            if record.pkey_value is None:
                continue
            record.before_delete()
            groups.setdefault(type(record), []).append(record)
        if not groups:
            return None

        results = []
        for record_class, members in groups.items():
            conn = self.db.writer_for(record_class)
            keys = [self._literal(record, record.pkey, conn) for record in members]
            results.append(self._delete_keys(record_class, keys, conn))
        return all(results)

    def delete_by_primary_keys(self, entity: str | type[PassiveRecord], keys: Iterable[Any]) -> bool | None:
        """DELETE records by primary key values.

        Every key is sanitized through the entity; keys the primary key
        field does not accept unchanged are dropped.
        """
        record_class = self.resolve(entity)
        scratch = self.db.build(record_class)
        conn = self.db.writer_for(record_class)
        literals: list[str] = []
        for value in keys:
            if value is None:
                continue
            if scratch.set(record_class.pkey, value) and str(scratch.get(record_class.pkey)) == str(value):
                literals.append(self._literal(scratch, record_class.pkey, conn))
        if not literals:
            return None
        return self._delete_keys(record_class, literals, conn)

    def _delete_keys(self, record_class: type[PassiveRecord], literals: list[str], conn: Connection) -> bool:
        sql = (
            f"DELETE FROM `{record_class.table_name(conn.table_prefix)}`"
            f"\nWHERE `{record_class.pkey}` IN ({', '.join(literals)})"
        )
        result: QueryResult = conn.execute(sql)
        return bool(result)


__all__ = ["MySQLDataProvider"]
