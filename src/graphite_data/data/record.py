# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""PassiveRecord: persisted entity with diff tracking and lifecycle hooks.

A PassiveRecord never talks to the database itself. It holds two value
sets, the current in-memory values and the values last seen in the
database, and exposes the difference. MySQLDataProvider turns that
difference into INSERT/UPDATE statements and calls the hooks around them.

Construction modes::

    Login(defaults=True)                       # all defaults
    Login(pkey=42)                             # primary key only, pending load
    Login({"loginname": "ada"})                # populated, not persisted
    Login({"loginname": "ada"}, defaults=True) # defaults, then populated
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .errors import SchemaError
from .fields import REJECTED, FieldKind, Fields
from .model import DataModel

if TYPE_CHECKING:
    from ..auth import AuthContext

logger = logging.getLogger(__name__)

_JOINER_RE = re.compile(r"^\w+$")


class PassiveRecord(DataModel):
    """Base class for persisted entities.

    Class attributes:
        table: Table name, without the connection's table prefix.
        pkey: Name of the primary key field (must be declared).
        source: Named data source the entity lives on ("default" = primary).
        joiners: Joiner name to joiner table name.
        keys: Indexed columns, each a name or a tuple of names.
        ukeys: Unique keys, same shape as keys.
    """

    table: str = ""
    pkey: str = ""
    source: str = "default"
    joiners: dict[str, str] = {}
    keys: list[str | tuple[str, ...]] = []
    ukeys: list[str | tuple[str, ...]] = []

    @classmethod
    def check_schema(cls) -> Fields:
        """Return the schema, raising SchemaError if the entity is unusable."""
        fields = cls.get_fields()
        if not cls.pkey or cls.pkey not in fields:
            raise SchemaError(cls, "record class defined with no pkey, or pkey not declared")
        if not cls.table:
            raise SchemaError(cls, "record class defined with no table")
        return fields

    def __init__(
        self,
        values: Mapping[str, Any] | None = None,
        *,
        pkey: Any = None,
        defaults: bool = False,
        auth: AuthContext | None = None,
    ) -> None:
        self.check_schema()
        self.auth = auth
        super().__init__(values, defaults=defaults)
        self._persisted: dict[str, Any] = dict.fromkeys(self.fields.names())
        if pkey is not None:
            self.set(self.pkey, pkey)

    # -------------------------------------------------------------------------
    # Table metadata
    # -------------------------------------------------------------------------

    @classmethod
    def table_name(cls, prefix: str = "") -> str:
        return f"{prefix}{cls.table}"

    @classmethod
    def select_sql(cls, prefix: str = "") -> str:
        """Base SELECT for find/count. Override to add joins or aggregates."""
        columns = ", ".join(f"t.`{name}`" for name in cls.get_fields())
        return f"SELECT {columns} FROM `{cls.table_name(prefix)}` t"

    @classmethod
    def get_table(cls, joiner: str | None = None, prefix: str = "") -> str | None:
        """Return the table name, or the name of a joiner table.

        Known joiners come from ``joiners``; any other word-like joiner name
        derives ``<table>_<joiner>``. Malformed names return None.
        """
        if not joiner:
            return cls.table_name(prefix)
        if joiner in cls.joiners:
            return f"{prefix}{cls.joiners[joiner]}"
        if _JOINER_RE.match(joiner):
            return f"{prefix}{cls.table}_{joiner}"
        logger.warning("Requested invalid joiner table %r for %s", joiner, cls.__name__)
        return None

    # -------------------------------------------------------------------------
    # Diff tracking
    # -------------------------------------------------------------------------

    @property
    def pkey_value(self) -> Any:
        return self.get(self.pkey)

    def get_diff(self) -> dict[str, Any]:
        """Fields whose value differs from the last persisted value."""
        return {name: self.get(name) for name in self._values if self._changed(name)}

    def has_diff(self) -> bool:
        return any(self._changed(name) for name in self._values)

    def _changed(self, name: str) -> bool:
        return self.fields[name].differs(self._values[name], self._persisted[name])

    def un_diff(self, keys: list[str] | None = None) -> None:
        """Mark the given fields (all when None) as persisted."""
        for name in self.fields.names() if keys is None else keys:
            if name in self._values:
                self._persisted[name] = self._values[name]

    def persisted(self, name: str) -> Any:
        """Public form of the last persisted value of a field."""
        return self.fields[name].to_public(self._persisted[name])

    # -------------------------------------------------------------------------
    # Hydration
    # -------------------------------------------------------------------------

    def load_from_row(self, row: Mapping[str, Any]) -> dict[str, Any] | bool:
        """Populate from a database row and mark every field as persisted.

        Row values the schema cannot read are stored as None and returned
        with the leftovers. Fields absent from the row keep their current
        value, so partial projections do not wipe unrelated fields.

        Returns:
            The row entries that were not consumed by the schema or post_load(),
            or False when the row carries no primary key value.
        """
        if row.get(self.pkey) is None:
            return False
        leftovers: dict[str, Any] = {}
        for name, value in row.items():
            field = self.fields.get(name)
            if field is None:
                leftovers[name] = value
                continue
            stored = field.coerce(value, bounded=False)
            if stored is REJECTED:
                logger.debug("%s.%s: unreadable row value %r", type(self).__name__, name, value)
                leftovers[name] = value
                stored = None
            self._values[name] = stored
        self.un_diff()
        return self.post_load(leftovers)

    def post_load(self, extra: dict[str, Any]) -> dict[str, Any]:
        """Consume projected columns outside the schema. Return what is left."""
        return extra

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def current_actor_id(self) -> int:
        """login_id of the authenticated actor, 0 when anonymous."""
        if self.auth is None:
            return 0
        return int(getattr(self.auth, "login_id", 0) or 0)

    def before_insert(self) -> None:
        """Stamp created_uts when declared as a timestamp and still unset."""
        field = self.fields.get("created_uts")
        if field is not None and field.kind is FieldKind.TIMESTAMP and not self._values["created_uts"]:
            self.set("created_uts", "now")

    def after_insert(self) -> None:
        pass

    def before_update(self) -> None:
        pass

    def after_update(self) -> None:
        pass

    def before_delete(self) -> None:
        pass


class TransientRecord(DataModel):
    """Schema-validated value holder that is never persisted."""


__all__ = ["PassiveRecord", "TransientRecord"]
