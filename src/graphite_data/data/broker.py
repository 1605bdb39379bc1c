# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""DataBroker: routes entity operations to their data provider."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from .provider import MySQLDataProvider

if TYPE_CHECKING:
    from ..database import Database
    from .record import PassiveRecord


class DataBroker:
    """Single entry point for entity persistence.

    Every entity uses the default MySQLDataProvider unless a specific
    provider is registered for it (by class or registered name).

    Usage:
        broker = DataBroker(db)
        login = broker.by_pk(Login, 7)
        login["realname"] = "Ada"
        broker.save(login)
    """

    def __init__(self, db: Database, providers: Mapping[str, Any] | None = None):
        self.db = db
        self.default = MySQLDataProvider(db)
        self.providers: dict[str, Any] = dict(providers or {})

    def set_provider(self, entity: str | type[PassiveRecord], provider: Any) -> None:
        self.providers[self._name(entity)] = provider

    def provider_for(self, entity: str | type[PassiveRecord] | PassiveRecord) -> Any:
        if not isinstance(entity, (str, type)):
            entity = type(entity)
        return self.providers.get(self._name(entity), self.default)

    @staticmethod
    def _name(entity: str | type[PassiveRecord]) -> str:
        return entity if isinstance(entity, str) else entity.__name__

    def fetch(
        self,
        entity: str | type[PassiveRecord],
        params: Mapping[str, Any] | None = None,
        orders: Mapping[str, Any] | None = None,
        limit: Any = None,
        offset: Any = 0,
    ) -> dict[Any, PassiveRecord] | bool:
        return self.provider_for(entity).find(entity, params, orders, limit, offset)

    def count(self, entity: str | type[PassiveRecord], params: Mapping[str, Any] | None = None) -> int | bool:
        return self.provider_for(entity).count(entity, params)

    def by_pk(self, entity: str | type[PassiveRecord], pkey: Any) -> PassiveRecord | None:
        """Single record by primary key, None when missing or on failure."""
        record = self.db.build(entity, pkey=pkey)
        if record.pkey_value is None:
            return None
        return record if self.provider_for(entity).load(record) else None

    def load(self, record: PassiveRecord) -> bool | None:
        """Refresh a record from the database by its primary key."""
        return self.provider_for(record).load(record)

    def insert(self, record: PassiveRecord) -> Any:
        return self.provider_for(record).insert(record)

    def update(self, record: PassiveRecord) -> bool | None:
        return self.provider_for(record).update(record)

    def save(self, record: PassiveRecord) -> Any:
        """Insert when the primary key is unset, update otherwise."""
        if record.pkey_value is None:
            return self.insert(record)
        return self.update(record)

    def delete(self, record: PassiveRecord) -> bool | None:
        return self.provider_for(record).delete(record)

    def delete_batch(self, records: Iterable[PassiveRecord]) -> bool | None:
        return self.default.delete_batch(records)


__all__ = ["DataBroker"]
