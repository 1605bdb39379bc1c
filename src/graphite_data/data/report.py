# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Read-only reports: parameterized queries whose rows are kept as-is.

A report declares its parameters as fields, each with an SQL fragment in
which ``{value}`` is replaced by the sanitized SQL literal. The report's
query template receives the AND-joined fragments in place of ``{where}``::

    class ActiveLogins(PassiveReport):
        query = "SELECT t.`login_id`, t.`loginname` FROM `Login` t WHERE {where}"
        orderables = ("loginname", "login_id")
        orders = {"loginname": "asc"}

        @classmethod
        def configure(cls, f: Fields) -> None:
            f.field("disabled", Boolean, sql="t.`disabled` = {value}")
            f.field("ids", Array, sql="t.`login_id` IN ({value})")

    report = ReportDataProvider(db).fetch(ActiveLogins, {"disabled": False})
    rows = report.to_list()
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .fields import FieldKind
from .model import DataModel
from .where import OrderBuilder, limit_clause

if TYPE_CHECKING:
    from ..database import Database
    from .connection import Connection

logger = logging.getLogger(__name__)


class PassiveReport(DataModel):
    """Base class for reports.

    Class attributes:
        query: SELECT template with a ``{where}`` placeholder.
        orderables: Columns the caller may order by.
        orders: Default ordering, used when the caller gives none.
        count: Default page size.
        start: Default first row.
    """

    query: str = ""
    orderables: tuple[str, ...] = ()
    orders: dict[str, Any] = {}
    count: int | None = 10000
    start: int = 0

    def __init__(self, values: Mapping[str, Any] | None = None, *, defaults: bool = False) -> None:
        super().__init__(values, defaults=defaults)
        self.data: list[dict[str, Any]] = []

    def get_orders(self, orders: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Requested (or default) orders restricted to the orderable columns."""
        requested = orders or self.orders
        return {key: value for key, value in requested.items() if key in self.orderables}

    def set_data(self, rows: list[dict[str, Any]]) -> None:
        self.data = list(rows)

    def to_list(self) -> list[dict[str, Any]]:
        return list(self.data)

    def to_json(self) -> str:
        return json.dumps(self.data, default=str)

    def on_load(self) -> None:
        """Post-process self.data after a fetch. Override in subclasses."""


class ReportDataProvider:
    """Runs PassiveReport queries on the read connection.

    Reports are read-only: insert() and update() always return False.
    """

    def __init__(self, db: Database):
        self.db = db

    def where_clause(self, report: PassiveReport, conn: Connection) -> str:
        terms: list[str] = []
        for name, field in report.fields.items():
            stored = report.get_stored(name)
            if stored is None or not field.sql:
                continue
            if field.kind is FieldKind.ARRAY:
                items = stored.values() if isinstance(stored, dict) else stored
                value = ", ".join("'" + conn.escape(item) + "'" for item in items)
            else:
                value = field.to_sql(stored, conn.escape)
            terms.append(field.sql.replace("{value}", value))
        return " AND ".join(terms) if terms else "1"

    def fetch(
        self,
        report: type[PassiveReport] | PassiveReport,
        params: Mapping[str, Any] | None = None,
        orders: Mapping[str, Any] | None = None,
        count: Any = None,
        start: Any = 0,
    ) -> PassiveReport | bool:
        """Run a report.

        Args:
            report: Report class or instance.
            params: Parameter values, sanitized through the report's fields.
            orders: Ordering, restricted to the report's orderables.
            count: Page size, the report's default when None.
            start: First row.

        Returns:
            The report with its rows in ``data``, or False on failure.
        """
        if isinstance(report, type):
            report = report()
        if params:
            report.set_all(params)

        conn = self.db.reader
        sql = report.query.replace("{where}", self.where_clause(report, conn))
        sql += OrderBuilder(report.orderables).build(report.get_orders(orders))
        if count is None:
            count, start = report.count, report.start
        sql += limit_clause(count, start)

        result = conn.execute(sql)
        if not result:
            return False
        report.set_data(result.rows)
        report.on_load()
        return report

    def insert(self, record: Any) -> bool:
        logger.warning("Refusing to insert through a report provider")
        return False

    def update(self, record: Any) -> bool:
        logger.warning("Refusing to update through a report provider")
        return False


__all__ = ["PassiveReport", "ReportDataProvider"]
