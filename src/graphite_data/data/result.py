# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""QueryResult: outcome of one executed statement."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class QueryResult:
    """Success/error union returned by drivers and Connection.execute().

    A failed statement is never raised: ``ok`` is False and ``errno`` /
    ``error`` carry the server (or client) diagnostics. ``bool(result)``
    is ``result.ok`` so callers can write ``if not conn.execute(sql): ...``.

    Attributes:
        ok: True when the statement executed.
        rows: Result rows as dicts (empty for statements without a result set).
        columns: Column names of the result set, in select order.
        affected_rows: Rows changed (or returned, for selects).
        insert_id: AUTO_INCREMENT value generated by the statement, 0 if none.
        errno: Error number, 0 on success.
        error: Error message, empty on success.
    """

    ok: bool = True
    rows: list[dict[str, Any]] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)
    affected_rows: int = 0
    insert_id: int = 0
    errno: int = 0
    error: str = ""

    def __bool__(self) -> bool:
        return self.ok

    def __iter__(self):
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    @classmethod
    def failure(cls, errno: int = 0, error: str = "") -> QueryResult:
        return cls(ok=False, affected_rows=-1, errno=errno, error=error)

    def first(self) -> dict[str, Any] | None:
        """First row or None."""
        return self.rows[0] if self.rows else None

    def scalar(self) -> Any:
        """First column of the first row, or None."""
        row = self.first()
        if not row:
            return None
        return next(iter(row.values()))


__all__ = ["QueryResult"]
