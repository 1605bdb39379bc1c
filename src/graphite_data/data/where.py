# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""WHERE / ORDER BY / LIMIT clause builders for record queries.

Search parameters are untrusted input (often straight from a form), so
every value goes through the model before it reaches the SQL text:

    >>> WhereBuilder(Login, escape).build({"login_id": ["1", 2, "x"], "foo": 1})
    ' WHERE t.`login_id` IN (1, 2)'

Unknown keys are skipped, sequences become IN lists, booleans render as
bit literals and everything else as an escaped literal.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from .fields import COMPOSITE_KINDS, FieldKind, is_numeric

if TYPE_CHECKING:
    from .model import DataModel

# Kinds whose list values are a single value, not an IN list
_SCALAR_LIST_KINDS = COMPOSITE_KINDS | {FieldKind.BOOLEAN}

RANDOM_ORDER_KEYS = ("random", "rand()")


class WhereBuilder:
    """Builds a WHERE clause from search parameters.

    Args:
        model_class: DataModel subclass whose schema validates the values.
        escape: Driver escape function for string literals.
        alias: Table alias used to qualify columns.
        factory: Builds the scratch instance, the class itself by default.
    """

    def __init__(
        self,
        model_class: type[DataModel],
        escape: Callable[[str], str],
        alias: str = "t",
        factory: Callable[[], DataModel] | None = None,
    ):
        self.model_class = model_class
        self.escape = escape
        self.alias = alias
        self.factory = factory or model_class

    def _scratch(self) -> DataModel:
        return self.factory()

    def column(self, name: str) -> str:
        return f"{self.alias}.`{name}`" if self.alias else f"`{name}`"

    def literal(self, scratch: DataModel, name: str, value: Any) -> str | None:
        """Sanitize one value through the model; None if rejected."""
        if not scratch.set(name, value):
            return None
        return scratch.fields[name].to_sql(scratch.get_stored(name), self.escape)

    def conditions(self, params: Mapping[str, Any]) -> list[str]:
        """One SQL condition per declared key of params."""
        fields = self.model_class.get_fields()
        scratch = self._scratch()
        result: list[str] = []
        for name, value in params.items():
            field = fields.get(name)
            if field is None:
                continue
            column = self.column(name)
            if value is None:
                result.append(f"{column} IS NULL")
            elif _is_sequence(value) and field.kind not in _SCALAR_LIST_KINDS:
                literals = [self.literal(scratch, name, item) for item in value]
                accepted = [item for item in literals if item is not None]
                result.append(f"{column} IN ({', '.join(accepted)})" if accepted else "1=0")
            else:
                literal = self.literal(scratch, name, value)
                result.append(f"{column} = {literal}" if literal is not None else "1=0")
        return result

    def build(self, params: Mapping[str, Any] | None) -> str:
        """Return ``" WHERE ..."`` or an empty string."""
        conditions = self.conditions(params or {})
        if not conditions:
            return ""
        return " WHERE " + " AND ".join(conditions)


class OrderBuilder:
    """Builds an ORDER BY clause from an order spec and an allow-list.

    Direction values: True/"asc" ascending, False/"desc" descending,
    anything else leaves the direction to the database. The keys "random"
    and "rand()" order randomly.
    """

    def __init__(self, allowed: Iterable[str]):
        self.allowed = list(allowed)

    @staticmethod
    def direction(value: Any) -> str:
        if value is False or (isinstance(value, str) and value.lower() == "desc"):
            return "DESC"
        if value is True or (isinstance(value, str) and value.lower() == "asc"):
            return "ASC"
        return ""

    def build(self, orders: Mapping[str, Any] | None) -> str:
        if not orders or not self.allowed:
            return ""
        terms: list[str] = []
        for name, value in orders.items():
            if name.lower() in RANDOM_ORDER_KEYS:
                term = "RAND()"
            elif name in self.allowed:
                term = f"`{name}`"
            else:
                continue
            direction = self.direction(value)
            terms.append(f"{term} {direction}" if direction else term)
        if not terms:
            return ""
        return "\nORDER BY " + ", ".join(terms)


def limit_clause(limit: Any, offset: Any = 0) -> str:
    """``LIMIT offset,count`` when both values are numeric, else empty."""
    if not (is_numeric(limit) and is_numeric(offset)):
        return ""
    return f"\nLIMIT {int(float(offset))},{int(float(limit))}"


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (Sequence, set, frozenset)) and not isinstance(value, (str, bytes, bytearray))


__all__ = ["OrderBuilder", "RANDOM_ORDER_KEYS", "WhereBuilder", "limit_clause"]
