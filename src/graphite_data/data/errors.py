# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exceptions raised by the data layer.

Only programmer and configuration mistakes are raised. Runtime conditions
(failed statements, rejected values, malformed rows) are reported through
return values and never surface here.
"""

from __future__ import annotations

from typing import Any


class GraphiteDataError(Exception):
    """Base class for data layer errors."""


class SchemaError(GraphiteDataError):
    """Raised when an entity schema is unusable as configured.

    Examples: no primary key, primary key not declared as a field, no table
    name, unknown field kind, enum field without values.
    """

    def __init__(self, model: Any, message: str):
        self.model = model
        name = model if isinstance(model, str) else getattr(model, "__name__", type(model).__name__)
        super().__init__(f"{name}: {message}")


class UnknownFieldError(GraphiteDataError, KeyError):
    """Raised when reading a field the schema does not declare."""

    def __init__(self, model: Any, field: str):
        self.model = model
        self.field = field
        name = getattr(model, "__name__", type(model).__name__)
        super().__init__(f"Field '{field}' is not declared on {name}")

    def __str__(self) -> str:
        return str(self.args[0])


class UnknownEntityError(GraphiteDataError, LookupError):
    """Raised when an entity identifier cannot be resolved to a record class."""

    def __init__(self, entity: Any):
        self.entity = entity
        super().__init__(f"Entity '{entity}' is not registered")


__all__ = ["GraphiteDataError", "SchemaError", "UnknownFieldError", "UnknownEntityError"]
