# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""DataModel: schema-validated value store shared by records and reports."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .errors import UnknownFieldError
from .fields import REJECTED, Fields


class DataModel:
    """Base class holding one value per declared field.

    Subclasses declare their schema in ``configure()``. The Fields container
    is built once per class, frozen, and shared by every instance.

    Example:
        class Search(DataModel):
            @classmethod
            def configure(cls, f: Fields) -> None:
                f.field("q", String, max=64)
                f.field("page", Integer, min=1, default=1)
    """

    @classmethod
    def configure(cls, f: Fields) -> None:
        """Declare fields. Override in subclasses."""

    @classmethod
    def get_fields(cls) -> Fields:
        """Return the frozen schema of this class, building it on first use."""
        fields = cls.__dict__.get("_fields_cache")
        if fields is None:
            fields = Fields(cls)
            cls.configure(fields)
            fields.freeze()
            cls._fields_cache = fields
        return fields

    def __init__(self, values: Mapping[str, Any] | None = None, *, defaults: bool = False) -> None:
        self.fields = self.get_fields()
        self._values: dict[str, Any] = dict.fromkeys(self.fields.names())
        if defaults:
            self.defaults()
        if values:
            self.set_all(values)

    def defaults(self) -> None:
        """Apply every declared default, replacing current values."""
        for name, field in self.fields.items():
            if field.default is not None:
                self._values[name] = field.default_value()

    def get(self, name: str) -> Any:
        """Return the public form of a field value.

        Raises:
            UnknownFieldError: If the field is not declared.
        """
        field = self.fields.get(name)
        if field is None:
            raise UnknownFieldError(type(self), name)
        return field.to_public(self._values[name])

    def get_stored(self, name: str) -> Any:
        """Return the internal (stored) form of a field value."""
        if name not in self.fields:
            raise UnknownFieldError(type(self), name)
        return self._values[name]

    def set(self, name: str, value: Any) -> bool:
        """Validate and assign a value.

        Returns:
            True if assigned, False if the field is unknown or the value was
            rejected (the previous value is kept).
        """
        field = self.fields.get(name)
        if field is None:
            return False
        stored = field.coerce(value)
        if stored is REJECTED:
            return False
        self._values[name] = stored
        return True

    def get_all(self) -> dict[str, Any]:
        return {name: self.get(name) for name in self.fields}

    def set_all(self, values: Mapping[str, Any], *, guard: bool = False) -> dict[str, Any]:
        """Assign several values, skipping undeclared keys.

        Args:
            values: Field name to value mapping.
            guard: When True, system-managed (guard) fields are skipped too.

        Returns:
            The entries that were not assigned (unknown, guarded or rejected).
        """
        leftovers: dict[str, Any] = {}
        for name, value in values.items():
            field = self.fields.get(name)
            if field is None or (guard and field.guard) or not self.set(name, value):
                leftovers[name] = value
        return leftovers

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        if name not in self.fields:
            raise UnknownFieldError(type(self), name)
        self.set(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.get_all()!r})"


__all__ = ["DataModel"]
