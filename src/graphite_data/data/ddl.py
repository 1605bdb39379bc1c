# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""MySQL DDL derivation from field descriptors.

Column definitions are a pure function of the field: kind, bounds, default
and whether the field is the primary key. An explicit ``ddl`` on the field
wins over derivation.

Example:
    >>> derive_column_definition(Field("age", Integer, min=0, max=200))
    '`age` tinyint(3) unsigned NOT NULL DEFAULT 0'
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from .drivers.mysql import escape_string
from .errors import SchemaError
from .fields import DATETIME_FORMAT, Field, FieldKind, is_numeric

if TYPE_CHECKING:
    from .record import PassiveRecord

# Columns maintained by the server on every write
AUTO_UPDATE_COLUMNS = ("updated_dts", "recordChanged")

_TEXT_SIZES = (
    (16777215, "longtext"),
    (65535, "mediumtext"),
    (255, "text"),
)
_UNSIGNED_SIZES = (
    (4294967295, "bigint(20) unsigned"),
    (16777215, "int(10) unsigned"),
    (65535, "mediumint unsigned"),
    (255, "smallint(5) unsigned"),
    (0, "tinyint(3) unsigned"),
)
_SIGNED_SIZES = (
    (2147483647, "bigint(20)"),
    (8388607, "int(11)"),
    (32767, "mediumint(8)"),
    (127, "smallint(6)"),
    (0, "tinyint(4)"),
)


def _quote(value: object) -> str:
    return "'" + escape_string(value) + "'"


def _integer_type(field: Field) -> str:
    low = float(field.min) if is_numeric(field.min) else None
    high = float(field.max) if is_numeric(field.max) else None
    unsigned = low is not None and low >= 0
    sizes = _UNSIGNED_SIZES if unsigned else _SIGNED_SIZES
    fallback = "int(10) unsigned" if unsigned else "int(11)"
    if high is None:
        return fallback
    for limit, column_type in sizes:
        if high > limit:
            return column_type
    return fallback


def _text_type(field: Field) -> str:
    high = float(field.max) if is_numeric(field.max) else None
    if high is None:
        return "longtext"
    for limit, column_type in _TEXT_SIZES:
        if high > limit:
            return column_type
    return f"varchar({int(high)})"


def derive_column_definition(field: Field, pkey: str | None = None) -> str:
    """Derive the MySQL column definition for a field.

    Args:
        field: Field descriptor.
        pkey: Name of the table's primary key; that column gets AUTO_INCREMENT
            and no implicit default.

    Raises:
        SchemaError: If the kind has no column mapping.
    """
    kind = field.kind
    name = f"`{field.name}`"

    if kind is FieldKind.FLOAT:
        ddl = f"{name} float NOT NULL"
        if is_numeric(field.default):
            ddl += f" DEFAULT {float(field.default)!r}"
        return ddl

    if kind is FieldKind.BOOLEAN:
        flag = "1" if field.default_value() else "0"
        return f"{name} bit(1) NOT NULL DEFAULT b'{flag}'"

    if kind is FieldKind.IP:
        default = field.default_value() or 0
        return f"{name} int(10) unsigned NOT NULL DEFAULT {int(default)}"

    if kind in (FieldKind.STRING, FieldKind.EMAIL, FieldKind.ARRAY, FieldKind.OBJECT, FieldKind.JSON):
        ddl = f"{name} {_text_type(field)} NOT NULL"
        if field.default is not None:
            default = field.encode(field.default_value())
            ddl += f" DEFAULT {_quote(default)}"
        return ddl

    if kind in (FieldKind.INTEGER, FieldKind.TIMESTAMP):
        ddl = f"{name} {_integer_type(field)} NOT NULL"
        if is_numeric(field.default):
            ddl += f" DEFAULT {int(float(field.default))}"
        elif field.name != pkey:
            ddl += " DEFAULT 0"
        if field.name == pkey:
            ddl += " AUTO_INCREMENT"
        return ddl

    if kind is FieldKind.ENUM:
        ddl = f"{name} enum({', '.join(_quote(v) for v in field.values)}) NOT NULL"
        if field.default is not None:
            ddl += f" DEFAULT {_quote(field.default_value())}"
        return ddl

    if kind is FieldKind.DATETIME:
        if field.name in AUTO_UPDATE_COLUMNS:
            return f"{name} timestamp NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP"
        column_type = "timestamp" if field.name.endswith("_dts") else "datetime"
        ddl = f"{name} {column_type} NOT NULL"
        if field.default is not None:
            moment = datetime.fromtimestamp(int(field.default)).strftime(DATETIME_FORMAT)
            ddl += f" DEFAULT '{moment}'"
        return ddl

    raise SchemaError(field.name, f"no column definition for field kind '{kind.value}'")


def column_definition(field: Field, pkey: str | None = None) -> str:
    """Explicit ``ddl`` of the field if set, otherwise the derived definition."""
    if field.ddl:
        return field.ddl
    return derive_column_definition(field, pkey)


def is_required_column(field: Field, pkey: str | None = None) -> bool:
    """True when an INSERT must supply the column (NOT NULL without default)."""
    ddl = column_definition(field, pkey).upper()
    if "AUTO_INCREMENT" in ddl or " DEFAULT " in ddl:
        return False
    return "NOT NULL" in ddl


def _key_columns(key: str | tuple[str, ...] | list[str]) -> str:
    columns = (key,) if isinstance(key, str) else tuple(key)
    return ", ".join(f"`{column}`" for column in columns)


def create_table_sql(record_class: type[PassiveRecord], prefix: str = "") -> str:
    """CREATE TABLE IF NOT EXISTS statement for a record class.

    Raises:
        SchemaError: If the schema is unusable or a column cannot be derived.
    """
    fields = record_class.check_schema()
    pkey = record_class.pkey
    lines = [f"  {column_definition(field, pkey)}" for field in fields.values()]
    for key in record_class.keys:
        lines.append(f"  KEY ({_key_columns(key)})")
    for key in record_class.ukeys:
        lines.append(f"  UNIQUE KEY ({_key_columns(key)})")
    for column in AUTO_UPDATE_COLUMNS:
        if column in fields and column not in record_class.keys:
            lines.append(f"  KEY (`{column}`)")
    lines.append(f"  PRIMARY KEY(`{pkey}`)")
    body = ",\n".join(lines)
    return f"CREATE TABLE IF NOT EXISTS `{record_class.table_name(prefix)}` (\n{body}\n)"


def drop_table_sql(record_class: type[PassiveRecord], prefix: str = "") -> str:
    record_class.check_schema()
    return f"DROP TABLE IF EXISTS `{record_class.table_name(prefix)}`"


__all__ = [
    "AUTO_UPDATE_COLUMNS",
    "column_definition",
    "create_table_sql",
    "derive_column_definition",
    "drop_table_sql",
    "is_required_column",
]
