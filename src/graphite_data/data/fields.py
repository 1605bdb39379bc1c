# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Field kinds, field descriptors and the Fields schema container.

A model declares its columns in a ``configure()`` hook::

    class Login(PassiveRecord):
        table = "Login"
        pkey = "login_id"

        @classmethod
        def configure(cls, f: Fields) -> None:
            f.field("login_id", Integer, min=1, guard=True)
            f.field("email", Email, max=255)
            f.field("disabled", Boolean, default=False)

Each Field knows how to validate and coerce assigned values (strict fields
reject out-of-bounds values, lenient fields clamp or truncate them), how to
render its stored value for reading and how to format it as a MySQL literal.

Stored (internal) forms:
    - ip: unsigned 32-bit int, rendered as dotted-quad on read
    - boolean: bool, rendered as b'0' / b'1' in SQL
    - datetime: 'YYYY-MM-DD HH:MM:SS' text
    - array/object/json: decoded Python values, JSON-encoded at the SQL boundary
"""

from __future__ import annotations

import ipaddress
import json
import math
import re
import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from datetime import time as dt_time
from decimal import Decimal
from enum import Enum
from typing import Any

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from .errors import SchemaError

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_IP = 0xFFFFFFFF

_INT_RE = re.compile(r"^[+-]?\d+$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}( \d{2}:\d{2}:\d{2})?$")
_RELATIVE_RE = re.compile(
    r"^([+-]?\d+)\s*(second|sec|minute|min|hour|day|week|month|year)s?(\s+ago)?$",
    re.IGNORECASE,
)
_UNITS = {
    "second": "seconds",
    "sec": "seconds",
    "minute": "minutes",
    "min": "minutes",
    "hour": "hours",
    "day": "days",
    "week": "weeks",
    "month": "months",
    "year": "years",
}


class FieldKind(str, Enum):
    """Supported field kinds. Values are the short codes used in schemas."""

    INTEGER = "i"
    FLOAT = "f"
    TIMESTAMP = "ts"
    DATETIME = "dt"
    BOOLEAN = "b"
    STRING = "s"
    EMAIL = "em"
    IP = "ip"
    ENUM = "e"
    ARRAY = "a"
    OBJECT = "o"
    JSON = "j"

    @classmethod
    def parse(cls, kind: Any) -> FieldKind:
        """Resolve a kind from an enum member, a short code or a long name."""
        if isinstance(kind, cls):
            return kind
        if isinstance(kind, str):
            key = kind.strip().lower()
            if key in _KIND_NAMES:
                return _KIND_NAMES[key]
        raise ValueError(f"Unknown field kind: {kind!r}")


_KIND_NAMES: dict[str, FieldKind] = {member.value: member for member in FieldKind}
_KIND_NAMES.update(
    {
        "int": FieldKind.INTEGER,
        "integer": FieldKind.INTEGER,
        "float": FieldKind.FLOAT,
        "timestamp": FieldKind.TIMESTAMP,
        "datetime": FieldKind.DATETIME,
        "date": FieldKind.DATETIME,
        "bool": FieldKind.BOOLEAN,
        "boolean": FieldKind.BOOLEAN,
        "str": FieldKind.STRING,
        "string": FieldKind.STRING,
        "email": FieldKind.EMAIL,
        "ip-address": FieldKind.IP,
        "enum": FieldKind.ENUM,
        "array": FieldKind.ARRAY,
        "serialized-array": FieldKind.ARRAY,
        "object": FieldKind.OBJECT,
        "serialized-object": FieldKind.OBJECT,
        "json": FieldKind.JSON,
    }
)

# Short aliases, used like column types in configure()
Integer = FieldKind.INTEGER
Float = FieldKind.FLOAT
Timestamp = FieldKind.TIMESTAMP
DateTime = FieldKind.DATETIME
Boolean = FieldKind.BOOLEAN
String = FieldKind.STRING
Email = FieldKind.EMAIL
IpAddress = FieldKind.IP
Enumeration = FieldKind.ENUM
Array = FieldKind.ARRAY
Object = FieldKind.OBJECT
Json = FieldKind.JSON

NUMERIC_KINDS = frozenset({FieldKind.INTEGER, FieldKind.FLOAT, FieldKind.TIMESTAMP, FieldKind.IP})
TIME_KINDS = frozenset({FieldKind.TIMESTAMP, FieldKind.DATETIME})
TEXT_KINDS = frozenset(
    {FieldKind.STRING, FieldKind.EMAIL, FieldKind.ARRAY, FieldKind.OBJECT, FieldKind.JSON}
)
COMPOSITE_KINDS = frozenset({FieldKind.ARRAY, FieldKind.OBJECT, FieldKind.JSON})


class _Rejected:
    """Marker returned by Field.coerce() when a value is not acceptable."""

    def __repr__(self) -> str:
        return "REJECTED"

    def __bool__(self) -> bool:
        return False


REJECTED: Any = _Rejected()


def is_numeric(value: Any) -> bool:
    """Return True for ints, finite floats and numeric strings (not bools)."""
    return not isinstance(value, bool) and _to_number(value) is not None


def resolve_time(value: Any, now: float | None = None) -> int:
    """Resolve a time expression to an integer epoch.

    Accepts epoch numbers, datetime/date objects, numeric strings, "now",
    "today", relative expressions ("5 days ago", "+1 week", "-2 hours")
    and anything dateutil can parse ("2024-01-31 12:00:00").

    Raises:
        ValueError: If the value cannot be interpreted as a point in time.
    """
    if now is None:
        now = time.time()
    if isinstance(value, bool):
        raise ValueError(f"Unsupported time value: {value!r}")
    if isinstance(value, (int, float, Decimal)):
        return int(value)
    if isinstance(value, datetime):
        return int(value.timestamp())
    if isinstance(value, date):
        return int(datetime.combine(value, dt_time()).timestamp())
    if not isinstance(value, str):
        raise ValueError(f"Unsupported time value: {value!r}")

    text = value.strip().lower()
    number = _to_number(text)
    if number is not None:
        return int(number)
    if text == "now":
        return int(now)
    if text in ("today", "midnight"):
        moment = datetime.fromtimestamp(now).replace(hour=0, minute=0, second=0, microsecond=0)
        return int(moment.timestamp())

    match = _RELATIVE_RE.match(text)
    if match:
        amount = int(match.group(1))
        if match.group(3):
            amount = -amount
        moment = datetime.fromtimestamp(now) + relativedelta(**{_UNITS[match.group(2).lower()]: amount})
        return int(moment.timestamp())

    try:
        return int(date_parser.parse(value).timestamp())
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Unrecognized time expression: {value!r}") from e


def encode_json(value: Any) -> str:
    """Encode a composite value for a text column."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _to_number(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, (bytes, bytearray)):
        try:
            value = value.decode("ascii")
        except UnicodeDecodeError:
            return None
    if isinstance(value, str):
        text = value.strip()
        if _INT_RE.match(text):
            return int(text)
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _decode_bytes(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return value


@dataclass(frozen=True)
class Field:
    """Declarative description of one column.

    Attributes:
        name: Column name, unique within a schema.
        kind: FieldKind (or short code / long name, resolved on creation).
        min: Lower numeric bound, or minimum length for text kinds. Time kinds
            accept date expressions, resolved to an epoch at definition time.
        max: Upper numeric bound, or maximum length for text kinds.
        default: Value applied by defaults().
        strict: Reject values outside bounds instead of clamping/truncating.
        guard: System-managed field (ids, audit stamps), skipped by
            set_all(..., guard=True).
        ddl: Explicit column definition, used verbatim instead of derivation.
        values: Allowed values for enum fields.
        sql: SQL fragment for report parameters (``{value}`` placeholder).
    """

    name: str
    kind: FieldKind
    min: Any = None
    max: Any = None
    default: Any = None
    strict: bool = False
    guard: bool = False
    ddl: str | None = None
    values: tuple[str, ...] = ()
    sql: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", FieldKind.parse(self.kind))
        object.__setattr__(self, "values", tuple(str(v) for v in self.values))
        if self.kind is FieldKind.ENUM and not self.values:
            raise ValueError(f"Enum field '{self.name}' requires values")

        if self.kind in TIME_KINDS:
            for attr in ("min", "max", "default"):
                value = getattr(self, attr)
                if value is not None and not is_numeric(value):
                    object.__setattr__(self, attr, resolve_time(value))

        if self.default is not None and self.coerce(self.default, bounded=False) is REJECTED:
            raise ValueError(
                f"Default {self.default!r} is not a valid {self.kind.name.lower()} value "
                f"for field '{self.name}'"
            )

    # -------------------------------------------------------------------------
    # Coercion
    # -------------------------------------------------------------------------

    def coerce(self, value: Any, bounded: bool = True) -> Any:
        """Validate and normalize a value to its stored form.

        Args:
            value: Incoming value.
            bounded: Apply min/max (clamping or rejection). Hydration from
                database rows passes False: stored data is taken as-is.

        Returns:
            The stored form, or REJECTED.
        """
        if value is None:
            return None
        handler: Callable[[Any, bool], Any] = getattr(self, f"_coerce_{self.kind.name.lower()}")
        return handler(value, bounded)

    def default_value(self) -> Any:
        """Return the stored form of the declared default."""
        return self.coerce(self.default, bounded=False)

    def _coerce_integer(self, value: Any, bounded: bool) -> Any:
        if self.strict and isinstance(value, bool):
            return REJECTED
        number = _to_number(value)
        if number is None:
            return REJECTED
        if isinstance(number, float):
            if self.strict and not number.is_integer():
                return REJECTED
            number = int(number)
        return self._bound(number, bounded)

    def _coerce_float(self, value: Any, bounded: bool) -> Any:
        if self.strict and isinstance(value, bool):
            return REJECTED
        number = _to_number(value)
        if number is None:
            return REJECTED
        return self._bound(float(number), bounded)

    def _coerce_timestamp(self, value: Any, bounded: bool) -> Any:
        if isinstance(value, bool):
            return REJECTED
        number = _to_number(value)
        if number is None:
            try:
                number = resolve_time(value)
            except ValueError:
                return REJECTED
        return self._bound(int(number), bounded)

    def _coerce_datetime(self, value: Any, bounded: bool) -> Any:
        value = _decode_bytes(value)
        try:
            if isinstance(value, datetime):
                if value.tzinfo is not None:
                    value = value.astimezone().replace(tzinfo=None)
                moment = value.replace(microsecond=0)
            elif isinstance(value, date):
                moment = datetime.combine(value, dt_time())
            elif isinstance(value, str) and _DATETIME_RE.match(value.strip()):
                text = value.strip()
                fmt = DATETIME_FORMAT if " " in text else "%Y-%m-%d"
                moment = datetime.strptime(text, fmt)
            else:
                moment = datetime.fromtimestamp(resolve_time(value))
        except (ValueError, OverflowError, OSError):
            return REJECTED

        if bounded and (self.min is not None or self.max is not None):
            epoch = int(moment.timestamp())
            bounded_epoch = self._bound(epoch, True)
            if bounded_epoch is REJECTED:
                return REJECTED
            if bounded_epoch != epoch:
                moment = datetime.fromtimestamp(bounded_epoch)
        return moment.strftime(DATETIME_FORMAT)

    def _coerce_boolean(self, value: Any, bounded: bool) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, (bytes, bytearray)):
            # bit(1) columns come back from the driver as bytes
            return any(value)
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            text = value.strip().lower()
            if text in ("1", "true"):
                return True
            if text in ("0", "false"):
                return False
        if self.strict:
            return REJECTED
        return bool(value)

    def _coerce_string(self, value: Any, bounded: bool) -> Any:
        value = _decode_bytes(value)
        if not isinstance(value, str):
            if self.strict or isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
                return REJECTED
            value = str(value)
        return self._bound_length(value, bounded, truncate=True)

    def _coerce_email(self, value: Any, bounded: bool) -> Any:
        value = _decode_bytes(value)
        if not isinstance(value, str):
            return REJECTED
        text = value.strip()
        if text == "" and not self.strict:
            return text
        if not _EMAIL_RE.match(text):
            return REJECTED
        return self._bound_length(text, bounded, truncate=False)

    def _coerce_ip(self, value: Any, bounded: bool) -> Any:
        value = _decode_bytes(value)
        if isinstance(value, bool):
            return REJECTED
        if isinstance(value, int):
            number = value
        elif isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                number = int(text)
            else:
                try:
                    number = int(ipaddress.IPv4Address(text))
                except ValueError:
                    return REJECTED
        else:
            return REJECTED
        if not 0 <= number <= MAX_IP:
            return REJECTED
        return number

    def _coerce_enum(self, value: Any, bounded: bool) -> Any:
        value = _decode_bytes(value)
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            return REJECTED
        text = str(value)
        return text if text in self.values else REJECTED

    def _coerce_array(self, value: Any, bounded: bool) -> Any:
        value = self._decode_composite(value)
        if isinstance(value, tuple):
            value = list(value)
        elif isinstance(value, Mapping):
            value = dict(value)
        if not isinstance(value, (list, dict)):
            return REJECTED
        return self._bound_encoded(value, bounded)

    def _coerce_object(self, value: Any, bounded: bool) -> Any:
        value = self._decode_composite(value)
        if not isinstance(value, Mapping):
            return REJECTED
        return self._bound_encoded(dict(value), bounded)

    def _coerce_json(self, value: Any, bounded: bool) -> Any:
        value = self._decode_composite(value)
        if value is REJECTED:
            return REJECTED
        if isinstance(value, tuple):
            value = list(value)
        return self._bound_encoded(value, bounded)

    def _decode_composite(self, value: Any) -> Any:
        value = _decode_bytes(value)
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                return REJECTED
        return value

    # -------------------------------------------------------------------------
    # Bounds
    # -------------------------------------------------------------------------

    def _bound(self, number: int | float, bounded: bool) -> Any:
        if not bounded:
            return number
        low = _to_number(self.min) if self.min is not None else None
        high = _to_number(self.max) if self.max is not None else None
        cast = type(number)
        if low is not None and number < low:
            if self.strict:
                return REJECTED
            number = cast(low)
        if high is not None and number > high:
            if self.strict:
                return REJECTED
            number = cast(high)
        return number

    def _bound_length(self, text: str, bounded: bool, truncate: bool) -> Any:
        if not bounded:
            return text
        high = _to_number(self.max) if self.max is not None else None
        low = _to_number(self.min) if self.min is not None else None
        if high is not None and len(text) > high:
            if self.strict or not truncate:
                return REJECTED
            text = text[: int(high)]
        if low is not None and len(text) < low and self.strict:
            return REJECTED
        return text

    def _bound_encoded(self, value: Any, bounded: bool) -> Any:
        try:
            encoded = encode_json(value)
        except (TypeError, ValueError):
            return REJECTED
        high = _to_number(self.max) if self.max is not None else None
        if bounded and high is not None and len(encoded) > high:
            return REJECTED
        return value

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def to_public(self, stored: Any) -> Any:
        """Return the value callers read through get()."""
        if stored is not None and self.kind is FieldKind.IP:
            return str(ipaddress.IPv4Address(stored))
        return stored

    def encode(self, stored: Any) -> Any:
        """Return the value as sent to the database column."""
        if stored is None:
            return None
        if self.kind in COMPOSITE_KINDS:
            return encode_json(stored)
        return stored

    def differs(self, stored: Any, persisted: Any) -> bool:
        """True when two stored values would persist differently.

        Composite values compare by their encoding, so {"a": 1} differs
        from {"a": True}. Scalars must match in type as well as value.
        """
        if self.kind in COMPOSITE_KINDS:
            return self.encode(stored) != self.encode(persisted)
        return type(stored) is not type(persisted) or stored != persisted

    def to_sql(self, stored: Any, escape: Callable[[str], str]) -> str:
        """Format a stored value as a MySQL literal.

        Booleans render as b'0'/b'1', numeric kinds unquoted, everything
        else as a single-quoted escaped string.
        """
        if stored is None:
            return "NULL"
        if self.kind is FieldKind.BOOLEAN:
            return "b'1'" if stored else "b'0'"
        if self.kind in NUMERIC_KINDS:
            return str(stored)
        return "'" + escape(str(self.encode(stored))) + "'"


class Fields:
    """Ordered collection of Field descriptors for one model.

    Frozen once the owning model has run its configure() hook.
    """

    def __init__(self, model: Any = None) -> None:
        self.model = model
        self._fields: dict[str, Field] = {}
        self._frozen = False

    def field(self, name: str, kind: Any, **constraints: Any) -> Field:
        """Declare a field.

        Raises:
            SchemaError: On unknown kind, invalid constraint, duplicate name,
                or when the schema is already frozen.
        """
        if self._frozen:
            raise SchemaError(self.model, f"cannot add field '{name}' to a frozen schema")
        if name in self._fields:
            raise SchemaError(self.model, f"field '{name}' declared twice")
        try:
            field = Field(name, kind, **constraints)
        except (TypeError, ValueError) as e:
            raise SchemaError(self.model, str(e)) from e
        self._fields[name] = field
        return field

    def freeze(self) -> Fields:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Field | None:
        return self._fields.get(name)

    def names(self) -> list[str]:
        return list(self._fields)

    def values(self) -> list[Field]:
        return list(self._fields.values())

    def items(self) -> list[tuple[str, Field]]:
        return list(self._fields.items())

    def guarded(self) -> list[str]:
        """Names of system-managed fields."""
        return [f.name for f in self._fields.values() if f.guard]

    def __getitem__(self, name: str) -> Field:
        return self._fields[name]

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)


__all__ = [
    "Array",
    "Boolean",
    "COMPOSITE_KINDS",
    "DATETIME_FORMAT",
    "DateTime",
    "Email",
    "Enumeration",
    "Field",
    "FieldKind",
    "Fields",
    "Float",
    "Integer",
    "IpAddress",
    "Json",
    "NUMERIC_KINDS",
    "Object",
    "REJECTED",
    "String",
    "TEXT_KINDS",
    "TIME_KINDS",
    "Timestamp",
    "encode_json",
    "is_numeric",
    "resolve_time",
]
