# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""MySQL data-access layer: declarative records, query building, connections.

This package provides an ActiveRecord-like persistence layer where records
stay passive: they describe their schema and track changes, while a data
provider turns that state into SQL and executes it.

Components:
    Fields, Field, FieldKind: Declarative schema with per-kind validation.
    PassiveRecord: Persisted entity with diff tracking and lifecycle hooks.
    TransientRecord: Schema-validated model that is never persisted.
    MySQLDataProvider: find/count/load and insert/upsert/update/delete.
    PassiveReport, ReportDataProvider: Parameterized read-only reports.
    DataBroker: Routes entity operations to their provider.
    Connection: Lazy, logging, reconnecting wrapper around a driver.
    QueryResult: Success/error union returned by every execution.

Failure Model:
    The layer distinguishes two kinds of failure:

    - Schema mistakes (no primary key, no table, unknown kind) raise
      SchemaError as soon as the entity is used.
    - Runtime failures (bad statement, lost connection, read-only refusal)
      never raise: they return False, None or a falsy QueryResult, and the
      caller must check.

Example:
    Declaring and persisting an entity::

        from graphite_data.data import Fields, PassiveRecord, MySQLDataProvider
        from graphite_data.data import Integer, String, Boolean

        class Article(PassiveRecord):
            table = "Article"
            pkey = "article_id"

            @classmethod
            def configure(cls, f: Fields) -> None:
                f.field("article_id", Integer, min=1, guard=True)
                f.field("title", String, max=255, strict=True)
                f.field("published", Boolean, default=False)

        provider = MySQLDataProvider(db)
        article = db.build(Article, {"title": "Hello"}, defaults=True)
        article_id = provider.insert(article)

        drafts = provider.find(Article, {"published": False}, {"title": "asc"})
"""

from .broker import DataBroker
from .connection import Connection, QueryLog, QueryLogEntry
from .ddl import column_definition, create_table_sql, derive_column_definition, drop_table_sql
from .errors import GraphiteDataError, SchemaError, UnknownEntityError, UnknownFieldError
from .fields import (
    Array,
    Boolean,
    DateTime,
    Email,
    Enumeration,
    Field,
    FieldKind,
    Fields,
    Float,
    Integer,
    IpAddress,
    Json,
    Object,
    String,
    Timestamp,
)
from .model import DataModel
from .provider import MySQLDataProvider
from .record import PassiveRecord, TransientRecord
from .report import PassiveReport, ReportDataProvider
from .result import QueryResult

__all__ = [
    # Models
    "DataModel",
    "PassiveRecord",
    "TransientRecord",
    "PassiveReport",
    # Providers
    "MySQLDataProvider",
    "ReportDataProvider",
    "DataBroker",
    # Connection
    "Connection",
    "QueryLog",
    "QueryLogEntry",
    "QueryResult",
    # DDL
    "column_definition",
    "create_table_sql",
    "derive_column_definition",
    "drop_table_sql",
    # Exceptions
    "GraphiteDataError",
    "SchemaError",
    "UnknownEntityError",
    "UnknownFieldError",
    # Field definitions
    "Field",
    "FieldKind",
    "Fields",
    "Array",
    "Boolean",
    "DateTime",
    "Email",
    "Enumeration",
    "Float",
    "Integer",
    "IpAddress",
    "Json",
    "Object",
    "String",
    "Timestamp",
]
