# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""CLI entry point for graphite-data (graphite-data command).

Schema management and diagnostics for entities built on the data layer.

Commands:
    ddl create: Print CREATE TABLE statements for entities
    ddl drop: Print DROP TABLE statements for entities
    fields: Show the field schema of an entity
    check: Open every configured database source and report its status
    version: Show version info

Entities are given either as a bundled entity name (Login, Role, LoginLog)
or as ``package.module:ClassName``.
"""

from __future__ import annotations

import importlib
import logging

import click
from rich.console import Console
from rich.table import Table

from .config import DbConfig
from .data.ddl import column_definition, create_table_sql, drop_table_sql
from .data.errors import GraphiteDataError, SchemaError
from .data.record import PassiveRecord
from .database import Database

console = Console()

BUNDLED_ENTITIES = "graphite_data.entities"


def load_entity(spec: str) -> type[PassiveRecord]:
    """Resolve ``module:Class`` or a bundled entity name to a record class.

    Raises:
        click.BadParameter: If the entity cannot be imported.
    """
    module_name, _, class_name = spec.rpartition(":")
    if not module_name:
        module_name, class_name = BUNDLED_ENTITIES, spec
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import '{module_name}': {e}") from e
    record_class = getattr(module, class_name, None)
    if not (isinstance(record_class, type) and issubclass(record_class, PassiveRecord)):
        raise click.BadParameter(f"'{spec}' is not a PassiveRecord class")
    return record_class


def _print_sql(sql: str) -> None:
    console.print(f"{sql};", markup=False, highlight=False, soft_wrap=True)


@click.group()
@click.version_option(package_name="graphite-data")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """Graphite data layer - MySQL records, DDL and connections."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


@main.group("ddl")
def ddl_group() -> None:
    """Generate table DDL for entities."""


@ddl_group.command("create")
@click.argument("entities", nargs=-1, required=True)
@click.option("--prefix", default="", help="Table name prefix.")
def ddl_create(entities: tuple[str, ...], prefix: str) -> None:
    """Print CREATE TABLE statements."""
    for spec in entities:
        record_class = load_entity(spec)
        try:
            _print_sql(create_table_sql(record_class, prefix))
        except SchemaError as e:
            raise click.ClickException(str(e)) from e


@ddl_group.command("drop")
@click.argument("entities", nargs=-1, required=True)
@click.option("--prefix", default="", help="Table name prefix.")
def ddl_drop(entities: tuple[str, ...], prefix: str) -> None:
    """Print DROP TABLE statements."""
    for spec in entities:
        record_class = load_entity(spec)
        try:
            _print_sql(drop_table_sql(record_class, prefix))
        except SchemaError as e:
            raise click.ClickException(str(e)) from e


@main.command("fields")
@click.argument("entity")
def fields_cmd(entity: str) -> None:
    """Show the field schema of an entity."""
    record_class = load_entity(entity)
    try:
        fields = record_class.check_schema()
    except SchemaError as e:
        raise click.ClickException(str(e)) from e

    table = Table(title=f"{record_class.__name__} ({record_class.table})")
    table.add_column("Field", style="cyan")
    table.add_column("Kind")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Default")
    table.add_column("Flags")
    table.add_column("DDL")

    for field in fields.values():
        flags = []
        if field.name == record_class.pkey:
            flags.append("[yellow]pkey[/yellow]")
        if field.strict:
            flags.append("strict")
        if field.guard:
            flags.append("guard")
        try:
            ddl = column_definition(field, record_class.pkey)
        except GraphiteDataError as e:
            ddl = f"[red]{e}[/red]"
        table.add_row(
            field.name,
            field.kind.name.lower(),
            "" if field.min is None else str(field.min),
            "" if field.max is None else str(field.max),
            "" if field.default is None else repr(field.default),
            " ".join(flags),
            ddl,
        )

    console.print(table)


@main.command("check")
@click.option("--config", "-c", "config_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--driver", default="mysql", help="Database driver name.")
def check_cmd(config_path: str, driver: str) -> None:
    """Open every configured database source and report its status."""
    config = DbConfig.from_ini(config_path)
    db = Database(config, driver=driver)

    table = Table(title="Database Sources")
    table.add_column("Source", style="cyan")
    table.add_column("Host")
    table.add_column("Schema")
    table.add_column("Status")

    def add(name: str, credentials, readonly: bool = False) -> bool:
        conn = db.make_connection(credentials, readonly=readonly)
        ok = conn.open()
        status = "[green]ok[/green]" if ok else f"[red]failed[/red] {conn.error}".rstrip()
        table.add_row(name, credentials.socket or credentials.host or "-", credentials.name or "-", status)
        conn.close()
        return ok

    results = [add("default", config.primary)]
    if config.ro is not None:
        results.append(add("ro", config.ro, readonly=True))
    for name, credentials in sorted(config.sources.items()):
        if not credentials.is_complete:
            table.add_row(name, credentials.host or "-", credentials.name or "-", "[yellow]incomplete[/yellow]")
            continue
        results.append(add(name, credentials))

    console.print(table)
    if not all(results):
        raise SystemExit(1)


@main.command("version")
def version_cmd() -> None:
    """Show version info."""
    from . import __version__

    console.print(f"graphite-data {__version__}")


__all__ = ["main", "load_entity"]
