# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface: drive the SQL gateway and registered tables by hand.

Usage:
    sqlrecord --db ./app.db select users --where '{"age": 3}' --sort name:desc
    sqlrecord --db ./app.db insert users --set '{"name": "Ann"}'
    sqlrecord --db ./app.db update users --set '{"age": 4}' --where '{"id": 1}'
    sqlrecord --db ./app.db delete users --where '{"id": 1}'
    sqlrecord --db ./app.db --entities myapp.entities init
    sqlrecord --db ./app.db --entities myapp.entities create users --set '{"name": "Ann"}'

Options fall back to the SQLRECORD_* environment variables (see config).
"""

from __future__ import annotations

import asyncio
import json
import logging
import logging.config
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

import click
from rich.console import Console
from rich.table import Table as RichTable

from . import __version__
from .app import RecordApp
from .config import SqlRecordConfig, config_from_env
from .model import RecordError
from .sql import SqlDbError

console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def configure_logging(level: str = "WARNING") -> None:
    """Configure root logging for CLI runs."""
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "console",
                    "level": level,
                }
            },
            "root": {"handlers": ["default"], "level": level},
        }
    )


def _print_result(result: Any) -> None:
    """Print command result with rich formatting."""
    if isinstance(result, list) and result and isinstance(result[0], dict):
        table = RichTable(show_header=True, header_style="bold cyan")
        keys = list(result[0].keys())
        for key in keys:
            table.add_column(key)
        for row in result:
            table.add_row(*[str(row.get(k, "")) for k in keys])
        console.print(table)
    elif isinstance(result, dict):
        for key, value in result.items():
            console.print(f"[bold]{key}:[/bold] {value}")
    elif isinstance(result, list):
        if not result:
            console.print("[dim]No rows.[/dim]")
        for item in result:
            console.print(f"  • {item}")
    else:
        console.print(result)


def _parse_json(value: str | None, option: str) -> dict[str, Any] | None:
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"invalid JSON: {e.msg}", param_hint=option) from e
    if not isinstance(parsed, dict):
        raise click.BadParameter("expected a JSON object", param_hint=option)
    return parsed


def _parse_sort(values: tuple[str, ...]) -> dict[str, str] | None:
    """Parse ("name", "age:desc") into {"name": "ASC", "age": "DESC"}."""
    if not values:
        return None
    sort: dict[str, str] = {}
    for item in values:
        column, _, direction = item.partition(":")
        direction = (direction or "asc").upper()
        if direction not in ("ASC", "DESC"):
            raise click.BadParameter(f"invalid direction in '{item}'", param_hint="--sort")
        sort[column] = direction
    return sort


def _run(config: SqlRecordConfig, action: Callable[[RecordApp], Awaitable[Any]]) -> Any:
    """Run an action inside one connection, reporting domain errors as CLI errors."""

    async def runner() -> Any:
        app = RecordApp(config)
        try:
            async with app.db.connection():
                return await action(app)
        finally:
            await app.shutdown()

    try:
        return asyncio.run(runner())
    except RecordError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e
    except SqlDbError as e:
        raise click.ClickException(f"database error {e.code}: {e}") from e
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(__version__, prog_name="sqlrecord")
@click.option("--db", default=None, help="SQLite path or postgresql:// URL (env SQLRECORD_DB).")
@click.option("--prefix", default=None, help="Table name prefix (env SQLRECORD_TABLE_PREFIX).")
@click.option("--cache/--no-cache", default=None, help="Cache select() results.")
@click.option("--entities", default=None, help="Comma-separated entity packages to discover.")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level (env SQLRECORD_LOG_LEVEL).",
)
@click.pass_context
def main(
    ctx: click.Context,
    db: str | None,
    prefix: str | None,
    cache: bool | None,
    entities: str | None,
    log_level: str | None,
) -> None:
    """sqlrecord - records and SQL from the command line."""
    config = config_from_env()
    overrides: dict[str, Any] = {}
    if db is not None:
        overrides["db_path"] = db
    if prefix is not None:
        overrides["table_prefix"] = prefix
    if cache is not None:
        overrides["use_cache"] = cache
    if entities is not None:
        overrides["entity_packages"] = [p.strip() for p in entities.split(",") if p.strip()]
    if log_level is not None:
        overrides["log_level"] = log_level.upper()
    config = replace(config, **overrides)
    configure_logging(config.log_level)
    ctx.obj = config


@main.command("select")
@click.argument("table")
@click.option("--columns", "-c", default=None, help="Comma-separated columns (default: all).")
@click.option("--where", "-w", default=None, help="JSON filter object.")
@click.option("--sort", "-s", multiple=True, help="column[:asc|desc], repeatable.")
@click.option("--limit", "-n", type=int, default=None, help="Maximum rows.")
@click.option("--skip", type=int, default=0, help="Rows to skip.")
@click.option("--json", "as_json", is_flag=True, help="Print rows as JSON.")
@click.pass_obj
def select_cmd(
    config: SqlRecordConfig,
    table: str,
    columns: str | None,
    where: str | None,
    sort: tuple[str, ...],
    limit: int | None,
    skip: int,
    as_json: bool,
) -> None:
    """Select rows from TABLE."""
    cols = [c.strip() for c in columns.split(",") if c.strip()] if columns else None
    filters = _parse_json(where, "--where")
    order = _parse_sort(sort)
    window = (skip, limit) if limit is not None else None

    async def action(app: RecordApp) -> list[dict[str, Any]]:
        return await app.db.select(table, cols, filters, order, window)

    rows = _run(config, action)
    if as_json:
        click.echo(json.dumps(rows, indent=2, default=str))
    else:
        _print_result(rows)


@main.command("insert")
@click.argument("table")
@click.option("--set", "values", required=True, help="JSON object of column values.")
@click.option("--replace", is_flag=True, help="Overwrite the row with the same key.")
@click.option("--ignore-duplicate", is_flag=True, help="Skip silently on key conflicts.")
@click.pass_obj
def insert_cmd(
    config: SqlRecordConfig, table: str, values: str, replace: bool, ignore_duplicate: bool
) -> None:
    """Insert a raw row into TABLE (no record validation)."""
    data = _parse_json(values, "--set")

    async def action(app: RecordApp) -> int:
        return await app.db.insert(
            table, data, replace=replace, ignore_duplicate=ignore_duplicate
        )

    new_id = _run(config, action)
    if new_id:
        console.print(f"[green]Inserted id {new_id}[/green]")
    else:
        console.print("[yellow]No row inserted[/yellow]")


@main.command("update")
@click.argument("table")
@click.option("--set", "values", required=True, help="JSON object of column values.")
@click.option("--where", "-w", required=True, help="JSON filter object.")
@click.pass_obj
def update_cmd(config: SqlRecordConfig, table: str, values: str, where: str) -> None:
    """Update rows of TABLE matching --where."""
    data = _parse_json(values, "--set")
    filters = _parse_json(where, "--where")

    async def action(app: RecordApp) -> int:
        return await app.db.update(table, data, filters)

    count = _run(config, action)
    console.print(f"[green]{count} row(s) updated[/green]")


@main.command("delete")
@click.argument("table")
@click.option("--where", "-w", default=None, help="JSON filter object.")
@click.option("--all", "all_rows", is_flag=True, help="Delete every row.")
@click.pass_obj
def delete_cmd(config: SqlRecordConfig, table: str, where: str | None, all_rows: bool) -> None:
    """Delete rows of TABLE matching --where (or --all)."""
    filters = _parse_json(where, "--where")
    if not filters and not all_rows:
        raise click.UsageError("Pass --where or --all.")

    async def action(app: RecordApp) -> int:
        return await app.db.delete(table, filters, all_rows=all_rows)

    count = _run(config, action)
    console.print(f"[green]{count} row(s) deleted[/green]")


@main.command("create")
@click.argument("table")
@click.option("--set", "values", required=True, help="JSON object of field values.")
@click.pass_obj
def create_cmd(config: SqlRecordConfig, table: str, values: str) -> None:
    """Create a record through a registered table (validation and hooks)."""
    data = _parse_json(values, "--set")

    async def action(app: RecordApp) -> dict[str, Any]:
        record = await app.db.table(table).create(data)
        return record.to_dict()

    _print_result(_run(config, action))


@main.command("init")
@click.pass_obj
def init_cmd(config: SqlRecordConfig) -> None:
    """Create the registered tables if they don't exist."""

    async def action(app: RecordApp) -> list[str]:
        await app.db.check_structure()
        return list(app.db.tables)

    names = _run(config, action)
    if not names:
        console.print("[dim]No tables registered. Use --entities.[/dim]")
        return
    console.print(f"[green]Checked {len(names)} table(s):[/green] {', '.join(names)}")


@main.command("tables")
@click.pass_obj
def tables_cmd(config: SqlRecordConfig) -> None:
    """List registered tables and their columns."""
    app = RecordApp(config)
    if not app.db.tables:
        console.print("[dim]No tables registered. Use --entities.[/dim]")
        return
    for name, table in app.db.tables.items():
        grid = RichTable(title=f"{name} ({type(table).__name__})", header_style="bold cyan")
        for header in ("column", "type", "insert", "update", "select", "mandatory", "unique"):
            grid.add_column(header)
        for col in table.columns.values():
            flags = [col.insert, col.update, col.select, col.mandatory, col.unique]
            label = f"{col.name} *" if col.name == table.pkey else col.name
            grid.add_row(label, col.type_, *["x" if f else "" for f in flags])
        console.print(grid)


if __name__ == "__main__":
    main()
