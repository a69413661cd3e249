from __future__ import annotations

import json
import sys
from typing import List, Optional

import typer

from sqltemplate.config import get_settings
from sqltemplate.core.handlers import dict_row
from sqltemplate.core.template import SqlTemplate
from sqltemplate.exceptions import DataAccessError
from sqltemplate.infrastructure.data_sources import get_driver_data_source
from sqltemplate.utils.logging import configure_logging

app = typer.Typer(help="Run parameterized SQL through sqltemplate.")

PARAM_OPTION = typer.Option(
    None,
    "--param",
    "-p",
    help="Positional parameter value, bound in the order given (repeatable).",
)


def _template() -> SqlTemplate:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return SqlTemplate(get_driver_data_source())


def _fail(exc: DataAccessError) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"pool=({settings.db_pool_min_size},{settings.db_pool_max_size}) "
        f"timeout={settings.db_pool_timeout_seconds}s "
        f"connect_attempts={settings.db_connect_attempts} "
        f"fetch_batch={settings.fetch_batch_size}"
    )


@app.command()
def query(
    sql: str = typer.Argument(..., help="SELECT statement with positional placeholders."),
    params: Optional[List[str]] = PARAM_OPTION,
) -> None:
    """
    Run a query and print the rows as JSON objects.
    """
    template = _template()
    try:
        rows = template.query(sql, dict_row, *(params or []))
    except DataAccessError as exc:
        _fail(exc)
        return
    typer.echo(json.dumps(rows, indent=2, default=str))


@app.command()
def update(
    sql: str = typer.Argument(..., help="INSERT/UPDATE/DELETE statement with positional placeholders."),
    params: Optional[List[str]] = PARAM_OPTION,
) -> None:
    """
    Run an update statement and print the affected-row count.
    """
    template = _template()
    try:
        count = template.update(sql, *(params or []))
    except DataAccessError as exc:
        _fail(exc)
        return
    typer.echo(json.dumps({"affected_rows": count}))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
