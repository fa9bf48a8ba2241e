"""Typer-based CLI entry point."""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich import print
from rich.console import Console
from rich.table import Table

from .config import DEFAULT_BATCH_SIZE
from .core.lazy_query_view import LazyQueryView
from .domain.definition import QueryDefinition
from .domain.filters import Equal
from .errors import LazyQueryError
from .infrastructure.db.pool import ConnectionPool
from .infrastructure.queries.sqlite_query import SqliteQueryFactory

app = typer.Typer(help="Browse SQLite tables through a lazy loading query view")
console = Console()


def _handle_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LazyQueryError as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(1) from exc

    return wrapper


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log query activity")) -> None:
    """Configure logging for every command."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_where(clauses: Optional[List[str]]) -> List[Tuple[str, str]]:
    parsed = []
    for clause in clauses or []:
        column, sep, value = clause.partition("=")
        if not sep or not column:
            raise typer.BadParameter(f"Expected COLUMN=VALUE, got {clause!r}", param_hint="--where")
        parsed.append((column.strip(), value))
    return parsed


def _open_view(
    db: Path,
    table: str,
    where: Optional[List[str]] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Tuple[LazyQueryView, ConnectionPool]:
    pool = ConnectionPool(db, pool_size=1)
    factory = SqliteQueryFactory(pool, table)
    definition = QueryDefinition(batch_size=batch_size)
    for column in factory.columns():
        definition.add_property(column, object, None, read_only=True, sortable=True)
    for column, value in _parse_where(where):
        definition.add_default_filter(Equal(column, value))
    return LazyQueryView(definition, factory), pool


@app.command()
@_handle_errors
def count(
    db: Path = typer.Argument(..., exists=True, dir_okay=False, help="SQLite database file"),
    table: str = typer.Argument(..., help="Table to count"),
    where: Optional[List[str]] = typer.Option(None, "--where", help="COLUMN=VALUE equality filter"),
) -> None:
    """Print the number of rows matching the filters."""

    view, pool = _open_view(db, table, where)
    try:
        print(view.size())
    finally:
        pool.close_all()


@app.command()
@_handle_errors
def browse(
    db: Path = typer.Argument(..., exists=True, dir_okay=False, help="SQLite database file"),
    table: str = typer.Argument(..., help="Table to browse"),
    sort: Optional[str] = typer.Option(None, "--sort", help="Column to sort by"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    page: int = typer.Option(1, "--page", min=1, help="Page number, starting at 1"),
    page_size: int = typer.Option(20, "--page-size", min=1, help="Rows per page"),
    batch_size: int = typer.Option(DEFAULT_BATCH_SIZE, "--batch-size", min=1, help="Rows per query batch"),
    where: Optional[List[str]] = typer.Option(None, "--where", help="COLUMN=VALUE equality filter"),
) -> None:
    """Print one page of a table."""

    view, pool = _open_view(db, table, where, batch_size)
    try:
        if sort:
            view.sort([sort], [not desc])
        size = view.size()
        start = (page - 1) * page_size
        end = min(start + page_size, size)

        columns = view.get_query_definition().get_property_ids()
        grid = Table(title=f"{table} (page {page})")
        grid.add_column("#", justify="right", style="dim")
        for column in columns:
            grid.add_column(str(column))
        for index in range(start, end):
            item = view.get_item(index)
            grid.add_row(str(index + 1), *("" if item.get(c) is None else str(item.get(c)) for c in columns))
        if start < end:
            grid.caption = f"rows {start + 1}-{end} of {size}, {view.batch_count} batch(es) loaded"
        else:
            grid.caption = f"no rows on this page ({size} total)"
        console.print(grid)
    finally:
        pool.close_all()


if __name__ == "__main__":  # pragma: no cover
    app()
