"""
SQL template facade.

Callers supply raw SQL with positional placeholders (in the driver's
paramstyle, e.g. ``%s`` for psycopg, ``?`` for sqlite3) and a row mapper; the
template takes care of connections, cursors, errors and cleanup.

Usage:
    from sqltemplate import SqlTemplate, get_data_source, scalar

    template = SqlTemplate(get_data_source())
    ids = template.query("SELECT id FROM t WHERE v = %s ORDER BY id", scalar(), "x")
    template.update("UPDATE t SET v = %s WHERE id = %s", "y", 5)

    with template.transaction():
        template.update("INSERT INTO t (id, v) VALUES (%s, %s)", 6, "z")
        template.update("DELETE FROM t WHERE id = %s", 5)
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Hashable, List, Optional, Sequence, TypeVar

from sqltemplate.config import get_settings
from sqltemplate.core.executor import StatementExecutor
from sqltemplate.core.handlers import (
    CollectAllRows,
    FirstRowOrNone,
    ResultHandler,
    RowMapper,
    StatementMode,
    UpdateCount,
    scalar,
)
from sqltemplate.datasource.transaction_context import TransactionContext, transactional
from sqltemplate.infrastructure.data_sources import DataSource

T = TypeVar("T")
R = TypeVar("R")


class SqlTemplate:
    """
    Query/update convenience methods over a `StatementExecutor`.

    Parameters
    ----------
    data_source : DataSource
        Source of connections.
    target : Hashable, optional
        Transaction binding key; defaults to `data_source`.
    context : TransactionContext, optional
        Transaction registry; defaults to `TransactionContext.default()`.
    fetch_batch_size : int, optional
        Rows fetched per round trip by `query` (default from settings).
    """

    def __init__(
        self,
        data_source: DataSource,
        *,
        target: Optional[Hashable] = None,
        context: Optional[TransactionContext] = None,
        fetch_batch_size: Optional[int] = None,
    ) -> None:
        self.executor = StatementExecutor(data_source, target=target, context=context)
        self.fetch_batch_size = (
            fetch_batch_size if fetch_batch_size is not None else get_settings().fetch_batch_size
        )
        if self.fetch_batch_size < 1:
            raise ValueError("fetch_batch_size must be >= 1.")

    @property
    def data_source(self) -> DataSource:
        return self.executor.data_source

    @property
    def target(self) -> Hashable:
        return self.executor.target

    @property
    def context(self) -> TransactionContext:
        return self.executor.context

    def execute(
        self,
        sql: str,
        parameters: Sequence[Any],
        mode: StatementMode,
        handler: ResultHandler[R],
    ) -> R:
        """Run a statement with a custom result handler."""
        return self.executor.execute(sql, parameters, mode, handler)

    def query(self, sql: str, row_mapper: RowMapper[T], *parameters: Any) -> List[T]:
        """Map every row of the result, in fetch order."""
        return self.executor.execute(
            sql,
            parameters,
            StatementMode.QUERY,
            CollectAllRows(row_mapper, batch_size=self.fetch_batch_size),
        )

    def query_single_row(self, sql: str, row_mapper: RowMapper[T], *parameters: Any) -> Optional[T]:
        """Map the first row of the result, or return None if there is none."""
        return self.executor.execute(sql, parameters, StatementMode.QUERY, FirstRowOrNone(row_mapper))

    def query_for_object(self, sql: str, *parameters: Any) -> Any:
        """First column of the first row, or None."""
        return self.query_single_row(sql, scalar(0), *parameters)

    def update(self, sql: str, *parameters: Any) -> int:
        """Run an INSERT/UPDATE/DELETE/DDL statement; returns the affected-row count."""
        return self.executor.execute(sql, parameters, StatementMode.UPDATE, UpdateCount())

    def transaction(self) -> AbstractContextManager[Any]:
        """
        Bind a transaction for this template's target for the duration of a block.

        Every template call in the block (from any template sharing the target
        and context) runs on the bound connection.
        """
        return transactional(self.target, self.data_source, self.context)


__all__ = ["SqlTemplate"]
