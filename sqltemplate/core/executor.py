"""
Statement execution with transaction-aware connection handling.

`StatementExecutor.execute` is the single path every template call goes
through:

1. borrow a connection ("supports" policy: join the bound transaction
   connection for the target, or take a short-lived one),
2. open a cursor scoped to the call,
3. execute with positional parameters bound by the driver,
4. hand the cursor to the result handler,
5. translate driver errors into `DataAccessError`,
6. close the cursor and give the connection back under the same policy.
"""

from __future__ import annotations

import contextlib
from typing import Any, Hashable, Optional, Sequence, TypeVar

from sqltemplate.core.handlers import ResultHandler, StatementMode
from sqltemplate.datasource.transaction_context import TransactionContext
from sqltemplate.exceptions import (
    DataAccessError,
    ResourceReleaseError,
    attach_release_error,
)
from sqltemplate.infrastructure.data_sources import DataSource
from sqltemplate.utils.logging import get_logger

log = get_logger(__name__)

R = TypeVar("R")


class StatementExecutor:
    """
    Executes one statement per call against a data source.

    Parameters
    ----------
    data_source : DataSource
        Where short-lived connections come from and go back to.
    target : Hashable, optional
        Key under which a transaction for this data source is bound. Defaults
        to the data source itself.
    context : TransactionContext, optional
        Registry consulted for an active transaction. Defaults to the
        process-wide `TransactionContext.default()`.
    """

    def __init__(
        self,
        data_source: DataSource,
        target: Optional[Hashable] = None,
        context: Optional[TransactionContext] = None,
    ) -> None:
        self.data_source = data_source
        self.target = data_source if target is None else target
        self.context = context or TransactionContext.default()

    def execute(
        self,
        sql: str,
        parameters: Sequence[Any],
        mode: StatementMode,
        handler: ResultHandler[R],
    ) -> R:
        """
        Run `sql` with `parameters` and return what `handler` makes of it.

        Raises
        ------
        ConnectionAcquisitionError
            No connection could be obtained.
        DataAccessError
            The driver failed while preparing, binding, executing or fetching.
        ResourceReleaseError
            The statement succeeded but the connection could not be released.
        """
        mode = StatementMode(mode)
        connection = self.context.acquire_supports_transaction(self.target, self.data_source)
        try:
            result = self._run(connection, sql, parameters, mode, handler)
        except BaseException as exc:
            self._release(connection, primary=exc)
            raise
        self._release(connection)
        return result

    def _run(
        self,
        connection: Any,
        sql: str,
        parameters: Sequence[Any],
        mode: StatementMode,
        handler: ResultHandler[R],
    ) -> R:
        try:
            with contextlib.closing(connection.cursor()) as cursor:
                log.debug(
                    "executing statement",
                    extra={"sql": sql, "mode": mode.value, "parameter_count": len(parameters)},
                )
                if parameters:
                    cursor.execute(sql, tuple(parameters))
                else:
                    cursor.execute(sql)
                return handler.handle(cursor)
        except self.data_source.driver_errors as exc:
            log.error(
                "statement failed: %s",
                exc,
                exc_info=True,
                extra={"sql": sql, "mode": mode.value},
            )
            raise DataAccessError(f"{mode.value} failed", sql=sql, cause=exc) from exc

    def _release(self, connection: Any, primary: Optional[BaseException] = None) -> None:
        try:
            self.context.release_supports_transaction(connection, self.target, self.data_source)
        except ResourceReleaseError as exc:
            if primary is None:
                raise
            attach_release_error(primary, exc)


__all__ = ["StatementExecutor"]
