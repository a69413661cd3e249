"""
Transaction-aware connection bookkeeping.

A `TransactionContext` answers one question for the statement executor: is a
transaction active for this target in the current thread or task, and if so,
which connection backs it? Bindings live in a `contextvars.ContextVar` owned by
the context object and each binding records the thread and asyncio task that
created it. A copied context (a child task, `asyncio.to_thread`,
`copy_context().run` on a worker thread) carries the snapshot along but sees no
transaction in it, so a bound connection is only ever used by its owner.

Two acquisition policies share the registry:

- "required": `bind_required` / `unbind_required`. The caller owns the
  transaction; the connection stays bound until it is unbound.
- "supports": `acquire_supports_transaction` / `release_supports_transaction`.
  Joins a bound connection if there is one, otherwise borrows a short-lived
  connection that the caller must release.

Exactly one side is responsible for giving a connection back: a bound
connection is only released by `unbind_required`, an unbound one only by
`release_supports_transaction`.
"""

from __future__ import annotations

import asyncio
import contextlib
import contextvars
import itertools
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Hashable, Iterator, Mapping, Optional

from sqltemplate.exceptions import (
    ConnectionAcquisitionError,
    DataAccessError,
    ResourceReleaseError,
    attach_release_error,
)
from sqltemplate.infrastructure.data_sources import DataSource
from sqltemplate.utils.logging import get_logger

log = get_logger(__name__)

_context_ids = itertools.count()

_NO_BINDINGS: Mapping[Hashable, "Binding"] = MappingProxyType({})


def _owner() -> tuple[int, Any]:
    """Identity of the calling execution context: thread id plus running task."""
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    return threading.get_ident(), task


@dataclass(frozen=True)
class Binding:
    """A connection bound to a target, with its data source and owning context."""

    connection: Any
    data_source: DataSource
    owner: tuple[int, Any]


class TransactionContext:
    """
    Per-thread/per-task registry of transaction-bound connections.

    Targets are lookup keys only (usually the data source itself) and must be
    hashable. The stored mapping is replaced on every change, never mutated,
    so a snapshot handed to a child task cannot be altered behind its back.
    """

    _default: Optional["TransactionContext"] = None
    _default_lock = threading.Lock()

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name or f"transaction-context-{next(_context_ids)}"
        self._bindings: contextvars.ContextVar[Mapping[Hashable, Binding]] = (
            contextvars.ContextVar(self.name)
        )

    @classmethod
    def default(cls) -> "TransactionContext":
        """Process-wide instance used when a template is not given one."""
        with cls._default_lock:
            if cls._default is None:
                cls._default = cls("default")
            return cls._default

    def _current(self) -> Mapping[Hashable, Binding]:
        # Bindings inherited through a copied context belong to someone else.
        owner = _owner()
        return {
            target: binding
            for target, binding in self._bindings.get(_NO_BINDINGS).items()
            if binding.owner == owner
        }

    def _store(self, bindings: dict[Hashable, Binding]) -> None:
        self._bindings.set(MappingProxyType(bindings))

    def lookup(self, target: Hashable) -> Optional[Any]:
        """Return the connection bound to `target` here, or None."""
        binding = self._current().get(target)
        return binding.connection if binding is not None else None

    def is_active(self, target: Hashable) -> bool:
        """True iff a connection is bound to `target` in this thread/task."""
        return target in self._current()

    def bindings(self) -> Mapping[Hashable, Any]:
        """Read-only snapshot of target -> connection for this thread/task."""
        return MappingProxyType(
            {target: binding.connection for target, binding in self._current().items()}
        )

    def _acquire(self, target: Hashable, data_source: DataSource) -> Any:
        try:
            return data_source.acquire()
        except Exception as exc:
            log.error(
                "failed to obtain connection",
                exc_info=True,
                extra={"target": repr(target)},
            )
            raise ConnectionAcquisitionError("Failed to obtain connection", cause=exc) from exc

    def _release(self, connection: Any, data_source: DataSource, target: Hashable) -> None:
        try:
            data_source.release(connection)
        except Exception as exc:
            log.error(
                "failed to release connection",
                exc_info=True,
                extra={"target": repr(target)},
            )
            raise ResourceReleaseError("Failed to release connection", cause=exc) from exc

    def bind_required(self, target: Hashable, data_source: DataSource) -> Any:
        """
        Return the connection bound to `target`, binding a new one if needed.

        Raises
        ------
        ConnectionAcquisitionError
            If the data source cannot provide a connection. Nothing is bound.
        """
        current = self._current()
        binding = current.get(target)
        if binding is not None:
            return binding.connection

        connection = self._acquire(target, data_source)
        updated = dict(current)
        updated[target] = Binding(connection, data_source, _owner())
        self._store(updated)
        log.debug("bound transactional connection", extra={"target": repr(target)})
        return connection

    def unbind_required(self, target: Hashable) -> None:
        """
        Remove the binding for `target` and release its connection.

        A target with no binding is a no-op. The binding is removed before the
        release is attempted, so a failed release never leaves it stuck.

        Raises
        ------
        ResourceReleaseError
            If the data source fails to take the connection back.
        """
        current = self._current()
        binding = current.get(target)
        if binding is None:
            log.debug("no transactional connection bound", extra={"target": repr(target)})
            return

        updated = dict(current)
        del updated[target]
        self._store(updated)
        log.debug("unbound transactional connection", extra={"target": repr(target)})
        self._release(binding.connection, binding.data_source, target)

    def acquire_supports_transaction(self, target: Hashable, data_source: DataSource) -> Any:
        """
        Join the bound connection for `target`, or borrow an unbound one.

        Never binds anything: a borrowed connection belongs to the caller and
        must go back through `release_supports_transaction`.
        """
        connection = self.lookup(target)
        if connection is not None:
            return connection
        return self._acquire(target, data_source)

    def release_supports_transaction(
        self,
        connection: Any,
        target: Hashable,
        data_source: DataSource,
    ) -> None:
        """
        Release a connection from `acquire_supports_transaction`.

        No-op while a transaction is active for `target`; the transaction owner
        releases that connection when it unbinds.
        """
        if self.is_active(target):
            return
        self._release(connection, data_source, target)

    def __repr__(self) -> str:
        return f"TransactionContext(name={self.name!r}, bound={len(self._current())})"


def _begin(connection: Any, data_source: DataSource) -> bool:
    """
    Put a connection into transactional mode.

    Returns True when autocommit was switched off and must be restored.
    """
    try:
        if getattr(connection, "autocommit", None) is True:
            connection.autocommit = False
            return True
        if (
            getattr(connection, "isolation_level", "") is None
            and getattr(connection, "in_transaction", True) is False
        ):
            # sqlite3 in autocommit mode needs an explicit BEGIN.
            connection.execute("BEGIN")
        return False
    except data_source.driver_errors as exc:
        log.error("failed to begin transaction", exc_info=True)
        raise DataAccessError("Failed to begin transaction", cause=exc) from exc


def _commit(connection: Any, data_source: DataSource) -> None:
    try:
        connection.commit()
    except data_source.driver_errors as exc:
        log.error("failed to commit transaction", exc_info=True)
        raise DataAccessError("Failed to commit transaction", cause=exc) from exc


def _rollback(connection: Any, primary: BaseException) -> None:
    try:
        connection.rollback()
    except Exception as exc:
        log.error("rollback failed", exc_info=True)
        primary.add_note(f"rollback failed: {exc!r}")


def _finish(
    context: TransactionContext,
    target: Hashable,
    connection: Any,
    restore_autocommit: bool,
    primary: Optional[BaseException] = None,
) -> None:
    """Restore autocommit and unbind; a cleanup error never hides `primary`."""
    errors: list[ResourceReleaseError] = []
    if restore_autocommit:
        try:
            connection.autocommit = True
        except Exception as exc:
            log.error("failed to restore autocommit", exc_info=True)
            errors.append(ResourceReleaseError("Failed to restore autocommit", cause=exc))
    try:
        context.unbind_required(target)
    except ResourceReleaseError as exc:
        errors.append(exc)

    if not errors:
        return
    if primary is not None:
        for error in errors:
            attach_release_error(primary, error)
        return
    raise errors[0]


@contextlib.contextmanager
def transactional(
    target: Hashable,
    data_source: DataSource,
    context: Optional[TransactionContext] = None,
) -> Iterator[Any]:
    """
    Run a block with a transaction bound to `target`.

    Commits on normal exit and rolls back on exception (including a failed
    commit), then unbinds, which releases the connection. A block entered
    while a transaction is already active joins it and leaves commit/rollback
    and unbinding to the outer block.

    Example
    -------
        with transactional(data_source, data_source):
            template.update("UPDATE t SET v = ? WHERE id = ?", "x", 5)
            template.update("DELETE FROM t WHERE id = ?", 6)
    """
    context = context or TransactionContext.default()
    if context.is_active(target):
        yield context.lookup(target)
        return

    connection = context.bind_required(target, data_source)
    restore_autocommit = False
    try:
        restore_autocommit = _begin(connection, data_source)
        try:
            yield connection
        except BaseException as exc:
            _rollback(connection, exc)
            raise
        try:
            _commit(connection, data_source)
        except BaseException as exc:
            _rollback(connection, exc)
            raise
    except BaseException as exc:
        _finish(context, target, connection, restore_autocommit, primary=exc)
        raise
    _finish(context, target, connection, restore_autocommit)


__all__ = ["Binding", "TransactionContext", "transactional"]
