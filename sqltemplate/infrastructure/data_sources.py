"""
Data source implementations for sqltemplate.

A data source hands out live DB-API connections and takes them back. The
template never opens or closes connections itself; it goes through the
transaction context, which goes through one of these.

- `DriverManagerDataSource` opens a dedicated psycopg connection per acquire
  and closes it on release (optionally retrying transient connect failures
  with tenacity).
- `PooledDataSource` borrows from a psycopg_pool `ConnectionPool` and returns
  the connection to the pool on release.
- `PoolManager` is the process-wide owner of the shared pool built from
  settings, cleaned up automatically on interpreter exit.
"""

from __future__ import annotations

import atexit
import threading
from typing import Any, Optional, Protocol, Tuple, Type, runtime_checkable

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sqltemplate.config import Settings, get_settings
from sqltemplate.utils.logging import get_logger

log = get_logger(__name__)

PSYCOPG_ERRORS: Tuple[Type[BaseException], ...] = (psycopg.Error,)


@runtime_checkable
class DataSource(Protocol):
    """
    Source of borrowed connections.

    Attributes
    ----------
    driver_errors : tuple of exception types
        DB-API error classes raised by connections from this source. The
        statement executor translates these into `DataAccessError`.
    """

    driver_errors: Tuple[Type[BaseException], ...]

    def acquire(self) -> Any:
        """Return an open connection. Raises the driver's error on failure."""
        ...

    def release(self, connection: Any) -> None:
        """Give a connection obtained from `acquire` back (close or return to pool)."""
        ...


def build_dsn(settings: Settings) -> str:
    """Compose a DSN string from settings."""
    return settings.dsn


class DriverManagerDataSource:
    """
    One brand-new psycopg connection per `acquire()`.

    Connections are opened in autocommit mode so that a statement executed
    outside a transaction is durable once it returns. Use this for scripts and
    tests; prefer `PooledDataSource` for repeated use.
    """

    driver_errors = PSYCOPG_ERRORS

    def __init__(
        self,
        conninfo: str,
        connect_attempts: Optional[int] = None,
        connect_timeout: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.conninfo = conninfo
        self.connect_attempts = (
            connect_attempts if connect_attempts is not None else settings.db_connect_attempts
        )
        if self.connect_attempts < 1:
            raise ValueError("connect_attempts must be >= 1.")
        self.connect_timeout = (
            connect_timeout if connect_timeout is not None else settings.db_connect_timeout_seconds
        )

    def _connect(self) -> Connection:
        kwargs: dict[str, Any] = {"autocommit": True}
        if self.connect_timeout:
            kwargs["connect_timeout"] = self.connect_timeout
        return psycopg.connect(self.conninfo, **kwargs)

    def acquire(self) -> Connection:
        """
        Open a new connection, retrying transient failures.

        Retries up to `connect_attempts` times in total with exponential backoff
        for `psycopg.OperationalError` / `psycopg.InterfaceError`. With the
        default of one attempt, the first failure propagates.

        Raises
        ------
        psycopg.OperationalError
            If connection fails after all attempts.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.connect_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
            reraise=True,
        )
        return retrying(self._connect)

    def release(self, connection: Connection) -> None:
        connection.close()

    def __repr__(self) -> str:
        return f"DriverManagerDataSource(attempts={self.connect_attempts})"


class PooledDataSource:
    """
    Borrow connections from a psycopg_pool `ConnectionPool`.

    `release` hands the connection back to the pool; the pool resets or
    discards it according to its own policy.
    """

    driver_errors = PSYCOPG_ERRORS

    def __init__(self, pool: ConnectionPool, timeout: Optional[float] = None) -> None:
        self.pool = pool
        self.timeout = timeout

    def acquire(self) -> Connection:
        return self.pool.getconn(timeout=self.timeout)

    def release(self, connection: Connection) -> None:
        self.pool.putconn(connection)

    def close(self) -> None:
        """Close the underlying pool."""
        self.pool.close()

    def __repr__(self) -> str:
        return f"PooledDataSource(pool={getattr(self.pool, 'name', None)!r})"


class PoolManager:
    """
    Thread-safe singleton for managing the shared connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pool: Optional[ConnectionPool] = None
                cls._instance._data_source: Optional[PooledDataSource] = None
                # Register cleanup on exit
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_pool(
        self,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ) -> ConnectionPool:
        """
        Get or create the shared connection pool.

        Parameters
        ----------
        min_size : int, optional
            Minimum number of idle connections to keep (default from settings).
        max_size : int, optional
            Maximum total connections in the pool (default from settings).

        Returns
        -------
        ConnectionPool
            The managed pool instance. Its connections are in autocommit mode.
        """
        with self._lock:
            if self._pool is None:
                settings = get_settings()
                self._pool = ConnectionPool(
                    conninfo=build_dsn(settings),
                    min_size=min_size if min_size is not None else settings.db_pool_min_size,
                    max_size=max_size if max_size is not None else settings.db_pool_max_size,
                    timeout=settings.db_pool_timeout_seconds,
                    kwargs={"autocommit": True},
                    open=True,
                )
                log.debug(
                    "created connection pool",
                    extra={"min_size": self._pool.min_size, "max_size": self._pool.max_size},
                )
            return self._pool

    def data_source(self) -> PooledDataSource:
        """Return the `PooledDataSource` wrapping the shared pool."""
        pool = self.get_pool()
        with self._lock:
            if self._data_source is None or self._data_source.pool is not pool:
                self._data_source = PooledDataSource(pool)
            return self._data_source

    def close_all(self) -> None:
        """
        Close the managed pool and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            if self._pool is not None:
                try:
                    self._pool.close()
                except Exception:
                    log.warning("failed to close connection pool", exc_info=True)
                finally:
                    self._pool = None
                    self._data_source = None


def get_data_source() -> PooledDataSource:
    """Return the shared pooled data source built from settings."""
    return PoolManager().data_source()


def get_driver_data_source() -> DriverManagerDataSource:
    """Return a data source that opens one dedicated connection per acquire."""
    return DriverManagerDataSource(build_dsn(get_settings()))


__all__ = [
    "DataSource",
    "DriverManagerDataSource",
    "PooledDataSource",
    "PoolManager",
    "PSYCOPG_ERRORS",
    "build_dsn",
    "get_data_source",
    "get_driver_data_source",
]
