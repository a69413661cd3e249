"""
Error taxonomy for sqltemplate.

Every database problem surfaces as a `DataAccessError` (or one of its
subclasses). Driver-specific exception types are kept as the chained cause
and never cross the library boundary on their own.
"""

from __future__ import annotations

from typing import Optional


class DataAccessError(Exception):
    """
    Failure while preparing, binding, executing or fetching a statement.

    Attributes
    ----------
    message : str
        Human-readable summary.
    sql : str | None
        Statement text involved, when there is one.
    cause : BaseException | None
        The underlying driver error. Also set as ``__cause__``.
    release_error : BaseException | None
        A cleanup failure that happened while this error was propagating.
    """

    def __init__(
        self,
        message: str,
        *,
        sql: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.sql = sql
        self.cause = cause
        self.release_error: Optional[BaseException] = None
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"


class ConnectionAcquisitionError(DataAccessError):
    """Obtaining a connection from a data source failed."""


class ResourceReleaseError(DataAccessError):
    """Closing a connection or unbinding a transactional resource failed."""


ResourceAcquisitionError = ConnectionAcquisitionError


def attach_release_error(primary: BaseException, release_error: BaseException) -> None:
    """
    Record a cleanup failure on the error that is already propagating.

    The primary error stays the one raised; the release failure is kept on
    ``primary.release_error`` (for `DataAccessError`) and as an exception note.
    """
    if isinstance(primary, DataAccessError) and primary.release_error is None:
        primary.release_error = release_error
    primary.add_note(f"connection release also failed: {release_error}")


__all__ = [
    "DataAccessError",
    "ConnectionAcquisitionError",
    "ResourceAcquisitionError",
    "ResourceReleaseError",
    "attach_release_error",
]
