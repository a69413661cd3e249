"""
Row mappers and result handlers.

A statement's outcome is consumed by a `ResultHandler`: it receives the open
cursor once the statement has executed and produces the call's return value.
Three handlers cover the template's needs:

- `CollectAllRows` maps every row, in fetch order, into a list.
- `FirstRowOrNone` maps at most the first row.
- `UpdateCount` reports the affected-row count.

Row handlers apply a `RowMapper` to each fetched row. Mappers receive a
`ResultRow` view and never touch the cursor; only the handler advances it.
"""

from __future__ import annotations

import enum
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Type,
    TypeVar,
    runtime_checkable,
)

from pydantic import BaseModel

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)
R_co = TypeVar("R_co", covariant=True)
M = TypeVar("M", bound=BaseModel)


class StatementMode(str, enum.Enum):
    """How a statement is run and what its handler receives."""

    QUERY = "query"
    UPDATE = "update"


def column_names(cursor: Any) -> Tuple[str, ...]:
    """Column names from a DB-API cursor's description (empty if none)."""
    description = getattr(cursor, "description", None) or ()
    return tuple(col[0] for col in description)


class ResultRow(Sequence[Any]):
    """
    Read-only view over one fetched row.

    Supports positional access (``row[0]``) and, when column names are known,
    name access (``row["id"]``). Rows that the driver already returns as
    mappings keep their own keys.
    """

    __slots__ = ("_names", "_values", "_index")

    def __init__(self, names: Sequence[str], row: Any) -> None:
        if isinstance(row, Mapping):
            names = tuple(row.keys())
            values = tuple(row.values())
        else:
            values = tuple(row)
        self._names = tuple(names)
        self._values = values
        self._index: Optional[Dict[str, int]] = None

    def _positions(self) -> Dict[str, int]:
        if self._index is None:
            # First occurrence wins for duplicate column names.
            index: Dict[str, int] = {}
            for pos, name in enumerate(self._names):
                index.setdefault(name, pos)
            self._index = index
        return self._index

    def __getitem__(self, key: Any) -> Any:  # type: ignore[override]
        if isinstance(key, str):
            try:
                return self._values[self._positions()[key]]
            except KeyError:
                raise KeyError(f"no column named {key!r}") from None
        return self._values[key]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def get(self, name: str, default: Any = None) -> Any:
        pos = self._positions().get(name)
        return default if pos is None else self._values[pos]

    def keys(self) -> Tuple[str, ...]:
        return self._names

    def as_dict(self) -> Dict[str, Any]:
        return dict(zip(self._names, self._values))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ResultRow):
            return self._values == other._values and self._names == other._names
        if isinstance(other, tuple):
            return self._values == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self._names:
            return f"ResultRow({self.as_dict()!r})"
        return f"ResultRow({self._values!r})"


@runtime_checkable
class RowMapper(Protocol[T_co]):
    """Maps one row to a value. Plain functions and lambdas qualify."""

    def __call__(self, row: ResultRow) -> T_co:
        ...


@runtime_checkable
class ResultHandler(Protocol[R_co]):
    """Consumes an executed cursor and produces the statement's result."""

    def handle(self, cursor: Any) -> R_co:
        ...


# Ready-made row mappers


def scalar(index: int = 0) -> Callable[[ResultRow], Any]:
    """Map a row to the value at `index`."""

    def _map(row: ResultRow) -> Any:
        return row[index]

    return _map


def column(name: str) -> Callable[[ResultRow], Any]:
    """Map a row to the value of column `name`."""

    def _map(row: ResultRow) -> Any:
        return row[name]

    return _map


def dict_row(row: ResultRow) -> Dict[str, Any]:
    """Map a row to a ``{column: value}`` dict."""
    return row.as_dict()


def tuple_row(row: ResultRow) -> Tuple[Any, ...]:
    """Map a row to a plain tuple of its values."""
    return tuple(row)


def model_mapper(model: Type[M]) -> Callable[[ResultRow], M]:
    """
    Map a row to a pydantic model by column name.

    Validation errors propagate to the caller unchanged; they are not driver
    errors.
    """

    def _map(row: ResultRow) -> M:
        return model.model_validate(row.as_dict())

    return _map


# Result handlers


class CollectAllRows(Generic[T]):
    """
    Drain the cursor, mapping every row in fetch order.

    Rows are pulled with ``fetchmany(batch_size)`` so large results are not
    materialized twice.
    """

    def __init__(self, mapper: RowMapper[T], batch_size: int = 1000) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1.")
        self.mapper = mapper
        self.batch_size = batch_size

    def handle(self, cursor: Any) -> List[T]:
        names = column_names(cursor)
        results: List[T] = []
        while True:
            batch = cursor.fetchmany(self.batch_size)
            if not batch:
                break
            for raw in batch:
                results.append(self.mapper(ResultRow(names, raw)))
        return results


class FirstRowOrNone(Generic[T]):
    """Map the first row, fetching no more than one; None when there are no rows."""

    def __init__(self, mapper: RowMapper[T]) -> None:
        self.mapper = mapper

    def handle(self, cursor: Any) -> Optional[T]:
        raw = cursor.fetchone()
        if raw is None:
            return None
        return self.mapper(ResultRow(column_names(cursor), raw))


class UpdateCount:
    """Affected-row count of an executed statement (-1 when the driver cannot tell)."""

    def handle(self, cursor: Any) -> int:
        rowcount = getattr(cursor, "rowcount", -1)
        return -1 if rowcount is None else int(rowcount)


__all__ = [
    "StatementMode",
    "ResultRow",
    "RowMapper",
    "ResultHandler",
    "CollectAllRows",
    "FirstRowOrNone",
    "UpdateCount",
    "column_names",
    "scalar",
    "column",
    "dict_row",
    "tuple_row",
    "model_mapper",
]
