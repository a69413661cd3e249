"""
Statement execution core: result handlers, the executor and the template facade.
"""

from sqltemplate.core.executor import StatementExecutor
from sqltemplate.core.handlers import (
    CollectAllRows,
    FirstRowOrNone,
    ResultHandler,
    ResultRow,
    RowMapper,
    StatementMode,
    UpdateCount,
    column,
    dict_row,
    model_mapper,
    scalar,
    tuple_row,
)
from sqltemplate.core.template import SqlTemplate

__all__ = [
    "SqlTemplate",
    "StatementExecutor",
    "StatementMode",
    "ResultRow",
    "RowMapper",
    "ResultHandler",
    "CollectAllRows",
    "FirstRowOrNone",
    "UpdateCount",
    "scalar",
    "column",
    "dict_row",
    "tuple_row",
    "model_mapper",
]
