"""
sqltemplate - minimal transaction-aware SQL execution template.

Runs parameterized SQL against a relational database, maps result rows into
values, and manages connection lifetime the same way whether or not a
transaction is active:

- Outside a transaction, each statement borrows a connection and gives it
  back before returning.
- Inside a transaction, every statement for the same target runs on the one
  bound connection, which only the transaction owner releases.

Driver errors surface as `DataAccessError`.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from sqltemplate.config import Settings, get_settings
from sqltemplate.core import (
    CollectAllRows,
    FirstRowOrNone,
    ResultHandler,
    ResultRow,
    RowMapper,
    SqlTemplate,
    StatementExecutor,
    StatementMode,
    UpdateCount,
    column,
    dict_row,
    model_mapper,
    scalar,
    tuple_row,
)
from sqltemplate.datasource import TransactionContext, transactional
from sqltemplate.exceptions import (
    ConnectionAcquisitionError,
    DataAccessError,
    ResourceAcquisitionError,
    ResourceReleaseError,
)
from sqltemplate.infrastructure import (
    DataSource,
    DriverManagerDataSource,
    PooledDataSource,
    PoolManager,
    get_data_source,
    get_driver_data_source,
)
from sqltemplate.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Template and execution
    "SqlTemplate",
    "StatementExecutor",
    "StatementMode",
    # Result handling
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
    # Transactions
    "TransactionContext",
    "transactional",
    # Data sources
    "DataSource",
    "DriverManagerDataSource",
    "PooledDataSource",
    "PoolManager",
    "get_data_source",
    "get_driver_data_source",
    # Errors
    "DataAccessError",
    "ConnectionAcquisitionError",
    "ResourceAcquisitionError",
    "ResourceReleaseError",
    # Logging
    "configure_logging",
    "get_logger",
]
