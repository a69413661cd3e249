"""
Infrastructure package for sqltemplate.

Centralizes database connectivity concerns (dedicated connections, pooling).
Keep this layer focused on I/O and resource management, decoupled from
statement execution and transaction bookkeeping.
"""

from sqltemplate.infrastructure.data_sources import (
    DataSource,
    DriverManagerDataSource,
    PooledDataSource,
    PoolManager,
    build_dsn,
    get_data_source,
    get_driver_data_source,
)

__all__ = [
    "DataSource",
    "DriverManagerDataSource",
    "PooledDataSource",
    "PoolManager",
    "build_dsn",
    "get_data_source",
    "get_driver_data_source",
]
