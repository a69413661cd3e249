"""
Pytest configuration for sqltemplate.

Provides fixtures for:
- A fresh TransactionContext per test
- Recording fake DB-API connections/cursors/data sources
- A real sqlite3 file database behind a counting data source
- Settings isolation (cache reset between tests)
- PostgreSQL connection details for integration tests
"""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Iterator

import pytest

from sqltemplate.config import Settings, get_settings
from sqltemplate.datasource import TransactionContext
from tests.fakes import FakeDataSource, SqliteDataSource


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Iterator[None]:
    """Each test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def context() -> TransactionContext:
    """A TransactionContext no other test shares."""
    return TransactionContext("test")


@pytest.fixture
def fake_source() -> FakeDataSource:
    return FakeDataSource()


@pytest.fixture
def sqlite_source(tmp_path: Path) -> SqliteDataSource:
    """
    Sqlite data source with a small table ``t(id INTEGER PRIMARY KEY, v TEXT)``.
    """
    path = tmp_path / "template.db"
    with sqlite3.connect(str(path)) as conn:
        conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
        conn.executemany(
            "INSERT INTO t (id, v) VALUES (?, ?)",
            [(1, "x"), (2, "x"), (3, "y"), (5, "z")],
        )
    conn.close()
    return SqliteDataSource(path)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "sqltemplate"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return test_settings.dsn
