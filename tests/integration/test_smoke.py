"""
Integration tests for sqltemplate against PostgreSQL.

These tests run against a real PostgreSQL instance and verify that:
1. Statements outside a transaction autocommit and give their connection back
2. Statements inside a transaction share one connection and commit/roll back together
3. Driver errors surface as DataAccessError

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
from typing import Iterator

import pytest

from sqltemplate import (
    DataAccessError,
    DriverManagerDataSource,
    PooledDataSource,
    SqlTemplate,
    TransactionContext,
    dict_row,
    scalar,
)

POOL_MIN = 1
POOL_MAX = 3
SEED_ROWS = [(1, "x"), (2, "x"), (3, "y")]

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)


@pytest.fixture
def driver_source(test_dsn: str) -> DriverManagerDataSource:
    return DriverManagerDataSource(test_dsn)


@pytest.fixture
def template(driver_source: DriverManagerDataSource, context: TransactionContext) -> Iterator[SqlTemplate]:
    template = SqlTemplate(driver_source, context=context)
    template.update("DROP TABLE IF EXISTS template_smoke")
    template.update("CREATE TABLE template_smoke (id BIGINT PRIMARY KEY, v TEXT NOT NULL)")
    for row_id, value in SEED_ROWS:
        template.update("INSERT INTO template_smoke (id, v) VALUES (%s, %s)", row_id, value)
    yield template
    template.update("DROP TABLE IF EXISTS template_smoke")


class TestTemplateAgainstPostgres:
    def test_update_then_query(self, template: SqlTemplate):
        assert template.update("UPDATE template_smoke SET v=%s WHERE id=%s", "x", 3) == 1
        ids = template.query("SELECT id FROM template_smoke WHERE v=%s ORDER BY id", scalar(), "x")
        assert ids == [1, 2, 3]

    def test_query_single_row(self, template: SqlTemplate):
        row = template.query_single_row("SELECT id, v FROM template_smoke WHERE id=%s", dict_row, 2)
        assert row == {"id": 2, "v": "x"}
        assert template.query_single_row("SELECT id FROM template_smoke WHERE id=%s", scalar(), 99) is None

    def test_statement_error_is_data_access_error(self, template: SqlTemplate):
        with pytest.raises(DataAccessError):
            template.query("SELEC id FROM template_smoke", scalar())

    def test_transaction_commits(self, template: SqlTemplate, context: TransactionContext):
        with template.transaction() as conn:
            template.update("INSERT INTO template_smoke (id, v) VALUES (%s, %s)", 10, "t")
            template.update("DELETE FROM template_smoke WHERE id=%s", 1)
            assert context.lookup(template.target) is conn
        assert template.query_for_object("SELECT COUNT(*) FROM template_smoke") == 3
        assert template.query_for_object("SELECT v FROM template_smoke WHERE id=%s", 10) == "t"

    def test_transaction_rolls_back(self, template: SqlTemplate):
        with pytest.raises(DataAccessError):
            with template.transaction():
                template.update("INSERT INTO template_smoke (id, v) VALUES (%s, %s)", 20, "a")
                template.update("INSERT INTO template_smoke (id, v) VALUES (%s, %s)", 20, "b")
        assert template.query_for_object("SELECT COUNT(*) FROM template_smoke WHERE id=%s", 20) == 0


def test_pooled_data_source_returns_connections(test_dsn: str, context: TransactionContext):
    from psycopg_pool import ConnectionPool

    pool = ConnectionPool(
        conninfo=test_dsn,
        min_size=POOL_MIN,
        max_size=POOL_MAX,
        kwargs={"autocommit": True},
        open=True,
    )
    try:
        template = SqlTemplate(PooledDataSource(pool, timeout=5), context=context)
        for _ in range(POOL_MAX * 2):
            assert template.query_for_object("SELECT 1") == 1
        assert pool.get_stats().get("requests_num", 0) >= POOL_MAX * 2
    finally:
        pool.close()
