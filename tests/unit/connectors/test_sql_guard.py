"""Tests for the read-only SQL guard."""

import pytest

from puod.connectors.base.sql_guard import is_read_only_query


@pytest.mark.parametrize(
    "query",
    [
        "SELECT * FROM orders",
        "  select 1;",
        "WITH x AS (SELECT 1) SELECT * FROM x",
        "SHOW TABLES",
        "DESCRIBE orders",
        "EXPLAIN SELECT 1",
        "SELECT * FROM notes WHERE body = 'please drop table'",
        "-- DELETE everything\nSELECT 1",
    ],
)
def test_read_only_queries_allowed(query):
    assert is_read_only_query(query)


@pytest.mark.parametrize(
    "query",
    [
        "DELETE FROM orders",
        "DROP TABLE orders",
        "SELECT 1; DROP TABLE orders",
        "WITH x AS (DELETE FROM t RETURNING *) SELECT * FROM x",
        "UPDATE t SET a = 1",
        "",
        "/* SELECT */ INSERT INTO t VALUES (1)",
    ],
)
def test_mutating_queries_rejected(query):
    assert not is_read_only_query(query)
