"""Tests for the query pipeline."""

import asyncio
import json

import pytest

from puod.connectors import ConnectorRegistry
from puod.connectors.base import (
    ConnectionResult,
    Connector,
    RemoteRequestError,
    UnknownPlatformKindError,
    require_keys,
)
from puod.errors import NotFoundError, UnauthorizedError
from puod.query import QueryPipeline
from puod.tenancy import ClientOwned, CompanyOwned, InMemoryIntegrationRepository, Principal


class RecordingConnector(Connector):
    """Returns canned rows and records every call on the class."""

    name = "recording"
    calls = []
    rows = []
    error = None

    def validate_config(self, config):
        require_keys(config, ["base_url"], self.name)

    def _test_connection(self, config):
        type(self).calls.append(("test", config))
        return ConnectionResult(success=True, metadata={"base_url": config["base_url"]})

    def _list_databases(self, config):
        type(self).calls.append(("databases", config))
        return ["etl", "reporting"]

    def _list_tables(self, database, config):
        type(self).calls.append(("tables", database))
        return ["extract", "load"]

    def _execute_query(self, query, config):
        type(self).calls.append(("query", query, config))
        if type(self).error:
            raise type(self).error
        return list(type(self).rows)


@pytest.fixture
def registry():
    RecordingConnector.calls = []
    RecordingConnector.rows = []
    RecordingConnector.error = None
    registry = ConnectorRegistry()
    registry.register("airflow", RecordingConnector)
    registry.register("warehouse", RecordingConnector)
    return registry


@pytest.fixture
def repository():
    repository = InMemoryIntegrationRepository()
    repository.create("Airflow", "airflow", CompanyOwned(5), {"base_url": "https://af"})
    repository.create("Shared", "airflow", ClientOwned(7, {5}), {"base_url": "https://shared"})
    repository.create("Warehouse", "warehouse", CompanyOwned(6), {"base_url": "pg"})
    return repository


@pytest.fixture
def pipeline(repository, registry):
    return QueryPipeline(repository, registry=registry)


COMPANY_5 = Principal(company_id=5)


def test_execute_query_passes_query_through_without_filter(pipeline):
    RecordingConnector.rows = [{"dag_id": "etl", "state": "success"}]

    result = asyncio.run(pipeline.execute_query(COMPANY_5, 1, "dagRuns?limit=5"))

    assert result.success
    assert result.rows == [{"dag_id": "etl", "state": "success"}]
    _, query, config = RecordingConnector.calls[0]
    assert query == "dagRuns?limit=5"
    assert "data_source_json" not in config


def test_execute_query_rewrites_and_post_filters(pipeline):
    RecordingConnector.rows = [
        {"dag_id": "etl", "state": "failed"},
        {"dag_id": "etl", "state": "success"},
        {"dag_id": "other", "state": "failed"},
    ]
    data_source = json.dumps({"namedResourceIds": ["etl"], "state": ["failed"], "limit": 10})

    result = asyncio.run(
        pipeline.execute_query(COMPANY_5, 1, "dagRuns?limit=25", data_source)
    )

    assert result.success
    assert result.rows == [{"dag_id": "etl", "state": "failed"}]
    assert result.row_count == 1
    _, query, config = RecordingConnector.calls[0]
    assert query == "/api/v1/dags/etl/dagRuns?limit=10"
    assert json.loads(config["data_source_json"])["namedResourceIds"] == ["etl"]


def test_execute_query_malformed_filter_is_ignored(pipeline):
    RecordingConnector.rows = [{"dag_id": "a"}, {"dag_id": "b"}]

    result = asyncio.run(pipeline.execute_query(COMPANY_5, 1, "dagRuns", "{broken"))

    assert result.row_count == 2
    assert RecordingConnector.calls[0][1] == "dagRuns"


def test_execute_query_failure_is_returned_not_raised(pipeline):
    RecordingConnector.error = RemoteRequestError("Airflow API error: 502", "recording", 502)

    result = asyncio.run(
        pipeline.execute_query(COMPANY_5, 1, "dags", {"namedResourceIds": ["etl"]})
    )

    assert not result.success
    assert result.error_message == "Airflow API error: 502"
    assert result.rows is None


def test_warehouse_rows_are_not_filtered(pipeline):
    RecordingConnector.rows = [{"a": 1}, {"a": 2}]

    result = asyncio.run(
        pipeline.execute_query(Principal(company_id=6), 3, "SELECT a FROM t", {"limit": 1})
    )

    assert result.rows == [{"a": 1}, {"a": 2}]
    assert RecordingConnector.calls[0][1] == "SELECT a FROM t"


def test_shared_client_integration_is_accessible(pipeline):
    result = asyncio.run(pipeline.execute_query(COMPANY_5, 2, "dags"))

    assert result.success


def test_unknown_integration(pipeline):
    with pytest.raises(NotFoundError):
        asyncio.run(pipeline.execute_query(COMPANY_5, 99, "dags"))


def test_deleted_and_inactive_integrations_are_not_found(pipeline, repository):
    repository.soft_delete(1)
    repository.update(2, is_active=False)

    with pytest.raises(NotFoundError, match="deleted"):
        asyncio.run(pipeline.execute_query(COMPANY_5, 1, "dags"))
    with pytest.raises(NotFoundError, match="not active"):
        asyncio.run(pipeline.execute_query(COMPANY_5, 2, "dags"))
    assert RecordingConnector.calls == []


def test_foreign_integration_is_unauthorized(pipeline):
    with pytest.raises(UnauthorizedError):
        asyncio.run(pipeline.execute_query(COMPANY_5, 3, "SELECT 1"))
    with pytest.raises(UnauthorizedError):
        asyncio.run(pipeline.list_databases(Principal(client_id=8), 2))
    assert RecordingConnector.calls == []


def test_platform_admin_reaches_everything(pipeline):
    admin = Principal(is_platform_admin=True)

    assert asyncio.run(pipeline.execute_query(admin, 3, "SELECT 1")).success


def test_unregistered_kind_is_fatal(repository):
    pipeline = QueryPipeline(repository, registry=ConnectorRegistry())

    with pytest.raises(UnknownPlatformKindError):
        asyncio.run(pipeline.execute_query(COMPANY_5, 1, "dags"))


def test_test_connection(pipeline):
    result = asyncio.run(pipeline.test_connection("airflow", {"base_url": "https://af"}))
    missing = asyncio.run(pipeline.test_connection("airflow", {}))

    assert result.success
    assert result.metadata == {"base_url": "https://af"}
    assert not missing.success


def test_schema_discovery_is_cached(pipeline):
    first = asyncio.run(pipeline.list_databases(COMPANY_5, 1, search="etl"))
    second = asyncio.run(pipeline.list_databases(COMPANY_5, 1, search="etl"))
    tables = asyncio.run(pipeline.list_tables(COMPANY_5, 1, "etl"))

    assert first == second == ["etl", "reporting"]
    assert tables == ["extract", "load"]
    assert [call[0] for call in RecordingConnector.calls] == ["databases", "tables"]
    assert RecordingConnector.calls[0][1]["search_pattern"] == "etl"


def test_available_integrations(pipeline):
    names = [i.name for i in pipeline.available_integrations(5)]

    assert names == ["Airflow", "Shared"]
