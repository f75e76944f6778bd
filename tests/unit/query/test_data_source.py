"""Tests for data-source filter parsing, query rewriting and post-filtering."""

import json

import pytest

from puod.connectors.base import PlatformKind
from puod.query.data_source import (
    DataSourceFilter,
    apply_post_filter,
    merge_into_config,
    parse_data_source,
    rewrite_orchestrator_query,
    rewrite_query,
)

AIRFLOW = PlatformKind.WORKFLOW_ORCHESTRATOR
DATABRICKS = PlatformKind.LAKEHOUSE
GLUE = PlatformKind.CLOUD_PIPELINE
WAREHOUSE = PlatformKind.WAREHOUSE


class TestParseDataSource:
    def test_json_text_with_aliases(self):
        parsed = parse_data_source(
            '{"DagIds": ["a", "b"], "Limit": "10", "orderBy": "-end_date", "status": "failed,queued"}'
        )

        assert parsed == DataSourceFilter(
            named_resource_ids=("a", "b"),
            limit=10,
            order_by="-end_date",
            states=("failed", "queued"),
        )

    def test_mapping_input(self):
        parsed = parse_data_source({"pipelineNames": "etl", "clusterIds": ["c1"], "jobIds": [42]})

        assert parsed.named_resource_ids == ("etl",)
        assert parsed.cluster_ids == ("c1",)
        assert parsed.job_ids == ("42",)
        assert parsed.limit is None

    @pytest.mark.parametrize("raw", [None, "", "   ", "{not json", "[1, 2]", "42"])
    def test_no_filter(self, raw):
        assert parse_data_source(raw) is None

    def test_invalid_limit_ignored(self):
        assert parse_data_source({"limit": "lots"}).limit is None
        assert parse_data_source({"limit": True}).limit is None
        assert parse_data_source({"limit": -1}).limit is None
        assert parse_data_source({"limit": 0}).limit == 0

    def test_to_json_is_canonical(self):
        parsed = parse_data_source({"dagIds": "a,b", "status": ["failed"], "limit": 5})

        assert json.loads(parsed.to_json()) == {
            "namedResourceIds": ["a", "b"],
            "state": ["failed"],
            "limit": 5,
        }

    def test_merge_into_config_does_not_mutate(self):
        configuration = {"base_url": "https://af"}
        merged = merge_into_config(configuration, parse_data_source({"limit": 1}))

        assert json.loads(merged["data_source_json"]) == {"limit": 1}
        assert "data_source_json" not in configuration
        assert merge_into_config(configuration, None) == configuration


class TestRewriteQuery:
    def test_single_dag_targets_dag_runs_endpoint(self):
        f = DataSourceFilter(named_resource_ids=("etl",), limit=10, order_by="-end_date")

        assert (
            rewrite_orchestrator_query("dagRuns?limit=25", f)
            == "/api/v1/dags/etl/dagRuns?limit=10&order_by=-end_date"
        )

    def test_single_dag_id_is_quoted(self):
        f = DataSourceFilter(named_resource_ids=("team a/etl",))

        assert rewrite_orchestrator_query("dagRuns", f) == "/api/v1/dags/team%20a%2Fetl/dagRuns"

    def test_several_dags_use_batch_form(self):
        f = DataSourceFilter(named_resource_ids=("a", "b"), states=("failed",))

        assert (
            rewrite_orchestrator_query("dagRuns?limit=5", f)
            == "dagRuns/list?dag_ids=a,b&page_limit=5&states=failed"
        )

    def test_batch_page_limit_defaults(self):
        f = DataSourceFilter(named_resource_ids=("a", "b"))

        assert rewrite_orchestrator_query("dagRuns", f) == "dagRuns/list?dag_ids=a,b&page_limit=100"
        assert (
            rewrite_orchestrator_query("dagRuns", DataSourceFilter(("a", "b"), limit=7))
            == "dagRuns/list?dag_ids=a,b&page_limit=7"
        )

    def test_other_resources_get_limit_and_order(self):
        f = DataSourceFilter(named_resource_ids=("a",), limit=3, order_by="dag_id")

        assert rewrite_orchestrator_query("dags", f) == "dags?limit=3&order_by=dag_id"

    def test_only_orchestrator_is_rewritten(self):
        f = DataSourceFilter(limit=3)

        assert rewrite_query(DATABRICKS, "SELECT 1", f) == "SELECT 1"
        assert rewrite_query(WAREHOUSE, "SELECT 1", f) == "SELECT 1"
        assert rewrite_query(AIRFLOW, "dags", f) == "dags?limit=3"


class TestPostFilter:
    def test_orchestrator_dag_and_state(self):
        rows = [
            {"dag_id": "a", "state": "failed"},
            {"dag_id": "a", "state": "success"},
            {"dag_id": "b", "state": "failed"},
            {"state": "failed"},
        ]
        f = DataSourceFilter(named_resource_ids=("a",), states=("failed",))

        assert apply_post_filter(AIRFLOW, rows, f) == [{"dag_id": "a", "state": "failed"}]

    def test_orchestrator_dag_filter_skipped_without_dag_id(self):
        rows = [{"task_id": "t1", "state": "failed"}, {"task_id": "t2", "state": "success"}]
        f = DataSourceFilter(named_resource_ids=("a",))

        assert apply_post_filter(AIRFLOW, rows, f) == rows

    def test_lakehouse(self):
        rows = [
            {"job_id": 1, "result_state": "FAILED"},
            {"job_id": 1, "result_state": "SUCCESS"},
            {"job_id": 2, "result_state": "FAILED"},
            {"job_id": 1, "state": "FAILED"},
        ]
        f = DataSourceFilter(job_ids=("1",), states=("FAILED",), limit=1)

        assert apply_post_filter(DATABRICKS, rows, f) == [{"job_id": 1, "result_state": "FAILED"}]

    def test_lakehouse_state_uses_first_present_key(self):
        rows = [{"state": "TERMINATED", "result_state": "FAILED"}]

        assert apply_post_filter(DATABRICKS, rows, DataSourceFilter(states=("FAILED",))) == []

    def test_cloud_pipeline(self):
        rows = [
            {"pipeline_name": "load", "status": "FAILED"},
            {"pipelineName": "load", "status": "SUCCEEDED"},
            {"pipeline_name": "other", "status": "FAILED"},
        ]
        f = DataSourceFilter(named_resource_ids=("load",), states=("FAILED",))

        assert apply_post_filter(GLUE, rows, f) == [{"pipeline_name": "load", "status": "FAILED"}]

    def test_warehouse_unchanged(self):
        rows = [{"a": 1}, {"a": 2}]

        assert apply_post_filter(WAREHOUSE, rows, DataSourceFilter(limit=1)) == rows

    def test_filtering_is_idempotent(self):
        rows = [{"dag_id": d, "state": s} for d in "ab" for s in ("failed", "running")]
        f = DataSourceFilter(named_resource_ids=("b",), states=("running",))

        once = apply_post_filter(AIRFLOW, rows, f)
        assert apply_post_filter(AIRFLOW, once, f) == once
