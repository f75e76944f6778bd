"""Tests for the Airflow REST connector."""

import json
import unittest

import requests_mock

from puod.connectors.airflow import AirflowConnector
from puod.connectors.airflow.endpoints import (
    normalize_endpoint,
    parse_batch_runs,
    parse_response,
)

BASE_URL = "https://airflow.example.com"


class TestAirflowEndpoints(unittest.TestCase):
    def test_normalize_endpoint(self):
        self.assertEqual(
            normalize_endpoint("dagRuns?limit=25"), "/api/v1/dags/~/dagRuns?limit=25"
        )
        self.assertEqual(normalize_endpoint("tasks"), "/api/v1/dags/~/tasks")
        self.assertEqual(normalize_endpoint("health"), "/api/v1/health")
        self.assertEqual(normalize_endpoint("dags/etl/tasks"), "/api/v1/dags/etl/tasks")
        self.assertEqual(normalize_endpoint("/api/v1/pools"), "/api/v1/pools")

    def test_parse_batch_runs(self):
        batch = parse_batch_runs("dagRuns/list?dag_ids=a,b&page_limit=10&states=failed")

        self.assertEqual(batch.dag_ids, ["a", "b"])
        self.assertEqual(batch.page_limit, 10)
        self.assertEqual(batch.states, ["failed"])
        self.assertEqual(
            batch.to_body(), {"dag_ids": ["a", "b"], "page_limit": 10, "states": ["failed"]}
        )
        self.assertIsNone(parse_batch_runs("dagRuns?limit=5"))

    def test_parse_response_shapes(self):
        self.assertEqual(
            parse_response({"dag_runs": [{"dag_run_id": "r1"}], "total_entries": 1}),
            [{"dag_run_id": "r1"}],
        )
        self.assertEqual(
            parse_response({"task_instances": {"task_instances": [{"task_id": "t"}]}}),
            [{"task_id": "t"}],
        )
        self.assertEqual(parse_response({"status": "healthy"}), [{"status": "healthy"}])
        self.assertEqual(parse_response([1, {"a": 2}]), [{"value": 1}, {"a": 2}])


class TestAirflowConnector(unittest.TestCase):
    def setUp(self):
        self.connector = AirflowConnector()
        self.config = {"base_url": BASE_URL + "/", "token": "secret"}

    def test_missing_credentials_fail_validation(self):
        result = self.connector.execute_query("dags", {"base_url": BASE_URL})

        self.assertFalse(result.success)
        self.assertIn("missing credentials", result.error_message)

    def test_profile_auth_requires_client_fields(self):
        result = self.connector.test_connection(
            {"base_url": BASE_URL, "auth_type": "profile", "client_id": "c"}
        )

        self.assertFalse(result.success)
        self.assertIn("client_secret", result.error_message)

    def test_connection_success(self):
        with requests_mock.Mocker() as m:
            m.get(BASE_URL + "/api/v1/health", json={"metadatabase": {"status": "healthy"}})
            result = self.connector.test_connection(self.config)

        self.assertTrue(result.success)
        self.assertEqual(result.metadata["base_url"], BASE_URL + "/")
        self.assertEqual(result.metadata["health"]["metadatabase"]["status"], "healthy")
        self.assertIn("tested_at", result.metadata)
        self.assertEqual(m.last_request.headers["Authorization"], "Bearer secret")

    def test_connection_failure_status(self):
        with requests_mock.Mocker() as m:
            m.get(BASE_URL + "/api/v1/health", status_code=401, text="unauthorized")
            result = self.connector.test_connection(self.config)

        self.assertFalse(result.success)
        self.assertIn("401", result.error_message)

    def test_basic_auth(self):
        config = {"base_url": BASE_URL, "username": "admin", "password": "pw"}
        with requests_mock.Mocker() as m:
            m.get(BASE_URL + "/api/v1/health", json={})
            self.connector.test_connection(config)

        self.assertTrue(m.last_request.headers["Authorization"].startswith("Basic "))

    def test_execute_query_dag_runs(self):
        runs = [{"dag_id": "etl", "dag_run_id": "r1", "state": "success"}]
        with requests_mock.Mocker() as m:
            m.get(
                BASE_URL + "/api/v1/dags/~/dagRuns",
                json={"dag_runs": runs, "total_entries": 1},
            )
            result = self.connector.execute_query("dagRuns?limit=25", self.config)

        self.assertTrue(result.success)
        self.assertEqual(result.rows, runs)
        self.assertEqual(m.last_request.qs, {"limit": ["25"]})

    def test_execute_query_batch_form_posts(self):
        with requests_mock.Mocker() as m:
            m.post(
                BASE_URL + "/api/v1/dags/~/dagRuns/list",
                json={"dag_runs": [{"dag_id": "a"}, {"dag_id": "b"}]},
            )
            result = self.connector.execute_query(
                "dagRuns/list?dag_ids=a,b&page_limit=5", self.config
            )

        self.assertTrue(result.success)
        self.assertEqual(result.row_count, 2)
        self.assertEqual(
            json.loads(m.last_request.body), {"dag_ids": ["a", "b"], "page_limit": 5}
        )

    def test_execute_query_batch_without_dag_ids(self):
        result = self.connector.execute_query("dagRuns/list", self.config)

        self.assertFalse(result.success)
        self.assertIn("dag_ids", result.error_message)

    def test_execute_query_rejects_unknown_resource(self):
        result = self.connector.execute_query("triggerDag/etl", self.config)

        self.assertFalse(result.success)
        self.assertIn("read-only", result.error_message)

    def test_execute_query_remote_error(self):
        with requests_mock.Mocker() as m:
            m.get(BASE_URL + "/api/v1/dags", status_code=500, text="internal error")
            result = self.connector.execute_query("dags", self.config)

        self.assertFalse(result.success)
        self.assertIn("Airflow API error: 500", result.error_message)

    def test_list_databases_paginates_and_skips_paused(self):
        config = dict(self.config, page_limit="2")
        pages = [
            {
                "dags": [
                    {"dag_id": "a", "is_paused": False},
                    {"dag_id": "b", "is_paused": True},
                ],
                "total_entries": 3,
            },
            {"dags": [{"dag_id": "c", "is_paused": False}], "total_entries": 3},
        ]
        with requests_mock.Mocker() as m:
            m.get(BASE_URL + "/api/v1/dags", [{"json": page} for page in pages])
            names = self.connector.list_databases(config)

        self.assertEqual(names, ["a", "c"])
        self.assertEqual(m.call_count, 2)
        self.assertEqual(m.request_history[1].qs["offset"], ["2"])
        self.assertEqual(m.request_history[0].qs["only_active"], ["false"])

    def test_list_databases_search_and_cap(self):
        config = dict(self.config, search_pattern="etl", max_dags="1")
        with requests_mock.Mocker() as m:
            m.get(
                BASE_URL + "/api/v1/dags",
                json={"dags": [{"dag_id": "etl_a"}, {"dag_id": "etl_b"}], "total_entries": 2},
            )
            names = self.connector.list_databases(config)

        self.assertEqual(names, ["etl_a"])
        self.assertEqual(m.last_request.qs["dag_id_pattern"], ["%etl%"])

    def test_list_databases_target_dags(self):
        config = dict(self.config, target_dags="etl, paused ,missing")
        with requests_mock.Mocker() as m:
            m.get(BASE_URL + "/api/v1/dags/etl", json={"dag_id": "etl", "is_paused": False})
            m.get(BASE_URL + "/api/v1/dags/paused", json={"dag_id": "paused", "is_paused": True})
            m.get(BASE_URL + "/api/v1/dags/missing", status_code=404)
            names = self.connector.list_databases(config)
            with_paused = self.connector.list_databases(dict(config, include_paused="true"))

        self.assertEqual(names, ["etl"])
        self.assertEqual(with_paused, ["etl", "paused"])

    def test_list_databases_failure_returns_empty(self):
        with requests_mock.Mocker() as m:
            m.get(BASE_URL + "/api/v1/dags", status_code=503)
            self.assertEqual(self.connector.list_databases(self.config), [])

    def test_list_tables(self):
        with requests_mock.Mocker() as m:
            m.get(
                BASE_URL + "/api/v1/dags/etl/tasks",
                json={"tasks": [{"task_id": "load"}, {"task_id": "extract"}]},
            )
            tables = self.connector.list_tables("etl", self.config)

        self.assertEqual(tables, ["extract", "load"])

    def test_list_tables_quotes_dag_id(self):
        with requests_mock.Mocker() as m:
            m.get(
                BASE_URL + "/api/v1/dags/team%2Fetl%20daily/tasks",
                json={"tasks": [{"task_id": "load"}]},
            )
            tables = self.connector.list_tables("team/etl daily", self.config)

        self.assertEqual(tables, ["load"])


if __name__ == "__main__":
    unittest.main()
