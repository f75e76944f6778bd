"""Lakehouse connector for Databricks workspaces.

SQL runs through the SQL Statement Execution API on a SQL warehouse. A few
resource paths are served from the workspace REST API instead so that cluster
and job filters have rows to work on:

* ``clusters``: ``/api/2.0/clusters/list``
* ``jobs``: ``/api/2.1/jobs/list``
* ``jobs/runs`` (or ``runs``): ``/api/2.1/jobs/runs/list``

Configuration keys: ``host`` and ``token`` (required), ``warehouse_id``
(required for SQL), optional ``catalog`` and ``timeout_seconds``.
"""

import time
from typing import Any, Dict, List, Optional

import pandas as pd
import requests

from puod.config import HttpSettings
from puod.connectors.base import (
    Config,
    ConnectionResult,
    Connector,
    InvalidConfigurationError,
    RemoteRequestError,
    Row,
    UnsupportedQueryError,
    get_data_source,
    get_int_config,
    require_keys,
)
from puod.connectors.base.frames import frame_to_rows
from puod.connectors.base.http import create_session, truncate
from puod.connectors.base.sql_guard import is_read_only_query
from puod.connectors.registry import register_connector
from puod.logging import get_logger

logger = get_logger(__name__)

STATEMENT_WAIT_TIMEOUT = "30s"
STATEMENT_POLL_INTERVAL = 1.0
STATEMENT_MAX_POLLS = 60
RUNS_PAGE_LIMIT = 25

CLUSTER_COLUMNS = [
    "cluster_id",
    "cluster_name",
    "state",
    "spark_version",
    "node_type_id",
    "num_workers",
    "creator_user_name",
    "start_time",
]


@register_connector("databricks")
class DatabricksConnector(Connector):
    """Databricks SQL warehouses, clusters and jobs."""

    name = "databricks"

    def validate_config(self, config: Config) -> None:
        require_keys(config, ["host", "token"], self.name)

    def _test_connection(self, config: Config) -> ConnectionResult:
        response = self._get(config, "/api/2.0/clusters/list")
        if not response.ok:
            return ConnectionResult.failed(
                f"Connection failed: {response.status_code} {truncate(response.text)}"
            )
        return ConnectionResult(
            success=True,
            metadata={
                "host": self._base_url(config),
                "clusters": len(response.json().get("clusters") or []),
                "tested_at": pd.Timestamp.now(tz="UTC").isoformat(),
            },
        )

    def _execute_query(self, query: str, config: Config) -> List[Row]:
        resource = query.strip("/").lower()
        if resource == "clusters":
            return self._list_clusters(config)
        if resource == "jobs":
            return self._list_jobs(config)
        if resource in ("jobs/runs", "runs"):
            return self._list_runs(config)

        if not is_read_only_query(query):
            raise UnsupportedQueryError(
                "only read-only SQL (SELECT, WITH, SHOW, DESCRIBE, EXPLAIN) or "
                "the clusters, jobs and jobs/runs resources are allowed",
                self.name,
            )
        return self._run_statement(query, config)

    def _list_databases(self, config: Config) -> List[str]:
        rows = self._run_statement("SHOW SCHEMAS", config)
        names = [_first_value(row) for row in rows]
        names = [n for n in names if n]

        search = (config.get("search_pattern") or "").strip().lower()
        if search:
            names = [n for n in names if search in n.lower()]
        limit = get_int_config(config, "max_results", 0)
        return names[:limit] if limit > 0 else names

    def _list_tables(self, database: str, config: Config) -> List[str]:
        rows = self._run_statement(f"SHOW TABLES IN `{database}`", config)
        return [row["tableName"] for row in rows if row.get("tableName")]

    def _list_clusters(self, config: Config) -> List[Row]:
        response = self._get(config, "/api/2.0/clusters/list")
        self._raise_for_status(response)
        clusters = response.json().get("clusters") or []
        if not clusters:
            return []

        frame = pd.DataFrame(clusters).reindex(columns=CLUSTER_COLUMNS)
        frame["start_time"] = _epoch_ms_to_iso(frame["start_time"])
        return frame_to_rows(frame)

    def _list_jobs(self, config: Config) -> List[Row]:
        response = self._get(config, "/api/2.1/jobs/list")
        self._raise_for_status(response)
        jobs = response.json().get("jobs") or []
        if not jobs:
            return []

        frame = pd.DataFrame(
            [
                {
                    "job_id": job.get("job_id"),
                    "name": (job.get("settings") or {}).get("name"),
                    "creator_user_name": job.get("creator_user_name"),
                    "created_time": job.get("created_time"),
                }
                for job in jobs
            ]
        )
        frame["created_time"] = _epoch_ms_to_iso(frame["created_time"])
        return frame_to_rows(frame)

    def _list_runs(self, config: Config) -> List[Row]:
        params: Dict[str, Any] = {"limit": RUNS_PAGE_LIMIT}
        job_ids = get_data_source(config).get("jobIds") or []
        if len(job_ids) == 1:
            params["job_id"] = job_ids[0]

        response = self._get(config, "/api/2.1/jobs/runs/list", params=params)
        self._raise_for_status(response)
        runs = response.json().get("runs") or []
        if not runs:
            return []

        frame = pd.DataFrame(
            [
                {
                    "run_id": run.get("run_id"),
                    "job_id": run.get("job_id"),
                    "run_name": run.get("run_name"),
                    "state": (run.get("state") or {}).get("life_cycle_state"),
                    "result_state": (run.get("state") or {}).get("result_state"),
                    "start_time": run.get("start_time"),
                    "end_time": run.get("end_time"),
                    "run_page_url": run.get("run_page_url"),
                }
                for run in runs
            ]
        )
        frame["start_time"] = _epoch_ms_to_iso(frame["start_time"])
        frame["end_time"] = _epoch_ms_to_iso(frame["end_time"])
        return frame_to_rows(frame)

    def _run_statement(self, statement: str, config: Config) -> List[Row]:
        warehouse_id = (config.get("warehouse_id") or "").strip()
        if not warehouse_id:
            raise InvalidConfigurationError(
                "missing required config: warehouse_id", self.name
            )

        body: Dict[str, Any] = {
            "warehouse_id": warehouse_id,
            "statement": statement,
            "wait_timeout": STATEMENT_WAIT_TIMEOUT,
            "disposition": "INLINE",
            "format": "JSON_ARRAY",
        }
        if config.get("catalog"):
            body["catalog"] = config["catalog"]

        response = self._post(config, "/api/2.0/sql/statements", body)
        self._raise_for_status(response)
        payload = response.json()

        polls = 0
        while _statement_state(payload) in ("PENDING", "RUNNING"):
            if polls >= STATEMENT_MAX_POLLS:
                raise RemoteRequestError(
                    f"Statement {payload.get('statement_id')} did not finish in time",
                    self.name,
                )
            time.sleep(STATEMENT_POLL_INTERVAL)
            response = self._get(
                config, f"/api/2.0/sql/statements/{payload['statement_id']}"
            )
            self._raise_for_status(response)
            payload = response.json()
            polls += 1

        state = _statement_state(payload)
        if state != "SUCCEEDED":
            error = (payload.get("status") or {}).get("error") or {}
            raise RemoteRequestError(
                f"Statement {state or 'UNKNOWN'}: {error.get('message', 'no details')}",
                self.name,
            )

        columns = [
            column["name"]
            for column in ((payload.get("manifest") or {}).get("schema") or {}).get(
                "columns", []
            )
        ]
        data = (payload.get("result") or {}).get("data_array") or []
        if not data:
            return []
        return frame_to_rows(pd.DataFrame(data, columns=columns))

    def _base_url(self, config: Config) -> str:
        host = config["host"].strip().rstrip("/")
        if not host.startswith(("http://", "https://")):
            host = f"https://{host}"
        return host

    def _session(self, config: Config) -> requests.Session:
        return create_session(
            {"token": config["token"]}, self.http_settings, connector_name=self.name
        )

    def _timeout(self, config: Config) -> float:
        settings = self.http_settings or HttpSettings()
        return float(get_int_config(config, "timeout_seconds", int(settings.timeout)))

    def _get(
        self, config: Config, path: str, params: Optional[Dict[str, Any]] = None
    ) -> requests.Response:
        with self._session(config) as session:
            return session.get(
                self._base_url(config) + path,
                params=params,
                timeout=self._timeout(config),
            )

    def _post(self, config: Config, path: str, body: Dict[str, Any]) -> requests.Response:
        with self._session(config) as session:
            return session.post(
                self._base_url(config) + path, json=body, timeout=self._timeout(config)
            )

    def _raise_for_status(self, response: requests.Response) -> None:
        if response.ok:
            return
        raise RemoteRequestError(
            f"Databricks API error: {response.status_code} {truncate(response.text)}",
            self.name,
            status_code=response.status_code,
        )


def _statement_state(payload: Dict[str, Any]) -> Optional[str]:
    return (payload.get("status") or {}).get("state")


def _epoch_ms_to_iso(values: pd.Series) -> pd.Series:
    """Databricks reports times as epoch milliseconds; 0 or missing means unset."""
    numeric = pd.to_numeric(values, errors="coerce")
    stamps = pd.to_datetime(numeric.where(numeric > 0), unit="ms", utc=True)
    return stamps.map(lambda ts: None if pd.isna(ts) else ts.isoformat())


def _first_value(row: Row) -> Optional[str]:
    for key in ("databaseName", "namespace", "schema_name"):
        if row.get(key):
            return row[key]
    return next(iter(row.values()), None)
