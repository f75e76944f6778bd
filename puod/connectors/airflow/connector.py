"""Workflow orchestrator connector speaking the Airflow stable REST API.

Configuration keys:

* ``base_url`` (required): Airflow webserver root, e.g. ``https://airflow.example.com``
* credentials: see :mod:`puod.connectors.base.http`
* ``timeout_seconds``: per-request timeout override

Schema discovery treats DAGs as databases and their tasks as tables.
``list_databases`` understands the overlay keys written by the schema cache:
``target_dags`` (comma separated, checked one by one), ``include_paused``,
``search_pattern``, ``page_limit`` and ``max_dags`` / ``max_results``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from puod.config import HttpSettings
from puod.connectors.airflow import endpoints
from puod.connectors.base import (
    Config,
    ConnectionResult,
    Connector,
    InvalidConfigurationError,
    RemoteRequestError,
    Row,
    UnsupportedQueryError,
    get_bool_config,
    get_int_config,
    require_keys,
)
from puod.connectors.base.http import (
    create_session,
    has_credentials,
    truncate,
    validate_profile_auth,
)
from puod.connectors.registry import register_connector
from puod.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_DAGS = 5000
DAGS_PAGE_LIMIT = 100


@register_connector("airflow")
class AirflowConnector(Connector):
    """Read-only access to DAGs, runs and tasks of one Airflow deployment."""

    name = "airflow"

    def validate_config(self, config: Config) -> None:
        require_keys(config, ["base_url"], self.name)
        if not has_credentials(config):
            raise InvalidConfigurationError(
                "missing credentials: provide token, username/password, "
                "cookie_header or auth_type=profile",
                self.name,
            )
        validate_profile_auth(config, self.name)

    def _test_connection(self, config: Config) -> ConnectionResult:
        response = self._get(config, "/api/v1/health")
        if not response.ok:
            return ConnectionResult.failed(
                f"Connection failed: {response.status_code} {truncate(response.text)}"
            )

        return ConnectionResult(
            success=True,
            metadata={
                "base_url": config["base_url"],
                "health": _json_or_text(response),
                "tested_at": datetime.now(timezone.utc).isoformat(),
            },
        )

    def _execute_query(self, query: str, config: Config) -> List[Row]:
        if not endpoints.is_read_only(query):
            raise UnsupportedQueryError(
                f"only read-only Airflow resources are allowed, got '{query}'",
                self.name,
            )

        batch = endpoints.parse_batch_runs(query)
        if batch is not None:
            if not batch.dag_ids:
                raise UnsupportedQueryError("dagRuns/list requires dag_ids", self.name)
            response = self._post(
                config, "/api/v1/dags/~/dagRuns/list", batch.to_body()
            )
        else:
            response = self._get(config, endpoints.normalize_endpoint(query))

        self._raise_for_status(response)
        return endpoints.parse_response(response.json())

    def _list_databases(self, config: Config) -> List[str]:
        target_dags = [
            d.strip() for d in (config.get("target_dags") or "").split(",") if d.strip()
        ]
        if target_dags:
            return self._validate_target_dags(target_dags, config)

        page_limit = get_int_config(config, "page_limit", DAGS_PAGE_LIMIT)
        max_dags = get_int_config(
            config, "max_dags", get_int_config(config, "max_results", DEFAULT_MAX_DAGS)
        )
        search = (config.get("search_pattern") or "").strip()

        dag_ids: List[str] = []
        offset = 0
        total_entries = None
        while len(dag_ids) < max_dags and (total_entries is None or offset < total_entries):
            params: Dict[str, Any] = {
                "limit": page_limit,
                "offset": offset,
                "only_active": "false",
            }
            if search:
                params["dag_id_pattern"] = f"%{search}%"

            response = self._get(config, "/api/v1/dags", params=params)
            self._raise_for_status(response)
            payload = response.json()
            dags = payload.get("dags")
            if not dags:
                break
            if isinstance(payload.get("total_entries"), int):
                total_entries = payload["total_entries"]

            for dag in dags:
                if dag.get("is_paused") is True:
                    continue
                if dag.get("dag_id"):
                    dag_ids.append(dag["dag_id"])
            offset += page_limit

        logger.debug(f"Listed {len(dag_ids)} DAGs from {config['base_url']}")
        return dag_ids[:max_dags]

    def _validate_target_dags(self, target_dags: List[str], config: Config) -> List[str]:
        """Keep the configured DAGs that exist (and are unpaused unless include_paused)."""
        include_paused = get_bool_config(config, "include_paused")
        validated = []
        for dag_id in target_dags:
            response = self._get(config, f"/api/v1/dags/{quote(dag_id, safe='')}")
            if not response.ok:
                logger.debug(f"Skipping DAG '{dag_id}': {response.status_code}")
                continue
            if not include_paused and response.json().get("is_paused") is True:
                continue
            validated.append(dag_id)
        return validated

    def _list_tables(self, database: str, config: Config) -> List[str]:
        response = self._get(config, f"/api/v1/dags/{quote(database, safe='')}/tasks")
        self._raise_for_status(response)
        tasks = response.json().get("tasks") or []
        return sorted(task["task_id"] for task in tasks if task.get("task_id"))

    def _session(self, config: Config) -> requests.Session:
        return create_session(config, self.http_settings, connector_name=self.name)

    def _timeout(self, config: Config) -> float:
        settings = self.http_settings or HttpSettings()
        return float(get_int_config(config, "timeout_seconds", int(settings.timeout)))

    def _url(self, config: Config, path: str) -> str:
        return config["base_url"].strip().rstrip("/") + path

    def _get(
        self, config: Config, path: str, params: Optional[Dict[str, Any]] = None
    ) -> requests.Response:
        with self._session(config) as session:
            return session.get(
                self._url(config, path), params=params, timeout=self._timeout(config)
            )

    def _post(self, config: Config, path: str, body: Dict[str, Any]) -> requests.Response:
        with self._session(config) as session:
            return session.post(
                self._url(config, path), json=body, timeout=self._timeout(config)
            )

    def _raise_for_status(self, response: requests.Response) -> None:
        if response.ok:
            return
        raise RemoteRequestError(
            f"Airflow API error: {response.status_code} {truncate(response.text)}",
            self.name,
            status_code=response.status_code,
        )


def _json_or_text(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
