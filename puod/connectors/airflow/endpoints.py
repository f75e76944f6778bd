"""Airflow REST resource paths accepted as queries.

Queries are resource paths relative to ``/api/v1`` (``dagRuns?limit=25``,
``dags/etl/tasks``) or full ``/api/v1/...`` paths. Only read-only resources
are accepted. ``dagRuns/list?dag_ids=a,b`` is the batch form that maps to
``POST /api/v1/dags/~/dagRuns/list``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode

from puod.connectors.base.results import Row

API_PREFIX = "/api/v1/"

READ_ONLY_RESOURCES = (
    "dagRuns",
    "dags",
    "tasks",
    "pools",
    "connections",
    "variables",
    "xcomEntries",
    "importErrors",
    "backfills",
    "health",
    "version",
)

BATCH_RUNS_PATHS = ("dagruns/list", "/api/v1/dags/~/dagruns/list")

LIST_PROPERTIES = (
    "dag_runs",
    "dags",
    "tasks",
    "task_instances",
    "pools",
    "connections",
    "variables",
    "import_errors",
    "xcom_entries",
)


@dataclass(frozen=True)
class BatchRunsRequest:
    """Body for ``POST /api/v1/dags/~/dagRuns/list``."""

    dag_ids: List[str]
    page_limit: int = 100
    order_by: Optional[str] = None
    states: List[str] = field(default_factory=list)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"dag_ids": self.dag_ids, "page_limit": self.page_limit}
        if self.order_by:
            body["order_by"] = self.order_by
        if self.states:
            body["states"] = self.states
        return body


def split_query(query: str):
    """Split ``path?a=1&b=2`` into the path and an ordered parameter dict."""
    path, _, query_string = query.partition("?")
    return path, dict(parse_qsl(query_string, keep_blank_values=True))


def join_query(path: str, params: Dict[str, Any]) -> str:
    if not params:
        return path
    return f"{path}?{urlencode(params, safe='~,-')}"


def is_read_only(query: str) -> bool:
    lowered = query.lower()
    if lowered.startswith(API_PREFIX):
        return True
    return any(lowered.startswith(resource.lower()) for resource in READ_ONLY_RESOURCES)


def parse_batch_runs(query: str) -> Optional[BatchRunsRequest]:
    """Return the batch request encoded in ``query``, or None if not a batch form."""
    path, params = split_query(query)
    if path.lower().rstrip("/") not in BATCH_RUNS_PATHS:
        return None

    dag_ids = [d.strip() for d in params.get("dag_ids", "").split(",") if d.strip()]
    states = [s.strip() for s in params.get("states", "").split(",") if s.strip()]
    try:
        page_limit = int(params.get("page_limit") or params.get("limit") or 100)
    except ValueError:
        page_limit = 100

    return BatchRunsRequest(
        dag_ids=dag_ids,
        page_limit=page_limit,
        order_by=params.get("order_by") or None,
        states=states,
    )


def normalize_endpoint(query: str) -> str:
    """Map a resource path to the Airflow REST endpoint serving it."""
    if query.lower().startswith(API_PREFIX):
        return query

    lowered = query.lower()
    if lowered.startswith("dagruns"):
        # dagRuns without a dag id lists across all DAGs
        return f"{API_PREFIX}dags/~/dagRuns{query[len('dagRuns'):]}"
    if lowered == "tasks":
        return f"{API_PREFIX}dags/~/tasks"
    if lowered.startswith("health"):
        return f"{API_PREFIX}health"
    if lowered.startswith("version"):
        return f"{API_PREFIX}version"
    return f"{API_PREFIX}{query.lstrip('/')}"


def parse_response(payload: Any) -> List[Row]:
    """Flatten an Airflow response body into rows."""
    if not isinstance(payload, dict):
        if isinstance(payload, list):
            return [_as_row(item) for item in payload]
        return [{"value": payload}]

    for prop in LIST_PROPERTIES:
        if prop not in payload:
            continue
        items = payload[prop]

        if isinstance(items, list):
            return [_as_row(item) for item in items]

        if isinstance(items, dict):
            nested = items.get("task_instances")
            if isinstance(nested, list):
                return [_as_row(item) for item in nested]
            if "task_instance" in items:
                return [_as_row(items["task_instance"])]
            for value in items.values():
                if isinstance(value, list):
                    return [_as_row(item) for item in value]
            return [items]

        if items is not None:
            return [{prop: items}]

    return [payload]


def _as_row(item: Any) -> Row:
    return item if isinstance(item, dict) else {"value": item}
