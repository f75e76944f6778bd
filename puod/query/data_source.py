"""Per-invocation data-source filters.

A dashboard card can restrict what a query returns with a small JSON payload::

    {"namedResourceIds": ["etl_daily"], "limit": 10, "orderBy": "-end_date",
     "state": ["failed"], "clusterIds": [...], "jobIds": [...]}

``dagIds`` and ``pipelineNames`` are accepted as aliases for
``namedResourceIds``; ``states`` and ``status`` for ``state``. Key lookup is
case-insensitive. For the workflow orchestrator the filter is pushed into the
query string before execution; for every kind the rows are filtered again
afterwards. All functions here are pure.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import quote

from puod.connectors.airflow.endpoints import join_query, split_query
from puod.connectors.base import PlatformKind, Row
from puod.logging import get_logger

logger = get_logger(__name__)

NAMED_RESOURCE_KEYS = ("namedResourceIds", "dagIds", "pipelineNames")
STATE_KEYS = ("state", "states", "status")
DEFAULT_BATCH_PAGE_LIMIT = 100


@dataclass(frozen=True)
class DataSourceFilter:
    """Parsed data-source filter with aliases resolved."""

    named_resource_ids: Tuple[str, ...] = ()
    limit: Optional[int] = None
    order_by: Optional[str] = None
    states: Tuple[str, ...] = ()
    cluster_ids: Tuple[str, ...] = ()
    job_ids: Tuple[str, ...] = ()

    def to_json(self) -> str:
        """Canonical payload handed to connectors as ``data_source_json``."""
        data = {
            "namedResourceIds": list(self.named_resource_ids),
            "limit": self.limit,
            "orderBy": self.order_by,
            "state": list(self.states),
            "clusterIds": list(self.cluster_ids),
            "jobIds": list(self.job_ids),
        }
        return json.dumps(
            {key: value for key, value in data.items() if value not in (None, [])},
            sort_keys=True,
        )


def parse_data_source(
    raw: Union[str, Mapping[str, Any], None]
) -> Optional[DataSourceFilter]:
    """Parse a filter payload given as JSON text or as a mapping.

    Returns:
        The filter, or None when nothing usable was supplied. Malformed JSON
        is logged and treated as no filter.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Ignoring malformed data-source filter: {e}")
            return None
    if not isinstance(raw, Mapping):
        logger.warning(
            f"Ignoring data-source filter of type {type(raw).__name__}; expected an object"
        )
        return None

    lowered = {str(key).lower(): value for key, value in raw.items()}

    def first_list(keys) -> Tuple[str, ...]:
        for key in keys:
            values = _as_strings(lowered.get(key.lower()))
            if values:
                return values
        return ()

    order_by = lowered.get("orderby")
    return DataSourceFilter(
        named_resource_ids=first_list(NAMED_RESOURCE_KEYS),
        limit=_as_limit(lowered.get("limit")),
        order_by=str(order_by).strip() if order_by else None,
        states=first_list(STATE_KEYS),
        cluster_ids=first_list(("clusterIds",)),
        job_ids=first_list(("jobIds",)),
    )


def _as_strings(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    elif not isinstance(value, (list, tuple)):
        value = [value]
    return tuple(str(v).strip() for v in value if v is not None and str(v).strip())


def _as_limit(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        limit = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric data-source limit: {value!r}")
        return None
    return limit if limit >= 0 else None


def rewrite_query(kind: PlatformKind, query: str, data_source: DataSourceFilter) -> str:
    """Embed the filter into the query string where the platform supports it."""
    if kind is not PlatformKind.WORKFLOW_ORCHESTRATOR:
        return query
    return rewrite_orchestrator_query(query, data_source)


def rewrite_orchestrator_query(query: str, data_source: DataSourceFilter) -> str:
    """Push the filter into an Airflow resource path.

    A run listing restricted to one DAG targets that DAG's runs endpoint; to
    several DAGs it becomes the ``dagRuns/list`` batch form. Any other query
    gets ``limit`` and ``order_by`` embedded as parameters.
    """
    path, params = split_query(query)
    dag_ids = list(data_source.named_resource_ids)

    if dag_ids and "dagruns" in path.lower():
        if data_source.order_by:
            params["order_by"] = data_source.order_by

        if len(dag_ids) == 1:
            params.pop("dag_ids", None)
            if data_source.limit is not None:
                params["limit"] = data_source.limit
            return join_query(f"/api/v1/dags/{quote(dag_ids[0], safe='')}/dagRuns", params)

        page_limit = data_source.limit
        if page_limit is None:
            page_limit = (
                params.get("limit") or params.get("page_limit") or DEFAULT_BATCH_PAGE_LIMIT
            )
        batch = {"dag_ids": ",".join(dag_ids), "page_limit": page_limit}
        if params.get("order_by"):
            batch["order_by"] = params["order_by"]
        if data_source.states:
            batch["states"] = ",".join(data_source.states)
        return join_query("dagRuns/list", batch)

    if data_source.limit is not None:
        params["limit"] = data_source.limit
    if data_source.order_by:
        params["order_by"] = data_source.order_by
    return join_query(path, params)


def apply_post_filter(
    kind: PlatformKind, rows: List[Row], data_source: DataSourceFilter
) -> List[Row]:
    """Filter rows returned by a connector. Warehouse rows pass unchanged."""
    if kind is PlatformKind.WORKFLOW_ORCHESTRATOR:
        return _filter_orchestrator(rows, data_source)
    if kind is PlatformKind.LAKEHOUSE:
        return _filter_lakehouse(rows, data_source)
    if kind is PlatformKind.CLOUD_PIPELINE:
        return _filter_cloud_pipeline(rows, data_source)
    return list(rows)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _first_present(row: Row, keys) -> Tuple[bool, Any]:
    for key in keys:
        if key in row:
            return True, row[key]
    return False, None


def _keep_matching(rows: List[Row], keys, allowed: Tuple[str, ...]) -> List[Row]:
    allowed_set = set(allowed)
    kept = []
    for row in rows:
        present, value = _first_present(row, keys)
        if present and _text(value) in allowed_set:
            kept.append(row)
    return kept


def _apply_limit(rows: List[Row], limit: Optional[int]) -> List[Row]:
    return rows if limit is None else rows[:limit]


def _filter_orchestrator(rows: List[Row], data_source: DataSourceFilter) -> List[Row]:
    filtered = list(rows)
    if data_source.named_resource_ids:
        if any("dag_id" in row for row in filtered):
            filtered = _keep_matching(filtered, ("dag_id",), data_source.named_resource_ids)
        else:
            logger.debug("No 'dag_id' in rows, skipping DAG filter")
    if data_source.states:
        filtered = _keep_matching(filtered, ("state",), data_source.states)
    return filtered


def _filter_lakehouse(rows: List[Row], data_source: DataSourceFilter) -> List[Row]:
    filtered = list(rows)
    if data_source.cluster_ids:
        filtered = _keep_matching(filtered, ("cluster_id",), data_source.cluster_ids)
    if data_source.job_ids:
        filtered = _keep_matching(filtered, ("job_id",), data_source.job_ids)
    if data_source.states:
        filtered = _keep_matching(
            filtered, ("state", "result_state", "status"), data_source.states
        )
    return _apply_limit(filtered, data_source.limit)


def _filter_cloud_pipeline(rows: List[Row], data_source: DataSourceFilter) -> List[Row]:
    filtered = list(rows)
    if data_source.named_resource_ids:
        filtered = _keep_matching(
            filtered, ("pipelineName", "pipeline_name"), data_source.named_resource_ids
        )
    if data_source.states:
        filtered = _keep_matching(filtered, ("status",), data_source.states)
    return _apply_limit(filtered, data_source.limit)


def merge_into_config(
    configuration: Mapping[str, str], data_source: Optional[DataSourceFilter]
) -> Dict[str, str]:
    """Copy of ``configuration`` carrying the filter as ``data_source_json``."""
    config = dict(configuration)
    if data_source is not None:
        config["data_source_json"] = data_source.to_json()
    return config
