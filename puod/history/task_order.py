"""Display order for the tasks of one workflow run.

Tasks are emitted in dependency order. Among tasks that are ready at the same
time the one whose current attempt happened first wins, then the task id.
A dependency cycle degrades to plain task-id order instead of failing.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
from urllib.parse import quote

import networkx as nx

from puod.connectors.base.results import QueryResult, Row
from puod.history.rows import row_timestamp
from puod.logging import get_logger

logger = get_logger(__name__)

NOT_RUN_STATE = "not_run"


@dataclass(frozen=True)
class TaskDisplayRow:
    """One task with its current attempt and how many attempts it had."""

    task_id: str
    state: Optional[str]
    try_number: int
    attempt_count: int
    attempt: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        if self.attempt_count == 0:
            return {
                "task_id": self.task_id,
                "state": self.state,
                "start_date": None,
                "end_date": None,
                "_try_number": 0,
                "_try_total": 0,
            }
        row = dict(self.attempt)
        row["_try_number"] = self.try_number
        row["_try_total"] = self.attempt_count
        return row


def _task_id(row: Optional[Row]) -> str:
    value = (row or {}).get("task_id")
    return str(value) if value else ""


def _try_number(row: Row) -> int:
    try:
        return int(row.get("try_number") or 0)
    except (TypeError, ValueError):
        return 0


def group_attempts(instances: Iterable[Row]) -> Dict[str, List[Row]]:
    """Task instances grouped by task id, in first-seen order."""
    groups: Dict[str, List[Row]] = {}
    for instance in instances:
        task_id = _task_id(instance)
        if task_id:
            groups.setdefault(task_id, []).append(instance)
    return groups


def current_attempt(attempts: List[Row]) -> Optional[Row]:
    """Highest try number; ties go to the most recent timestamp."""
    if not attempts:
        return None
    return max(attempts, key=lambda row: (_try_number(row), row_timestamp(row)))


def build_task_graph(definitions: Iterable[Row]) -> nx.DiGraph:
    """Edges run from each upstream task to its dependant.

    Dependencies on task ids that are not among the definitions are ignored.
    """
    graph = nx.DiGraph()
    definitions = [d for d in definitions if _task_id(d)]
    for definition in definitions:
        graph.add_node(_task_id(definition))

    for definition in definitions:
        task_id = _task_id(definition)
        for upstream in definition.get("upstream_task_ids") or []:
            if str(upstream) in graph:
                graph.add_edge(str(upstream), task_id)
        for downstream in definition.get("downstream_task_ids") or []:
            if str(downstream) in graph:
                graph.add_edge(task_id, str(downstream))
    return graph


def order_task_ids(definitions: Iterable[Row], groups: Dict[str, List[Row]]) -> List[str]:
    graph = build_task_graph(definitions)

    def sort_key(task_id: str):
        attempt = current_attempt(groups.get(task_id, []))
        return (row_timestamp(attempt) if attempt else 0.0, task_id)

    try:
        return list(nx.lexicographical_topological_sort(graph, key=sort_key))
    except nx.NetworkXUnfeasible:
        logger.warning("Task dependencies contain a cycle, ordering tasks by id")
        return sorted(graph.nodes)


def order_tasks(definitions: List[Row], instances: List[Row]) -> List[TaskDisplayRow]:
    """Task rows for display.

    With definitions, every defined task is emitted in dependency order and
    tasks without instances get a ``not_run`` row. Without definitions, one
    row per task id seen in ``instances``.
    """
    groups = group_attempts(instances)

    if definitions:
        task_ids = order_task_ids(definitions, groups)
    else:
        task_ids = list(groups)

    rows = []
    for task_id in task_ids:
        attempts = groups.get(task_id, [])
        attempt = current_attempt(attempts)
        if attempt is None:
            rows.append(TaskDisplayRow(task_id, NOT_RUN_STATE, 0, 0))
            continue
        rows.append(
            TaskDisplayRow(
                task_id=task_id,
                state=attempt.get("state"),
                try_number=_try_number(attempt),
                attempt_count=len(attempts),
                attempt=dict(attempt),
            )
        )
    return rows


def task_queries(workflow_id: str, run_id: str):
    """Airflow resource paths for a run's task definitions and instances."""
    dag = quote(workflow_id, safe="")
    return (
        f"/api/v1/dags/{dag}/tasks",
        f"/api/v1/dags/{dag}/dagRuns/{quote(run_id, safe='')}/taskInstances",
    )


async def fetch_run_tasks(
    execute_query: Callable[[int, str], Awaitable[QueryResult]],
    integration_id: int,
    workflow_id: str,
    run_id: str,
) -> List[TaskDisplayRow]:
    """Fetch definitions and instances for one run and order them.

    A failed definitions fetch falls back to instance order; failed instances
    leave every defined task as not run.
    """
    definitions_query, instances_query = task_queries(workflow_id, run_id)
    definitions, instances = await asyncio.gather(
        execute_query(integration_id, definitions_query),
        execute_query(integration_id, instances_query),
    )
    for label, result in (("definitions", definitions), ("instances", instances)):
        if not result.success:
            logger.warning(
                f"Fetching task {label} for '{workflow_id}' failed: {result.error_message}"
            )
    return order_tasks(
        (definitions.rows or []) if definitions.success else [],
        (instances.rows or []) if instances.success else [],
    )
