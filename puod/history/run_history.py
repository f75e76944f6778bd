"""Latest-run and history tracking per workflow.

Each refresh fetches a page of recent runs for one workflow and reconciles it
with the cached pointer ``{latest, history}``:

* with no cached history, history is the batch minus its newest run;
* when the latest run id changed since the previous fetch, the previous
  latest is carried to the front of the cached history, so a run that just
  finished does not drop out of view between two polls;
* otherwise the cached history is kept as is.

History never holds more than ``max_history`` runs and never contains the
latest run's id.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional
from urllib.parse import quote

from puod.connectors.base.results import QueryResult, Row
from puod.history.rows import run_id, sort_runs_desc
from puod.logging import get_logger

logger = get_logger(__name__)

NO_RUNS_STATE = "no_runs"
DEFAULT_MAX_HISTORY = 5
DEFAULT_PAGE_SIZE = 30

ExecuteQuery = Callable[[int, str], Awaitable[QueryResult]]


@dataclass(frozen=True)
class RunPointer:
    latest: Row
    history: List[Row] = field(default_factory=list)


class RunHistoryCache:
    """Run pointers keyed by workflow id. One instance per dashboard/session."""

    def __init__(self):
        self._pointers: Dict[str, RunPointer] = {}

    def get(self, workflow_id: str) -> Optional[RunPointer]:
        return self._pointers.get(workflow_id)

    def apply(self, workflow_id: str, pointer: RunPointer) -> None:
        self._pointers[workflow_id] = pointer

    def clear(self) -> None:
        self._pointers.clear()

    def __contains__(self, workflow_id: str) -> bool:
        return workflow_id in self._pointers

    def __len__(self) -> int:
        return len(self._pointers)


def no_runs_placeholder(workflow_id: str) -> Row:
    return {"dag_id": workflow_id, "state": NO_RUNS_STATE}


class RunHistoryReconciler:
    """Keeps a ``RunHistoryCache`` current from the query pipeline."""

    def __init__(
        self,
        cache: RunHistoryCache,
        execute_query: ExecuteQuery,
        integration_id: int,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_history: int = DEFAULT_MAX_HISTORY,
    ):
        self.cache = cache
        self.execute_query = execute_query
        self.integration_id = integration_id
        self.page_size = page_size
        self.max_history = max_history

    def reconcile(self, workflow_id: str, batch: Iterable[Row]) -> RunPointer:
        """Fold a freshly fetched batch of runs into the workflow's pointer."""
        runs = sort_runs_desc(batch)
        new_latest = runs[0] if runs else no_runs_placeholder(workflow_id)

        previous = self.cache.get(workflow_id)
        previous_latest = previous.latest if previous else None
        cached_history = previous.history if previous else []

        previous_id = run_id(previous_latest)
        new_id = run_id(new_latest)

        if not cached_history:
            history = runs[1 : 1 + self.max_history]
        elif previous_id and new_id and previous_id != new_id:
            cleaned = [
                row
                for row in cached_history
                if run_id(row) and run_id(row) not in (previous_id, new_id)
            ]
            history = ([previous_latest] + cleaned)[: self.max_history]
            logger.debug(
                f"Workflow '{workflow_id}' rotated: {previous_id} -> {new_id}"
            )
        else:
            history = list(cached_history)

        if new_id:
            history = [row for row in history if run_id(row) != new_id]
        history = history[: self.max_history]

        pointer = RunPointer(latest=new_latest, history=history)
        self.cache.apply(workflow_id, pointer)
        return pointer

    def runs_query(self, workflow_id: str) -> str:
        return (
            f"/api/v1/dags/{quote(workflow_id, safe='')}/dagRuns"
            f"?order_by=-end_date&limit={self.page_size}"
        )

    async def refresh(self, workflow_id: str) -> RunPointer:
        """Fetch recent runs for one workflow and reconcile them.

        A failed fetch keeps the cached pointer; with nothing cached it
        reconciles against an empty batch.
        """
        result = await self.execute_query(self.integration_id, self.runs_query(workflow_id))
        if result.success:
            return self.reconcile(workflow_id, result.rows or [])

        logger.warning(
            f"Fetching runs for '{workflow_id}' failed: {result.error_message}"
        )
        previous = self.cache.get(workflow_id)
        if previous is not None:
            return previous
        return self.reconcile(workflow_id, [])

    async def refresh_all(self, workflow_ids: Iterable[str]) -> Dict[str, RunPointer]:
        """Refresh every workflow concurrently and wait for all of them."""
        workflow_ids = list(dict.fromkeys(workflow_ids))
        pointers = await asyncio.gather(*(self.refresh(w) for w in workflow_ids))
        return dict(zip(workflow_ids, pointers))
