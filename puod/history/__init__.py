from .rows import row_timestamp, run_id, sort_runs_desc
from .run_history import RunHistoryCache, RunHistoryReconciler, RunPointer
from .task_order import TaskDisplayRow, fetch_run_tasks, order_tasks

__all__ = [
    "row_timestamp",
    "run_id",
    "sort_runs_desc",
    "RunHistoryCache",
    "RunHistoryReconciler",
    "RunPointer",
    "TaskDisplayRow",
    "fetch_run_tasks",
    "order_tasks",
]
