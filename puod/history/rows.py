"""Helpers over Airflow run and task-instance rows."""

from typing import Any, Iterable, List, Optional

import pandas as pd

from puod.connectors.base.results import Row

RUN_TIMESTAMP_FIELDS = (
    "end_date",
    "start_date",
    "execution_date",
    "logical_date",
    "data_interval_end",
    "data_interval_start",
)


def run_id(row: Optional[Row]) -> Optional[str]:
    """The row's ``dag_run_id`` (or ``run_id``), stripped; None when absent."""
    if not row:
        return None
    raw = row.get("dag_run_id")
    if raw is None:
        raw = row.get("run_id")
    if raw is None:
        return None
    return str(raw).strip()


def parse_timestamp(value: Any) -> Optional[float]:
    """Seconds since the epoch, or None for blanks and unparseable values."""
    if not value:
        return None
    try:
        stamp = pd.to_datetime(value, utc=True, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(stamp):
        return None
    return stamp.timestamp()


def row_timestamp(row: Optional[Row]) -> float:
    """First parseable timestamp among the run date fields, 0.0 if none."""
    if not row:
        return 0.0
    for field_name in RUN_TIMESTAMP_FIELDS:
        stamp = parse_timestamp(row.get(field_name))
        if stamp is not None:
            return stamp
    return 0.0


def sort_runs_desc(rows: Iterable[Row]) -> List[Row]:
    """Most recent first; rows with equal timestamps keep their order."""
    return sorted(rows, key=row_timestamp, reverse=True)
