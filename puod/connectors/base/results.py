from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

Row = Dict[str, Any]


@dataclass(frozen=True)
class ConnectionResult:
    """Result of a connection test."""

    success: bool
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failed(cls, message: str) -> "ConnectionResult":
        return cls(success=False, error_message=message)


@dataclass(frozen=True)
class QueryResult:
    """Rows returned by an external platform for one query.

    ``execution_time_ms`` covers the connector call only; post-execution
    filtering does not change it.
    """

    success: bool
    error_message: Optional[str] = None
    rows: Optional[List[Row]] = None
    row_count: int = 0
    execution_time_ms: float = 0.0

    @classmethod
    def from_rows(cls, rows: List[Row], execution_time_ms: float) -> "QueryResult":
        return cls(
            success=True,
            rows=rows,
            row_count=len(rows),
            execution_time_ms=execution_time_ms,
        )

    @classmethod
    def failed(cls, message: str, execution_time_ms: float = 0.0) -> "QueryResult":
        return cls(
            success=False,
            error_message=message,
            execution_time_ms=execution_time_ms,
        )

    def with_rows(self, rows: List[Row]) -> "QueryResult":
        """Copy of this result carrying ``rows`` and a recomputed row count."""
        return replace(self, rows=rows, row_count=len(rows))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "errorMessage": self.error_message,
            "rows": self.rows,
            "rowCount": self.row_count,
            "executionTimeMs": self.execution_time_ms,
        }
