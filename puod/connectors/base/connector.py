import json
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List

from puod.connectors.base.exceptions import ConnectorError, InvalidConfigurationError
from puod.connectors.base.results import ConnectionResult, QueryResult, Row
from puod.logging import get_logger

logger = get_logger(__name__)

Config = Dict[str, str]


class PlatformKind(Enum):
    """External platform families an integration can point at."""

    WORKFLOW_ORCHESTRATOR = "airflow"
    LAKEHOUSE = "databricks"
    WAREHOUSE = "warehouse"
    CLOUD_PIPELINE = "glue"

    @classmethod
    def parse(cls, value: Any) -> "PlatformKind":
        """Accept an enum member, its value or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for kind in cls:
            if text.lower() in (kind.value, kind.name.lower()):
                return kind
        raise ValueError(f"Unknown platform kind: {value}")


class Connector(ABC):
    """Uniform contract over one external platform kind.

    Connectors are stateless: every operation receives the integration's
    configuration map. Public operations never raise for remote or
    configuration problems. ``test_connection`` and ``execute_query`` report
    them in their result objects, the listing operations log them and return
    an empty list. Subclasses implement the ``_``-prefixed hooks and may raise
    freely from them.
    """

    kind: PlatformKind
    name: str = "connector"

    def __init__(self, http_settings=None):
        self.http_settings = http_settings

    @abstractmethod
    def validate_config(self, config: Config) -> None:
        """Check the configuration subset this connector needs.

        Raises:
            InvalidConfigurationError: If a required key is missing or invalid
        """

    @abstractmethod
    def _test_connection(self, config: Config) -> ConnectionResult:
        """Probe the remote platform."""

    @abstractmethod
    def _list_databases(self, config: Config) -> List[str]:
        """List top-level objects (databases, schemas, workflows)."""

    @abstractmethod
    def _list_tables(self, database: str, config: Config) -> List[str]:
        """List objects inside ``database``."""

    @abstractmethod
    def _execute_query(self, query: str, config: Config) -> List[Row]:
        """Run ``query`` and return its rows."""

    def test_connection(self, config: Config) -> ConnectionResult:
        """Test the connection described by ``config``."""
        try:
            self.validate_config(config)
            return self._test_connection(config)
        except InvalidConfigurationError as e:
            return ConnectionResult.failed(e.message)
        except ConnectorError as e:
            return ConnectionResult.failed(e.message)
        except Exception as e:
            logger.warning(f"{self.name}: connection test failed: {e}")
            return ConnectionResult.failed(f"Connection test failed: {e}")

    def list_databases(self, config: Config) -> List[str]:
        try:
            self.validate_config(config)
            return self._list_databases(config)
        except Exception as e:
            logger.warning(f"{self.name}: failed to list databases: {e}")
            return []

    def list_tables(self, database: str, config: Config) -> List[str]:
        try:
            self.validate_config(config)
            return self._list_tables(database, config)
        except Exception as e:
            logger.warning(f"{self.name}: failed to list tables in '{database}': {e}")
            return []

    def execute_query(self, query: str, config: Config) -> QueryResult:
        """Execute ``query`` and time the remote call.

        Returns:
            A successful result with rows, or a failed result carrying a
            human-readable message
        """
        start_time = time.perf_counter()
        try:
            self.validate_config(config)
            rows = self._execute_query((query or "").strip(), config)
        except ConnectorError as e:
            return QueryResult.failed(e.message, _elapsed_ms(start_time))
        except Exception as e:
            logger.error(f"{self.name}: query failed: {e}")
            return QueryResult.failed(str(e), _elapsed_ms(start_time))

        return QueryResult.from_rows(rows, _elapsed_ms(start_time))


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000.0


def require_keys(config: Config, keys: List[str], connector_name: str) -> None:
    """Raise InvalidConfigurationError naming the first missing/blank key."""
    for key in keys:
        value = config.get(key)
        if value is None or not str(value).strip():
            raise InvalidConfigurationError(
                f"missing required config: {key}", connector_name
            )


def get_int_config(config: Config, key: str, default: int) -> int:
    """Read an integer from the string map, falling back on blanks and junk."""
    value = config.get(key)
    if value is None or not str(value).strip():
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def get_bool_config(config: Config, key: str, default: bool = False) -> bool:
    value = config.get(key)
    if value is None:
        return default
    return str(value).strip().lower() in ("true", "1", "yes")


def get_data_source(config: Config) -> Dict[str, Any]:
    """The data-source filter merged into ``config`` as ``data_source_json``."""
    raw = config.get("data_source_json")
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}
