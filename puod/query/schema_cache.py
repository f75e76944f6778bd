"""Cache in front of connector schema discovery.

Listing DAGs or schemas on a large deployment is slow, and schema rarely
changes within minutes, so results are kept for an absolute TTL (5 minutes by
default) with a sliding window (2 minutes): every hit pushes the sliding
expiry forward, never beyond the absolute one. A hit never touches the
connector; a miss always calls it before returning and stores whatever it
returned.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Protocol

from puod.config import CacheSettings, SchemaSettings
from puod.connectors.base import Connector
from puod.logging import get_logger
from puod.tenancy.models import Integration

logger = get_logger(__name__)

Clock = Callable[[], float]


class CacheStore(Protocol):
    """Key-value store shared by all callers. Writes are last-write-wins."""

    def get(self, key: Hashable) -> Optional[Any]:
        ...

    def set(
        self, key: Hashable, value: Any, absolute_ttl: float, sliding_ttl: float
    ) -> None:
        ...


@dataclass
class _Entry:
    value: Any
    absolute_expiry: float
    sliding_expiry: float
    sliding_ttl: float


class MemoryCacheStore:
    """In-process store with absolute and sliding expiration."""

    def __init__(self, clock: Clock = time.monotonic):
        self._clock = clock
        self._entries: Dict[Hashable, _Entry] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        now = self._clock()
        if now >= entry.absolute_expiry or now >= entry.sliding_expiry:
            self._entries.pop(key, None)
            return None

        entry.sliding_expiry = min(now + entry.sliding_ttl, entry.absolute_expiry)
        return entry.value

    def set(
        self, key: Hashable, value: Any, absolute_ttl: float, sliding_ttl: float
    ) -> None:
        now = self._clock()
        absolute_expiry = now + absolute_ttl
        self._entries[key] = _Entry(
            value=value,
            absolute_expiry=absolute_expiry,
            sliding_expiry=min(now + sliding_ttl, absolute_expiry),
            sliding_ttl=sliding_ttl,
        )

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def databases_key(integration_id: int, search: Optional[str], limit: Optional[int]):
    return ("databases", integration_id, search or "all", limit or 0)


def tables_key(integration_id: int, database: str):
    return ("tables", integration_id, database)


class SchemaCache:
    """Caches ``list_databases`` / ``list_tables`` per integration and parameters."""

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        settings: Optional[CacheSettings] = None,
        schema_settings: Optional[SchemaSettings] = None,
    ):
        self.store = store if store is not None else MemoryCacheStore()
        self.settings = settings or CacheSettings()
        self.schema_settings = schema_settings or SchemaSettings()

    def database_overlay(
        self, configuration: Dict[str, str], search: Optional[str], limit: Optional[int]
    ) -> Dict[str, str]:
        """Configuration copy with the search term and result cap for the connector."""
        config = dict(configuration)
        if search:
            config["search_pattern"] = search
            cap = limit or self.schema_settings.search_limit
        else:
            cap = limit or self.schema_settings.default_limit
        config["max_dags"] = str(cap)
        config["max_results"] = str(cap)
        return config

    async def list_databases(
        self,
        integration: Integration,
        connector: Connector,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[str]:
        search = (search or "").strip() or None
        key = databases_key(integration.id, search, limit)

        cached = self.store.get(key)
        if cached is not None:
            logger.debug(f"Schema cache hit for {key}")
            return list(cached)

        config = self.database_overlay(integration.configuration, search, limit)
        loop = asyncio.get_running_loop()
        names = await loop.run_in_executor(None, connector.list_databases, config)
        logger.debug(f"Schema cache miss for {key}: {len(names)} databases")
        self._store(key, names)
        return list(names)

    async def list_tables(
        self, integration: Integration, connector: Connector, database: str
    ) -> List[str]:
        key = tables_key(integration.id, database)

        cached = self.store.get(key)
        if cached is not None:
            logger.debug(f"Schema cache hit for {key}")
            return list(cached)

        config = dict(integration.configuration)
        loop = asyncio.get_running_loop()
        names = await loop.run_in_executor(None, connector.list_tables, database, config)
        logger.debug(f"Schema cache miss for {key}: {len(names)} tables")
        self._store(key, names)
        return list(names)

    def _store(self, key, names: List[str]) -> None:
        self.store.set(
            key,
            list(names),
            self.settings.absolute_ttl_seconds,
            self.settings.sliding_ttl_seconds,
        )
