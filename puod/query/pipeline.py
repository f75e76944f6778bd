"""Query execution pipeline.

Resolves the integration, checks ownership, pushes the data-source filter
into the query where the platform allows it, runs the connector off the event
loop and filters the rows it returns. Remote failures come back inside the
result; only a missing or forbidden integration raises.
"""

import asyncio
from typing import Any, List, Mapping, Optional, Union

from puod.config import HttpSettings
from puod.connectors import ConnectorRegistry, connector_registry
from puod.connectors.base import ConnectionResult, Connector, PlatformKind, QueryResult
from puod.errors import NotFoundError, UnauthorizedError
from puod.logging import get_logger
from puod.query.data_source import (
    apply_post_filter,
    merge_into_config,
    parse_data_source,
    rewrite_query,
)
from puod.query.schema_cache import SchemaCache
from puod.tenancy.models import Integration, Principal
from puod.tenancy.ownership import OwnershipResolver, available_integrations
from puod.tenancy.repository import IntegrationRepository

logger = get_logger(__name__)

DataSourcePayload = Union[str, Mapping[str, Any], None]


class QueryPipeline:
    """Entry point for running queries and schema discovery on integrations."""

    def __init__(
        self,
        repository: IntegrationRepository,
        registry: Optional[ConnectorRegistry] = None,
        resolver: Optional[OwnershipResolver] = None,
        schema_cache: Optional[SchemaCache] = None,
        http_settings: Optional[HttpSettings] = None,
    ):
        self.repository = repository
        self.registry = registry or connector_registry
        self.resolver = resolver or OwnershipResolver()
        self.schema_cache = schema_cache or SchemaCache()
        self.http_settings = http_settings

    async def execute_query(
        self,
        principal: Principal,
        integration_id: int,
        query: str,
        data_source: DataSourcePayload = None,
    ) -> QueryResult:
        """Run ``query`` against an integration the principal may use.

        Raises:
            NotFoundError: If the integration is absent, deleted or inactive
            UnauthorizedError: If the ownership rules deny access
        """
        integration = self._resolve(principal, integration_id)
        connector = self._connector(integration.kind)

        data_source_filter = parse_data_source(data_source)
        processed_query = query
        if data_source_filter is not None:
            processed_query = rewrite_query(integration.kind, query, data_source_filter)
            if processed_query != query:
                logger.debug(f"Rewrote query '{query}' to '{processed_query}'")

        config = merge_into_config(integration.configuration, data_source_filter)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, connector.execute_query, processed_query, config
        )

        if not result.success:
            logger.warning(
                f"Query on integration {integration.id} failed: {result.error_message}"
            )
            return result

        if data_source_filter is not None and result.rows:
            rows = apply_post_filter(integration.kind, result.rows, data_source_filter)
            logger.debug(
                f"Post-filter on integration {integration.id}: "
                f"{len(result.rows)} -> {len(rows)} rows"
            )
            result = result.with_rows(rows)

        return result

    async def test_connection(self, kind, config: Mapping[str, str]) -> ConnectionResult:
        connector = self._connector(PlatformKind.parse(kind))
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, connector.test_connection, dict(config))

    async def list_databases(
        self,
        principal: Principal,
        integration_id: int,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[str]:
        integration = self._resolve(principal, integration_id)
        return await self.schema_cache.list_databases(
            integration, self._connector(integration.kind), search=search, limit=limit
        )

    async def list_tables(
        self, principal: Principal, integration_id: int, database: str
    ) -> List[str]:
        integration = self._resolve(principal, integration_id)
        return await self.schema_cache.list_tables(
            integration, self._connector(integration.kind), database
        )

    def available_integrations(self, company_id: int) -> List[Integration]:
        return available_integrations(self.repository.list_all(), company_id)

    def _resolve(self, principal: Principal, integration_id: int) -> Integration:
        integration = self.repository.get(integration_id)
        if integration is None:
            raise NotFoundError(integration_id)
        if integration.is_deleted:
            raise NotFoundError(integration_id, "integration is deleted")
        if not integration.is_active:
            raise NotFoundError(integration_id, "integration is not active")
        if not self.resolver.can_access(principal, integration):
            raise UnauthorizedError(integration_id)
        return integration

    def _connector(self, kind: PlatformKind) -> Connector:
        return self.registry.create(kind, http_settings=self.http_settings)
