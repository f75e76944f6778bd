"""Integration storage.

The query pipeline only reads integrations (``get`` and ``list_all``). The
in-memory repository adds the create/update/soft-delete lifecycle and is what
the CLI fills from the ``integrations`` section of the YAML settings.
"""

import itertools
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from puod.connectors.base.connector import PlatformKind
from puod.logging import get_logger
from puod.tenancy.models import (
    ClientOwned,
    Integration,
    Ownership,
    stringify_configuration,
    utc_now,
)

logger = get_logger(__name__)


class IntegrationRepository(Protocol):
    """Read access to integrations, deleted ones included."""

    def get(self, integration_id: int) -> Optional[Integration]:
        ...

    def list_all(self, include_deleted: bool = False) -> List[Integration]:
        ...


class InMemoryIntegrationRepository:
    """Dictionary-backed repository. Deletion only sets a flag."""

    def __init__(self, integrations: Iterable[Integration] = ()):
        self._integrations: Dict[int, Integration] = {}
        for integration in integrations:
            self.add(integration)
        start = max(self._integrations, default=0) + 1
        self._ids = itertools.count(start)

    def add(self, integration: Integration) -> Integration:
        """Store a fully built integration (used by loaders).

        Raises:
            ValueError: If the id is already taken
        """
        if integration.id in self._integrations:
            raise ValueError(f"Duplicate integration id {integration.id}")
        self._integrations[integration.id] = integration
        return integration

    def create(
        self,
        name: str,
        kind,
        ownership: Ownership,
        configuration: Optional[Mapping[str, Any]] = None,
        description: str = "",
    ) -> Integration:
        integration_id = next(self._ids)
        while integration_id in self._integrations:
            integration_id = next(self._ids)

        integration = Integration(
            id=integration_id,
            name=name,
            kind=PlatformKind.parse(kind),
            ownership=ownership,
            configuration=stringify_configuration(configuration or {}),
            description=description,
        )
        logger.info(f"Created integration {integration.id} '{name}'")
        return self.add(integration)

    def update(
        self,
        integration_id: int,
        name: Optional[str] = None,
        configuration: Optional[Mapping[str, Any]] = None,
        allowlisted_company_ids: Optional[Iterable[int]] = None,
        is_active: Optional[bool] = None,
        description: Optional[str] = None,
    ) -> Integration:
        """Update the mutable fields of a live integration.

        Raises:
            KeyError: If the integration does not exist or is deleted
            ValueError: If an allowlist is given for a non client-owned integration
        """
        integration = self._live(integration_id)

        if name is not None:
            integration.name = name
        if description is not None:
            integration.description = description
        if configuration is not None:
            integration.configuration = stringify_configuration(configuration)
        if is_active is not None:
            integration.is_active = is_active
        if allowlisted_company_ids is not None:
            if not isinstance(integration.ownership, ClientOwned):
                raise ValueError(
                    f"Integration {integration_id} is not client-owned; "
                    "it has no company allowlist"
                )
            integration.ownership = replace(
                integration.ownership,
                allowlisted_company_ids=frozenset(allowlisted_company_ids),
            )

        integration.updated_at = utc_now()
        return integration

    def soft_delete(self, integration_id: int) -> Integration:
        integration = self._live(integration_id)
        integration.is_deleted = True
        integration.deleted_at = utc_now()
        logger.info(f"Soft-deleted integration {integration_id}")
        return integration

    def get(self, integration_id: int) -> Optional[Integration]:
        return self._integrations.get(integration_id)

    def list_all(self, include_deleted: bool = False) -> List[Integration]:
        return [
            i
            for i in self._integrations.values()
            if include_deleted or not i.is_deleted
        ]

    def _live(self, integration_id: int) -> Integration:
        integration = self._integrations.get(integration_id)
        if integration is None or integration.is_deleted:
            raise KeyError(f"Integration {integration_id} not found")
        return integration


def load_integrations(entries: Iterable[Mapping[str, Any]]) -> InMemoryIntegrationRepository:
    """Build a repository from the ``integrations`` section of the settings.

    Raises:
        ValueError: If an entry is malformed; the message names the entry
    """
    integrations = []
    for position, entry in enumerate(entries, start=1):
        try:
            integrations.append(Integration.from_dict(entry))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid integration entry #{position}: {e}") from e

    repository = InMemoryIntegrationRepository(integrations)
    logger.debug(f"Loaded {len(integrations)} integrations")
    return repository
