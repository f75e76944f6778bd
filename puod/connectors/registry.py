from typing import Dict, Optional, Type

from puod.config import HttpSettings
from puod.connectors.base.connector import Connector, PlatformKind
from puod.connectors.base.exceptions import UnknownPlatformKindError


class ConnectorRegistry:
    """Maps a platform kind to the connector class serving it."""

    def __init__(self):
        self._connectors: Dict[PlatformKind, Type[Connector]] = {}

    def register(self, kind, connector_class: Type[Connector]) -> None:
        """Register a connector class for ``kind``.

        Raises:
            ValueError: If ``kind`` already has a connector
        """
        kind = PlatformKind.parse(kind)
        if kind in self._connectors:
            raise ValueError(f"Connector already registered for '{kind.value}'")
        self._connectors[kind] = connector_class

    def get(self, kind) -> Type[Connector]:
        try:
            kind = PlatformKind.parse(kind)
        except ValueError:
            raise UnknownPlatformKindError(kind)
        if kind not in self._connectors:
            raise UnknownPlatformKindError(kind.value)
        return self._connectors[kind]

    def create(
        self, kind, http_settings: Optional[HttpSettings] = None
    ) -> Connector:
        """Instantiate the connector for ``kind``.

        Raises:
            UnknownPlatformKindError: If nothing is registered for ``kind``
        """
        return self.get(kind)(http_settings=http_settings)

    def kinds(self):
        return sorted(self._connectors, key=lambda k: k.value)

    def copy(self) -> "ConnectorRegistry":
        clone = ConnectorRegistry()
        clone._connectors = dict(self._connectors)
        return clone


connector_registry = ConnectorRegistry()


def register_connector(kind):
    """Class decorator registering a connector on the default registry."""

    def decorator(connector_class):
        connector_class.kind = PlatformKind.parse(kind)
        connector_registry.register(kind, connector_class)
        return connector_class

    return decorator


def create_connector(kind, http_settings: Optional[HttpSettings] = None) -> Connector:
    return connector_registry.create(kind, http_settings=http_settings)
