from typing import Optional


class ConnectorError(Exception):
    """Base exception for connector-related errors."""

    def __init__(self, connector_name: str, message: str):
        self.connector_name = connector_name
        self.message = message
        super().__init__(f"[{connector_name}] {message}")


class InvalidConfigurationError(ConnectorError):
    """Configuration map is missing keys or holds unusable values."""

    def __init__(self, message: str, connector_name: str = "unknown"):
        super().__init__(connector_name, f"Invalid configuration: {message}")


class UnsupportedQueryError(ConnectorError):
    """Query string is not something the connector is allowed to run."""

    def __init__(self, message: str, connector_name: str = "unknown"):
        super().__init__(connector_name, f"Unsupported query: {message}")


class RemoteRequestError(ConnectorError):
    """External platform answered with an error status."""

    def __init__(
        self,
        message: str,
        connector_name: str = "unknown",
        status_code: Optional[int] = None,
    ):
        self.status_code = status_code
        super().__init__(connector_name, message)


class UnknownPlatformKindError(RuntimeError):
    """No connector registered for a platform kind.

    This is a deployment bug, not bad user input, so it is not a
    ``ConnectorError`` and is never folded into a result object.
    """

    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"No connector registered for platform kind '{kind}'")
