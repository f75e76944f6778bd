from .connector import (
    Config,
    Connector,
    PlatformKind,
    get_bool_config,
    get_data_source,
    get_int_config,
    require_keys,
)
from .exceptions import (
    ConnectorError,
    InvalidConfigurationError,
    RemoteRequestError,
    UnknownPlatformKindError,
    UnsupportedQueryError,
)
from .results import ConnectionResult, QueryResult, Row

__all__ = [
    "Config",
    "Connector",
    "PlatformKind",
    "ConnectionResult",
    "QueryResult",
    "Row",
    "ConnectorError",
    "InvalidConfigurationError",
    "RemoteRequestError",
    "UnknownPlatformKindError",
    "UnsupportedQueryError",
    "get_bool_config",
    "get_data_source",
    "get_int_config",
    "require_keys",
]
