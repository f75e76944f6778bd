"""Settings for the integration query pipeline.

Settings are read from a YAML file (``PUOD_CONFIG`` or ``./puod.yml``) with
``${VAR}`` and ``${VAR|default}`` environment substitution, the same way
connector profiles are resolved. Every section is optional.

Example::

    logging:
      level: info
    cache:
      absolute_ttl_seconds: 300
      sliding_ttl_seconds: 120
    schema:
      search_limit: 500
      default_limit: 200
    history:
      max_history: 5
      page_size: 30
    http:
      timeout: 30
      max_retries: 3
    integrations:
      - id: 1
        name: Production Airflow
        kind: airflow
        owner: {company_id: 5}
        configuration:
          base_url: https://airflow.example.com
          token: ${AIRFLOW_TOKEN}
"""

import copy
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from puod.logging import get_logger

logger = get_logger(__name__)

CONFIG_ENV_VAR = "PUOD_CONFIG"
DEFAULT_CONFIG_FILE = "puod.yml"

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?:\|([^}]*))?\}")


@dataclass(frozen=True)
class CacheSettings:
    """Schema discovery cache lifetimes."""

    absolute_ttl_seconds: float = 300.0
    sliding_ttl_seconds: float = 120.0


@dataclass(frozen=True)
class SchemaSettings:
    """Result caps pushed to connectors when listing databases."""

    search_limit: int = 500
    default_limit: int = 200


@dataclass(frozen=True)
class HistorySettings:
    """Run-history reconciler sizing."""

    max_history: int = 5
    page_size: int = 30


@dataclass(frozen=True)
class HttpSettings:
    """Defaults for connector HTTP sessions."""

    timeout: float = 30.0
    max_retries: int = 3
    backoff_factor: float = 1.0


@dataclass(frozen=True)
class PuodSettings:
    """Resolved settings."""

    log_level: str = "info"
    cache: CacheSettings = field(default_factory=CacheSettings)
    schema: SchemaSettings = field(default_factory=SchemaSettings)
    history: HistorySettings = field(default_factory=HistorySettings)
    http: HttpSettings = field(default_factory=HttpSettings)
    integrations: List[Dict[str, Any]] = field(default_factory=list)
    source_path: Optional[str] = None

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], source_path: Optional[str] = None
    ) -> "PuodSettings":
        """Build settings from a parsed YAML mapping.

        Raises:
            ValueError: If a section has the wrong shape or unknown keys
        """
        if not isinstance(data, dict):
            raise ValueError("Settings must be a mapping")

        integrations = data.get("integrations") or []
        if not isinstance(integrations, list):
            raise ValueError("'integrations' must be a list")

        return cls(
            log_level=str(_section(data, "logging").get("level", "info")),
            cache=_build(CacheSettings, _section(data, "cache"), "cache"),
            schema=_build(SchemaSettings, _section(data, "schema"), "schema"),
            history=_build(HistorySettings, _section(data, "history"), "history"),
            http=_build(HttpSettings, _section(data, "http"), "http"),
            integrations=integrations,
            source_path=source_path,
        )


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def _build(settings_cls, values: Dict[str, Any], name: str):
    known = settings_cls.__dataclass_fields__
    unknown = sorted(set(values) - set(known))
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' section: {', '.join(unknown)}")

    converted = {}
    for key, value in values.items():
        default = known[key].default
        try:
            converted[key] = type(default)(value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid value for '{name}.{key}': {value!r}")
    return settings_cls(**converted)


def substitute_env_vars(data: Any, environ: Optional[Dict[str, str]] = None) -> Any:
    """Replace ``${VAR}`` / ``${VAR|default}`` references in strings.

    Unset variables without a default are left untouched and logged.
    """
    env = os.environ if environ is None else environ

    if isinstance(data, dict):
        return {key: substitute_env_vars(value, env) for key, value in data.items()}
    if isinstance(data, list):
        return [substitute_env_vars(item, env) for item in data]
    if not isinstance(data, str):
        return data

    def replace(match):
        name, default = match.group(1), match.group(2)
        if name in env:
            return env[name]
        if default is not None:
            return default
        logger.warning(f"Environment variable '{name}' is not set")
        return match.group(0)

    return _ENV_PATTERN.sub(replace, data)


def load_settings(path: Optional[str] = None) -> PuodSettings:
    """Load settings from YAML.

    Args:
        path: Explicit file; falls back to ``PUOD_CONFIG`` then ``puod.yml``

    Returns:
        Resolved settings; defaults when no file exists and none was requested

    Raises:
        FileNotFoundError: If an explicitly requested file does not exist
        ValueError: If the YAML is invalid
    """
    explicit = path or os.environ.get(CONFIG_ENV_VAR)
    config_path = explicit or DEFAULT_CONFIG_FILE

    if not os.path.exists(config_path):
        if explicit:
            raise FileNotFoundError(f"Settings file not found: {config_path}")
        logger.debug(f"No settings file at '{config_path}', using defaults")
        return PuodSettings()

    logger.debug(f"Loading settings from '{config_path}'")
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in settings '{config_path}': {e}")

    data = substitute_env_vars(copy.deepcopy(raw or {}))
    return PuodSettings.from_dict(data, source_path=config_path)
