"""Data warehouse connector for PostgreSQL-wire warehouses.

Covers PostgreSQL itself and the warehouses that speak its protocol
(Redshift, Greenplum and similar) through SQLAlchemy and psycopg2.
"""

from typing import List, Optional

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine

from puod.config import HttpSettings
from puod.connectors.base import (
    Config,
    ConnectionResult,
    Connector,
    InvalidConfigurationError,
    Row,
    UnsupportedQueryError,
    get_int_config,
    require_keys,
)
from puod.connectors.base.frames import frame_to_rows
from puod.connectors.base.sql_guard import is_read_only_query
from puod.connectors.registry import register_connector
from puod.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PORT = 5432

LIST_DATABASES_SQL = """
    SELECT datname
    FROM pg_database
    WHERE datistemplate = false
    ORDER BY datname
"""

LIST_TABLES_SQL = """
    SELECT table_schema, table_name
    FROM information_schema.tables
    WHERE table_type = 'BASE TABLE'
      AND table_schema NOT IN ('pg_catalog', 'information_schema')
    ORDER BY table_schema, table_name
"""


@register_connector("warehouse")
class WarehouseConnector(Connector):
    """Read-only SQL access to a PostgreSQL-wire warehouse."""

    name = "warehouse"

    def validate_config(self, config: Config) -> None:
        if not _host(config):
            raise InvalidConfigurationError(
                "missing required config: host (or server)", self.name
            )
        require_keys(config, ["database", "username"], self.name)
        if config.get("password") is None:
            raise InvalidConfigurationError("missing required config: password", self.name)
        port = config.get("port")
        if port and not str(port).strip().isdigit():
            raise InvalidConfigurationError(f"port must be numeric, got '{port}'", self.name)

    def _test_connection(self, config: Config) -> ConnectionResult:
        engine = self._create_engine(config)
        try:
            with engine.connect() as conn:
                version = conn.execute(text("SELECT version()")).scalar()
        finally:
            engine.dispose()

        return ConnectionResult(
            success=True,
            metadata={
                "host": _host(config),
                "database": config["database"],
                "server_version": version,
                "tested_at": pd.Timestamp.now(tz="UTC").isoformat(),
            },
        )

    def _execute_query(self, query: str, config: Config) -> List[Row]:
        if not is_read_only_query(query):
            raise UnsupportedQueryError(
                "only read-only SQL (SELECT, WITH, SHOW, DESCRIBE, EXPLAIN) is allowed",
                self.name,
            )

        engine = self._create_engine(config)
        try:
            with engine.connect() as conn:
                frame = pd.read_sql_query(text(query), conn)
        finally:
            engine.dispose()

        logger.debug(f"Warehouse query returned {len(frame)} rows")
        return frame_to_rows(frame)

    def _list_databases(self, config: Config) -> List[str]:
        engine = self._create_engine(config)
        try:
            with engine.connect() as conn:
                names = [row[0] for row in conn.execute(text(LIST_DATABASES_SQL))]
        finally:
            engine.dispose()

        search = (config.get("search_pattern") or "").strip().lower()
        if search:
            names = [n for n in names if search in n.lower()]
        limit = get_int_config(config, "max_results", 0)
        return names[:limit] if limit > 0 else names

    def _list_tables(self, database: str, config: Config) -> List[str]:
        engine = self._create_engine(config, database=database)
        try:
            with engine.connect() as conn:
                rows = conn.execute(text(LIST_TABLES_SQL)).fetchall()
        finally:
            engine.dispose()
        return [f"{schema}.{table}" for schema, table in rows]

    def _create_engine(self, config: Config, database: Optional[str] = None) -> Engine:
        settings = self.http_settings or HttpSettings()
        url = URL.create(
            "postgresql+psycopg2",
            username=config["username"],
            password=config["password"],
            host=_host(config),
            port=get_int_config(config, "port", DEFAULT_PORT),
            database=database or config["database"],
        )
        connect_args = {
            "connect_timeout": get_int_config(
                config, "timeout_seconds", int(settings.timeout)
            )
        }
        if config.get("sslmode"):
            connect_args["sslmode"] = config["sslmode"]
        return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def _host(config: Config) -> str:
    return (config.get("host") or config.get("server") or "").strip()
