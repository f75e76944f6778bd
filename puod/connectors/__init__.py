"""Connectors for the external platforms an integration can point at.

- Workflow orchestrator: Airflow REST API (airflow)
- Lakehouse: Databricks REST and SQL Statement APIs (databricks)
- Data warehouse: PostgreSQL-wire warehouses via SQLAlchemy (warehouse)
- Cloud pipeline: AWS Glue via boto3 (glue)

Connectors are registered on ``connector_registry`` when this package is
imported.
"""

from puod.connectors.registry import (
    ConnectorRegistry,
    connector_registry,
    create_connector,
    register_connector,
)

# flake8: noqa
from .airflow import *
from .databricks import *
from .glue import *
from .warehouse import *

__all__ = [
    "ConnectorRegistry",
    "connector_registry",
    "create_connector",
    "register_connector",
    "AirflowConnector",
    "DatabricksConnector",
    "GlueConnector",
    "WarehouseConnector",
]
