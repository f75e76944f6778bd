"""Builds the objects CLI commands work with."""

from dataclasses import dataclass
from typing import Optional

import typer

from puod.config import PuodSettings, load_settings
from puod.logging import configure_logging, suppress_third_party_loggers
from puod.query.pipeline import QueryPipeline
from puod.query.schema_cache import SchemaCache
from puod.tenancy.models import Principal
from puod.tenancy.repository import InMemoryIntegrationRepository, load_integrations


@dataclass
class CommandContext:
    settings: PuodSettings
    repository: InMemoryIntegrationRepository
    pipeline: QueryPipeline


def build_pipeline(
    settings: PuodSettings, repository: InMemoryIntegrationRepository
) -> QueryPipeline:
    return QueryPipeline(
        repository,
        schema_cache=SchemaCache(
            settings=settings.cache, schema_settings=settings.schema
        ),
        http_settings=settings.http,
    )


def load_command_context(ctx: typer.Context) -> CommandContext:
    """Load settings and integrations for a command.

    The settings' log level applies unless ``--verbose`` or ``--quiet`` was given.

    Raises:
        FileNotFoundError: If an explicitly requested settings file is missing
        ValueError: If the settings or an integration entry are invalid
    """
    options = ctx.obj or {}
    settings = load_settings(options.get("config_path"))
    if not (options.get("verbose") or options.get("quiet")):
        configure_logging(level=settings.log_level)
        suppress_third_party_loggers()

    repository = load_integrations(settings.integrations)
    return CommandContext(settings, repository, build_pipeline(settings, repository))


def build_principal(
    company_id: Optional[int] = None,
    client_id: Optional[int] = None,
    admin: bool = False,
) -> Principal:
    """Caller identity from CLI options; no scope at all means platform admin."""
    if company_id is None and client_id is None:
        admin = True
    return Principal(company_id=company_id, client_id=client_id, is_platform_admin=admin)
