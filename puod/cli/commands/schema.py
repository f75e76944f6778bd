"""Schema discovery commands."""

import asyncio
from typing import Optional

import typer

from puod.cli.display import display_error, display_json_output, display_names
from puod.cli.factories import build_principal, load_command_context
from puod.errors import PuodError

schema_app = typer.Typer(
    name="schema",
    help="Discover databases and tables of an integration",
    rich_markup_mode="rich",
)


@schema_app.command("databases")
def list_databases(
    ctx: typer.Context,
    integration_id: int = typer.Argument(..., help="Integration to inspect"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Name filter"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum names"),
    company_id: Optional[int] = typer.Option(None, "--company", help="Caller company"),
    client_id: Optional[int] = typer.Option(None, "--client", help="Caller client"),
    format: str = typer.Option("table", "--format", help="Output format: table or json"),
) -> None:
    """List databases (DAGs, schemas, catalog databases) of an integration."""
    try:
        context = load_command_context(ctx)
        principal = build_principal(company_id, client_id)
        names = asyncio.run(
            context.pipeline.list_databases(principal, integration_id, search, limit)
        )
    except (PuodError, FileNotFoundError, ValueError) as e:
        display_error(str(e))
        raise typer.Exit(1)

    if format == "json":
        display_json_output(names)
    else:
        display_names(f"Databases of integration {integration_id}", names)


@schema_app.command("tables")
def list_tables(
    ctx: typer.Context,
    integration_id: int = typer.Argument(..., help="Integration to inspect"),
    database: str = typer.Argument(..., help="Database, DAG or schema name"),
    company_id: Optional[int] = typer.Option(None, "--company", help="Caller company"),
    client_id: Optional[int] = typer.Option(None, "--client", help="Caller client"),
    format: str = typer.Option("table", "--format", help="Output format: table or json"),
) -> None:
    """List tables (or tasks) inside one database of an integration."""
    try:
        context = load_command_context(ctx)
        principal = build_principal(company_id, client_id)
        names = asyncio.run(
            context.pipeline.list_tables(principal, integration_id, database)
        )
    except (PuodError, FileNotFoundError, ValueError) as e:
        display_error(str(e))
        raise typer.Exit(1)

    if format == "json":
        display_json_output(names)
    else:
        display_names(f"Tables in '{database}'", names)
