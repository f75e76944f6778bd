"""Query command."""

import asyncio
from typing import Optional

import typer

from puod.cli.display import display_error, display_json_output, display_query_result
from puod.cli.factories import build_principal, load_command_context
from puod.errors import PuodError
from puod.logging import get_logger

query_app = typer.Typer(
    name="query",
    help="Run read-only queries against integrations",
    rich_markup_mode="rich",
)

logger = get_logger(__name__)


@query_app.command("run")
def run_query(
    ctx: typer.Context,
    integration_id: int = typer.Argument(..., help="Integration to query"),
    query: str = typer.Argument(..., help="SQL statement or resource path"),
    data_source: Optional[str] = typer.Option(
        None,
        "--filter",
        "-f",
        help='Data-source filter JSON, e.g. \'{"namedResourceIds": ["etl"], "limit": 10}\'',
    ),
    company_id: Optional[int] = typer.Option(None, "--company", help="Caller company"),
    client_id: Optional[int] = typer.Option(None, "--client", help="Caller client"),
    format: str = typer.Option("table", "--format", help="Output format: table or json"),
) -> None:
    """Run a query and print the rows.

    [bold]Examples:[/bold]
        puod query run 1 "dagRuns?limit=5"
        puod query run 2 "SELECT 1" --company 5
    """
    try:
        context = load_command_context(ctx)
        principal = build_principal(company_id, client_id)
        result = asyncio.run(
            context.pipeline.execute_query(principal, integration_id, query, data_source)
        )
    except (PuodError, FileNotFoundError, ValueError) as e:
        display_error(str(e))
        raise typer.Exit(1)

    if format == "json":
        display_json_output(result.to_dict())
    else:
        display_query_result(result)

    if not result.success:
        raise typer.Exit(1)
