"""Integration listing commands."""

from typing import Optional

import typer

from puod.cli.display import (
    display_error,
    display_integrations,
    display_json_output,
)
from puod.cli.factories import load_command_context
from puod.tenancy.models import ClientOwned, CompanyOwned, GroupOwned, Integration

integrations_app = typer.Typer(
    name="integrations",
    help="List configured integrations",
    rich_markup_mode="rich",
)


def _integration_json(integration: Integration) -> dict:
    ownership = integration.ownership
    owner = {}
    if isinstance(ownership, CompanyOwned):
        owner = {"company_id": ownership.company_id}
    elif isinstance(ownership, ClientOwned):
        owner = {
            "client_id": ownership.client_id,
            "allowlisted_company_ids": sorted(ownership.allowlisted_company_ids),
        }
    elif isinstance(ownership, GroupOwned):
        owner = {"group_id": ownership.group_id}

    return {
        "id": integration.id,
        "name": integration.name,
        "kind": integration.kind.value,
        "owner": owner,
        "description": integration.description,
        "is_active": integration.is_active,
    }


@integrations_app.command("list")
def list_integrations(
    ctx: typer.Context,
    company_id: Optional[int] = typer.Option(
        None, "--company", help="Only integrations available to this company"
    ),
    format: str = typer.Option("table", "--format", help="Output format: table or json"),
) -> None:
    """List integrations, optionally as seen by one company."""
    try:
        context = load_command_context(ctx)
    except (FileNotFoundError, ValueError) as e:
        display_error(str(e))
        raise typer.Exit(1)

    if company_id is not None:
        integrations = context.pipeline.available_integrations(company_id)
    else:
        integrations = context.repository.list_all()

    if format == "json":
        display_json_output([_integration_json(i) for i in integrations])
    else:
        display_integrations(integrations)
