"""Connect commands: list platform kinds and test integration connections."""

import asyncio

import typer

from puod.cli.display import (
    display_connection_result,
    display_error,
    display_json_output,
    display_names,
)
from puod.cli.factories import load_command_context
from puod.connectors import connector_registry
from puod.logging import get_logger

connect_app = typer.Typer(
    name="connect",
    help="Test connections to integrated platforms",
    rich_markup_mode="rich",
)

logger = get_logger(__name__)


@connect_app.command("kinds")
def list_kinds() -> None:
    """List the platform kinds a connector is registered for."""
    display_names("Platform kinds", [kind.value for kind in connector_registry.kinds()])


@connect_app.command("test")
def test_connection(
    ctx: typer.Context,
    integration_id: int = typer.Argument(..., help="Integration to test"),
    format: str = typer.Option("table", "--format", help="Output format: table or json"),
) -> None:
    """Test the connection of a configured integration."""
    try:
        context = load_command_context(ctx)
        integration = context.repository.get(integration_id)
        if integration is None or integration.is_deleted:
            display_error(f"Integration {integration_id} not found")
            raise typer.Exit(1)

        result = asyncio.run(
            context.pipeline.test_connection(integration.kind, integration.configuration)
        )
        if format == "json":
            display_json_output(
                {
                    "success": result.success,
                    "error_message": result.error_message,
                    "metadata": result.metadata,
                }
            )
        else:
            display_connection_result(integration.name, result)

        if not result.success:
            raise typer.Exit(1)

    except typer.Exit:
        raise
    except (FileNotFoundError, ValueError) as e:
        display_error(str(e))
        raise typer.Exit(1)
    except Exception as e:
        logger.error(f"Connection test failed unexpectedly: {e}")
        display_error(f"Connection test failed: {e}")
        raise typer.Exit(1)
