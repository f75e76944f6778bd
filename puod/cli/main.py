"""puod CLI.

Typer application wiring the subcommands together with logging set up from
the command line flags.
"""

from typing import Optional

import typer
from rich.console import Console

from puod.cli.commands.connect import connect_app
from puod.cli.commands.history import history_app
from puod.cli.commands.integrations import integrations_app
from puod.cli.commands.query import query_app
from puod.cli.commands.schema import schema_app
from puod.logging import get_logger

logger = get_logger(__name__)
console = Console()

app = typer.Typer(
    name="puod",
    help="puod - query integrated data platforms per tenant",
    add_completion=True,
)

app.add_typer(connect_app, name="connect")
app.add_typer(integrations_app, name="integrations")
app.add_typer(schema_app, name="schema")
app.add_typer(query_app, name="query")
app.add_typer(history_app, name="history")


def _version_callback(value: bool) -> None:
    if value:
        from puod import __version__

        console.print(f"puod CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Settings file (defaults to $PUOD_CONFIG or ./puod.yml)",
    ),
) -> None:
    """puod - query integrated data platforms per tenant.

    Examples:
        puod integrations list --company 5
        puod query run 1 "dagRuns?limit=10" --company 5
        puod history refresh 1 nightly_etl
    """
    ctx.obj = {"config_path": config, "verbose": verbose, "quiet": quiet}

    try:
        _setup_environment(verbose, quiet)
    except Exception as e:
        if verbose:
            logger.warning(f"Environment setup issue: {e}")


def _setup_environment(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging for the CLI run.

    Args:
        verbose: Enable verbose output
        quiet: Reduce output to essentials
    """
    from puod.logging import configure_logging, suppress_third_party_loggers

    configure_logging(verbose=verbose, quiet=quiet)
    suppress_third_party_loggers()


def cli() -> None:
    """Entry point for the CLI application.

    Handles top-level error catching and provides consistent exit behavior.
    """
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n⚠️  [yellow]Operation cancelled by user[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        logger.error(f"Unexpected CLI error: {e}")
        console.print(f"❌ [bold red]Unexpected error: {str(e)}[/bold red]")
        console.print("💡 [dim]Run with --verbose for more details[/dim]")
        raise typer.Exit(1)


if __name__ == "__main__":
    cli()
