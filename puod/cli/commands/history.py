"""Workflow run history commands."""

import asyncio
from functools import partial
from typing import List, Optional

import typer

from puod.cli.display import (
    display_error,
    display_json_output,
    display_run_pointers,
    display_task_rows,
)
from puod.cli.factories import build_principal, load_command_context
from puod.errors import PuodError
from puod.history import RunHistoryCache, RunHistoryReconciler, fetch_run_tasks

history_app = typer.Typer(
    name="history",
    help="Inspect workflow runs of an orchestrator integration",
    rich_markup_mode="rich",
)


@history_app.command("refresh")
def refresh_runs(
    ctx: typer.Context,
    integration_id: int = typer.Argument(..., help="Orchestrator integration"),
    dag_ids: List[str] = typer.Argument(..., help="Workflow ids"),
    company_id: Optional[int] = typer.Option(None, "--company", help="Caller company"),
    client_id: Optional[int] = typer.Option(None, "--client", help="Caller client"),
    format: str = typer.Option("table", "--format", help="Output format: table or json"),
) -> None:
    """Show the latest run and recent history of each workflow."""
    try:
        context = load_command_context(ctx)
        principal = build_principal(company_id, client_id)
        reconciler = RunHistoryReconciler(
            RunHistoryCache(),
            partial(context.pipeline.execute_query, principal),
            integration_id,
            page_size=context.settings.history.page_size,
            max_history=context.settings.history.max_history,
        )
        pointers = asyncio.run(reconciler.refresh_all(dag_ids))
    except (PuodError, FileNotFoundError, ValueError) as e:
        display_error(str(e))
        raise typer.Exit(1)

    if format == "json":
        display_json_output(
            {
                dag_id: {"latest": pointer.latest, "history": pointer.history}
                for dag_id, pointer in pointers.items()
            }
        )
    else:
        display_run_pointers(pointers)


@history_app.command("tasks")
def show_tasks(
    ctx: typer.Context,
    integration_id: int = typer.Argument(..., help="Orchestrator integration"),
    dag_id: str = typer.Argument(..., help="Workflow id"),
    run_id: str = typer.Argument(..., help="Run id"),
    company_id: Optional[int] = typer.Option(None, "--company", help="Caller company"),
    client_id: Optional[int] = typer.Option(None, "--client", help="Caller client"),
    format: str = typer.Option("table", "--format", help="Output format: table or json"),
) -> None:
    """Show the tasks of one run in dependency order."""
    try:
        context = load_command_context(ctx)
        principal = build_principal(company_id, client_id)
        rows = asyncio.run(
            fetch_run_tasks(
                partial(context.pipeline.execute_query, principal),
                integration_id,
                dag_id,
                run_id,
            )
        )
    except (PuodError, FileNotFoundError, ValueError) as e:
        display_error(str(e))
        raise typer.Exit(1)

    if format == "json":
        display_json_output([row.as_dict() for row in rows])
    else:
        display_task_rows(rows)
