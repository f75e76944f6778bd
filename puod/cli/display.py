"""Rich display functions for the puod CLI."""

import json
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from puod.connectors.base import ConnectionResult, QueryResult
from puod.history.run_history import RunPointer
from puod.history.rows import run_id
from puod.history.task_order import TaskDisplayRow
from puod.tenancy.models import ClientOwned, CompanyOwned, GroupOwned, Integration

console = Console()

MAX_TABLE_COLUMNS = 8


def display_success(message: str) -> None:
    console.print(f"✅ [bold green]{message}[/bold green]")


def display_error(message: str) -> None:
    console.print(f"❌ [bold red]{message}[/bold red]")


def display_warning(message: str) -> None:
    console.print(f"⚠️  [bold yellow]{message}[/bold yellow]")


def display_info_panel(title: str, content: str, style: str = "blue") -> None:
    """Display an information panel.

    Args:
        title: Panel title
        content: Panel content
        style: Rich style for the panel border
    """
    console.print(Panel(content, title=title, border_style=style))


def display_json_output(data: Any) -> None:
    """Print ``data`` as JSON, unwrapped and without markup so it stays parseable."""
    try:
        json_str = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        console.print(json_str, markup=False, highlight=False, soft_wrap=True)
    except (TypeError, ValueError) as e:
        console.print(f"❌ [red]Error formatting JSON output: {e}[/red]")


def describe_ownership(integration: Integration) -> str:
    ownership = integration.ownership
    if isinstance(ownership, CompanyOwned):
        return f"company {ownership.company_id}"
    if isinstance(ownership, ClientOwned):
        shared = ", ".join(str(c) for c in sorted(ownership.allowlisted_company_ids))
        return f"client {ownership.client_id}" + (f" (shared: {shared})" if shared else "")
    if isinstance(ownership, GroupOwned):
        return f"group {ownership.group_id}"
    return "unknown"


def display_integrations(integrations: List[Integration]) -> None:
    if not integrations:
        console.print("📭 No integrations available")
        return

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name", style="white")
    table.add_column("Kind", style="magenta")
    table.add_column("Owner", style="white")
    table.add_column("Status", style="green")

    for integration in integrations:
        status = "active" if integration.is_active else "[yellow]inactive[/yellow]"
        table.add_row(
            str(integration.id),
            integration.name,
            integration.kind.value,
            describe_ownership(integration),
            status,
        )
    console.print(table)


def display_names(title: str, names: Sequence[str]) -> None:
    console.print(f"📋 [bold blue]{title}[/bold blue] ({len(names)})")
    for name in names:
        console.print(f"  • [cyan]{name}[/cyan]")


def display_connection_result(name: str, result: ConnectionResult) -> None:
    if result.success:
        display_success(f"Connection test succeeded for '{name}'")
        for key, value in result.metadata.items():
            console.print(f"   {key}: [dim]{value}[/dim]")
    else:
        display_error(f"Connection test failed for '{name}'")
        console.print(f"🔍 [dim]{result.error_message}[/dim]")


def display_rows(rows: List[Dict[str, Any]], columns: Optional[List[str]] = None) -> None:
    """Rows as a table; only the first columns are shown for wide results."""
    if not rows:
        console.print("📭 No rows")
        return

    if columns is None:
        columns = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(key)
        columns = columns[:MAX_TABLE_COLUMNS]

    table = Table(show_header=True, header_style="bold blue")
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*["" if row.get(c) is None else str(row.get(c)) for c in columns])
    console.print(table)


def display_query_result(result: QueryResult) -> None:
    if not result.success:
        display_error("Query failed")
        console.print(f"🔍 [dim]{result.error_message}[/dim]")
        return
    display_rows(result.rows or [])
    console.print(
        f"[dim]{result.row_count} rows in {result.execution_time_ms:.1f} ms[/dim]"
    )


def display_run_pointers(pointers: Dict[str, RunPointer]) -> None:
    table = Table(show_header=True, header_style="bold blue")
    table.add_column("DAG", style="cyan")
    table.add_column("Latest run", style="white")
    table.add_column("State", style="magenta")
    table.add_column("History", style="dim")

    for dag_id, pointer in sorted(pointers.items()):
        history = ", ".join(
            f"{run_id(run)} ({run.get('state', '?')})" for run in pointer.history
        )
        table.add_row(
            dag_id,
            run_id(pointer.latest) or "-",
            str(pointer.latest.get("state", "")),
            history or "-",
        )
    console.print(table)


def display_task_rows(rows: List[TaskDisplayRow]) -> None:
    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Task", style="cyan")
    table.add_column("State", style="magenta")
    table.add_column("Try", justify="right")
    table.add_column("Start", style="dim")
    table.add_column("End", style="dim")

    for row in rows:
        try_text = f"{row.try_number}/{row.attempt_count}" if row.attempt_count else "-"
        table.add_row(
            row.task_id,
            str(row.state or ""),
            try_text,
            str(row.attempt.get("start_date") or ""),
            str(row.attempt.get("end_date") or ""),
        )
    console.print(table)
