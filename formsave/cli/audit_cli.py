"""
Audit CLI Subcommands

Read-only views over a JSON-lines audit log.
"""

import json as json_lib
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from formsave.audit import read_audit_log
from formsave.saving import AuditEventType

audit_app = typer.Typer(
    name="audit",
    help="Inspect audit trails",
    no_args_is_help=True,
)

console = Console()


@audit_app.command("show")
def show_audit(
    log_path: Path = typer.Argument(..., help="JSON-lines audit log"),
    event_type: Optional[str] = typer.Option(
        None,
        "--type", "-t",
        help="Filter by event type (form_save, form_exit, change_reason, ...)",
    ),
    json: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
):
    """List the events of an audit log in recorded order."""
    if not log_path.exists():
        console.print(f"[red]✗ Audit log not found:[/red] {log_path}")
        raise typer.Exit(1)

    try:
        events = read_audit_log(log_path)
    except (ValueError, KeyError) as e:
        console.print(f"[red]Error:[/red] Malformed audit log {log_path}: {e}")
        raise typer.Exit(1)

    if event_type:
        try:
            wanted = AuditEventType(event_type.lower())
        except ValueError:
            valid = ", ".join(t.value for t in AuditEventType)
            console.print(f"[red]Error:[/red] Unknown event type '{event_type}'. Valid: {valid}")
            raise typer.Exit(1)
        events = [e for e in events if e.event_type == wanted]

    if json:
        print(json_lib.dumps([e.to_dict() for e in events], indent=2))
        return

    if not events:
        console.print("[dim]No audit events.[/dim]")
        return

    instances = sorted({e.instance_id for e in events})
    table = Table(title=f"Audit trail: {', '.join(instances)} ({len(events)})")
    table.add_column("ID", style="cyan")
    table.add_column("Event")
    table.add_column("Time")
    table.add_column("Flag")
    table.add_column("Detail")

    for e in events:
        if e.reason:
            detail = e.reason
        elif e.event_type == AuditEventType.CHANGE_ANSWER:
            detail = f"{e.node}: {e.old_value!r} → {e.new_value!r}"
        else:
            detail = e.node or ""
        table.add_row(
            e.event_id,
            e.event_type.value,
            e.timestamp.strftime("%H:%M:%S"),
            "✓" if e.exiting else "",
            detail,
        )

    console.print(table)
