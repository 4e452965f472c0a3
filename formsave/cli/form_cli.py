"""
Form CLI Subcommands

Thin wrapper over SaveCoordinator and JsonFormSaver.
No business logic: just option parsing, prompting and output formatting.
"""

import json as json_lib
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from formsave.cli import wiring
from formsave.config import config
from formsave.saving import AwaitingReason, SaveResultState
from formsave.storage import FormLoadError

form_app = typer.Typer(
    name="form",
    help="Inspect and save form instances",
    no_args_is_help=True,
)

console = Console()

STATE_STYLES = {
    SaveResultState.SAVED: "green",
    SaveResultState.SAVING: "yellow",
    SaveResultState.ALREADY_SAVING: "yellow",
    SaveResultState.CHANGE_REASON_REQUIRED: "yellow",
    SaveResultState.SAVE_ERROR: "red",
    SaveResultState.FINALIZE_ERROR: "red",
    SaveResultState.CONSTRAINT_ERROR: "red",
}


def _parse_answer(raw: str) -> Tuple[str, Optional[str]]:
    """Parse NAME=VALUE; an empty VALUE clears the answer."""
    if "=" not in raw:
        raise typer.BadParameter(f"Expected NAME=VALUE, got '{raw}'")
    name, value = raw.split("=", 1)
    return name.strip(), value if value != "" else None


# =============================================================================
# Show Command
# =============================================================================

@form_app.command("show")
def show_form(
    path: Path = typer.Argument(..., help="Form instance JSON file"),
):
    """Show a form instance's status and answers."""
    try:
        instance = wiring.get_saver().load(path)
    except FormLoadError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    table = Table(title=f"{instance.form_id} / {instance.instance_id} ({instance.status})")
    table.add_column("Question", style="cyan")
    table.add_column("Required")
    table.add_column("Answer")

    for question in instance.questions:
        answer = instance.answers.get(question.name)
        table.add_row(
            question.name,
            "yes" if question.required else "",
            answer if answer is not None else "[dim]—[/dim]",
        )

    console.print(table)
    for change in instance.change_reasons:
        console.print(f"[dim]{change.recorded_at.isoformat()}[/dim] reason: {change.reason}")


# =============================================================================
# Save Command
# =============================================================================

@form_app.command("save")
def save_form(
    path: Path = typer.Argument(..., help="Form instance JSON file"),
    answers: Optional[List[str]] = typer.Option(
        None,
        "--set",
        help="Answer to stage before saving, as NAME=VALUE (repeatable)",
    ),
    finalize: bool = typer.Option(
        False,
        "--finalize", "-f",
        help="Mark the submission complete",
    ),
    exiting: bool = typer.Option(
        False,
        "--exit", "-x",
        help="Leave the editing view after saving",
    ),
    reason: str = typer.Option(
        "",
        "--reason", "-r",
        help="Reason for changing a previously saved submission",
    ),
    editing: bool = typer.Option(
        False,
        "--editing", "-e",
        help="The instance was reopened for editing",
    ),
    require_reason: Optional[bool] = typer.Option(
        None,
        "--require-reason/--no-require-reason",
        help="Require a change reason when saving edits (default from FORMSAVE_REASON_REQUIRED)",
    ),
    audit_log: Optional[Path] = typer.Option(
        None,
        "--audit-log",
        help="Append audit events to this JSON-lines file",
    ),
    json: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
):
    """Save a form instance, prompting for a change reason if one is required."""
    saver = wiring.get_saver()
    try:
        instance = saver.load(path)
    except FormLoadError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    audit_logger = wiring.make_audit_logger(
        instance.instance_id,
        editing=editing,
        change_reason_required=require_reason,
        log_path=audit_log,
    )
    audit_logger.start()

    for raw in answers or []:
        name, value = _parse_answer(raw)
        try:
            old_value = saver.set_answer(path, name, value)
        except KeyError:
            console.print(f"[red]Error:[/red] No question named '{name}'")
            raise typer.Exit(2)
        audit_logger.record_answer_change(name, old_value, value)

    worker = wiring.get_worker()
    coordinator = wiring.make_coordinator(saver, audit_logger, worker)
    result = None
    try:
        stream = coordinator.save_form(path, finalize, reason, exiting)

        if isinstance(coordinator.state, AwaitingReason):
            text = reason
            while True:
                if not text:
                    text = typer.prompt("Reason for change")
                coordinator.set_reason(text)
                if coordinator.save_reason():
                    break
                console.print("[yellow]A change reason cannot be blank.[/yellow]")
                text = ""

        result = stream.wait(timeout=config.worker.save_timeout)
    finally:
        # Only wait for the worker if the save actually finished
        worker.shutdown(wait=result is not None and result.is_terminal())

    if result is None or not result.is_terminal():
        console.print(f"[red]✗ Save did not finish within {config.worker.save_timeout}s[/red]")
        raise typer.Exit(1)

    if json:
        print(json_lib.dumps({
            "instance_id": instance.instance_id,
            "result": result.to_dict(),
            "audit": audit_logger.count_by_type(),
        }, indent=2))
    else:
        style = STATE_STYLES.get(result.state, "white")
        body = f"[bold {style}]{result.state.value.upper()}[/bold {style}]"
        if result.message:
            body += f"\n{result.message}"
        console.print(Panel(body, title=instance.instance_id, border_style=style))

    raise typer.Exit(0 if result.state == SaveResultState.SAVED else 1)
