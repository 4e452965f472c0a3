"""
formsave CLI — Main Entry Point

Usage:
    formsave form show instance.json
    formsave form save instance.json --set age=42 --finalize --exit
    formsave form save instance.json --editing --require-reason --reason "typo"
    formsave audit show audit.jsonl --type form_save
"""

import typer
from rich.console import Console

from formsave.cli.audit_cli import audit_app
from formsave.cli.form_cli import form_app
from formsave.config import config
from formsave.utils.logging_setup import setup_logging

# Create main app
app = typer.Typer(
    name="formsave",
    help="Audited form submission saving",
    no_args_is_help=True,
)

# Register subcommands
app.add_typer(form_app, name="form", help="Inspect and save form instances")
app.add_typer(audit_app, name="audit", help="Inspect audit trails")

# Console for output
console = Console()

__version__ = "0.1.0"


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        config.log_level,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    ),
):
    """formsave — Audited form submission saving."""
    setup_logging(log_level)


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]formsave[/bold] v{__version__}")
    console.print("Audited form submission saving")


if __name__ == "__main__":
    app()
