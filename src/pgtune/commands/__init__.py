"""Command modules for the pgtune CLI."""

import typer

from pgtune.core.exceptions import TunerError
from pgtune.core.output import console


def handle_error(error: TunerError) -> None:
    """Handle a TunerError by printing formatted error and exiting."""
    console.error(error.message)

    for detail in error.details:
        console.print(f"  [dim]{detail}[/dim]")

    if error.hint:
        console.hint(error.hint)

    raise typer.Exit(error.exit_code)
