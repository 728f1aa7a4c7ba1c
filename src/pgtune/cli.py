"""Main CLI entry point using Typer.

This module defines the root CLI application and the config commands.
The tune command is registered from its submodule.
"""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from pgtune import __version__
from pgtune.commands import handle_error
from pgtune.commands.tune import app as tune_app
from pgtune.core.config import (
    DEFAULT_CONFIG_PATH,
    AppConfig,
    get_example_config,
    init_config,
)
from pgtune.core.context import ExecutionContext, create_context
from pgtune.core.exceptions import TunerError


app = typer.Typer(
    name="pgtune",
    help="PostgreSQL tuning calculator.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

config_app = typer.Typer(
    name="config",
    help="Configuration management.",
    no_args_is_help=True,
)

app.add_typer(tune_app, name="tune")
app.add_typer(config_app, name="config")


ForceOption = Annotated[
    bool,
    typer.Option(
        "--force",
        "-f",
        help="Overwrite an existing file.",
        is_flag=True,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase output verbosity. Can be repeated (-v, -vv).",
    ),
]

NoColorOption = Annotated[
    bool,
    typer.Option(
        "--no-color",
        help="Disable colored output.",
        is_flag=True,
    ),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help=f"Path to configuration file. Default: {DEFAULT_CONFIG_PATH}",
        exists=False,
        file_okay=True,
        dir_okay=False,
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console = Console()
        console.print(f"pgtune version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """PostgreSQL tuning calculator.

    Derives postgresql.conf settings (memory, connections, checkpoints,
    WAL retention) from the host's memory, CPU word width, free WAL disk
    space and PostgreSQL version, for a declared workload.

    [bold]Examples:[/bold]
        pgtune tune
        pgtune tune -w dw --format conf
        pgtune config init
    """


def get_context(
    force: bool = False,
    verbose: int = 0,
    no_color: bool = False,
    config: Optional[Path] = None,
) -> ExecutionContext:
    """Create execution context from CLI options."""
    return create_context(
        force=force,
        verbose=verbose,
        no_color=no_color,
        config=config,
    )


# ============================================================================
# Config commands
# ============================================================================

@config_app.command("show")
def config_show(
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
    no_color: NoColorOption = False,
) -> None:
    """Show current configuration.

    Displays the loaded configuration and any PGTUNE_* environment overrides.
    """
    ctx = get_context(verbose=verbose, no_color=no_color, config=config)

    try:
        app_config = ctx.config

        ctx.console.print()
        ctx.console.print(f"[bold]Configuration file:[/bold] {ctx.config_path}")
        ctx.console.print(f"[bold]File exists:[/bold] {ctx.config_path.exists()}")
        ctx.console.print()

        ctx.console.yaml(app_config.config.to_yaml(), title="Configuration")

        overrides = app_config.overrides
        ctx.console.summary("Environment overrides", {
            "PGTUNE_WORKLOAD": overrides.workload or "Not set",
            "PGTUNE_RANDOM_PAGE_COST": (
                overrides.random_page_cost if overrides.random_page_cost is not None else "Not set"
            ),
            "PGTUNE_SYNCHRONOUS_COMMIT": overrides.synchronous_commit or "Not set",
        })

    except TunerError as e:
        handle_error(e)


@config_app.command("init")
def config_init(
    config: ConfigOption = None,
    force: ForceOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Initialize a new configuration file.

    Creates a configuration file with defaults and comments.
    """
    ctx = get_context(force=force, no_color=no_color, config=config)
    config_path = ctx.config_path

    try:
        init_config(config_path, force=force)
        ctx.console.success(f"Configuration file created: {config_path}")
        ctx.console.info("Edit the workload and PostgreSQL version, then run: pgtune tune")

    except TunerError as e:
        handle_error(e)


@config_app.command("validate")
def config_validate(
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
    no_color: NoColorOption = False,
) -> None:
    """Validate configuration file.

    Checks that the configuration file exists, is valid YAML,
    and all values pass validation.
    """
    ctx = get_context(verbose=verbose, no_color=no_color, config=config)

    try:
        app_config = AppConfig(config_path=ctx.config_path)

        if not ctx.config_path.exists():
            ctx.console.warn(f"Configuration file not found, using defaults: {ctx.config_path}")
        else:
            ctx.console.success(f"Configuration is valid: {ctx.config_path}")

        if ctx.is_verbose:
            ctx.console.yaml(app_config.config.to_yaml())

        if not app_config.postgres.log_volume.exists():
            ctx.console.warn(
                f"log_volume does not exist: {app_config.postgres.log_volume} "
                "(pass --free-log-kb to pgtune tune)"
            )

    except TunerError as e:
        handle_error(e)


@config_app.command("example")
def config_example(no_color: NoColorOption = False) -> None:
    """Print example configuration file."""
    ctx = get_context(no_color=no_color)
    ctx.console.raw(get_example_config())
