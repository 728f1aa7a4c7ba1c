"""PostgreSQL tuning command.

Computes workload-based settings for a host and previews or writes them.

Commands:
- pgtune tune (preview recommendations)
- pgtune tune --format conf|json (machine-readable output)
- pgtune tune --output PATH (write a postgresql.conf fragment)
"""

from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.table import Table

from pgtune.commands import handle_error
from pgtune.core import (
    RenderError,
    TunerError,
    console,
    create_context,
)
from pgtune.core.context import ExecutionContext
from pgtune.services.host import HostDetector
from pgtune.services.render import ConfigRenderer
from pgtune.services.tuning import (
    SystemProfile,
    TuningResult,
    Workload,
    compute,
)


class OutputFormat(str, Enum):
    """CLI output formats."""

    TABLE = "table"
    CONF = "conf"
    JSON = "json"


PARAMETER_NOTES = {
    "max_connections": "Cache per connection, capped per workload",
    "shared_buffers": "PostgreSQL data cache (capped by architecture)",
    "effective_cache_size": "Planner estimate of OS + database cache",
    "work_memory": "Per sort/hash operation",
    "maintenance_work_memory": "VACUUM, CREATE INDEX (max 4GB)",
    "checkpoint_segments_or_max_wal_size": "WAL written between checkpoints",
    "checkpoint_completion_target": "Fraction of interval spent flushing",
    "default_statistics_target": "Planner statistics sample size",
    "random_page_cost": "Pass-through (config / environment)",
    "synchronous_commit": "Pass-through (config / environment)",
    "data_directory": "Pass-through (config)",
    "wal_keep_segments": "16MB segments kept on the log volume",
}

MEMORY_KEYS = frozenset({
    "shared_buffers",
    "effective_cache_size",
    "work_memory",
    "maintenance_work_memory",
})


app = typer.Typer(
    name="tune",
    help="Compute PostgreSQL tuning settings.",
    no_args_is_help=False,
)


def build_profile(
    ctx: ExecutionContext,
    *,
    workload: Optional[str],
    memory_kb: Optional[int],
    architecture: Optional[str],
    free_log_kb: Optional[int],
    pg_version: Optional[str],
    random_page_cost: Optional[float],
    synchronous_commit: Optional[str],
    data_directory: Optional[str],
) -> SystemProfile:
    """Assemble a SystemProfile from CLI options, configuration and the host.

    Command-line values win over configuration; host attributes not given
    on the command line are detected.

    Raises:
        DetectionError: If a missing host attribute cannot be detected
        InvalidProfile: If any value is invalid
    """
    app_config = ctx.config
    pg_config = app_config.postgres
    tuning_config = app_config.tuning

    detector = HostDetector()
    if memory_kb is None:
        memory_kb = detector.memory_kb()
        ctx.console.verbose(f"Detected memory: {memory_kb} kB")
    if architecture is None:
        architecture = detector.architecture()
        ctx.console.verbose(f"Detected architecture: {architecture}")
    if free_log_kb is None:
        free_log_kb = detector.free_space_kb(pg_config.log_volume)
        ctx.console.verbose(f"Detected free space on {pg_config.log_volume}: {free_log_kb} kB")

    if data_directory is None and pg_config.data_dir is not None:
        data_directory = str(pg_config.data_dir)

    return SystemProfile(
        memory_kb=memory_kb,
        architecture=architecture,
        free_log_volume_kb=free_log_kb,
        engine_version=pg_version or pg_config.version,
        workload=workload or tuning_config.workload,
        random_page_cost=(
            random_page_cost if random_page_cost is not None else tuning_config.random_page_cost
        ),
        synchronous_commit=synchronous_commit or tuning_config.synchronous_commit,
        data_directory=data_directory,
    )


def _display_profile(profile: SystemProfile) -> None:
    """Display the system profile the settings were computed for."""
    workload = profile.workload
    console.print()
    console.print("[bold]System Profile[/bold]")
    console.print(f"  RAM:           {profile.memory_kb // 1024} MB")
    console.print(f"  Architecture:  {profile.architecture}")
    console.print(f"  Free WAL disk: {profile.free_log_volume_kb // 1024} MB")
    console.print(f"  PostgreSQL:    {profile.engine_version:g}")
    console.print()
    console.print(f"[bold]Workload Profile:[/bold] {workload.value.upper()}")
    console.print(f"  {workload.description}")


def _display_result(result: TuningResult) -> None:
    """Display computed settings as a table."""
    console.print()

    table = Table(
        title="Tuning Recommendations",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold",
    )
    table.add_column("Parameter", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_column("Notes", style="dim")

    for key, value in result.as_dict().items():
        if key == "memory":
            continue
        if key == "checkpoint_segments_or_max_wal_size":
            table.add_row(result.checkpoint.key, str(result.checkpoint.value), PARAMETER_NOTES[key])
            continue
        display = f"{value}MB" if key in MEMORY_KEYS else str(value)
        table.add_row(key, display, PARAMETER_NOTES[key])

    console.print(table)


@app.callback(invoke_without_command=True)
def tune(
    workload: Optional[Workload] = typer.Option(
        None,
        "--workload", "-w",
        help="Workload: web, oltp, dw, mixed, desktop (default from config)",
        case_sensitive=False,
    ),
    memory_kb: Optional[int] = typer.Option(
        None,
        "--memory-kb",
        help="Total memory in kB (default: detected from /proc/meminfo)",
    ),
    architecture: Optional[str] = typer.Option(
        None,
        "--architecture", "--arch",
        help="32-bit, 64-bit or kernel machine name (default: detected)",
    ),
    free_log_kb: Optional[int] = typer.Option(
        None,
        "--free-log-kb",
        help="Free kB on the WAL volume (default: detected from postgres.log_volume)",
    ),
    pg_version: Optional[str] = typer.Option(
        None,
        "--pg-version",
        help="Target PostgreSQL version, e.g. 9.6 or 16 (default from config)",
    ),
    random_page_cost: Optional[float] = typer.Option(
        None,
        "--random-page-cost",
        help="Override random_page_cost",
    ),
    synchronous_commit: Optional[str] = typer.Option(
        None,
        "--synchronous-commit",
        help="Override synchronous_commit (on, off, local, remote_write, remote_apply)",
    ),
    data_directory: Optional[str] = typer.Option(
        None,
        "--data-directory",
        help="Override data_directory",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Reject architectures other than 32-bit and 64-bit",
    ),
    fmt: OutputFormat = typer.Option(
        OutputFormat.TABLE,
        "--format",
        help="Output format: table, conf, json",
        case_sensitive=False,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Write the rendered configuration to this file",
        dir_okay=False,
    ),
    force: bool = typer.Option(
        False,
        "--force", "-f",
        help="Overwrite an existing output file (a backup is kept)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Preview the write without changing any file",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose", "-v",
        count=True,
        help="Increase verbosity",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet", "-q",
        help="Suppress non-essential output",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Path to configuration file",
    ),
) -> None:
    """Compute PostgreSQL settings for this host and workload.

    Host attributes not given on the command line are detected from the
    local machine. Workload, version and pass-through settings come from
    the configuration file unless overridden.

    Workload Profiles:

    - WEB: Web application backend
    - OLTP: Transaction processing, high write concurrency
    - DW: Data warehouse, large analytical queries
    - MIXED: Transactional and reporting (default)
    - DESKTOP: Developer machine

    Examples:

        # Preview recommendations for this host
        pgtune tune

        # Compute for another host
        pgtune tune --memory-kb 16777216 --arch 64-bit --free-log-kb 104857600 -w oltp

        # Emit a postgresql.conf fragment
        pgtune tune --format conf

        # Write the drop-in file (backs up an existing one)
        pgtune tune -o /etc/postgresql/16/main/conf.d/99-tuning.conf --force
    """
    # conf/json on stdout must stay machine-readable
    machine_readable = fmt != OutputFormat.TABLE and output is None
    ctx = create_context(
        dry_run=dry_run,
        force=force,
        verbose=verbose,
        quiet=quiet or machine_readable,
        no_color=no_color,
        config=config,
    )

    try:
        profile = build_profile(
            ctx,
            workload=workload.value if workload else None,
            memory_kb=memory_kb,
            architecture=architecture,
            free_log_kb=free_log_kb,
            pg_version=pg_version,
            random_page_cost=random_page_cost,
            synchronous_commit=synchronous_commit,
            data_directory=data_directory,
        )

        ctx.console.step("Calculating recommendations...")
        result = compute(
            profile,
            strict_architecture=strict or ctx.config.tuning.strict_architecture,
        )
        renderer = ConfigRenderer(ctx)

        if fmt == OutputFormat.JSON:
            content = renderer.render_json(result) + "\n"
        else:
            content = renderer.render(profile, result)

        if output is not None:
            _write_output(ctx, renderer, output, content)
            return

        if fmt == OutputFormat.TABLE:
            _display_profile(profile)
            _display_result(result)
            console.print()
            conf_path = ctx.config.postgres.resolved_conf_path
            console.hint(f"pgtune tune --format conf  (or -o {conf_path} to write the file)")
        else:
            console.raw(content.rstrip("\n"))

    except TunerError as e:
        handle_error(e)


def _write_output(
    ctx: ExecutionContext,
    renderer: ConfigRenderer,
    output: Path,
    content: str,
) -> None:
    """Write rendered configuration, refusing to clobber without --force."""
    if output.exists() and not ctx.force:
        raise RenderError(
            f"Output file already exists: {output}",
            hint="Use --force to overwrite (a backup is kept)",
        )

    if ctx.is_verbose or ctx.dry_run:
        ctx.console.conf(content, title=str(output))

    backup_path = renderer.write(output, content)

    if ctx.dry_run:
        return

    ctx.console.success(f"Configuration written to: {output}")
    if backup_path:
        ctx.console.print(f"  [dim]To restore: cp {backup_path} {output}[/dim]")
