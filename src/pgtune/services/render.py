"""Rendering of tuning results into postgresql.conf format.

Provides:
- Template-based rendering of a TuningResult
- JSON rendering of the raw result mapping
- Atomic writes with backup of the previous file
"""

import json
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Optional

from jinja2 import Environment, PackageLoader, TemplateError, select_autoescape

from pgtune.core.context import ExecutionContext
from pgtune.core.exceptions import RenderError
from pgtune.core.validation import version_label
from pgtune.services.tuning import WAL_SEGMENT_MB, SystemProfile, TuningResult


# wal_keep_segments was replaced by wal_keep_size in 13
WAL_KEEP_SIZE_VERSION = 13


def conf_string(value: object) -> str:
    """Quote a value as a postgresql.conf string literal."""
    # Embedded single quotes are doubled
    return "'" + str(value).replace("'", "''") + "'"


class ConfigRenderer:
    """Renders and writes tuning configuration files.

    Writes:
    - Respect dry-run mode
    - Are atomic (temp file + rename in the same directory)
    - Back up an existing file first
    """

    TEMPLATE = "postgresql.conf.j2"

    def __init__(self, ctx: ExecutionContext) -> None:
        """Initialize renderer.

        Args:
            ctx: Execution context
        """
        self.ctx = ctx
        self._jinja_env = Environment(
            loader=PackageLoader("pgtune", "templates"),
            autoescape=select_autoescape(),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self._jinja_env.filters["conf_string"] = conf_string

    def render(self, profile: SystemProfile, result: TuningResult) -> str:
        """Render a result as a postgresql.conf fragment.

        Raises:
            RenderError: If the template cannot be loaded or rendered
        """
        wal_keep_size_mb = None
        if profile.engine_version >= WAL_KEEP_SIZE_VERSION:
            wal_keep_size_mb = result.wal_keep_segments * WAL_SEGMENT_MB

        try:
            template = self._jinja_env.get_template(self.TEMPLATE)
            return template.render(
                profile=profile,
                result=result,
                workload=profile.workload,
                version=version_label(profile.engine_version),
                wal_keep_size_mb=wal_keep_size_mb,
            )
        except TemplateError as e:
            raise RenderError(
                f"Failed to render {self.TEMPLATE}",
                details=[str(e)],
            ) from e

    def render_json(self, result: TuningResult) -> str:
        """Render the result mapping as JSON."""
        return json.dumps(result.as_dict(), indent=2)

    def write(self, path: Path, content: str, *, backup: bool = True) -> Optional[Path]:
        """Write rendered content to path.

        Args:
            path: Destination path
            content: File content
            backup: Copy an existing file aside first

        Returns:
            Path to the backup file, or None if none was made

        Raises:
            RenderError: If the file cannot be written
        """
        self.ctx.console.step(f"Writing {path}")

        backup_path = self.backup_file(path) if backup else None

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Write {len(content)} bytes to {path}")
            return backup_path

        try:
            self._write_file_atomic(path, content)
        except OSError as e:
            raise RenderError(
                f"Cannot write configuration file: {path}",
                hint="Check directory permissions or run with sudo",
                details=[str(e)],
            ) from e

        return backup_path

    def backup_file(self, path: Path, *, suffix: str = ".bak") -> Optional[Path]:
        """Create a timestamped copy of an existing file.

        Returns:
            Path to backup file, or None if original doesn't exist
        """
        if not path.exists():
            return None

        timestamp = time.strftime("%Y%m%d_%H%M%S")
        backup_path = path.with_suffix(f"{path.suffix}.{timestamp}{suffix}")

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Backup {path} to {backup_path}")
            return backup_path

        try:
            shutil.copy2(path, backup_path)
        except OSError as e:
            raise RenderError(
                f"Cannot back up {path}",
                details=[str(e)],
            ) from e
        self.ctx.console.debug(f"Backed up {path} to {backup_path}")
        return backup_path

    def _write_file_atomic(self, path: Path, content: str, mode: int = 0o644) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)

        # Same directory, so the rename stays on one filesystem
        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
                os.fchmod(f.fileno(), mode)
            os.rename(temp_path, path)
        except OSError:
            os.unlink(temp_path)
            raise
