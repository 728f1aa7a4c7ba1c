"""Configuration management using Pydantic.

Provides:
- Typed configuration models with validation
- YAML file loading with defaults
- Environment variable overrides for tuning defaults
- Configuration initialization and display
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pgtune.core.exceptions import ConfigurationError, TunerError
from pgtune.core.validation import (
    validate_engine_version,
    validate_random_page_cost,
    validate_synchronous_commit,
    version_label,
)


# Default configuration paths
DEFAULT_CONFIG_PATH = Path("/etc/pgtune/config.yaml")
DEFAULT_LOG_VOLUME = Path("/var/lib/postgresql")


def _check_workload(v: str) -> str:
    # pgtune.services imports pgtune.core, so Workload is imported here
    from pgtune.services.tuning import Workload

    return _check(Workload.parse, v).value


def _check(validator, v):
    # Re-raise as ValueError so pydantic reports it against the field
    try:
        return validator(v)
    except TunerError as e:
        raise ValueError(e.message) from e


class PostgresConfig(BaseModel):
    """Target PostgreSQL installation."""

    version: str = "16"
    data_dir: Optional[Path] = None
    log_volume: Path = DEFAULT_LOG_VOLUME
    conf_path: Optional[Path] = None

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: object) -> str:
        # YAML reads an unquoted 9.6 as a float
        v = str(v).strip()
        _check(validate_engine_version, v)
        return v

    @property
    def engine_version(self) -> float:
        return float(self.version)

    @property
    def resolved_conf_path(self) -> Path:
        """Rendered configuration destination (conf.d drop-in by default)."""
        if self.conf_path is not None:
            return self.conf_path
        label = version_label(self.engine_version)
        return Path(f"/etc/postgresql/{label}/main/conf.d/99-tuning.conf")


class TuningConfig(BaseModel):
    """Workload selection and pass-through tuning defaults."""

    workload: str = "mixed"
    random_page_cost: float = 3.0
    synchronous_commit: str = "on"
    strict_architecture: bool = False

    @field_validator("workload")
    @classmethod
    def validate_workload(cls, v: str) -> str:
        return _check_workload(v)

    @field_validator("random_page_cost")
    @classmethod
    def validate_random_page_cost(cls, v: float) -> float:
        return _check(validate_random_page_cost, v)

    @field_validator("synchronous_commit", mode="before")
    @classmethod
    def validate_synchronous_commit(cls, v: object) -> str:
        # YAML reads an unquoted on/off as a boolean
        if isinstance(v, bool):
            v = "on" if v else "off"
        return _check(validate_synchronous_commit, v)


class TunerConfig(BaseModel):
    """Root configuration model.

    Loaded from /etc/pgtune/config.yaml.
    """

    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    tuning: TuningConfig = Field(default_factory=TuningConfig)

    @classmethod
    def load(cls, path: Path) -> "TunerConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to configuration file

        Returns:
            Loaded configuration

        Raises:
            ConfigurationError: If file not found or invalid
        """
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                hint="Create it with: pgtune config init",
            )

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {path}",
                details=[str(e)],
            ) from e
        except PermissionError:
            raise ConfigurationError(
                f"Cannot read configuration file: {path}",
                hint="Check file permissions or run with sudo",
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping: {path}",
            )

        try:
            return cls(**data)
        except Exception as e:
            raise ConfigurationError(
                f"Invalid configuration: {path}",
                details=[str(e)],
            ) from e

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "TunerConfig":
        """Load configuration, falling back to defaults if file doesn't exist."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if path.exists():
            return cls.load(path)
        return cls()

    def to_yaml(self) -> str:
        """Convert configuration to YAML string."""
        data = self.model_dump(mode="json", exclude_none=True)
        return yaml.dump(data, default_flow_style=False, sort_keys=False)


class EnvironmentOverrides(BaseSettings):
    """Tuning defaults overridden from the environment.

    PGTUNE_WORKLOAD, PGTUNE_RANDOM_PAGE_COST, PGTUNE_SYNCHRONOUS_COMMIT
    """

    model_config = SettingsConfigDict(env_prefix="PGTUNE_", extra="ignore")

    workload: Optional[str] = None
    random_page_cost: Optional[float] = None
    synchronous_commit: Optional[str] = None


class AppConfig:
    """Application configuration combining config file and environment.

    This is the main interface for accessing configuration throughout the app.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[TunerConfig] = None,
    ) -> None:
        """Initialize application configuration.

        Args:
            config_path: Path to config file (uses default if None)
            config: Pre-loaded config (skips file loading if provided)

        Raises:
            ConfigurationError: If the file or an environment override is invalid
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = config or TunerConfig.load_or_default(self.config_path)
        try:
            self._overrides = EnvironmentOverrides()
        except Exception as e:
            raise ConfigurationError(
                "Invalid PGTUNE_* environment variable",
                details=[str(e)],
            ) from e
        self._tuning = self._apply_overrides(self._config.tuning)

    def _apply_overrides(self, tuning: TuningConfig) -> TuningConfig:
        updates = self._overrides.model_dump(exclude_none=True)
        if not updates:
            return tuning
        try:
            return TuningConfig(**{**tuning.model_dump(), **updates})
        except Exception as e:
            raise ConfigurationError(
                "Invalid PGTUNE_* environment variable",
                details=[str(e)],
            ) from e

    @property
    def config(self) -> TunerConfig:
        """Get the file configuration (without environment overrides)."""
        return self._config

    @property
    def overrides(self) -> EnvironmentOverrides:
        return self._overrides

    @property
    def postgres(self) -> PostgresConfig:
        """Shortcut to PostgreSQL config."""
        return self._config.postgres

    @property
    def tuning(self) -> TuningConfig:
        """Tuning config with environment overrides applied."""
        return self._tuning


def get_example_config() -> str:
    """Generate example configuration file content."""
    return """# pgtune configuration
# Environment overrides: PGTUNE_WORKLOAD, PGTUNE_RANDOM_PAGE_COST,
# PGTUNE_SYNCHRONOUS_COMMIT

# Target PostgreSQL installation
postgres:
  version: "16"               # 9.5 and later use max_wal_size
  # data_dir: /var/lib/postgresql/16/main
  log_volume: /var/lib/postgresql   # volume holding pg_wal
  # conf_path: /etc/postgresql/16/main/conf.d/99-tuning.conf

# Tuning policy
tuning:
  workload: mixed             # web, oltp, dw, mixed, desktop
  random_page_cost: 3.0       # default 4; 2-3 suits modern drives
  synchronous_commit: "on"    # "off" trades crash safety of recent commits for speed
  strict_architecture: false  # reject CPU architectures other than 32/64-bit
"""


def init_config(path: Path, force: bool = False) -> None:
    """Initialize a new configuration file.

    Args:
        path: Path to create config file
        force: Overwrite if exists

    Raises:
        ConfigurationError: If file exists and force is False
    """
    if path.exists() and not force:
        raise ConfigurationError(
            f"Configuration file already exists: {path}",
            hint="Use --force to overwrite",
        )

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(get_example_config())
    os.chmod(path, 0o644)
