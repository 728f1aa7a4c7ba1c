"""Core framework components for the pgtune CLI."""

from pgtune.core.exceptions import (
    TunerError,
    ConfigurationError,
    ValidationError,
    InvalidProfile,
    UnsupportedWorkload,
    UnsupportedArchitecture,
    RenderError,
    DetectionError,
)

from pgtune.core.context import ExecutionContext, create_context
from pgtune.core.output import console, Console, Verbosity
from pgtune.core.config import AppConfig, TunerConfig

__all__ = [
    # Exceptions
    "TunerError",
    "ConfigurationError",
    "ValidationError",
    "InvalidProfile",
    "UnsupportedWorkload",
    "UnsupportedArchitecture",
    "RenderError",
    "DetectionError",
    # Context
    "ExecutionContext",
    "create_context",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "AppConfig",
    "TunerConfig",
]
