"""Custom exceptions for the pgtune CLI.

All exceptions provide:
- Clear error messages
- Optional hints for resolution
- Optional details for debugging
- Exit codes for proper shell integration
"""

from typing import Optional


class TunerError(Exception):
    """Base exception for all pgtune errors.

    Attributes:
        message: Human-readable error description
        hint: Suggested action to resolve the error
        details: Additional context for debugging
        exit_code: Shell exit code (1-127)
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or []

    def __str__(self) -> str:
        return self.message


class ConfigurationError(TunerError):
    """Configuration file or settings errors.

    Raised when:
    - Config file not found or unreadable
    - Invalid YAML syntax
    - Invalid configuration values
    """
    exit_code = 2


class ValidationError(TunerError):
    """Input validation errors."""
    exit_code = 3


class InvalidProfile(ValidationError):
    """System profile rejected before any derivation begins.

    Raised when:
    - A numeric input is missing, negative or not a number
    - The engine version is not positive
    - A pass-through setting has an unusable value
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.field = field


class UnsupportedWorkload(ValidationError):
    """Workload is not one of web, oltp, dw, mixed, desktop."""
    exit_code = 20

    def __init__(
        self,
        workload: object,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not hint:
            hint = "Use one of: web, oltp, dw, mixed, desktop"
        super().__init__(f"Unsupported workload: {workload!r}", hint=hint, details=details)
        self.workload = workload


class UnsupportedArchitecture(ValidationError):
    """Unknown CPU architecture while strict architecture checking is on."""
    exit_code = 21

    def __init__(
        self,
        architecture: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not hint:
            hint = "Use 32-bit or 64-bit, or disable strict architecture checking"
        super().__init__(
            f"Unsupported architecture: {architecture!r}", hint=hint, details=details
        )
        self.architecture = architecture


class RenderError(TunerError):
    """Configuration rendering or writing failed.

    Raised when:
    - The template cannot be loaded or rendered
    - The output file cannot be written
    """
    exit_code = 5


class DetectionError(TunerError):
    """A host attribute could not be detected.

    Raised when:
    - /proc/meminfo is missing or unparseable
    - The log volume path does not exist
    """
    exit_code = 6
