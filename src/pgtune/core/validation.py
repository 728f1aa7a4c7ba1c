"""Input validation utilities.

Provides validation for:
- Numeric system profile inputs (memory, disk space, version)
- Pass-through PostgreSQL settings (random_page_cost, synchronous_commit)

All validators return the validated value or raise InvalidProfile.
version_label formats a validated version for Debian cluster paths.
"""

import math
from typing import Any

from pgtune.core.exceptions import InvalidProfile


# Accepted values for the synchronous_commit setting
SYNCHRONOUS_COMMIT_MODES: frozenset[str] = frozenset({
    "on", "off", "local", "remote_write", "remote_apply",
})


def _require_number(value: Any, name: str) -> float:
    if value is None:
        raise InvalidProfile(
            f"Missing required value: {name}",
            field=name,
            hint=f"Provide {name} explicitly",
        )
    # bool is an int subclass; True must not read as 1 kB of memory
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidProfile(
            f"{name} must be a number, got {type(value).__name__}",
            field=name,
            details=[f"Provided: {value!r}"],
        )
    if math.isnan(value) or math.isinf(value):
        raise InvalidProfile(f"{name} must be a finite number", field=name)
    return value


def validate_kilobytes(value: Any, name: str) -> int:
    """Validate a non-negative whole number of kilobytes.

    Args:
        value: The quantity to validate
        name: Field name for error messages

    Returns:
        The validated value as int

    Raises:
        InvalidProfile: If missing, non-numeric, fractional or negative
    """
    number = _require_number(value, name)

    if number < 0:
        raise InvalidProfile(
            f"{name} cannot be negative ({value})",
            field=name,
            hint="Kilobyte quantities must be zero or greater",
        )

    if number != int(number):
        raise InvalidProfile(
            f"{name} must be a whole number of kilobytes ({value})",
            field=name,
        )

    return int(number)


def validate_engine_version(value: Any) -> float:
    """Validate a PostgreSQL major(.minor) version.

    Accepts numbers and numeric strings ("9.6", "16").

    Raises:
        InvalidProfile: If missing, unparseable or not positive
    """
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise InvalidProfile(
                f"Invalid engine version: {value!r}",
                field="engine_version",
                hint="Use a numeric version such as 9.6 or 16",
            ) from None

    version = _require_number(value, "engine_version")
    if version <= 0:
        raise InvalidProfile(
            f"engine_version must be positive ({value})",
            field="engine_version",
        )
    return float(version)


def version_label(engine_version: float) -> str:
    """Directory-style version label: "9.6" below 10, major only from 10."""
    if engine_version >= 10:
        return str(int(engine_version))
    return f"{engine_version:.1f}"


def validate_random_page_cost(value: Any) -> float:
    """Validate the planner random_page_cost setting."""
    cost = _require_number(value, "random_page_cost")
    if cost <= 0:
        raise InvalidProfile(
            f"random_page_cost must be positive ({value})",
            field="random_page_cost",
            hint="Most modern drives use a value between 1.1 and 4.0",
        )
    return float(cost)


def validate_synchronous_commit(value: Any) -> str:
    """Validate the synchronous_commit durability mode."""
    if not isinstance(value, str) or value.strip().lower() not in SYNCHRONOUS_COMMIT_MODES:
        raise InvalidProfile(
            f"Invalid synchronous_commit mode: {value!r}",
            field="synchronous_commit",
            hint=f"Use one of: {', '.join(sorted(SYNCHRONOUS_COMMIT_MODES))}",
        )
    return value.strip().lower()
