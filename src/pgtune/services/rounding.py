"""Binary rounding of megabyte quantities.

Converts raw fractional megabyte values into round numbers suitable for a
hand-edited postgresql.conf. A value in [2**k, 2**(k+1)) is rounded (half up)
to a multiple of 2**(k-3), i.e. one of eight evenly spaced steps per binary
order of magnitude. Values below 8 MB round to whole megabytes.

Examples:
    135   -> 128   (step 16)
    243.9 -> 240   (step 16)
    768   -> 768   (step 64)
    2389  -> 2304  (step 256)

Every power of two lies on the grid of the magnitudes on both sides of it,
so the mapping is monotonic: a larger input never rounds to a smaller output.
"""

import math

# Steps per binary order of magnitude, as a power of two (2**3 = 8)
STEP_BITS = 3


def round_half_up(value: float, multiple: int = 1) -> int:
    """Round a non-negative value half up to the nearest multiple."""
    return int(math.floor(value / multiple + 0.5)) * multiple


def binary_step(value: float) -> int:
    """Return the rounding step (in MB) used for a value."""
    if value < 2 ** STEP_BITS:
        return 1
    exponent = math.frexp(value)[1] - 1  # floor(log2(value)) without float log error
    return 2 ** (exponent - STEP_BITS)


def binary_round(value: float) -> int:
    """Round a megabyte quantity to a conventional binary-sized integer.

    Args:
        value: Raw quantity in MB (int or float, non-negative)

    Returns:
        Rounded quantity in MB

    Raises:
        ValueError: If value is negative or not finite
    """
    if value < 0 or math.isnan(value) or math.isinf(value):
        raise ValueError(f"Cannot round {value!r}: expected a finite non-negative quantity")

    return round_half_up(value, binary_step(value))
