"""
SI unit scaling for bit rates.
"""

from typing import NamedTuple

# unscaled, kilo, mega, giga, tera, peta
SI_PREFIXES = ("", "K", "M", "G", "T", "P")
SI_STEP = 1000


class ScaledRate(NamedTuple):
    value: float
    prefix: str


def scale(bits_per_second: float) -> ScaledRate:
    """
    Map a raw rate to (value, prefix) with value in [0, 1000).

    The exponent is the number of full groups of 1000 the rate spans, capped
    at peta; beyond that the value is allowed to exceed 1000.
    """
    if bits_per_second < 0:
        raise ValueError(f"rate must be non-negative, got {bits_per_second}")

    k = 0
    while k < len(SI_PREFIXES) - 1 and bits_per_second >= SI_STEP ** (k + 1):
        k += 1
    return ScaledRate(bits_per_second / SI_STEP ** k, SI_PREFIXES[k])


def format_rate(bits_per_second: float, precision: int = 2) -> str:
    value, prefix = scale(bits_per_second)
    return f"{value:.{precision}f} {prefix}bps"
