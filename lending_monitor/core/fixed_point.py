"""Fixed-point integer <-> Decimal conversion for on-chain values.

On-chain amounts are unsigned integers scaled by ``10**decimals`` (18 for
Aave account data).  Conversion to :class:`~decimal.Decimal` is exact, so
threshold comparisons never pass through binary floating point.
"""

from __future__ import annotations

from decimal import Decimal

WAD_DECIMALS = 18


def scale(raw: int, decimals: int = WAD_DECIMALS) -> Decimal:
    """Convert a fixed-point integer into an exact Decimal.

    ``scale(1_050_000_000_000_000_000)`` → ``Decimal("1.050000000000000000")``.
    """
    return Decimal(int(raw)).scaleb(-decimals)


def to_float(value: Decimal) -> float:
    """Lossy conversion for display, logging and gauges only."""
    return float(value)
