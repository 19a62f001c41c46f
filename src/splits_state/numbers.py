"""
Fixed-point percent codec and token amount formatting.

Percentages are stored on-chain as integers where PERCENTAGE_SCALE means 100%.
Conversion is done in decimal arithmetic on the shortest repr of the input so
that values like 7.35 encode to exactly 73_500 instead of inheriting binary
floating point error.
"""

import math
from decimal import ROUND_HALF_UP, Decimal

from ._exceptions import InvalidRecipientsError
from .constants import PERCENTAGE_SCALE
from .types import Recipient, SplitRecipient


def _to_decimal(value: float | int | str) -> Decimal:
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Cannot scale non-finite value {value!r}")
        return Decimal(repr(value))
    return Decimal(value)


def to_scaled(percent: float | int, scale: int = PERCENTAGE_SCALE) -> int:
    """
    Convert a human percentage to the protocol's fixed-point integer.

    Rounds half-up on the scaled value. Never validates the range; callers
    that need a sum check use validate_scaled_total.

    Example:
        >>> to_scaled(7.35)
        73500
        >>> to_scaled(33.3333333)
        333333
    """
    scaled = _to_decimal(percent) * scale / 100
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_percent(scaled: int, scale: int = PERCENTAGE_SCALE) -> float:
    """Convert a fixed-point integer back to a display percentage."""
    return scaled * 100 / scale


def get_percent_precision(scale: int = PERCENTAGE_SCALE) -> int:
    """Number of fractional percent digits a scale can represent (4 for 1e6)."""
    return max(Decimal(scale).adjusted() - 2, 0)


def round_to_decimals(num: float, decimals: int) -> float:
    """Round half-up to a fixed number of decimal places."""
    quantum = Decimal(1).scaleb(-decimals)
    return float(_to_decimal(num).quantize(quantum, rounding=ROUND_HALF_UP))


def scale_recipients(recipients: list[Recipient], scale: int = PERCENTAGE_SCALE) -> list[SplitRecipient]:
    """
    Scale each recipient's percentage independently.

    Rounding drift is left in place: three recipients at 33.3333335% scale to
    a total of 1_000_002. Use validate_scaled_total to reject such inputs.
    """
    return [
        SplitRecipient(
            address=r.address,
            allocation=to_scaled(r.percent_allocation, scale),
            percent_allocation=r.percent_allocation,
        )
        for r in recipients
    ]


def validate_scaled_total(allocations: list[int], total: int = PERCENTAGE_SCALE) -> None:
    """
    Check that scaled allocations add up to the expected total.

    Raises:
        InvalidRecipientsError: If the sum differs from total
    """
    actual = sum(allocations)
    if actual != total:
        raise InvalidRecipientsError(f"Allocations must sum to {total}, got {actual}")


def format_units(amount: int, decimals: int) -> str:
    """
    Format a raw token amount as a decimal string.

    Trailing fractional zeros are stripped.

    Example:
        >>> format_units(1_500_000, 6)
        '1.5'
        >>> format_units(1, 18)
        '0.000000000000000001'
    """
    sign = "-" if amount < 0 else ""
    digits = str(abs(amount)).rjust(decimals + 1, "0")
    split_at = len(digits) - decimals
    integer, fraction = digits[:split_at], digits[split_at:].rstrip("0")
    if fraction:
        return f"{sign}{integer}.{fraction}"
    return f"{sign}{integer}"


def parse_units(value: str, decimals: int) -> int:
    """Parse a decimal string into a raw token amount, rounding half-up past `decimals`."""
    return int(Decimal(value).scaleb(decimals).quantize(Decimal(1), rounding=ROUND_HALF_UP))
