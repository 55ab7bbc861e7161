"""
Decimal Precision Helpers

Outbound amounts and prices must be sent with at most as many decimals as
the market allows. Formatting goes through ``decimal.Decimal`` so that
values like 0.1 + 0.2 are not rendered with binary float noise.

Rounding modes:
    TRUNCATE - drop extra digits (never sends more than was asked for)
    ROUND    - round half up

Example:
    >>> decimal_to_precision(0.123456789, TRUNCATE, 8)
    '0.12345678'
    >>> decimal_to_precision(0.123456789, ROUND, 8)
    '0.12345679'
    >>> precision_from_string("0.00100000")
    3
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Union

TRUNCATE = "truncate"
ROUND = "round"

_ROUNDING = {
    TRUNCATE: ROUND_DOWN,
    ROUND: ROUND_HALF_UP,
}


def decimal_to_precision(
    value: Union[int, float, str],
    rounding: str = TRUNCATE,
    digits: int = 8
) -> str:
    """
    Format a number with at most ``digits`` decimal places.

    Trailing zeros are stripped, so the result is the shortest string that
    represents the rounded value.

    Args:
        value: Number to format
        rounding: TRUNCATE or ROUND
        digits: Number of decimal places allowed

    Returns:
        Fixed-point string representation

    Raises:
        ValueError: If the value is not a number or the rounding mode is unknown
    """
    if rounding not in _ROUNDING:
        raise ValueError(f"Unknown rounding mode: {rounding}")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Cannot format {value!r} as a decimal number")

    quantum = Decimal(1).scaleb(-digits)
    result = format(number.quantize(quantum, rounding=_ROUNDING[rounding]), "f")
    if "." in result:
        result = result.rstrip("0").rstrip(".")
    if result in ("-0", ""):
        result = "0"
    return result


def precision_from_string(step: str) -> int:
    """
    Count the significant decimal places of a step size such as "0.00100000".

    Example:
        >>> precision_from_string("0.00001000")
        5
        >>> precision_from_string("1.00000000")
        0
    """
    parts = step.rstrip("0").split(".")
    return len(parts[1]) if len(parts) > 1 else 0
