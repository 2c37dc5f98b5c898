"""DTO utilities for service layer.

Provides Decimal conversion and money rounding shared by the engines and
the outbound service, so every reported figure is rounded the same way.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from src.utils.constants import MONEY_DECIMAL_PLACES

Number = Union[Decimal, float, int, str]

_MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)


def to_decimal(value: Number) -> Decimal:
    """
    Convert a number to Decimal without binary float artifacts.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1"), not
    Decimal("0.1000000000000000055511151231257827").

    Examples:
        >>> to_decimal(0.1)
        Decimal('0.1')
        >>> to_decimal("2.50")
        Decimal('2.50')
    """
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    """
    Round a money amount to reporting precision (2 places, half up).

    Examples:
        >>> round_money(Decimal("3.335"))
        Decimal('3.34')
        >>> round_money(10)
        Decimal('10.00')
    """
    return to_decimal(value).quantize(_MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def cost_to_string(value: Union[Number, None]) -> str:
    """
    Convert a cost value to a 2-decimal string format.

    Examples:
        >>> cost_to_string(Decimal("12.345"))
        '12.35'
        >>> cost_to_string(None)
        '0.00'
    """
    if value is None:
        return "0.00"
    return str(round_money(value))
