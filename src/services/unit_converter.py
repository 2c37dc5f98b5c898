"""
Unit normalization for stock allocation.

All quantity arithmetic happens in a base unit per measurement family:
- mass: grams scale into kilograms ("g" -> "Kg", divide by 1000)
- volume: milliliters scale into liters ("ml" -> "L", divide by 1000)
- count and any other unit: passed through unchanged

The g/ml divide-by-1000 rule is the only scaling transform. Unit strings
are matched case-insensitively.
"""

from decimal import Decimal
from typing import Tuple

from src.utils.constants import (
    BASE_UNITS,
    FAMILY_COUNT,
    SCALE_FACTOR,
    SCALED_UNITS,
    UNIT_FAMILIES,
)
from .dto_utils import Number, to_decimal


def _key(unit: str) -> str:
    return (unit or "").strip().lower()


def get_unit_family(unit: str) -> str:
    """
    Get the measurement family of a unit.

    Args:
        unit: Unit string (e.g., "g", "Kg", "ml", "pcs")

    Returns:
        "mass", "volume" or "count"
    """
    return UNIT_FAMILIES.get(_key(unit), FAMILY_COUNT)


def display_unit(unit: str) -> str:
    """
    Get the base unit label a quantity in ``unit`` is reported in.

    Examples:
        >>> display_unit("g")
        'Kg'
        >>> display_unit("ml")
        'L'
        >>> display_unit("pcs")
        'pcs'
    """
    key = _key(unit)
    if key in SCALED_UNITS:
        return SCALED_UNITS[key]
    if key in BASE_UNITS:
        return BASE_UNITS[key]
    return unit


def normalize(quantity: Number, unit: str) -> Tuple[Decimal, str]:
    """
    Convert a quantity into its family's base unit.

    Args:
        quantity: Amount expressed in ``unit``
        unit: Unit of the amount

    Returns:
        Tuple of (base_quantity, family)

    Examples:
        >>> normalize(1000, "g")
        (Decimal('1'), 'mass')
        >>> normalize(2, "pcs")
        (Decimal('2'), 'count')
    """
    value = to_decimal(quantity)
    if _key(unit) in SCALED_UNITS:
        value = value / SCALE_FACTOR
    return value, get_unit_family(unit)


def from_base(base_quantity: Number, unit: str) -> Decimal:
    """
    Express a base-unit quantity in ``unit`` (inverse of normalize).

    Examples:
        >>> from_base(Decimal("0.25"), "g")
        Decimal('250.00')
    """
    value = to_decimal(base_quantity)
    if _key(unit) in SCALED_UNITS:
        return value * SCALE_FACTOR
    return value


def units_compatible(unit_a: str, unit_b: str) -> bool:
    """
    Check whether quantities in two units can be added together.

    Mass and volume units are compatible within their family. Count units
    are only compatible with the same unit ("pcs" and "dozen" are not).

    Examples:
        >>> units_compatible("g", "Kg")
        True
        >>> units_compatible("pcs", "dozen")
        False
    """
    family = get_unit_family(unit_a)
    if family != get_unit_family(unit_b):
        return False
    return family != FAMILY_COUNT or _key(unit_a) == _key(unit_b)
