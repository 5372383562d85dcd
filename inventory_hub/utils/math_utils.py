# inventory_hub/utils/math_utils.py
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

# Products like 0.1 * 30 land a hair above the integer they represent
_CEIL_PRECISION = 9


def ceil_units(value: float) -> int:
    """Round a unit count up to the next whole unit.

    Args:
        value: Fractional unit count

    Returns:
        Smallest integer >= value (after trimming float noise)
    """
    return int(math.ceil(round(value, _CEIL_PRECISION)))


def floor_units(value: float) -> int:
    """Round a unit count down to a whole unit."""
    return int(math.floor(round(value, _CEIL_PRECISION)))


def round_to_multiple(value: float, multiple: float) -> float:
    """Round a value up to the next multiple.

    Args:
        value: Value to round
        multiple: Multiple to round to

    Returns:
        Rounded value
    """
    if multiple <= 0:
        return value

    return math.ceil(round(value / multiple, _CEIL_PRECISION)) * multiple


def to_money(value: Optional[Union[int, float, str, Decimal]]) -> Decimal:
    """Convert a numeric value to a 2 dp Decimal."""
    if value is None or value == '':
        return Decimal('0.00')
    return Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
