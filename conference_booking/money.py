from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

CENT = Decimal("0.01")
ZERO = Decimal("0")

Number = Union[Decimal, int, float, str]

def to_money(value: Optional[Number]) -> Decimal:
    """Coerce a stored or submitted amount to a 2dp Decimal (None -> 0)"""
    if value is None:
        return ZERO.quantize(CENT)
    if not isinstance(value, Decimal):
        # str() keeps floats such as 0.1 from dragging binary noise along
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)

def percent_of(amount: Number, percentage: Number) -> Decimal:
    return to_money(to_money(amount) * Decimal(str(percentage)) / Decimal("100"))
