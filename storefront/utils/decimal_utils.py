# storefront/utils/decimal_utils.py
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    """Coerce ints, floats, strings and Decimals to a cent-quantized Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of(amount, percentage) -> Decimal:
    return to_decimal(to_decimal(amount) * Decimal(str(percentage)) / HUNDRED)
