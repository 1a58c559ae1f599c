"""
Money helpers.

Monetary columns are non-nullable decimals. Values coming from
callers may still be None ("unset"); these helpers make every
amount calculation a total function over such input.
"""

from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce a value to a cent-quantized Decimal. None means zero."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def net_amount(gross, discount) -> Decimal:
    """max(0, gross - discount)."""
    amount = to_money(gross) - to_money(discount)
    return amount if amount > ZERO else ZERO
