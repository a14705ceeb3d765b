# accounting/money.py
"""Money helpers shared by the validator, balances and serializers."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_Q = Decimal("0.01")

# Two amounts closer than this are equal at currency precision.
EPSILON = Decimal("0.01")

# Amounts are stored as DecimalField(max_digits=18, decimal_places=2).
MAX_AMOUNT = Decimal("10") ** 16


def to_money(value) -> Decimal:
    """
    Quantize a value to cents.

    Raises:
        InvalidOperation: If the value is not a finite number
    """
    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, float):
        value = str(value)
    amount = Decimal(value)
    if not amount.is_finite():
        raise InvalidOperation(f"Amount must be finite: {value!r}")
    return amount.quantize(MONEY_Q, rounding=ROUND_HALF_UP)


def money_str(value) -> str:
    return str(to_money(value))
