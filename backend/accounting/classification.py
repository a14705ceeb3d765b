# accounting/classification.py
"""
Account classification and sign convention.

Every account belongs to one of five types. The type decides which side
(debit or credit) increases the account, and therefore how a pair of
debit/credit sums turns into a signed balance:

    ASSET, EXPENSE                 -> debit - credit   (debit-normal)
    LIABILITY, EQUITY, REVENUE     -> credit - debit   (credit-normal)

Sub-types are descriptive only; they group rows on reports but never
change the sign.

Everything here is pure. The only error is InvalidAccountType, raised
when a value outside the five types reaches the sign convention. That
means stored data is corrupt, so it is an exception rather than a
validation result.
"""

from decimal import Decimal

from django.db import models


class AccountType(models.TextChoices):
    ASSET = "asset", "Asset"
    LIABILITY = "liability", "Liability"
    EQUITY = "equity", "Equity"
    REVENUE = "revenue", "Revenue"
    EXPENSE = "expense", "Expense"


class NormalBalance(models.TextChoices):
    DEBIT = "debit", "Debit"
    CREDIT = "credit", "Credit"


class InvalidAccountType(ValueError):
    """Raised when an account type is not one of the five known types."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid account type: {value!r}")


NORMAL_BALANCE_MAP = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
}

ZERO = Decimal("0.00")


def parse_account_type(value) -> AccountType:
    """
    Coerce a raw value ("asset", "ASSET", AccountType.ASSET) into AccountType.

    Raises:
        InvalidAccountType: If the value is not a known type
    """
    if isinstance(value, AccountType):
        return value
    if isinstance(value, str):
        try:
            return AccountType(value.strip().lower())
        except ValueError:
            pass
    raise InvalidAccountType(value)


def normal_balance(account_type) -> NormalBalance:
    return NORMAL_BALANCE_MAP[parse_account_type(account_type)]


def is_debit_normal(account_type) -> bool:
    return normal_balance(account_type) == NormalBalance.DEBIT


def balance_contribution(account_type, debit, credit) -> Decimal:
    """
    Signed balance contribution of a debit/credit pair for an account type.

    Args:
        account_type: One of the five account types
        debit: Debit amount (or debit total)
        credit: Credit amount (or credit total)

    Returns:
        debit - credit for debit-normal types, credit - debit otherwise

    Raises:
        InvalidAccountType: If account_type is unknown
    """
    debit = Decimal(debit or 0)
    credit = Decimal(credit or 0)
    if is_debit_normal(account_type):
        return debit - credit
    return credit - debit
