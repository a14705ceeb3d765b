# accounting/validation.py
"""
Ledger entry validator.

validate_entry() decides whether a proposed journal entry (header plus
lines) may be stored. It is a pure function: the caller hands it the
account rows the lines refer to, and it performs no queries. Running it
twice on the same input gives the same Result.

Checks run in a fixed order and stop at the first failure:

1. at least one line                        -> EMPTY_ENTRY
2. every account exists, is in the entry's
   company, is active, has a known type     -> UNKNOWN_OR_INACTIVE_ACCOUNT
                                               (INVALID_ACCOUNT_TYPE)
3. amounts non-negative, storable, exactly
   one side non-zero                        -> INVALID_LINE_AMOUNT
4. sum(debit) == sum(credit) within EPSILON -> UNBALANCED_ENTRY
5. header total == sum(debit)               -> TOTAL_MISMATCH

A line carrying both a debit and a credit is rejected in step 3.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional, Sequence

from accounting.classification import InvalidAccountType, parse_account_type
from accounting.errors import ErrorKind, Result
from accounting.money import EPSILON, MAX_AMOUNT, to_money


@dataclass(frozen=True)
class EntryHeader:
    company_id: int
    date: date
    description: str
    total_amount: Decimal
    reference: str = ""
    entry_number: str = ""


@dataclass(frozen=True)
class ProposedLine:
    account_id: int
    debit: Decimal = Decimal("0.00")
    credit: Decimal = Decimal("0.00")
    description: str = ""


@dataclass(frozen=True)
class ValidatedEntry:
    """A proposed entry that passed every check. Always a draft."""
    header: EntryHeader
    lines: tuple = field(default_factory=tuple)
    total_debit: Decimal = Decimal("0.00")
    total_credit: Decimal = Decimal("0.00")
    is_posted: bool = False


def _check_accounts(header: EntryHeader, lines: Sequence[ProposedLine], accounts: Mapping) -> Optional[Result]:
    for line_no, line in enumerate(lines, start=1):
        account = accounts.get(line.account_id)
        if account is None or account.company_id != header.company_id:
            return Result.fail(
                ErrorKind.UNKNOWN_OR_INACTIVE_ACCOUNT,
                f"Line {line_no}: account {line.account_id} does not exist in this company.",
                field="account_id",
                line_no=line_no,
            )
        if not account.is_active:
            return Result.fail(
                ErrorKind.UNKNOWN_OR_INACTIVE_ACCOUNT,
                f"Line {line_no}: account {account.code} is inactive.",
                field="account_id",
                line_no=line_no,
            )
        try:
            parse_account_type(account.account_type)
        except InvalidAccountType:
            return Result.fail(
                ErrorKind.INVALID_ACCOUNT_TYPE,
                f"Line {line_no}: account {account.code} has invalid type {account.account_type!r}.",
                field="account_id",
                line_no=line_no,
            )
    return None


def _normalize_lines(lines: Sequence[ProposedLine]):
    """Quantize amounts to cents and check the per-line rules."""
    normalized = []
    for line_no, line in enumerate(lines, start=1):
        try:
            debit = to_money(line.debit)
            credit = to_money(line.credit)
        except (InvalidOperation, TypeError, ValueError):
            return None, Result.fail(
                ErrorKind.INVALID_LINE_AMOUNT,
                f"Line {line_no}: amounts must be numbers.",
                field="debit",
                line_no=line_no,
            )

        if debit < 0 or credit < 0:
            return None, Result.fail(
                ErrorKind.INVALID_LINE_AMOUNT,
                f"Line {line_no}: amounts cannot be negative.",
                field="debit" if debit < 0 else "credit",
                line_no=line_no,
            )
        if debit >= MAX_AMOUNT or credit >= MAX_AMOUNT:
            return None, Result.fail(
                ErrorKind.INVALID_LINE_AMOUNT,
                f"Line {line_no}: amount exceeds the largest storable value.",
                field="debit" if debit >= MAX_AMOUNT else "credit",
                line_no=line_no,
            )
        if debit == 0 and credit == 0:
            return None, Result.fail(
                ErrorKind.INVALID_LINE_AMOUNT,
                f"Line {line_no}: either debit or credit is required.",
                field="debit",
                line_no=line_no,
            )
        if debit > 0 and credit > 0:
            return None, Result.fail(
                ErrorKind.INVALID_LINE_AMOUNT,
                f"Line {line_no}: a line cannot have both debit and credit.",
                field="credit",
                line_no=line_no,
            )

        normalized.append(ProposedLine(
            account_id=line.account_id,
            debit=debit,
            credit=credit,
            description=line.description or "",
        ))
    return tuple(normalized), None


def validate_entry(
    header: EntryHeader,
    lines: Sequence[ProposedLine],
    accounts: Mapping,
) -> Result:
    """
    Validate a proposed journal entry.

    Args:
        header: Entry header (company, date, description, total)
        lines: Proposed debit/credit lines
        accounts: account_id -> account row for every account the caller
                  could resolve (objects with company_id, code, is_active,
                  account_type)

    Returns:
        Result.ok(ValidatedEntry) or Result.fail(LedgerError)
    """
    if not lines:
        return Result.fail(
            ErrorKind.EMPTY_ENTRY,
            "Journal entry must have at least one line.",
            field="lines",
        )

    failure = _check_accounts(header, lines, accounts)
    if failure is not None:
        return failure

    normalized, failure = _normalize_lines(lines)
    if failure is not None:
        return failure

    total_debit = sum((line.debit for line in normalized), Decimal("0.00"))
    total_credit = sum((line.credit for line in normalized), Decimal("0.00"))
    if total_debit >= MAX_AMOUNT or total_credit >= MAX_AMOUNT:
        return Result.fail(
            ErrorKind.INVALID_LINE_AMOUNT,
            "Entry total exceeds the largest storable value.",
            field="lines",
        )

    difference = total_debit - total_credit
    if abs(difference) >= EPSILON:
        return Result.fail(
            ErrorKind.UNBALANCED_ENTRY,
            f"Entry is not balanced. Debit={total_debit} Credit={total_credit} Difference={difference}",
            field="lines",
            difference=difference,
        )

    try:
        total_amount = to_money(header.total_amount)
    except (InvalidOperation, TypeError, ValueError):
        return Result.fail(
            ErrorKind.TOTAL_MISMATCH,
            "Total amount must be a number.",
            field="total_amount",
        )
    mismatch = total_debit - total_amount
    if abs(mismatch) >= EPSILON:
        return Result.fail(
            ErrorKind.TOTAL_MISMATCH,
            f"Total amount {total_amount} does not match total debits {total_debit}.",
            field="total_amount",
            difference=mismatch,
        )

    return Result.ok(ValidatedEntry(
        header=header,
        lines=normalized,
        total_debit=total_debit,
        total_credit=total_credit,
    ))
