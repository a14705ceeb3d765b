# accounting/balances.py
"""
Balance calculator.

Balances are recomputed from posted journal lines on every call. Draft
entries never count. Nothing is cached between calls.

Each report has two halves:
- a query function (trial_balance, balance_sheet, ...) that fetches
  per-account debit/credit totals for one company
- a pure builder (build_trial_balance, ...) that turns account rows and
  totals into the report using the sign convention in classification.py

An unbalanced trial balance is never a normal outcome: every entry was
balanced when it was posted. trial_balance() logs it as CRITICAL and
assert_ledger_balanced() raises LedgerIntegrityError.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from django.db.models import Sum

from accounting.classification import (
    AccountType,
    balance_contribution,
    is_debit_normal,
    normal_balance,
    parse_account_type,
)
from accounting.errors import LedgerIntegrityError
from accounting.money import EPSILON, to_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

Totals = Dict[int, Tuple[Decimal, Decimal]]


# =============================================================================
# Report structures
# =============================================================================

@dataclass
class TrialBalanceRow:
    account_id: int
    code: str
    name: str
    account_type: str
    normal_balance: str
    sub_type: str
    debit: Decimal
    credit: Decimal
    balance: Decimal

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "code": self.code,
            "name": self.name,
            "account_type": self.account_type,
            "normal_balance": self.normal_balance,
            "sub_type": self.sub_type,
            "debit": str(self.debit),
            "credit": str(self.credit),
            "balance": str(self.balance),
        }


@dataclass
class TrialBalance:
    company_id: int
    as_of_date: Optional[date]
    accounts: List[TrialBalanceRow] = field(default_factory=list)
    total_debits: Decimal = ZERO
    total_credits: Decimal = ZERO

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits

    @property
    def is_balanced(self) -> bool:
        return abs(self.difference) < EPSILON

    def to_dict(self) -> dict:
        return {
            "company_id": self.company_id,
            "as_of_date": self.as_of_date.isoformat() if self.as_of_date else None,
            "accounts": [row.to_dict() for row in self.accounts],
            "total_debits": str(self.total_debits),
            "total_credits": str(self.total_credits),
            "is_balanced": self.is_balanced,
        }


@dataclass
class ReportLine:
    account_id: int
    code: str
    name: str
    balance: Decimal

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "code": self.code,
            "name": self.name,
            "balance": str(self.balance),
        }


@dataclass
class SubTypeGroup:
    sub_type: str
    accounts: List[ReportLine] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((line.balance for line in self.accounts), ZERO)

    def to_dict(self) -> dict:
        return {
            "sub_type": self.sub_type,
            "accounts": [line.to_dict() for line in self.accounts],
            "total": str(self.total),
        }


@dataclass
class ReportSection:
    """All accounts of one type, grouped by sub-type."""
    account_type: str
    groups: List[SubTypeGroup] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((group.total for group in self.groups), ZERO)

    def to_dict(self) -> dict:
        return {
            "account_type": self.account_type,
            "groups": [group.to_dict() for group in self.groups],
            "total": str(self.total),
        }


@dataclass
class ProfitAndLoss:
    company_id: int
    date_from: Optional[date]
    date_to: Optional[date]
    revenue: ReportSection
    expenses: ReportSection

    @property
    def total_revenue(self) -> Decimal:
        return self.revenue.total

    @property
    def total_expenses(self) -> Decimal:
        return self.expenses.total

    @property
    def net_income(self) -> Decimal:
        return self.total_revenue - self.total_expenses

    def to_dict(self) -> dict:
        return {
            "company_id": self.company_id,
            "date_from": self.date_from.isoformat() if self.date_from else None,
            "date_to": self.date_to.isoformat() if self.date_to else None,
            "revenue": self.revenue.to_dict(),
            "expenses": self.expenses.to_dict(),
            "total_revenue": str(self.total_revenue),
            "total_expenses": str(self.total_expenses),
            "net_income": str(self.net_income),
        }


@dataclass
class BalanceSheet:
    company_id: int
    as_of_date: Optional[date]
    assets: ReportSection
    liabilities: ReportSection
    equity: ReportSection
    current_earnings: Decimal = ZERO

    @property
    def total_assets(self) -> Decimal:
        return self.assets.total

    @property
    def total_liabilities(self) -> Decimal:
        return self.liabilities.total

    @property
    def total_equity(self) -> Decimal:
        return self.equity.total

    @property
    def total_liabilities_and_equity(self) -> Decimal:
        return self.total_liabilities + self.total_equity + self.current_earnings

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_assets - self.total_liabilities_and_equity) < EPSILON

    def to_dict(self) -> dict:
        return {
            "company_id": self.company_id,
            "as_of_date": self.as_of_date.isoformat() if self.as_of_date else None,
            "assets": self.assets.to_dict(),
            "liabilities": self.liabilities.to_dict(),
            "equity": self.equity.to_dict(),
            "current_earnings": str(self.current_earnings),
            "total_assets": str(self.total_assets),
            "total_liabilities": str(self.total_liabilities),
            "total_equity": str(self.total_equity),
            "total_liabilities_and_equity": str(self.total_liabilities_and_equity),
            "is_balanced": self.is_balanced,
        }


# =============================================================================
# Pure builders
# =============================================================================

def trial_balance_columns(account_type, balance: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Place a signed balance in the debit or credit column.

    A balance with the account's normal sign goes on its natural side;
    a negative balance goes on the opposite side as an absolute value.
    """
    if is_debit_normal(account_type):
        return (balance, ZERO) if balance >= 0 else (ZERO, -balance)
    return (ZERO, balance) if balance >= 0 else (-balance, ZERO)


def build_trial_balance(company_id: int, accounts: Iterable, totals: Totals, as_of_date=None) -> TrialBalance:
    """
    Args:
        company_id: Company the report is for
        accounts: Account rows (id, code, name, account_type, sub_type)
        totals: account_id -> (posted debit total, posted credit total).
                Accounts missing from totals had no posted activity and
                are left out.
    """
    report = TrialBalance(company_id=company_id, as_of_date=as_of_date)

    for account in sorted(accounts, key=lambda a: a.code):
        if account.id not in totals:
            continue
        debit_total, credit_total = totals[account.id]
        balance = balance_contribution(account.account_type, debit_total, credit_total)
        debit, credit = trial_balance_columns(account.account_type, balance)

        report.accounts.append(TrialBalanceRow(
            account_id=account.id,
            code=account.code,
            name=account.name,
            account_type=parse_account_type(account.account_type).value,
            normal_balance=normal_balance(account.account_type).value,
            sub_type=account.sub_type or "",
            debit=debit,
            credit=credit,
            balance=balance,
        ))
        report.total_debits += debit
        report.total_credits += credit

    return report


def _build_section(account_type: AccountType, accounts: List, totals: Totals) -> ReportSection:
    groups: "OrderedDict[str, SubTypeGroup]" = OrderedDict()
    for account in sorted(accounts, key=lambda a: ((a.sub_type or ""), a.code)):
        if parse_account_type(account.account_type) != account_type or account.id not in totals:
            continue
        debit_total, credit_total = totals[account.id]
        sub_type = account.sub_type or ""
        group = groups.setdefault(sub_type, SubTypeGroup(sub_type=sub_type))
        group.accounts.append(ReportLine(
            account_id=account.id,
            code=account.code,
            name=account.name,
            balance=balance_contribution(account_type, debit_total, credit_total),
        ))
    return ReportSection(account_type=account_type.value, groups=list(groups.values()))


def build_profit_and_loss(company_id: int, accounts: Iterable, totals: Totals, date_from=None, date_to=None) -> ProfitAndLoss:
    accounts = list(accounts)
    return ProfitAndLoss(
        company_id=company_id,
        date_from=date_from,
        date_to=date_to,
        revenue=_build_section(AccountType.REVENUE, accounts, totals),
        expenses=_build_section(AccountType.EXPENSE, accounts, totals),
    )


def build_balance_sheet(company_id: int, accounts: Iterable, totals: Totals, as_of_date=None) -> BalanceSheet:
    """
    totals must cover every account type up to as_of_date: revenue and
    expense totals become current_earnings.
    """
    accounts = list(accounts)
    income = build_profit_and_loss(company_id, accounts, totals, date_to=as_of_date)
    return BalanceSheet(
        company_id=company_id,
        as_of_date=as_of_date,
        assets=_build_section(AccountType.ASSET, accounts, totals),
        liabilities=_build_section(AccountType.LIABILITY, accounts, totals),
        equity=_build_section(AccountType.EQUITY, accounts, totals),
        current_earnings=income.net_income,
    )


# =============================================================================
# Queries
# =============================================================================

def posted_totals(company_id: int, date_from=None, date_to=None, account_ids=None) -> Totals:
    """
    Per-account debit/credit totals over posted lines of one company.

    Date bounds are inclusive.
    """
    from accounting.models import JournalEntryLine

    qs = JournalEntryLine.objects.filter(
        entry__company_id=company_id,
        entry__is_posted=True,
    )
    if date_from is not None:
        qs = qs.filter(entry__date__gte=date_from)
    if date_to is not None:
        qs = qs.filter(entry__date__lte=date_to)
    if account_ids is not None:
        qs = qs.filter(account_id__in=list(account_ids))

    rows = (
        qs.order_by()
        .values("account_id")
        .annotate(total_debit=Sum("debit"), total_credit=Sum("credit"))
    )
    return {
        row["account_id"]: (to_money(row["total_debit"]), to_money(row["total_credit"]))
        for row in rows
    }


def _accounts_for(company_id: int, account_ids):
    from accounting.models import Account

    return list(
        Account.objects.filter(company_id=company_id, pk__in=list(account_ids))
        .only("id", "code", "name", "account_type", "sub_type")
    )


def account_balance(company_id: int, account_id: int, as_of_date=None) -> Decimal:
    """
    Signed balance of one account over posted lines up to as_of_date.

    Raises:
        Account.DoesNotExist: If the account is not in this company
    """
    from accounting.models import Account

    account = Account.objects.only("id", "account_type").get(pk=account_id, company_id=company_id)
    totals = posted_totals(company_id, date_to=as_of_date, account_ids=[account.id])
    debit_total, credit_total = totals.get(account.id, (ZERO, ZERO))
    return balance_contribution(account.account_type, debit_total, credit_total)


def trial_balance(company_id: int, as_of_date=None) -> TrialBalance:
    totals = posted_totals(company_id, date_to=as_of_date)
    report = build_trial_balance(company_id, _accounts_for(company_id, totals.keys()), totals, as_of_date)
    if not report.is_balanced:
        logger.critical(
            "Ledger integrity alert: trial balance does not balance",
            extra={
                "company_id": company_id,
                "as_of_date": as_of_date.isoformat() if as_of_date else None,
                "total_debits": str(report.total_debits),
                "total_credits": str(report.total_credits),
                "difference": str(report.difference),
            },
        )
    return report


def profit_and_loss(company_id: int, date_from=None, date_to=None) -> ProfitAndLoss:
    totals = posted_totals(company_id, date_from=date_from, date_to=date_to)
    accounts = _accounts_for(company_id, totals.keys())
    return build_profit_and_loss(company_id, accounts, totals, date_from=date_from, date_to=date_to)


def balance_sheet(company_id: int, as_of_date=None) -> BalanceSheet:
    totals = posted_totals(company_id, date_to=as_of_date)
    accounts = _accounts_for(company_id, totals.keys())
    return build_balance_sheet(company_id, accounts, totals, as_of_date=as_of_date)


def assert_ledger_balanced(company_id: int, as_of_date=None) -> TrialBalance:
    """
    Raises:
        LedgerIntegrityError: If posted debits and credits differ
    """
    report = trial_balance(company_id, as_of_date)
    if not report.is_balanced:
        raise LedgerIntegrityError(
            f"Company {company_id}: total debits {report.total_debits} != "
            f"total credits {report.total_credits}"
        )
    return report
