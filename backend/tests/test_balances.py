# tests/test_balances.py
"""
Tests for the balance calculator: account balances, trial balance,
profit and loss, and balance sheet.

Balances only ever come from posted lines; drafts never count.
"""

import logging
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from accounting.balances import (
    account_balance,
    assert_ledger_balanced,
    balance_sheet,
    build_trial_balance,
    profit_and_loss,
    trial_balance,
    trial_balance_columns,
)
from accounting.errors import LedgerIntegrityError
from accounting.models import Account, JournalEntry, JournalEntryLine
from accounting.write_barrier import posting_allowed
from conftest import credit, debit


pytestmark = pytest.mark.django_db


# =============================================================================
# Account balance
# =============================================================================

class TestAccountBalance:

    def test_asset_balance_is_debits_minus_credits(
        self, make_posted, cash_account, capital_account, expense_account
    ):
        make_posted([debit(cash_account, "1000"), credit(capital_account, "1000")])
        make_posted([debit(expense_account, "200"), credit(cash_account, "200")])

        assert account_balance(cash_account.company_id, cash_account.id) == Decimal("800.00")

    def test_credit_normal_balance_is_positive(self, make_posted, cash_account, revenue_account):
        make_posted([debit(cash_account, "500"), credit(revenue_account, "500")])

        assert account_balance(revenue_account.company_id, revenue_account.id) == Decimal("500.00")

    def test_drafts_do_not_count(self, make_draft, make_posted, cash_account, revenue_account):
        make_posted([debit(cash_account, "100"), credit(revenue_account, "100")])
        make_draft([debit(cash_account, "900"), credit(revenue_account, "900")])

        assert account_balance(cash_account.company_id, cash_account.id) == Decimal("100.00")

    def test_as_of_date_is_inclusive(self, make_posted, cash_account, revenue_account):
        make_posted([debit(cash_account, "100"), credit(revenue_account, "100")], entry_date=date(2024, 1, 31))
        make_posted([debit(cash_account, "50"), credit(revenue_account, "50")], entry_date=date(2024, 2, 1))

        company_id = cash_account.company_id
        assert account_balance(company_id, cash_account.id, as_of_date=date(2024, 1, 30)) == Decimal("0.00")
        assert account_balance(company_id, cash_account.id, as_of_date=date(2024, 1, 31)) == Decimal("100.00")
        assert account_balance(company_id, cash_account.id) == Decimal("150.00")

    def test_account_without_activity_is_zero(self, bank_account):
        assert account_balance(bank_account.company_id, bank_account.id) == Decimal("0.00")

    def test_account_from_another_company_is_not_found(self, company, other_company_cash):
        with pytest.raises(Account.DoesNotExist):
            account_balance(company.id, other_company_cash.id)

    def test_reversal_restores_balance(self, make_posted, admin_actor, cash_account, revenue_account):
        from accounting.commands import reverse_journal_entry

        entry = make_posted([debit(cash_account, "250"), credit(revenue_account, "250")])
        result = reverse_journal_entry(admin_actor, entry.id, date=date(2024, 1, 20))
        assert result.success

        assert account_balance(cash_account.company_id, cash_account.id) == Decimal("0.00")
        assert account_balance(revenue_account.company_id, revenue_account.id) == Decimal("0.00")


# =============================================================================
# Trial balance
# =============================================================================

class TestTrialBalance:

    def test_posted_ledger_balances(
        self, company, make_posted, cash_account, bank_account, payable_account,
        revenue_account, expense_account,
    ):
        make_posted([debit(cash_account, "1000"), credit(revenue_account, "1000")])
        make_posted([debit(expense_account, "300"), credit(payable_account, "300")])
        make_posted([debit(bank_account, "400"), credit(cash_account, "400")])

        report = trial_balance(company.id)

        assert report.is_balanced
        assert report.total_debits == report.total_credits == Decimal("1300.00")
        assert [row.code for row in report.accounts] == ["1000", "1010", "2000", "4000", "5000"]

    def test_accounts_without_posted_activity_are_omitted(
        self, company, make_posted, make_draft, cash_account, revenue_account, expense_account,
    ):
        make_posted([debit(cash_account, "10"), credit(revenue_account, "10")])
        make_draft([debit(expense_account, "10"), credit(cash_account, "10")])

        codes = [row.code for row in trial_balance(company.id).accounts]
        assert codes == ["1000", "4000"]

    def test_negative_balance_goes_to_opposite_column(
        self, company, make_posted, cash_account, expense_account,
    ):
        make_posted([debit(expense_account, "300"), credit(cash_account, "300")])

        rows = {row.code: row for row in trial_balance(company.id).accounts}
        assert rows["1000"].balance == Decimal("-300.00")
        assert rows["1000"].debit == Decimal("0.00")
        assert rows["1000"].credit == Decimal("300.00")

    def test_companies_are_isolated(
        self, company, second_company, make_posted, cash_account, revenue_account, other_company_cash,
    ):
        make_posted([debit(cash_account, "75"), credit(revenue_account, "75")])

        assert trial_balance(second_company.id).accounts == []
        assert trial_balance(company.id).total_debits == Decimal("75.00")

    def test_to_dict_uses_string_amounts(self, company, make_posted, cash_account, revenue_account):
        make_posted([debit(cash_account, "12.5"), credit(revenue_account, "12.5")])

        data = trial_balance(company.id, as_of_date=date(2024, 12, 31)).to_dict()
        assert data["total_debits"] == "12.50"
        assert data["as_of_date"] == "2024-12-31"
        assert data["is_balanced"] is True
        assert data["accounts"][0]["normal_balance"] == "debit"


class TestTrialBalanceBuilder:

    def test_columns(self):
        assert trial_balance_columns("asset", Decimal("5")) == (Decimal("5"), Decimal("0.00"))
        assert trial_balance_columns("asset", Decimal("-5")) == (Decimal("0.00"), Decimal("5"))
        assert trial_balance_columns("liability", Decimal("7")) == (Decimal("0.00"), Decimal("7"))
        assert trial_balance_columns("revenue", Decimal("-7")) == (Decimal("7"), Decimal("0.00"))

    def test_builder_is_pure(self):
        accounts = [
            SimpleNamespace(id=2, code="4000", name="Sales", account_type="revenue", sub_type=""),
            SimpleNamespace(id=1, code="1000", name="Cash", account_type="asset", sub_type=""),
            SimpleNamespace(id=3, code="5000", name="Idle", account_type="expense", sub_type=""),
        ]
        totals = {
            1: (Decimal("100.00"), Decimal("0.00")),
            2: (Decimal("0.00"), Decimal("100.00")),
        }

        report = build_trial_balance(7, accounts, totals)

        assert [row.account_id for row in report.accounts] == [1, 2]
        assert report.is_balanced


class TestLedgerIntegrity:

    def _corrupt_posted_entry(self, company, cash_account, revenue_account):
        """Store an unbalanced posted entry by going around the command layer."""
        entry = JournalEntry.objects.create(
            company=company, entry_number="BAD-1", date=date(2024, 1, 1),
            description="Corrupt", total_amount=Decimal("100.00"),
        )
        JournalEntryLine.objects.create(entry=entry, line_no=1, account=cash_account, debit=Decimal("100.00"))
        JournalEntryLine.objects.create(entry=entry, line_no=2, account=revenue_account, credit=Decimal("90.00"))
        entry.is_posted = True
        with posting_allowed():
            entry.save()
        return entry

    def test_balanced_ledger_passes(self, company, make_posted, cash_account, revenue_account):
        make_posted([debit(cash_account, "10"), credit(revenue_account, "10")])
        assert assert_ledger_balanced(company.id).is_balanced

    def test_unbalanced_ledger_raises_and_logs_critical(
        self, company, cash_account, revenue_account, caplog, monkeypatch,
    ):
        monkeypatch.setattr(logging.getLogger("accounting"), "propagate", True)
        self._corrupt_posted_entry(company, cash_account, revenue_account)

        with caplog.at_level(logging.CRITICAL, logger="accounting.balances"):
            with pytest.raises(LedgerIntegrityError):
                assert_ledger_balanced(company.id)

        assert any(r.levelno == logging.CRITICAL for r in caplog.records)


# =============================================================================
# Profit and loss / balance sheet
# =============================================================================

class TestFinancialStatements:

    @pytest.fixture
    def ledger(self, make_posted, cash_account, bank_account, payable_account,
               capital_account, revenue_account, expense_account):
        make_posted([debit(cash_account, "5000"), credit(capital_account, "5000")], entry_date=date(2024, 1, 2))
        make_posted([debit(bank_account, "1200"), credit(revenue_account, "1200")], entry_date=date(2024, 2, 10))
        make_posted([debit(expense_account, "700"), credit(payable_account, "700")], entry_date=date(2024, 3, 5))

    def test_profit_and_loss(self, company, ledger):
        report = profit_and_loss(company.id)

        assert report.total_revenue == Decimal("1200.00")
        assert report.total_expenses == Decimal("700.00")
        assert report.net_income == Decimal("500.00")

    def test_profit_and_loss_respects_date_range(self, company, ledger):
        report = profit_and_loss(company.id, date_from=date(2024, 3, 1), date_to=date(2024, 3, 31))

        assert report.total_revenue == Decimal("0.00")
        assert report.total_expenses == Decimal("700.00")
        assert report.net_income == Decimal("-700.00")

    def test_balance_sheet_balances_with_current_earnings(self, company, ledger):
        report = balance_sheet(company.id)

        assert report.total_assets == Decimal("6200.00")
        assert report.total_liabilities == Decimal("700.00")
        assert report.total_equity == Decimal("5000.00")
        assert report.current_earnings == Decimal("500.00")
        assert report.total_liabilities_and_equity == report.total_assets
        assert report.is_balanced

    def test_balance_sheet_as_of_date(self, company, ledger):
        report = balance_sheet(company.id, as_of_date=date(2024, 1, 31))

        assert report.total_assets == Decimal("5000.00")
        assert report.current_earnings == Decimal("0.00")
        assert report.is_balanced

    def test_sections_group_by_sub_type(self, company, ledger):
        report = balance_sheet(company.id)

        asset_groups = {group.sub_type: group for group in report.assets.groups}
        assert list(asset_groups) == ["Current Assets"]
        assert [line.code for line in asset_groups["Current Assets"].accounts] == ["1000", "1010"]
        assert report.equity.groups[0].sub_type == ""

    def test_statements_serialize(self, company, ledger):
        pnl = profit_and_loss(company.id).to_dict()
        sheet = balance_sheet(company.id).to_dict()

        assert pnl["net_income"] == "500.00"
        assert sheet["total_liabilities_and_equity"] == "6200.00"
        assert sheet["is_balanced"] is True
