# tests/conftest.py
"""
Pytest fixtures for ledger tests.

- Companies and one user per role, with active memberships
- ActorContext fixtures built through accounts.authz.actor_for
- A small chart of accounts (one account per type, plus a bank account)
- Factories for draft and posted journal entries
"""

from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from accounts.authz import actor_for
from accounts.models import Company, Role, UserCompany
from accounting.commands import create_journal_entry, post_journal_entry
from accounting.models import Account


User = get_user_model()


# =============================================================================
# Company & User Fixtures
# =============================================================================

@pytest.fixture
def company(db):
    """Create a test company."""
    return Company.objects.create(name="Test Company", code="TEST", currency="USD")


@pytest.fixture
def second_company(db):
    """Create a second test company for multi-tenant tests."""
    return Company.objects.create(name="Second Company", code="SECOND", currency="EUR")


@pytest.fixture
def make_user(db):
    def _make_user(email, role=None, company=None, **extra):
        user = User.objects.create_user(
            email=email,
            password="testpass123",
            name=email.split("@")[0].title(),
            **extra,
        )
        if role is not None and company is not None:
            UserCompany.objects.create(user=user, company=company, role=role, is_active=True)
        return user
    return _make_user


@pytest.fixture
def admin_user(make_user, company):
    return make_user("admin@test.com", Role.ADMINISTRATOR, company)


@pytest.fixture
def manager_user(make_user, company):
    return make_user("manager@test.com", Role.MANAGER, company)


@pytest.fixture
def accountant_user(make_user, company):
    return make_user("accountant@test.com", Role.ACCOUNTANT, company)


@pytest.fixture
def assistant_user(make_user, company):
    return make_user("assistant@test.com", Role.ASSISTANT, company)


@pytest.fixture
def outsider_user(make_user):
    """A user with no membership anywhere."""
    return make_user("outsider@test.com")


@pytest.fixture
def global_admin(make_user):
    return make_user("root@test.com", global_role=User.GlobalRole.GLOBAL_ADMINISTRATOR)


# =============================================================================
# Actor Context Fixtures
# =============================================================================

@pytest.fixture
def admin_actor(admin_user, company):
    return actor_for(admin_user, company)


@pytest.fixture
def manager_actor(manager_user, company):
    return actor_for(manager_user, company)


@pytest.fixture
def accountant_actor(accountant_user, company):
    return actor_for(accountant_user, company)


@pytest.fixture
def assistant_actor(assistant_user, company):
    return actor_for(assistant_user, company)


@pytest.fixture
def role_actors(admin_actor, manager_actor, accountant_actor, assistant_actor):
    """All four company roles, highest first."""
    return {
        Role.ADMINISTRATOR: admin_actor,
        Role.MANAGER: manager_actor,
        Role.ACCOUNTANT: accountant_actor,
        Role.ASSISTANT: assistant_actor,
    }


# =============================================================================
# Account Fixtures
# =============================================================================

def _account(company, code, name, account_type, sub_type=""):
    return Account.objects.create(
        company=company,
        code=code,
        name=name,
        account_type=account_type,
        sub_type=sub_type,
    )


@pytest.fixture
def cash_account(company):
    return _account(company, "1000", "Cash", Account.AccountType.ASSET, "Current Assets")


@pytest.fixture
def bank_account(company):
    return _account(company, "1010", "Bank", Account.AccountType.ASSET, "Current Assets")


@pytest.fixture
def payable_account(company):
    return _account(company, "2000", "Accounts Payable", Account.AccountType.LIABILITY, "Current Liabilities")


@pytest.fixture
def capital_account(company):
    return _account(company, "3000", "Owner Capital", Account.AccountType.EQUITY)


@pytest.fixture
def revenue_account(company):
    return _account(company, "4000", "Sales Revenue", Account.AccountType.REVENUE, "Operating Revenue")


@pytest.fixture
def expense_account(company):
    return _account(company, "5000", "Rent Expense", Account.AccountType.EXPENSE, "Operating Expenses")


@pytest.fixture
def other_company_cash(second_company):
    return _account(second_company, "1000", "Cash", Account.AccountType.ASSET)


# =============================================================================
# Journal Entry Fixtures
# =============================================================================

def debit(account, amount, description=""):
    return {"account_id": account.id, "debit": Decimal(amount), "credit": Decimal("0.00"), "description": description}


def credit(account, amount, description=""):
    return {"account_id": account.id, "debit": Decimal("0.00"), "credit": Decimal(amount), "description": description}


@pytest.fixture
def make_draft(admin_actor):
    """Create a draft entry through the command layer and return it."""
    def _make_draft(lines, entry_date=date(2024, 1, 15), description="Test entry", actor=None, **kwargs):
        result = create_journal_entry(
            actor or admin_actor,
            date=entry_date,
            description=description,
            lines=lines,
            **kwargs,
        )
        assert result.success, result.error
        return result.data
    return _make_draft


@pytest.fixture
def make_posted(make_draft, admin_actor):
    """Create and post an entry through the command layer and return it."""
    def _make_posted(lines, entry_date=date(2024, 1, 15), description="Test entry", actor=None, **kwargs):
        entry = make_draft(lines, entry_date=entry_date, description=description, actor=actor, **kwargs)
        result = post_journal_entry(actor or admin_actor, entry.id)
        assert result.success, result.error
        return result.data
    return _make_posted
