# accounting/urls.py
"""
URL configuration for the ledger API.

Mounted under /api/companies/<company_id>/ so every request names its
company explicitly.

Endpoints:
- /accounts/ - Chart of Accounts CRUD and balances
- /journal-entries/ - Journal Entry CRUD with post / reverse / import
- /reports/ - Trial balance, balance sheet, profit and loss
"""

from django.urls import path

from .views import (
    # Account views
    AccountListCreateView,
    AccountDetailView,
    AccountBalanceView,
    # Journal entry views
    JournalEntryListCreateView,
    JournalEntryDetailView,
    JournalEntryPostView,
    JournalEntryReverseView,
    JournalEntryImportView,
    # Reports
    TrialBalanceView,
    BalanceSheetView,
    ProfitAndLossView,
)

app_name = "accounting"

urlpatterns = [
    # ==========================================================================
    # Accounts (Chart of Accounts)
    # ==========================================================================
    path("accounts/", AccountListCreateView.as_view(), name="account-list-create"),
    path("accounts/<int:pk>/", AccountDetailView.as_view(), name="account-detail"),
    path("accounts/<int:pk>/balance/", AccountBalanceView.as_view(), name="account-balance"),

    # ==========================================================================
    # Journal Entries
    # ==========================================================================
    path("journal-entries/", JournalEntryListCreateView.as_view(), name="journal-entry-list-create"),
    path("journal-entries/import/", JournalEntryImportView.as_view(), name="journal-entry-import"),
    path("journal-entries/<int:pk>/", JournalEntryDetailView.as_view(), name="journal-entry-detail"),
    path("journal-entries/<int:pk>/post/", JournalEntryPostView.as_view(), name="journal-entry-post"),
    path("journal-entries/<int:pk>/reverse/", JournalEntryReverseView.as_view(), name="journal-entry-reverse"),

    # ==========================================================================
    # Reports
    # ==========================================================================
    path("reports/trial-balance/", TrialBalanceView.as_view(), name="trial-balance"),
    path("reports/balance-sheet/", BalanceSheetView.as_view(), name="balance-sheet"),
    path("reports/profit-and-loss/", ProfitAndLossView.as_view(), name="profit-and-loss"),
]
