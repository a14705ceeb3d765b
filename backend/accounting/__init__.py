# accounting/__init__.py
"""
Accounting app - Double-entry ledger, balances and reports.

This app provides:
- Account: Chart of accounts, one per company, with optional hierarchy
- JournalEntry: Draft or posted entries; posted entries are immutable
- JournalEntryLine: Debit/credit lines

Commands handle all mutations; reports read posted lines only.
"""
