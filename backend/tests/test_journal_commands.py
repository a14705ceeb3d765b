# tests/test_journal_commands.py
"""
Tests for journal entry commands: draft lifecycle, posting, the posted
entry lock, reversal and batch import.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from threading import Barrier

import pytest
from django.core.exceptions import PermissionDenied
from django.db import connection

from accounts.models import ActivityLog, Role
from accounting.commands import (
    _mark_posted,
    create_journal_entry,
    delete_journal_entry,
    import_journal_entries,
    post_journal_entry,
    reverse_journal_entry,
    update_journal_entry,
)
from accounting.errors import EntryLockedError, ErrorKind
from accounting.models import Account, JournalEntry, JournalEntryLine
from conftest import credit, debit


pytestmark = pytest.mark.django_db


# =============================================================================
# Drafts
# =============================================================================

class TestCreateDraft:

    def test_creates_draft_with_numbered_lines(self, admin_actor, cash_account, revenue_account):
        result = create_journal_entry(
            admin_actor,
            date=date(2024, 3, 1),
            description="Cash sale",
            lines=[debit(cash_account, "500"), credit(revenue_account, "500")],
        )

        assert result.success, result.error
        entry = result.data
        assert entry.is_posted is False
        assert entry.total_amount == Decimal("500.00")
        assert entry.created_by == admin_actor.user
        assert list(entry.lines.values_list("line_no", "debit", "credit")) == [
            (1, Decimal("500.00"), Decimal("0.00")),
            (2, Decimal("0.00"), Decimal("500.00")),
        ]

    def test_entry_numbers_are_sequential_per_company(self, make_draft, cash_account, revenue_account):
        lines = [debit(cash_account, "1"), credit(revenue_account, "1")]

        first = make_draft(lines)
        second = make_draft(lines)

        assert first.entry_number == "JE-000001"
        assert second.entry_number == "JE-000002"

    def test_allocated_number_skips_manual_numbers(self, make_draft, cash_account, revenue_account):
        lines = [debit(cash_account, "1"), credit(revenue_account, "1")]
        make_draft(lines, entry_number="JE-000001")

        assert make_draft(lines).entry_number == "JE-000002"

    def test_duplicate_manual_number(self, make_draft, admin_actor, cash_account, revenue_account):
        lines = [debit(cash_account, "1"), credit(revenue_account, "1")]
        make_draft(lines, entry_number="OPEN-1")

        result = create_journal_entry(admin_actor, date(2024, 1, 1), "Again", lines, entry_number="OPEN-1")

        assert result.kind == ErrorKind.DUPLICATE
        assert result.error.field == "entry_number"

    def test_accepts_iso_date_and_string_account_ids(self, admin_actor, cash_account, revenue_account):
        result = create_journal_entry(
            admin_actor,
            date="2024-05-31",
            description="From JSON",
            lines=[
                {"account_id": str(cash_account.id), "debit": "10.00", "credit": "0"},
                {"account_id": str(revenue_account.id), "debit": "0", "credit": "10.00"},
            ],
        )

        assert result.success, result.error
        assert result.data.date == date(2024, 5, 31)

    def test_invalid_date(self, admin_actor, cash_account, revenue_account):
        result = create_journal_entry(
            admin_actor, "2024-02-30", "Bad date", [debit(cash_account, "1"), credit(revenue_account, "1")],
        )
        assert result.kind == ErrorKind.INVALID_INPUT
        assert result.error.field == "date"

    def test_unbalanced_entry_is_not_stored(self, admin_actor, cash_account, revenue_account):
        result = create_journal_entry(
            admin_actor, date(2024, 1, 1), "Unbalanced",
            [debit(cash_account, "500"), credit(revenue_account, "300")],
        )

        assert result.kind == ErrorKind.UNBALANCED_ENTRY
        assert result.error.difference == Decimal("200.00")
        assert not JournalEntry.objects.exists()

    def test_stated_total_must_match(self, admin_actor, cash_account, revenue_account):
        result = create_journal_entry(
            admin_actor, date(2024, 1, 1), "Wrong total",
            [debit(cash_account, "500"), credit(revenue_account, "500")],
            total_amount=Decimal("400"),
        )
        assert result.kind == ErrorKind.TOTAL_MISMATCH

    def test_account_from_another_company(self, admin_actor, cash_account, other_company_cash):
        result = create_journal_entry(
            admin_actor, date(2024, 1, 1), "Cross company",
            [debit(cash_account, "5"), credit(other_company_cash, "5")],
        )

        assert result.kind == ErrorKind.UNKNOWN_OR_INACTIVE_ACCOUNT
        assert result.error.line_no == 2

    def test_inactive_account(self, admin_actor, cash_account, revenue_account):
        revenue_account.is_active = False
        revenue_account.save()

        result = create_journal_entry(
            admin_actor, date(2024, 1, 1), "Inactive",
            [debit(cash_account, "5"), credit(revenue_account, "5")],
        )
        assert result.kind == ErrorKind.UNKNOWN_OR_INACTIVE_ACCOUNT

    def test_assistant_can_create_drafts(self, assistant_actor, cash_account, revenue_account):
        result = create_journal_entry(
            assistant_actor, date(2024, 1, 1), "By assistant",
            [debit(cash_account, "5"), credit(revenue_account, "5")],
        )
        assert result.success


class TestUpdateDraft:

    def test_replaces_lines(self, make_draft, admin_actor, cash_account, bank_account, revenue_account):
        entry = make_draft([debit(cash_account, "100"), credit(revenue_account, "100")])

        result = update_journal_entry(
            admin_actor, entry.id,
            description="Split receipt",
            lines=[debit(cash_account, "60"), debit(bank_account, "40"), credit(revenue_account, "100")],
        )

        assert result.success, result.error
        entry.refresh_from_db()
        assert entry.description == "Split receipt"
        assert entry.lines.count() == 3
        assert entry.total_amount == Decimal("100.00")

    def test_header_only_update_keeps_lines(self, make_draft, admin_actor, cash_account, revenue_account):
        entry = make_draft([debit(cash_account, "100"), credit(revenue_account, "100")])

        result = update_journal_entry(admin_actor, entry.id, reference="INV-9", date="2024-02-01")

        assert result.success, result.error
        entry.refresh_from_db()
        assert entry.reference == "INV-9"
        assert entry.date == date(2024, 2, 1)
        assert entry.lines.count() == 2

    def test_invalid_update_leaves_entry_unchanged(self, make_draft, admin_actor, cash_account, revenue_account):
        entry = make_draft([debit(cash_account, "100"), credit(revenue_account, "100")])

        result = update_journal_entry(
            admin_actor, entry.id, lines=[debit(cash_account, "100"), credit(revenue_account, "90")],
        )

        assert result.kind == ErrorKind.UNBALANCED_ENTRY
        assert list(entry.lines.values_list("credit", flat=True)) == [Decimal("0.00"), Decimal("100.00")]

    def test_assistant_cannot_edit(self, make_draft, assistant_actor, cash_account, revenue_account):
        entry = make_draft([debit(cash_account, "1"), credit(revenue_account, "1")])

        result = update_journal_entry(assistant_actor, entry.id, description="Nope")
        assert result.kind == ErrorKind.PERMISSION_DENIED

    def test_delete_draft(self, make_draft, accountant_actor, cash_account, revenue_account):
        entry = make_draft([debit(cash_account, "1"), credit(revenue_account, "1")])

        assert delete_journal_entry(accountant_actor, entry.id).success
        assert not JournalEntry.objects.filter(pk=entry.pk).exists()
        assert not JournalEntryLine.objects.exists()

    def test_entry_of_another_company_is_not_found(self, make_user, second_company, make_draft,
                                                   cash_account, revenue_account):
        from accounts.authz import actor_for

        entry = make_draft([debit(cash_account, "1"), credit(revenue_account, "1")])
        stranger = make_user("other-admin@test.com", Role.ADMINISTRATOR, second_company)

        result = update_journal_entry(actor_for(stranger, second_company), entry.id, description="Mine now")
        assert result.kind == ErrorKind.NOT_FOUND


# =============================================================================
# Posting and the posted-entry lock
# =============================================================================

class TestPosting:

    def test_post(self, make_draft, accountant_actor, cash_account, revenue_account):
        entry = make_draft([debit(cash_account, "1"), credit(revenue_account, "1")])

        result = post_journal_entry(accountant_actor, entry.id)

        assert result.success, result.error
        entry.refresh_from_db()
        assert entry.is_posted
        assert entry.posted_at is not None
        assert entry.posted_by == accountant_actor.user

    def test_post_twice(self, make_posted, admin_actor, cash_account, revenue_account):
        entry = make_posted([debit(cash_account, "1"), credit(revenue_account, "1")])

        result = post_journal_entry(admin_actor, entry.id)
        assert result.kind == ErrorKind.ENTRY_ALREADY_POSTED

    def test_assistant_cannot_post(self, make_draft, assistant_actor, cash_account, revenue_account):
        entry = make_draft([debit(cash_account, "1"), credit(revenue_account, "1")])

        result = post_journal_entry(assistant_actor, entry.id)

        assert result.kind == ErrorKind.PERMISSION_DENIED
        entry.refresh_from_db()
        assert not entry.is_posted
        denial = ActivityLog.objects.get(outcome=ActivityLog.Outcome.DENIED)
        assert denial.action == "JOURNAL_POST"
        assert denial.user == assistant_actor.user

    def test_store_refuses_posting_without_capability(self, make_draft, assistant_actor, cash_account, revenue_account):
        entry = make_draft([debit(cash_account, "1"), credit(revenue_account, "1")])

        with pytest.raises(PermissionDenied):
            _mark_posted(entry, assistant_actor)

        entry.refresh_from_db()
        assert not entry.is_posted

    def test_post_revalidates_accounts(self, make_draft, admin_actor, cash_account, revenue_account):
        entry = make_draft([debit(cash_account, "1"), credit(revenue_account, "1")])
        Account.objects.filter(pk=revenue_account.pk).update(is_active=False)

        result = post_journal_entry(admin_actor, entry.id)
        assert result.kind == ErrorKind.UNKNOWN_OR_INACTIVE_ACCOUNT


class TestPostedEntryLock:

    @pytest.fixture
    def posted(self, make_posted, cash_account, revenue_account):
        return make_posted([debit(cash_account, "100"), credit(revenue_account, "100")])

    @pytest.mark.parametrize("role", list(Role))
    def test_update_is_locked_for_every_role(self, posted, role_actors, role):
        result = update_journal_entry(role_actors[role], posted.id, description="Edited")
        assert result.kind == ErrorKind.ENTRY_LOCKED

    @pytest.mark.parametrize("role", list(Role))
    def test_delete_is_locked_for_every_role(self, posted, role_actors, role):
        result = delete_journal_entry(role_actors[role], posted.id)
        assert result.kind == ErrorKind.ENTRY_LOCKED
        assert JournalEntry.objects.filter(pk=posted.pk).exists()

    def test_model_save_is_guarded(self, posted):
        posted.description = "Tampered"
        with pytest.raises(EntryLockedError):
            posted.save()

    def test_model_delete_is_guarded(self, posted):
        with pytest.raises(EntryLockedError):
            posted.delete()

    def test_queryset_writes_are_guarded(self, posted):
        with pytest.raises(EntryLockedError):
            JournalEntry.objects.filter(pk=posted.pk).update(description="Tampered")
        with pytest.raises(EntryLockedError):
            JournalEntry.objects.filter(pk=posted.pk).delete()

    def test_line_writes_are_guarded(self, posted):
        line = posted.lines.first()
        line.debit = Decimal("999.00")
        with pytest.raises(EntryLockedError):
            line.save()
        with pytest.raises(EntryLockedError):
            line.delete()
        with pytest.raises(EntryLockedError):
            JournalEntryLine.objects.filter(entry=posted).update(description="x")

    def test_posting_outside_command_is_refused(self, make_draft, cash_account, revenue_account):
        entry = make_draft([debit(cash_account, "1"), credit(revenue_account, "1")])
        entry.is_posted = True
        with pytest.raises(RuntimeError):
            entry.save()

    def test_stored_values_unchanged(self, posted, admin_actor):
        update_journal_entry(admin_actor, posted.id, description="Edited", lines=[])
        stored = JournalEntry.objects.get(pk=posted.pk)
        assert stored.description == posted.description
        assert stored.total_amount == Decimal("100.00")


# =============================================================================
# Reversal
# =============================================================================

class TestReversal:

    def test_reversal_swaps_lines_and_posts(self, make_posted, accountant_actor, cash_account, revenue_account):
        original = make_posted([debit(cash_account, "250"), credit(revenue_account, "250")])

        result = reverse_journal_entry(accountant_actor, original.id, date=date(2024, 2, 1))

        assert result.success, result.error
        reversal = result.data["reversal"]
        assert reversal.is_posted
        assert reversal.reverses_entry == original
        assert reversal.date == date(2024, 2, 1)
        assert reversal.description.startswith(f"Reversal of {original.entry_number}")
        assert list(reversal.lines.values_list("account_id", "debit", "credit")) == [
            (cash_account.id, Decimal("0.00"), Decimal("250.00")),
            (revenue_account.id, Decimal("250.00"), Decimal("0.00")),
        ]
        original.refresh_from_db()
        assert original.is_reversed

    def test_cannot_reverse_twice(self, make_posted, admin_actor, cash_account, revenue_account):
        original = make_posted([debit(cash_account, "5"), credit(revenue_account, "5")])
        assert reverse_journal_entry(admin_actor, original.id).success

        result = reverse_journal_entry(admin_actor, original.id)
        assert result.kind == ErrorKind.ALREADY_REVERSED

    def test_cannot_reverse_a_reversal(self, make_posted, admin_actor, cash_account, revenue_account):
        original = make_posted([debit(cash_account, "5"), credit(revenue_account, "5")])
        reversal = reverse_journal_entry(admin_actor, original.id).data["reversal"]

        result = reverse_journal_entry(admin_actor, reversal.id)
        assert result.kind == ErrorKind.ALREADY_REVERSED

    def test_cannot_reverse_draft(self, make_draft, admin_actor, cash_account, revenue_account):
        draft = make_draft([debit(cash_account, "5"), credit(revenue_account, "5")])

        result = reverse_journal_entry(admin_actor, draft.id)
        assert result.kind == ErrorKind.INVALID_INPUT

    def test_assistant_cannot_reverse(self, make_posted, assistant_actor, cash_account, revenue_account):
        original = make_posted([debit(cash_account, "5"), credit(revenue_account, "5")])

        result = reverse_journal_entry(assistant_actor, original.id)
        assert result.kind == ErrorKind.PERMISSION_DENIED

    def test_reversal_allowed_after_account_deactivated(self, make_posted, admin_actor, cash_account, revenue_account):
        original = make_posted([debit(cash_account, "5"), credit(revenue_account, "5")])
        Account.objects.filter(pk=revenue_account.pk).update(is_active=False)

        assert reverse_journal_entry(admin_actor, original.id).success


# =============================================================================
# Batch import
# =============================================================================

class TestImport:

    def _item(self, cash_account, revenue_account, amount, credit_amount=None, **extra):
        item = {
            "date": "2024-04-01",
            "description": f"Imported {amount}",
            "lines": [
                debit(cash_account, amount),
                credit(revenue_account, credit_amount or amount),
            ],
        }
        item.update(extra)
        return item

    def test_partial_failure(self, admin_actor, cash_account, revenue_account):
        entries = [
            self._item(cash_account, revenue_account, "10"),
            self._item(cash_account, revenue_account, "20", credit_amount="15"),
            self._item(cash_account, revenue_account, "30"),
        ]

        batch = import_journal_entries(admin_actor, entries, post=True)

        assert not batch.all_ok
        assert len(batch.succeeded) == 2
        [(index, error)] = batch.failed
        assert index == 1
        assert error.kind == ErrorKind.UNBALANCED_ENTRY
        assert JournalEntry.objects.count() == 2
        assert all(entry.is_posted for entry in JournalEntry.objects.all())

    def test_drafts_by_default(self, admin_actor, cash_account, revenue_account):
        batch = import_journal_entries(admin_actor, [self._item(cash_account, revenue_account, "10")])

        assert batch.all_ok
        assert batch.succeeded[0].is_posted is False

    def test_non_object_item(self, admin_actor, cash_account, revenue_account):
        batch = import_journal_entries(admin_actor, ["not an entry", self._item(cash_account, revenue_account, "1")])

        assert batch.failed[0][0] == 0
        assert batch.failed[0][1].kind == ErrorKind.INVALID_INPUT
        assert len(batch.succeeded) == 1

    def test_import_is_logged(self, admin_actor, cash_account, revenue_account):
        import_journal_entries(
            admin_actor,
            [self._item(cash_account, revenue_account, "1"), self._item(cash_account, revenue_account, "2", "1")],
        )

        log = ActivityLog.objects.get(action="DATA_IMPORT")
        assert log.details["submitted"] == 2
        assert log.details["imported"] == 1
        assert log.details["failed"] == [{"index": 1, "kind": "unbalanced_entry"}]

    def test_assistant_cannot_post_imports(self, assistant_actor, cash_account, revenue_account):
        batch = import_journal_entries(assistant_actor, [self._item(cash_account, revenue_account, "1")], post=True)

        assert batch.failed[0][1].kind == ErrorKind.PERMISSION_DENIED
        assert not JournalEntry.objects.exists()

    def test_malformed_items_fail_on_their_own(self, admin_actor, cash_account, revenue_account):
        huge = "1" + "0" * 20
        entries = [
            self._item(cash_account, revenue_account, "1"),
            {"date": "2024-04-01", "description": "Bad lines", "lines": ["oops"]},
            {"date": "2024-04-01", "description": "Bad lines", "lines": 5},
            self._item(cash_account, revenue_account, huge),
            {"date": "2024-04-01", "description": {"text": "nested"}, "lines": []},
            self._item(cash_account, revenue_account, "2"),
        ]

        batch = import_journal_entries(admin_actor, entries)

        assert [index for index, _ in batch.failed] == [1, 2, 3, 4]
        assert [error.kind for _, error in batch.failed] == [
            ErrorKind.INVALID_INPUT,
            ErrorKind.INVALID_INPUT,
            ErrorKind.INVALID_LINE_AMOUNT,
            ErrorKind.INVALID_INPUT,
        ]
        assert batch.failed[0][1].line_no == 1
        assert len(batch.succeeded) == 2
        assert JournalEntry.objects.count() == 2

    def test_denied_import_is_recorded(self, assistant_actor, cash_account, revenue_account):
        entries = [self._item(cash_account, revenue_account, "1"), self._item(cash_account, revenue_account, "2")]

        batch = import_journal_entries(assistant_actor, entries, post=True)

        assert [error.kind for _, error in batch.failed] == [ErrorKind.PERMISSION_DENIED] * 2
        denial = ActivityLog.objects.get(outcome=ActivityLog.Outcome.DENIED)
        assert denial.action == "DATA_IMPORT"
        assert denial.details == {"capability": "accounting:post"}
        assert not JournalEntry.objects.exists()


@pytest.mark.django_db(transaction=True)
class TestConcurrentPosting:
    """Two posts of the same draft: the row lock lets exactly one win."""

    def test_second_post_fails_as_already_posted(
        self, make_draft, admin_actor, accountant_actor, cash_account, revenue_account,
    ):
        entry = make_draft([debit(cash_account, "40"), credit(revenue_account, "40")])
        barrier = Barrier(2)

        def attempt(actor):
            barrier.wait(timeout=10)
            try:
                return post_journal_entry(actor, entry.id)
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(attempt, actor) for actor in (admin_actor, accountant_actor)]
            results = [future.result(timeout=30) for future in futures]

        assert sorted(result.success for result in results) == [False, True]
        [loser] = [result for result in results if not result.success]
        assert loser.kind == ErrorKind.ENTRY_ALREADY_POSTED

        entry.refresh_from_db()
        assert entry.is_posted
        assert ActivityLog.objects.filter(action="JOURNAL_POST", outcome=ActivityLog.Outcome.SUCCESS).count() == 1
