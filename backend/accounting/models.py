# accounting/models.py
"""
Ledger models.

Models:
- CompanySequence: per-company counters (entry numbers)
- Account: chart of accounts
- JournalEntry: journal entry headers
- JournalEntryLine: debit/credit legs of an entry

Posted entries are immutable. The command layer refuses such writes
with an ENTRY_LOCKED result; the guards below are the second line and
raise EntryLockedError if anything reaches the store anyway:
- JournalEntry.save()/delete() on a row that is posted in the database
- JournalEntryLine.save()/delete() on a line of a posted entry
- QuerySet.update()/delete() covering posted rows
- is_posted may only be set inside posting_allowed()
"""

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from accounts.models import Company
from accounting.classification import AccountType, normal_balance
from accounting.errors import EntryLockedError
from accounting.write_barrier import WriteContext, write_context_allowed


class CompanySequence(models.Model):
    """
    Per-company counters for sequential identifiers.

    Used by commands to allocate unique numbers under concurrency.
    """

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="sequences",
    )
    name = models.CharField(max_length=100)
    next_value = models.BigIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"],
                name="uniq_company_sequence_name",
            ),
        ]

    def __str__(self):
        return f"{self.company_id}:{self.name}={self.next_value}"

    def save(self, *args, **kwargs):
        if not write_context_allowed({WriteContext.COMMAND}):
            raise RuntimeError(
                "CompanySequence is a command-owned write model. "
                "Direct saves are only allowed within command_writes_allowed()."
            )
        super().save(*args, **kwargs)


class Account(models.Model):
    """
    Chart of Accounts entry.

    The type is fixed once posted lines reference the account.
    Accounts are deactivated rather than deleted while lines exist.
    """

    AccountType = AccountType

    company = models.ForeignKey(
        Company,
        on_delete=models.PROTECT,
        related_name="accounts",
    )
    code = models.CharField(max_length=20)
    name = models.CharField(max_length=255)
    account_type = models.CharField(max_length=20, choices=AccountType.choices)
    sub_type = models.CharField(max_length=100, blank=True, default="")
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="children",
    )
    description = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"],
                name="uniq_account_code_per_company",
            )
        ]
        ordering = ["code"]
        indexes = [
            models.Index(fields=["company", "account_type"], name="acct_company_type_idx"),
            models.Index(fields=["company", "is_active"], name="acct_company_active_idx"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def normal_balance(self) -> str:
        return normal_balance(self.account_type).value

    def has_posted_lines(self) -> bool:
        if not self.pk:
            return False
        return self.journal_lines.filter(entry__is_posted=True).exists()

    def clean(self):
        if self.parent_id:
            if self.pk and self.parent_id == self.pk:
                raise ValidationError("An account cannot be its own parent.")
            if self.parent.company_id != self.company_id:
                raise ValidationError("Parent account must belong to the same company.")

    def save(self, *args, **kwargs):
        if self.pk:
            stored_type = (
                Account.objects.filter(pk=self.pk)
                .values_list("account_type", flat=True)
                .first()
            )
            if stored_type is not None and stored_type != self.account_type and self.has_posted_lines():
                raise ValidationError(
                    f"Account {self.code} has posted lines; its type cannot change."
                )
        self.full_clean(validate_unique=False, validate_constraints=False)
        super().save(*args, **kwargs)


class JournalEntryQuerySet(models.QuerySet):
    def posted(self):
        return self.filter(is_posted=True)

    def drafts(self):
        return self.filter(is_posted=False)

    def update(self, **kwargs):
        if self.filter(is_posted=True).exists():
            raise EntryLockedError("Posted journal entries cannot be updated.")
        return super().update(**kwargs)

    def delete(self):
        if self.filter(is_posted=True).exists():
            raise EntryLockedError("Posted journal entries cannot be deleted.")
        return super().delete()


class JournalEntry(models.Model):
    """
    Journal entry header.

    Workflow: draft (is_posted=False) -> posted (is_posted=True).
    A posted entry is corrected only by a new reversing entry that
    points back at it through reverses_entry.
    """

    objects = JournalEntryQuerySet.as_manager()

    company = models.ForeignKey(
        Company,
        on_delete=models.PROTECT,
        related_name="journal_entries",
    )
    entry_number = models.CharField(max_length=50)
    date = models.DateField()
    description = models.CharField(max_length=255)
    reference = models.CharField(max_length=100, blank=True, default="")
    total_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    is_posted = models.BooleanField(default=False)
    posted_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="posted_journal_entries",
    )
    reverses_entry = models.OneToOneField(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="reversal_entry",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="created_journal_entries",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "entry_number"],
                name="uniq_entry_number_per_company",
            ),
            models.CheckConstraint(
                condition=Q(total_amount__gte=0),
                name="chk_entry_total_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["company", "date", "id"], name="je_company_date_idx"),
            models.Index(fields=["company", "is_posted"], name="je_company_posted_idx"),
        ]
        ordering = ["-date", "-id"]
        verbose_name_plural = "journal entries"

    def __str__(self):
        state = "posted" if self.is_posted else "draft"
        return f"{self.entry_number} ({self.date}) {state}"

    def _stored_is_posted(self) -> bool:
        if self._state.adding or not self.pk:
            return False
        return JournalEntry.objects.filter(pk=self.pk, is_posted=True).exists()

    def save(self, *args, **kwargs):
        if self._stored_is_posted():
            raise EntryLockedError(f"Journal entry {self.entry_number} is posted and cannot be modified.")
        if self.is_posted and not write_context_allowed({WriteContext.POSTING}):
            raise RuntimeError(
                "Journal entries may only be marked posted by the posting command "
                "within posting_allowed()."
            )
        if self.reverses_entry_id and self.reverses_entry.company_id != self.company_id:
            raise ValidationError("A reversal must belong to the same company as the original entry.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self._stored_is_posted():
            raise EntryLockedError(f"Journal entry {self.entry_number} is posted and cannot be deleted.")
        return super().delete(*args, **kwargs)

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines.all()), Decimal("0.00"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines.all()), Decimal("0.00"))

    @property
    def is_reversed(self) -> bool:
        return JournalEntry.objects.filter(reverses_entry_id=self.pk).exists()


class JournalEntryLineQuerySet(models.QuerySet):
    def update(self, **kwargs):
        if self.filter(entry__is_posted=True).exists():
            raise EntryLockedError("Lines of posted journal entries cannot be updated.")
        return super().update(**kwargs)

    def delete(self):
        if self.filter(entry__is_posted=True).exists():
            raise EntryLockedError("Lines of posted journal entries cannot be deleted.")
        return super().delete()


class JournalEntryLine(models.Model):
    """
    One debit or credit leg of a journal entry.
    Exactly one of debit/credit is non-zero.
    """

    objects = JournalEntryLineQuerySet.as_manager()

    entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    line_no = models.PositiveIntegerField()
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="journal_lines",
    )
    description = models.CharField(max_length=255, blank=True, default="")
    debit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ["entry", "line_no"]
        constraints = [
            models.UniqueConstraint(
                fields=["entry", "line_no"],
                name="uniq_line_no_per_entry",
            ),
            models.CheckConstraint(
                condition=~(Q(debit__gt=0) & Q(credit__gt=0)),
                name="chk_line_not_both_debit_credit",
            ),
            models.CheckConstraint(
                condition=~(Q(debit__exact=0) & Q(credit__exact=0)),
                name="chk_line_not_both_zero",
            ),
            models.CheckConstraint(
                condition=Q(debit__gte=0) & Q(credit__gte=0),
                name="chk_line_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.entry_id} L{self.line_no}"

    def _entry_is_posted(self) -> bool:
        return JournalEntry.objects.filter(pk=self.entry_id, is_posted=True).exists()

    def save(self, *args, **kwargs):
        if self._entry_is_posted():
            raise EntryLockedError("Lines of a posted journal entry cannot be modified.")
        if self.account.company_id != self.entry.company_id:
            raise ValidationError("Journal line account must belong to the entry's company.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self._entry_is_posted():
            raise EntryLockedError("Lines of a posted journal entry cannot be deleted.")
        return super().delete(*args, **kwargs)

    @property
    def amount(self) -> Decimal:
        """Returns the non-zero amount (debit or credit)."""
        return self.debit if self.debit > 0 else self.credit

    @property
    def is_debit(self) -> bool:
        return self.debit > 0
