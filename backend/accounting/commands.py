# accounting/commands.py
"""
Command layer for ledger operations.

Commands are the single point where ledger state changes.
Views call commands; commands enforce rules and return Results.

Pattern:
1. Load the target row(s) inside the actor's company
2. Refuse writes to posted entries (ENTRY_LOCKED), whatever the role
3. Check the capability (authorize); denials are logged
4. Validate the proposed entry (accounting.validation)
5. Perform the operation in one transaction
6. Record activity and return Result

Failures are returned as Result.fail(...) values, never raised, so
import_journal_entries can collect per-entry failures.
"""

import logging
from collections.abc import Mapping
from datetime import date as date_cls
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_date

from accounts.activity import Action, log_activity
from accounts.authz import ActorContext, authorize
from accounts.permission_defaults import Capability
from accounting.classification import InvalidAccountType, parse_account_type
from accounting.errors import BatchResult, ErrorKind, Result
from accounting.models import Account, CompanySequence, JournalEntry, JournalEntryLine
from accounting.money import to_money
from accounting.policies import (
    can_change_account_type,
    can_delete_account,
    can_delete_entry,
    can_edit_entry,
    can_reverse_entry,
    can_set_parent,
)
from accounting.validation import EntryHeader, ProposedLine, validate_entry
from accounting.write_barrier import command_writes_allowed, posting_allowed

logger = logging.getLogger(__name__)


def _next_company_sequence(company, name: str) -> int:
    """
    Allocate the next sequence value for a company/name pair.
    Uses select_for_update to avoid concurrent duplicates.
    """
    with command_writes_allowed():
        try:
            seq = CompanySequence.objects.select_for_update().get(
                company=company,
                name=name,
            )
        except CompanySequence.DoesNotExist:
            try:
                with transaction.atomic():
                    seq = CompanySequence.objects.create(
                        company=company,
                        name=name,
                        next_value=1,
                    )
            except IntegrityError:
                seq = CompanySequence.objects.select_for_update().get(
                    company=company,
                    name=name,
                )

        value = seq.next_value
        seq.next_value = value + 1
        seq.save(update_fields=["next_value", "updated_at"])
        return value


def _next_entry_number(company) -> str:
    prefix = getattr(settings, "JOURNAL_ENTRY_PREFIX", "JE")
    while True:
        value = _next_company_sequence(company, "journal_entry_number")
        entry_number = f"{prefix}-{value:06d}"
        # Skip numbers already taken by manually numbered entries.
        if not JournalEntry.objects.filter(company=company, entry_number=entry_number).exists():
            return entry_number


# =============================================================================
# Input helpers
# =============================================================================

def _coerce_date(value):
    if isinstance(value, date_cls):
        return value
    if isinstance(value, str):
        try:
            return parse_date(value)
        except ValueError:
            return None
    return None


def _account_id(value):
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # Anything else cannot name an account; the validator reports it as unknown.
    return None


def _proposed_lines(lines) -> list[ProposedLine]:
    return [
        ProposedLine(
            account_id=_account_id(line.get("account_id")),
            debit=line.get("debit") or Decimal("0.00"),
            credit=line.get("credit") or Decimal("0.00"),
            description=line.get("description", "") or "",
        )
        for line in lines or []
    ]


_TEXT_LIMITS = (("description", 255), ("reference", 100), ("entry_number", 50))


def _check_input_shape(description, reference, entry_number, lines):
    """Reject payloads the validator cannot read or the columns cannot hold."""
    values = {"description": description, "reference": reference or "", "entry_number": entry_number or ""}
    for name, max_length in _TEXT_LIMITS:
        if not isinstance(values[name], str) or len(values[name]) > max_length:
            return Result.fail(
                ErrorKind.INVALID_INPUT, f"{name} must be text of at most {max_length} characters.", field=name,
            )

    if lines is not None and not isinstance(lines, (list, tuple)):
        return Result.fail(ErrorKind.INVALID_INPUT, "Lines must be a list.", field="lines")
    for line_no, line in enumerate(lines or [], start=1):
        if not isinstance(line, Mapping):
            return Result.fail(
                ErrorKind.INVALID_INPUT, f"Line {line_no} must be an object.", field="lines", line_no=line_no,
            )
        line_description = line.get("description") or ""
        if not isinstance(line_description, str) or len(line_description) > 255:
            return Result.fail(
                ErrorKind.INVALID_INPUT,
                f"Line {line_no}: description must be text of at most 255 characters.",
                field="description",
                line_no=line_no,
            )
    return None


def _default_total(lines: list[ProposedLine]) -> Decimal:
    try:
        return sum((to_money(line.debit) for line in lines), Decimal("0.00"))
    except (InvalidOperation, TypeError, ValueError):
        # The validator reports the bad amount before it looks at the total.
        return Decimal("0.00")


def _load_accounts(company, lines: list[ProposedLine]) -> dict:
    account_ids = {line.account_id for line in lines if isinstance(line.account_id, int)}
    return {
        account.id: account
        for account in Account.objects.filter(company=company, pk__in=account_ids)
    }


def _validate(actor: ActorContext, *, entry_date, description, reference, total_amount, lines, entry_number=""):
    if entry_date is None:
        return Result.fail(ErrorKind.INVALID_INPUT, "A valid entry date is required.", field="date")
    if not description:
        return Result.fail(ErrorKind.INVALID_INPUT, "Description is required.", field="description")
    failure = _check_input_shape(description, reference, entry_number, lines)
    if failure is not None:
        return failure

    proposed = _proposed_lines(lines)
    header = EntryHeader(
        company_id=actor.company.id,
        date=entry_date,
        description=description,
        total_amount=_default_total(proposed) if total_amount is None else total_amount,
        reference=reference or "",
        entry_number=entry_number or "",
    )
    return validate_entry(header, proposed, _load_accounts(actor.company, proposed))


def _write_lines(entry: JournalEntry, validated_lines) -> None:
    for line_no, line in enumerate(validated_lines, start=1):
        JournalEntryLine.objects.create(
            entry=entry,
            line_no=line_no,
            account_id=line.account_id,
            description=line.description,
            debit=line.debit,
            credit=line.credit,
        )


def _get_entry_for_update(actor: ActorContext, entry_id):
    try:
        return JournalEntry.objects.select_for_update().get(pk=entry_id, company=actor.company)
    except (JournalEntry.DoesNotExist, ValueError, TypeError):
        return None


def _not_found(what: str) -> Result:
    return Result.fail(ErrorKind.NOT_FOUND, f"{what} not found.")


# =============================================================================
# Account Commands
# =============================================================================

@transaction.atomic
def create_account(
    actor: ActorContext,
    code: str,
    name: str,
    account_type: str,
    sub_type: str = "",
    parent_id: int = None,
    description: str = "",
) -> Result:
    """
    Create a new account in the chart of accounts.

    Returns:
        Result with the created Account or error
    """
    denied = authorize(actor, Capability.ACCOUNTS_CREATE, action=Action.ACCOUNT_CREATE, resource="account")
    if denied is not None:
        return denied

    try:
        account_type = parse_account_type(account_type)
    except InvalidAccountType as exc:
        return Result.fail(ErrorKind.INVALID_ACCOUNT_TYPE, str(exc), field="account_type")

    if Account.objects.filter(company=actor.company, code=code).exists():
        return Result.fail(ErrorKind.DUPLICATE, f"Account code '{code}' already exists.", field="code")

    parent = None
    if parent_id:
        parent = Account.objects.filter(pk=parent_id, company=actor.company).first()
        if parent is None:
            return _not_found("Parent account")

    account = Account.objects.create(
        company=actor.company,
        code=code,
        name=name,
        account_type=account_type,
        sub_type=sub_type or "",
        parent=parent,
        description=description or "",
    )
    log_activity(
        user=actor.user,
        company=actor.company,
        action=Action.ACCOUNT_CREATE,
        resource="account",
        resource_id=account.id,
        details={"code": code, "account_type": account_type.value},
    )
    return Result.ok(account)


ACCOUNT_UPDATABLE_FIELDS = {"code", "name", "account_type", "sub_type", "parent_id", "description", "is_active"}


@transaction.atomic
def update_account(actor: ActorContext, account_id: int, **updates) -> Result:
    """
    Update account fields.

    The type can only change while no posted line references the account.
    """
    denied = authorize(
        actor, Capability.ACCOUNTS_EDIT,
        action=Action.ACCOUNT_UPDATE, resource="account", resource_id=account_id,
    )
    if denied is not None:
        return denied

    unknown = set(updates) - ACCOUNT_UPDATABLE_FIELDS
    if unknown:
        return Result.fail(ErrorKind.INVALID_INPUT, f"Cannot update fields: {', '.join(sorted(unknown))}")

    account = Account.objects.select_for_update().filter(pk=account_id, company=actor.company).first()
    if account is None:
        return _not_found("Account")

    if "account_type" in updates:
        try:
            new_type = parse_account_type(updates["account_type"])
        except InvalidAccountType as exc:
            return Result.fail(ErrorKind.INVALID_ACCOUNT_TYPE, str(exc), field="account_type")
        if new_type != account.account_type:
            allowed, reason = can_change_account_type(actor, account)
            if not allowed:
                return Result.fail(ErrorKind.ACCOUNT_TYPE_LOCKED, reason, field="account_type")
        updates["account_type"] = new_type

    if "code" in updates and updates["code"] != account.code:
        if Account.objects.filter(company=actor.company, code=updates["code"]).exclude(pk=account.pk).exists():
            return Result.fail(ErrorKind.DUPLICATE, f"Account code '{updates['code']}' already exists.", field="code")

    if "parent_id" in updates:
        parent = None
        if updates["parent_id"]:
            parent = Account.objects.filter(pk=updates["parent_id"], company=actor.company).first()
            if parent is None:
                return _not_found("Parent account")
        allowed, reason = can_set_parent(actor, account, parent)
        if not allowed:
            return Result.fail(ErrorKind.INVALID_INPUT, reason, field="parent_id")
        updates["parent_id"] = parent.id if parent else None

    changes = {}
    for field, value in updates.items():
        if getattr(account, field) != value:
            changes[field] = str(value)
            setattr(account, field, value)

    if changes:
        account.save()
        log_activity(
            user=actor.user,
            company=actor.company,
            action=Action.ACCOUNT_UPDATE,
            resource="account",
            resource_id=account.id,
            details={"changes": changes},
        )
    return Result.ok(account)


def deactivate_account(actor: ActorContext, account_id: int) -> Result:
    """Soft-delete: the account stays on reports but takes no new lines."""
    return update_account(actor, account_id, is_active=False)


@transaction.atomic
def delete_account(actor: ActorContext, account_id: int) -> Result:
    denied = authorize(
        actor, Capability.ACCOUNTS_DELETE,
        action=Action.ACCOUNT_DELETE, resource="account", resource_id=account_id,
    )
    if denied is not None:
        return denied

    account = Account.objects.select_for_update().filter(pk=account_id, company=actor.company).first()
    if account is None:
        return _not_found("Account")

    allowed, reason = can_delete_account(actor, account)
    if not allowed:
        return Result.fail(ErrorKind.DELETION_REFUSED, reason)

    code = account.code
    account.delete()
    log_activity(
        user=actor.user,
        company=actor.company,
        action=Action.ACCOUNT_DELETE,
        resource="account",
        resource_id=account_id,
        details={"code": code},
    )
    return Result.ok({"deleted": True})


# =============================================================================
# Journal Entry Commands
# =============================================================================

@transaction.atomic
def create_journal_entry(
    actor: ActorContext,
    date,
    description: str,
    lines: list,
    total_amount=None,
    reference: str = "",
    entry_number: str = None,
) -> Result:
    """
    Create a draft journal entry.

    Args:
        actor: The actor context
        date: Entry date (date or ISO string)
        description: Entry description
        lines: [{"account_id", "debit", "credit", "description"}, ...]
        total_amount: Stated total; defaults to the sum of debits
        reference: Optional external reference
        entry_number: Optional manual number; allocated when omitted

    Returns:
        Result with the draft JournalEntry or error
    """
    denied = authorize(actor, Capability.ACCOUNTING_CREATE, action=Action.JOURNAL_CREATE, resource="journal_entry")
    if denied is not None:
        return denied

    result = _validate(
        actor,
        entry_date=_coerce_date(date),
        description=description,
        reference=reference,
        total_amount=total_amount,
        lines=lines,
        entry_number=entry_number,
    )
    if not result.success:
        return result
    validated = result.data

    if entry_number:
        if JournalEntry.objects.filter(company=actor.company, entry_number=entry_number).exists():
            return Result.fail(
                ErrorKind.DUPLICATE,
                f"Entry number '{entry_number}' already exists.",
                field="entry_number",
            )
    else:
        entry_number = _next_entry_number(actor.company)

    entry = JournalEntry.objects.create(
        company=actor.company,
        entry_number=entry_number,
        date=validated.header.date,
        description=validated.header.description,
        reference=validated.header.reference,
        total_amount=validated.total_debit,
        created_by=actor.user,
    )
    _write_lines(entry, validated.lines)

    log_activity(
        user=actor.user,
        company=actor.company,
        action=Action.JOURNAL_CREATE,
        resource="journal_entry",
        resource_id=entry.id,
        details={"entry_number": entry.entry_number, "total": str(entry.total_amount)},
    )
    return Result.ok(entry)


@transaction.atomic
def update_journal_entry(
    actor: ActorContext,
    entry_id: int,
    date=None,
    description: str = None,
    reference: str = None,
    lines: list = None,
    total_amount=None,
) -> Result:
    """
    Edit a draft entry. Omitted arguments keep their stored values.

    The whole entry (header + lines) is validated again before saving.
    """
    entry = _get_entry_for_update(actor, entry_id)
    if entry is None:
        return _not_found("Journal entry")

    allowed, reason = can_edit_entry(actor, entry)
    if not allowed:
        return Result.fail(ErrorKind.ENTRY_LOCKED, reason)

    denied = authorize(
        actor, Capability.ACCOUNTING_WRITE,
        action=Action.JOURNAL_UPDATE, resource="journal_entry", resource_id=entry.id,
    )
    if denied is not None:
        return denied

    if lines is None:
        lines = _stored_lines(entry)
        if total_amount is None:
            total_amount = entry.total_amount

    result = _validate(
        actor,
        entry_date=entry.date if date is None else _coerce_date(date),
        description=entry.description if description is None else description,
        reference=entry.reference if reference is None else reference,
        total_amount=total_amount,
        lines=lines,
        entry_number=entry.entry_number,
    )
    if not result.success:
        return result
    validated = result.data

    entry.date = validated.header.date
    entry.description = validated.header.description
    entry.reference = validated.header.reference
    entry.total_amount = validated.total_debit
    entry.save()

    entry.lines.all().delete()
    _write_lines(entry, validated.lines)

    log_activity(
        user=actor.user,
        company=actor.company,
        action=Action.JOURNAL_UPDATE,
        resource="journal_entry",
        resource_id=entry.id,
        details={"entry_number": entry.entry_number},
    )
    return Result.ok(entry)


@transaction.atomic
def delete_journal_entry(actor: ActorContext, entry_id: int) -> Result:
    """Delete a draft entry and its lines. Posted entries are locked."""
    entry = _get_entry_for_update(actor, entry_id)
    if entry is None:
        return _not_found("Journal entry")

    allowed, reason = can_delete_entry(actor, entry)
    if not allowed:
        return Result.fail(ErrorKind.ENTRY_LOCKED, reason)

    denied = authorize(
        actor, Capability.ACCOUNTING_WRITE,
        action=Action.JOURNAL_DELETE, resource="journal_entry", resource_id=entry.id,
    )
    if denied is not None:
        return denied

    entry_number = entry.entry_number
    entry.delete()

    log_activity(
        user=actor.user,
        company=actor.company,
        action=Action.JOURNAL_DELETE,
        resource="journal_entry",
        resource_id=entry_id,
        details={"entry_number": entry_number},
    )
    return Result.ok({"deleted": True})


def _stored_lines(entry: JournalEntry) -> list[dict]:
    return [
        {
            "account_id": line.account_id,
            "debit": line.debit,
            "credit": line.credit,
            "description": line.description,
        }
        for line in entry.lines.all()
    ]


def _mark_posted(entry: JournalEntry, actor: ActorContext) -> None:
    if not actor.has(Capability.ACCOUNTING_POST):
        raise PermissionDenied(f"Permission denied: {Capability.ACCOUNTING_POST.value}")
    entry.is_posted = True
    entry.posted_at = timezone.now()
    entry.posted_by = actor.user if getattr(actor.user, "pk", None) else None
    with posting_allowed():
        entry.save(update_fields=["is_posted", "posted_at", "posted_by", "updated_at"])


@transaction.atomic
def post_journal_entry(actor: ActorContext, entry_id: int) -> Result:
    """
    Post a draft entry, making it count in balances.

    The entry row is locked for the duration; a concurrent second post
    waits and then fails with ENTRY_ALREADY_POSTED. The stored entry is
    validated again because accounts may have changed since it was saved.
    """
    entry = _get_entry_for_update(actor, entry_id)
    if entry is None:
        return _not_found("Journal entry")

    if entry.is_posted:
        return Result.fail(
            ErrorKind.ENTRY_ALREADY_POSTED,
            f"Journal entry {entry.entry_number} is already posted.",
        )

    denied = authorize(
        actor, Capability.ACCOUNTING_POST,
        action=Action.JOURNAL_POST, resource="journal_entry", resource_id=entry.id,
    )
    if denied is not None:
        return denied

    result = _validate(
        actor,
        entry_date=entry.date,
        description=entry.description,
        reference=entry.reference,
        total_amount=entry.total_amount,
        lines=_stored_lines(entry),
        entry_number=entry.entry_number,
    )
    if not result.success:
        return result

    _mark_posted(entry, actor)

    log_activity(
        user=actor.user,
        company=actor.company,
        action=Action.JOURNAL_POST,
        resource="journal_entry",
        resource_id=entry.id,
        details={"entry_number": entry.entry_number, "total": str(entry.total_amount)},
    )
    logger.info(
        "Journal entry posted",
        extra={"company_id": actor.company.id, "entry_id": entry.id, "entry_number": entry.entry_number},
    )
    return Result.ok(entry)


@transaction.atomic
def reverse_journal_entry(actor: ActorContext, entry_id: int, date=None, description: str = None) -> Result:
    """
    Reverse a posted entry.

    Creates and posts a new entry with debit and credit swapped on every
    line, pointing back at the original. The original is not touched.
    Reversal lines mirror lines that were valid when posted, so accounts
    deactivated since then do not block the correction.

    Returns:
        Result with {"original": entry, "reversal": reversal_entry} or error
    """
    original = _get_entry_for_update(actor, entry_id)
    if original is None:
        return _not_found("Journal entry")

    allowed, reason = can_reverse_entry(actor, original)
    if not allowed:
        kind = ErrorKind.ALREADY_REVERSED if original.is_posted else ErrorKind.INVALID_INPUT
        return Result.fail(kind, reason)

    denied = authorize(
        actor, Capability.ACCOUNTING_POST,
        action=Action.JOURNAL_REVERSE, resource="journal_entry", resource_id=original.id,
    )
    if denied is not None:
        return denied

    reversal_date = _coerce_date(date) if date is not None else timezone.localdate()
    if reversal_date is None:
        return Result.fail(ErrorKind.INVALID_INPUT, "A valid reversal date is required.", field="date")

    reversal = JournalEntry.objects.create(
        company=actor.company,
        entry_number=_next_entry_number(actor.company),
        date=reversal_date,
        description=description or f"Reversal of {original.entry_number}: {original.description}"[:255],
        reference=original.reference,
        total_amount=original.total_amount,
        reverses_entry=original,
        created_by=actor.user,
    )
    for line in original.lines.all():
        JournalEntryLine.objects.create(
            entry=reversal,
            line_no=line.line_no,
            account_id=line.account_id,
            description=f"Reversal: {line.description}".strip()[:255],
            debit=line.credit,
            credit=line.debit,
        )
    _mark_posted(reversal, actor)

    log_activity(
        user=actor.user,
        company=actor.company,
        action=Action.JOURNAL_REVERSE,
        resource="journal_entry",
        resource_id=original.id,
        details={"entry_number": original.entry_number, "reversal_entry_number": reversal.entry_number},
    )
    return Result.ok({"original": original, "reversal": reversal})


# =============================================================================
# Batch import
# =============================================================================

class _ItemFailed(Exception):
    """Rolls back one import item's savepoint."""

    def __init__(self, result: Result):
        self.result = result


def _import_one(actor: ActorContext, item: dict, post: bool) -> Result:
    if not isinstance(item, dict):
        return Result.fail(ErrorKind.INVALID_INPUT, "Each entry must be an object.")

    result = create_journal_entry(
        actor,
        date=item.get("date"),
        description=item.get("description", ""),
        lines=item.get("lines") or [],
        total_amount=item.get("total_amount"),
        reference=item.get("reference", ""),
        entry_number=item.get("entry_number"),
    )
    if result.success and post:
        result = post_journal_entry(actor, result.data.id)
    return result


def import_journal_entries(actor: ActorContext, entries: list, post: bool = False) -> BatchResult:
    """
    Create (and optionally post) many entries.

    Each entry runs in its own savepoint: a failing entry is rolled back
    and reported, the others are kept. Capabilities are checked once, up
    front, so a denial is recorded outside the savepoints and fails every
    entry.

    Returns:
        BatchResult with one Result per input entry, in order
    """
    batch = BatchResult()
    denied = authorize(actor, Capability.ACCOUNTING_CREATE, action=Action.DATA_IMPORT, resource="journal_entry")
    if denied is None and post:
        denied = authorize(actor, Capability.ACCOUNTING_POST, action=Action.DATA_IMPORT, resource="journal_entry")
    if denied is not None:
        batch.results = [denied for _ in entries]
        return batch

    for item in entries:
        try:
            with transaction.atomic():
                result = _import_one(actor, item, post)
                if not result.success:
                    raise _ItemFailed(result)
        except _ItemFailed as exc:
            result = exc.result
        batch.results.append(result)

    failures = batch.failed
    log_activity(
        user=actor.user,
        company=actor.company,
        action=Action.DATA_IMPORT,
        resource="journal_entry",
        details={
            "submitted": len(entries),
            "imported": len(batch.succeeded),
            "failed": [{"index": index, "kind": error.kind.value} for index, error in failures],
            "post": post,
        },
    )
    if failures:
        logger.warning(
            "Journal import finished with failures",
            extra={"company_id": actor.company.id, "failed": len(failures), "submitted": len(entries)},
        )
    return batch
