# accounting/policies.py
"""
Business policy functions for ledger operations.

Policies answer: "Is this action allowed given the current state?"
They do NOT perform the action; that's the command's job.

Workflow Rules vs Model Invariants
==================================
Workflow rules (posted entries are locked, types are fixed once posted)
are checked HERE so commands can return a clear error value. The model
guards in accounting/models.py enforce the same rules again at the
store and raise if a caller skipped the policy.

Usage:
    allowed, reason = can_edit_entry(actor, entry)
    if not allowed:
        return Result.fail(ErrorKind.ENTRY_LOCKED, reason)

Design Principles:
1. Policies are pure functions over already-loaded rows (no writes)
2. Policies return (bool, str) tuples for clear error messages
3. Commands compose policies as needed
"""


# =============================================================================
# Tenant Boundary Policies
# =============================================================================

def check_tenant_boundary(actor, entity) -> bool:
    """
    Verify entity belongs to actor's company.
    This is the fundamental multi-tenant security check.
    """
    entity_company_id = getattr(entity, "company_id", None)
    if entity_company_id is None:
        company = getattr(entity, "company", None)
        entity_company_id = getattr(company, "id", None) if company else None
    return entity_company_id == actor.company.id


# =============================================================================
# Account Policies
# =============================================================================

def can_delete_account(actor, account) -> tuple[bool, str]:
    """
    Rules:
    - Must belong to actor's company
    - No journal line (draft or posted) may reference it
    - Cannot have child accounts
    """
    if not check_tenant_boundary(actor, account):
        return False, "Cross-company action denied."

    if account.journal_lines.exists():
        return False, "Cannot delete an account that has journal lines. Deactivate it instead."

    if account.children.exists():
        return False, "Cannot delete an account that has child accounts."

    return True, ""


def can_change_account_type(actor, account) -> tuple[bool, str]:
    """The type is fixed once posted lines reference the account."""
    if not check_tenant_boundary(actor, account):
        return False, "Cross-company action denied."

    if account.has_posted_lines():
        return False, "Cannot change type of an account with posted transactions."

    return True, ""


def can_set_parent(actor, account, parent) -> tuple[bool, str]:
    if parent is None:
        return True, ""

    if not check_tenant_boundary(actor, parent):
        return False, "Parent account must belong to the same company."

    # Walk up from the new parent; reaching the account means a cycle.
    current = parent
    while current is not None:
        if account.pk and current.pk == account.pk:
            return False, "An account cannot be placed under itself."
        current = current.parent

    return True, ""


# =============================================================================
# Journal Entry Policies
# =============================================================================

def can_edit_entry(actor, entry) -> tuple[bool, str]:
    """Only draft entries can be edited."""
    if not check_tenant_boundary(actor, entry):
        return False, "Cross-company action denied."

    if entry.is_posted:
        return False, f"Journal entry {entry.entry_number} is posted and cannot be modified."

    return True, ""


def can_delete_entry(actor, entry) -> tuple[bool, str]:
    """Only draft entries can be deleted."""
    if not check_tenant_boundary(actor, entry):
        return False, "Cross-company action denied."

    if entry.is_posted:
        return False, f"Journal entry {entry.entry_number} is posted and cannot be deleted."

    return True, ""


def can_reverse_entry(actor, entry) -> tuple[bool, str]:
    """
    Rules:
    - Only posted entries can be reversed
    - A reversal entry cannot itself be reversed
    - An entry can be reversed once
    """
    if not check_tenant_boundary(actor, entry):
        return False, "Cross-company action denied."

    if not entry.is_posted:
        return False, "Only posted entries can be reversed. Delete or edit the draft instead."

    if entry.reverses_entry_id:
        return False, "A reversal entry cannot be reversed."

    if entry.is_reversed:
        return False, "This entry was already reversed."

    return True, ""
