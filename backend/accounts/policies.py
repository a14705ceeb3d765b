# accounts/policies.py
"""
Deletion policies for tenants and users.

Companies and users are never removed by an ORM cascade alone. These
functions decide whether a delete may go ahead; the commands in
accounts/commands.py then remove the dependent rows explicitly.

Posted ledger data is never deleted.
"""

from accounts.models import UserCompany


def can_delete_company(actor, company) -> tuple[bool, str]:
    """
    Rules:
    - No posted journal entries (posted ledger data is permanent)
    - No active members other than the actor
    """
    from accounting.models import JournalEntry

    if JournalEntry.objects.filter(company=company, is_posted=True).exists():
        return False, "Cannot delete a company with posted journal entries."

    other_members = UserCompany.objects.filter(company=company, is_active=True).exclude(
        user_id=getattr(actor.user, "pk", None)
    )
    if other_members.exists():
        return False, "Cannot delete company with assigned users. Please remove all user assignments first."

    return True, ""


def can_delete_user(acting_user, user) -> tuple[bool, str]:
    """
    Rules:
    - Users cannot delete themselves
    - The last active global administrator cannot be deleted

    Deleting a user removes memberships and clears authorship on ledger
    rows; entries themselves are kept.
    """
    if acting_user.pk == user.pk:
        return False, "You cannot delete your own account."

    if user.global_role == user.GlobalRole.GLOBAL_ADMINISTRATOR:
        remaining = type(user).objects.filter(
            global_role=user.GlobalRole.GLOBAL_ADMINISTRATOR,
            is_active=True,
        ).exclude(pk=user.pk)
        if not remaining.exists():
            return False, "Cannot delete the last global administrator."

    return True, ""
