# accounts/commands.py
"""
Command layer for tenants, users and roles.

ALL security-critical mutations go through these commands:
- Company creation and deletion
- User creation and deletion
- Role assignment and membership deactivation

This ensures:
1. Consistent validation
2. Audit trail via the activity log
3. Single point of enforcement

Company-scoped commands take an ActorContext built for an explicit
company. Global administration commands take the acting user.
"""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction

from accounts.activity import Action, log_activity
from accounts.authz import ActorContext, authorize
from accounts.models import ActivityLog, Company, Role, UserCompany
from accounts.permission_defaults import Capability, can_assign_role, parse_role
from accounts.policies import can_delete_company, can_delete_user
from accounting.errors import ErrorKind, Result

logger = logging.getLogger(__name__)

User = get_user_model()


def _deny_role(actor: ActorContext, target_user_id, role, action: str) -> Result:
    log_activity(
        user=actor.user,
        company=actor.company,
        action=action,
        resource="membership",
        resource_id=target_user_id,
        outcome=ActivityLog.Outcome.DENIED,
        details={"role": str(role)},
    )
    return Result.fail(
        ErrorKind.PERMISSION_DENIED,
        f"Role {actor.role.value if actor.role else 'none'} cannot manage {role} memberships.",
    )


# =============================================================================
# Companies
# =============================================================================

@transaction.atomic
def create_company(user, name: str, code: str, currency: str = "USD", fiscal_year_start: int = 1) -> Result:
    """
    Create a company. The creator becomes its administrator.

    Returns:
        Result with {"company": company, "membership": membership}
    """
    if not user.is_active:
        return Result.fail(ErrorKind.PERMISSION_DENIED, "Inactive users cannot create companies.")

    name = (name or "").strip()
    code = (code or "").strip().upper()
    if not name:
        return Result.fail(ErrorKind.INVALID_INPUT, "Company name is required.", field="name")

    if Company.objects.filter(code=code).exists():
        return Result.fail(ErrorKind.DUPLICATE, f"Company code '{code}' already exists.", field="code")

    company = Company(
        name=name,
        code=code,
        currency=(currency or "USD").upper(),
        fiscal_year_start=fiscal_year_start,
    )
    try:
        company.full_clean()
    except ValidationError as exc:
        field, messages = next(iter(exc.message_dict.items()))
        return Result.fail(ErrorKind.INVALID_INPUT, messages[0], field=field)
    company.save()

    membership = UserCompany.objects.create(
        user=user,
        company=company,
        role=Role.ADMINISTRATOR,
    )
    log_activity(
        user=user,
        company=company,
        action=Action.COMPANY_CREATE,
        resource="company",
        resource_id=company.id,
        details={"code": company.code},
    )
    return Result.ok({"company": company, "membership": membership})


@transaction.atomic
def delete_company(actor: ActorContext) -> Result:
    """
    Delete the actor's company.

    Refused while posted entries or other active members exist. Otherwise
    draft entries, accounts and memberships are removed explicitly, then
    the company row.
    """
    from accounting.models import Account, JournalEntry

    denied = authorize(
        actor, Capability.COMPANIES_DELETE,
        action=Action.COMPANY_DELETE, resource="company", resource_id=actor.company.id,
    )
    if denied is not None:
        return denied

    company = Company.objects.select_for_update().get(pk=actor.company.pk)
    allowed, reason = can_delete_company(actor, company)
    if not allowed:
        return Result.fail(ErrorKind.DELETION_REFUSED, reason)

    company_id, code = company.id, company.code
    JournalEntry.objects.filter(company=company, is_posted=False).delete()
    accounts = Account.objects.filter(company=company)
    accounts.update(parent=None)
    accounts.delete()
    UserCompany.objects.filter(company=company).delete()
    company.delete()

    log_activity(
        user=actor.user,
        company=None,
        action=Action.COMPANY_DELETE,
        resource="company",
        resource_id=company_id,
        details={"code": code},
    )
    logger.info("Company deleted", extra={"company_id": company_id, "code": code})
    return Result.ok({"deleted": True})


# =============================================================================
# Memberships
# =============================================================================

@transaction.atomic
def assign_role(actor: ActorContext, user_id: int, role: str) -> Result:
    """
    Give a user a role in the actor's company.

    Creates or reactivates the membership. The actor must hold
    users:assign_roles, be allowed to hand out the target role, and be
    allowed to manage the user's current role.
    """
    denied = authorize(
        actor, Capability.USERS_ASSIGN_ROLES,
        action=Action.ROLE_CHANGE, resource="membership", resource_id=user_id,
    )
    if denied is not None:
        return denied

    new_role = parse_role(role)
    if new_role is None:
        valid = ", ".join(r.value for r in Role)
        return Result.fail(ErrorKind.INVALID_INPUT, f"Invalid role. Must be one of: {valid}", field="role")

    if not can_assign_role(actor.role, new_role):
        return _deny_role(actor, user_id, new_role.value, Action.ROLE_CHANGE)

    user = User.objects.filter(pk=user_id, is_active=True).first()
    if user is None:
        return Result.fail(ErrorKind.NOT_FOUND, "User not found.")

    membership = UserCompany.objects.select_for_update().filter(user=user, company=actor.company).first()
    if membership is not None and membership.is_active and not can_assign_role(actor.role, membership.role):
        return _deny_role(actor, user_id, membership.role, Action.ROLE_CHANGE)

    old_role = membership.role if membership and membership.is_active else None
    if membership is None:
        membership = UserCompany.objects.create(user=user, company=actor.company, role=new_role)
        action = Action.USER_ASSIGN
    else:
        membership.role = new_role
        membership.is_active = True
        membership.save(update_fields=["role", "is_active"])
        action = Action.ROLE_CHANGE if old_role else Action.USER_ASSIGN

    log_activity(
        user=actor.user,
        company=actor.company,
        action=action,
        resource="membership",
        resource_id=user.id,
        details={"old_role": old_role, "new_role": new_role.value},
    )
    return Result.ok(membership)


@transaction.atomic
def deactivate_membership(actor: ActorContext, user_id: int) -> Result:
    """Remove a user from the actor's company (soft delete)."""
    denied = authorize(
        actor, Capability.USERS_ASSIGN_ROLES,
        action=Action.USER_UNASSIGN, resource="membership", resource_id=user_id,
    )
    if denied is not None:
        return denied

    membership = UserCompany.objects.select_for_update().filter(
        user_id=user_id, company=actor.company, is_active=True
    ).first()
    if membership is None:
        return Result.fail(ErrorKind.NOT_FOUND, "Membership not found.")

    if membership.user_id == actor.user.pk:
        return Result.fail(ErrorKind.INVALID_INPUT, "Cannot deactivate your own membership.")

    if not can_assign_role(actor.role, membership.role):
        return _deny_role(actor, user_id, membership.role, Action.USER_UNASSIGN)

    membership.is_active = False
    membership.save(update_fields=["is_active"])

    log_activity(
        user=actor.user,
        company=actor.company,
        action=Action.USER_UNASSIGN,
        resource="membership",
        resource_id=user_id,
        details={"role": membership.role},
    )
    return Result.ok({"deactivated": True})


# =============================================================================
# Users
# =============================================================================

@transaction.atomic
def create_user_with_membership(
    actor: ActorContext,
    email: str,
    name: str,
    password: str,
    role: str = Role.ASSISTANT,
) -> Result:
    """Create a new user and add them to the actor's company."""
    denied = authorize(actor, Capability.USERS_CREATE, action=Action.USER_CREATE, resource="user")
    if denied is not None:
        return denied

    new_role = parse_role(role)
    if new_role is None:
        return Result.fail(ErrorKind.INVALID_INPUT, "Invalid role.", field="role")
    if not can_assign_role(actor.role, new_role):
        return _deny_role(actor, "", new_role.value, Action.USER_CREATE)

    email = User.objects.normalize_email((email or "").strip())
    if not email:
        return Result.fail(ErrorKind.INVALID_INPUT, "Email is required.", field="email")
    if User.objects.filter(email__iexact=email).exists():
        return Result.fail(ErrorKind.DUPLICATE, "A user with this email already exists.", field="email")

    user = User.objects.create_user(email=email, password=password, name=name or "")
    membership = UserCompany.objects.create(user=user, company=actor.company, role=new_role)

    log_activity(
        user=actor.user,
        company=actor.company,
        action=Action.USER_CREATE,
        resource="user",
        resource_id=user.id,
        details={"email": email, "role": new_role.value},
    )
    return Result.ok({"user": user, "membership": membership})


@transaction.atomic
def delete_user(acting_user, user_id: int) -> Result:
    """
    Delete a user account (global administrators only).

    Memberships are removed; journal entries keep their lines and lose
    only their created_by/posted_by reference.
    """
    if not getattr(acting_user, "is_global_admin", False):
        log_activity(
            user=acting_user,
            company=None,
            action=Action.USER_DELETE,
            resource="user",
            resource_id=user_id,
            outcome=ActivityLog.Outcome.DENIED,
        )
        return Result.fail(ErrorKind.PERMISSION_DENIED, "Global administrator access required.")

    user = User.objects.filter(pk=user_id).first()
    if user is None:
        return Result.fail(ErrorKind.NOT_FOUND, "User not found.")

    allowed, reason = can_delete_user(acting_user, user)
    if not allowed:
        return Result.fail(ErrorKind.DELETION_REFUSED, reason)

    email = user.email
    UserCompany.objects.filter(user=user).delete()
    user.delete()

    log_activity(
        user=acting_user,
        company=None,
        action=Action.USER_DELETE,
        resource="user",
        resource_id=user_id,
        details={"email": email},
    )
    return Result.ok({"deleted": True})
