# accounts/authz.py
"""
Authorization utilities.

Provides:
- resolve_role / role_of: which Role a user holds in a company
- can: capability check for a (user, company) pair
- ActorContext: immutable context for the current actor and company
- resolve_actor: build the ActorContext for a request and explicit company id
- require: raise PermissionDenied (views)
- authorize: return a PERMISSION_DENIED result and log it (commands)

Rules:
1. Inactive users hold no role anywhere.
2. An active UserCompany row gives its role.
3. A global administrator without an active row is ADMINISTRATOR.
4. Otherwise no role, and no capability.

The company is always passed in explicitly. Nothing here reads a
"current company" from the session or the user.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from rest_framework.exceptions import NotAuthenticated, NotFound

from accounts.models import Company, Role, UserCompany
from accounts.permission_defaults import Capability, capabilities_for, role_has_capability

logger = logging.getLogger(__name__)


def resolve_role(global_role: str, membership_role: Optional[str], user_active: bool = True) -> Optional[Role]:
    """
    Pure role resolution from already-loaded rows.

    Args:
        global_role: The user's global role
        membership_role: Role on the active UserCompany row, or None
        user_active: Whether the user account is active
    """
    if not user_active:
        return None
    if membership_role is not None:
        return Role(membership_role)
    User = get_user_model()
    if global_role == User.GlobalRole.GLOBAL_ADMINISTRATOR:
        return Role.ADMINISTRATOR
    return None


def role_of(user_id: int, company_id: int) -> Optional[Role]:
    """Role the user holds in the company, or None."""
    User = get_user_model()
    user = User.objects.filter(pk=user_id).only("is_active", "global_role").first()
    if user is None:
        return None
    membership_role = (
        UserCompany.objects.filter(user_id=user_id, company_id=company_id, is_active=True)
        .values_list("role", flat=True)
        .first()
    )
    return resolve_role(user.global_role, membership_role, user_active=user.is_active)


def can(user_id: int, company_id: int, capability) -> bool:
    return role_has_capability(role_of(user_id, company_id), capability)


@dataclass(frozen=True)
class ActorContext:
    """
    Immutable context for the current actor (user + company).

    This is passed to commands and policies to provide context
    about who is performing an action and in which company.

    Attributes:
        user: The authenticated user
        company: The company the request targets
        role: The user's role in that company
        capabilities: Capabilities granted by the role
    """
    user: object  # User model
    company: Company
    role: Optional[Role]
    capabilities: FrozenSet[Capability]

    def has(self, capability) -> bool:
        try:
            return Capability(capability) in self.capabilities
        except ValueError:
            return False

    @property
    def company_id(self) -> int:
        return self.company.pk

    @property
    def is_global_admin(self) -> bool:
        return bool(getattr(self.user, "is_global_admin", False))

    @property
    def is_authenticated(self) -> bool:
        """Mirror Django's user.is_authenticated for compatibility."""
        return bool(getattr(self.user, "is_authenticated", False))


def actor_for(user, company: Company) -> ActorContext:
    """
    Build an ActorContext for a user in a company.

    Role is loaded fresh from the database every time.
    """
    role = role_of(user.pk, company.pk)
    return ActorContext(
        user=user,
        company=company,
        role=role,
        capabilities=capabilities_for(role),
    )


def resolve_actor(request, company_id) -> ActorContext:
    """
    Build the ActorContext for a request against an explicit company.

    Raises:
        NotAuthenticated: If user is not authenticated
        NotFound: If the company does not exist
        PermissionDenied: If the user holds no role in the company
    """
    user = getattr(request, "user", None)

    if not user or not user.is_authenticated:
        raise NotAuthenticated("Authentication required.")

    try:
        company = Company.objects.get(pk=company_id)
    except (Company.DoesNotExist, ValueError, TypeError):
        raise NotFound("Company not found.")

    actor = actor_for(user, company)
    if actor.role is None:
        logger.warning(
            "No role in company",
            extra={"user_id": user.pk, "company_id": company.pk},
        )
        raise PermissionDenied("You are not an active member of this company.")
    return actor


def require(actor: ActorContext, capability) -> None:
    """
    Require that the actor has a capability.

    Raises:
        PermissionDenied: If the capability is not granted
    """
    if not actor.has(capability):
        raise PermissionDenied(f"Permission denied: {Capability(capability).value}")


def require_global_admin(user) -> None:
    if not getattr(user, "is_global_admin", False):
        raise PermissionDenied("Global administrator access required.")


def authorize(actor: ActorContext, capability, *, action: str, resource: str, resource_id=""):
    """
    Capability check for commands.

    Returns None when allowed. When denied, records the attempt in the
    activity log and returns a failed Result for the command to pass back.
    """
    from accounting.errors import ErrorKind, Result
    from accounts.activity import log_activity
    from accounts.models import ActivityLog

    capability = Capability(capability)
    if actor.has(capability):
        return None

    logger.warning(
        "Permission denied",
        extra={
            "user_id": getattr(actor.user, "pk", None),
            "company_id": actor.company_id,
            "role": actor.role.value if actor.role else None,
            "capability": capability.value,
        },
    )
    log_activity(
        user=actor.user,
        company=actor.company,
        action=action,
        resource=resource,
        resource_id=resource_id,
        outcome=ActivityLog.Outcome.DENIED,
        details={"capability": capability.value},
    )
    return Result.fail(
        ErrorKind.PERMISSION_DENIED,
        f"Permission denied: {capability.value}",
    )
