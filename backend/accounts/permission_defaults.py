# accounts/permission_defaults.py
"""
Static role -> capability table.

Capabilities are "module:action" pairs. The table is the only place role
names are mapped to what they allow; everything else asks
role_has_capability() or ActorContext.has().

Roles are strictly nested:
    ASSISTANT <= ACCOUNTANT <= MANAGER <= ADMINISTRATOR
"""

from enum import Enum

from accounts.models import Role


class Capability(str, Enum):
    # Dashboard
    DASHBOARD_VIEW = "dashboard:view"

    # Chart of accounts
    ACCOUNTS_VIEW = "accounts:view"
    ACCOUNTS_CREATE = "accounts:create"
    ACCOUNTS_EDIT = "accounts:edit"
    ACCOUNTS_DELETE = "accounts:delete"

    # Journal entries
    ACCOUNTING_VIEW = "accounting:view"
    ACCOUNTING_CREATE = "accounting:create"
    ACCOUNTING_WRITE = "accounting:write"   # edit / delete drafts
    ACCOUNTING_POST = "accounting:post"     # post / reverse

    # Sub-ledgers
    CUSTOMERS_VIEW = "customers:view"
    CUSTOMERS_CREATE = "customers:create"
    CUSTOMERS_EDIT = "customers:edit"
    CUSTOMERS_DELETE = "customers:delete"
    VENDORS_VIEW = "vendors:view"
    VENDORS_CREATE = "vendors:create"
    VENDORS_EDIT = "vendors:edit"
    VENDORS_DELETE = "vendors:delete"
    INVOICES_VIEW = "invoices:view"
    INVOICES_CREATE = "invoices:create"
    INVOICES_EDIT = "invoices:edit"
    INVOICES_DELETE = "invoices:delete"
    INVOICES_SEND = "invoices:send"
    BILLS_VIEW = "bills:view"
    BILLS_CREATE = "bills:create"
    BILLS_EDIT = "bills:edit"
    BILLS_DELETE = "bills:delete"
    BILLS_PAY = "bills:pay"

    # Reports
    REPORTS_VIEW = "reports:view"
    REPORTS_EXPORT = "reports:export"
    REPORTS_CUSTOM = "reports:custom"

    # Settings
    SETTINGS_VIEW = "settings:view"
    SETTINGS_EDIT = "settings:edit"

    # Users / roles
    USERS_VIEW = "users:view"
    USERS_CREATE = "users:create"
    USERS_EDIT = "users:edit"
    USERS_DELETE = "users:delete"
    USERS_ASSIGN_ROLES = "users:assign_roles"

    # Companies
    COMPANIES_VIEW = "companies:view"
    COMPANIES_CREATE = "companies:create"
    COMPANIES_EDIT = "companies:edit"
    COMPANIES_DELETE = "companies:delete"

    @property
    def module(self) -> str:
        return self.value.split(":", 1)[0]

    @property
    def action(self) -> str:
        return self.value.split(":", 1)[1]


C = Capability

_ASSISTANT = frozenset({
    C.DASHBOARD_VIEW,
    C.ACCOUNTS_VIEW,
    C.ACCOUNTING_VIEW,
    C.ACCOUNTING_CREATE,
    C.CUSTOMERS_VIEW, C.CUSTOMERS_CREATE, C.CUSTOMERS_EDIT,
    C.VENDORS_VIEW, C.VENDORS_CREATE, C.VENDORS_EDIT,
    C.INVOICES_VIEW, C.INVOICES_CREATE,
    C.BILLS_VIEW, C.BILLS_CREATE,
    C.REPORTS_VIEW,
})

_ACCOUNTANT = _ASSISTANT | {
    C.ACCOUNTS_CREATE,
    C.ACCOUNTS_EDIT,
    C.ACCOUNTING_WRITE,
    C.ACCOUNTING_POST,
    C.CUSTOMERS_DELETE,
    C.VENDORS_DELETE,
    C.INVOICES_EDIT, C.INVOICES_SEND,
    C.BILLS_EDIT, C.BILLS_PAY,
    C.REPORTS_EXPORT,
    C.SETTINGS_VIEW,
}

_MANAGER = _ACCOUNTANT | {
    C.ACCOUNTS_DELETE,
    C.INVOICES_DELETE,
    C.BILLS_DELETE,
    C.REPORTS_CUSTOM,
    C.SETTINGS_EDIT,
    C.USERS_VIEW, C.USERS_CREATE, C.USERS_EDIT, C.USERS_ASSIGN_ROLES,
    C.COMPANIES_VIEW, C.COMPANIES_EDIT,
}

_ADMINISTRATOR = _MANAGER | {
    C.USERS_DELETE,
    C.COMPANIES_CREATE,
    C.COMPANIES_DELETE,
}

ROLE_CAPABILITIES = {
    Role.ASSISTANT: _ASSISTANT,
    Role.ACCOUNTANT: frozenset(_ACCOUNTANT),
    Role.MANAGER: frozenset(_MANAGER),
    Role.ADMINISTRATOR: frozenset(_ADMINISTRATOR),
}

# Lowest to highest.
ROLE_HIERARCHY = (
    Role.ASSISTANT,
    Role.ACCOUNTANT,
    Role.MANAGER,
    Role.ADMINISTRATOR,
)

# Roles each role may hand out.
ASSIGNABLE_ROLES = {
    Role.ADMINISTRATOR: frozenset(ROLE_HIERARCHY),
    Role.MANAGER: frozenset({Role.ACCOUNTANT, Role.ASSISTANT}),
    Role.ACCOUNTANT: frozenset(),
    Role.ASSISTANT: frozenset(),
}


def parse_role(value) -> Role | None:
    if value is None:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def capabilities_for(role) -> frozenset:
    role = parse_role(role)
    if role is None:
        return frozenset()
    return ROLE_CAPABILITIES[role]


def role_has_capability(role, capability) -> bool:
    try:
        capability = Capability(capability)
    except ValueError:
        return False
    return capability in capabilities_for(role)


def can_assign_role(assigner_role, target_role) -> bool:
    """
    Whether a user holding assigner_role may give target_role to someone.

    Administrators may assign any role, managers only accountant or
    assistant, everyone else nothing.
    """
    assigner = parse_role(assigner_role)
    target = parse_role(target_role)
    if assigner is None or target is None:
        return False
    return target in ASSIGNABLE_ROLES[assigner]

