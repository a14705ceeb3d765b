# accounts/activity.py
"""
Activity log writer.

Commands record what happened (and what was refused) here. The log is
append-only; nothing in the app updates or deletes rows.
"""

import logging

from accounts.models import ActivityLog

logger = logging.getLogger(__name__)


class Action:
    USER_CREATE = "USER_CREATE"
    USER_DELETE = "USER_DELETE"

    COMPANY_CREATE = "COMPANY_CREATE"
    COMPANY_DELETE = "COMPANY_DELETE"

    USER_ASSIGN = "USER_ASSIGN"
    USER_UNASSIGN = "USER_UNASSIGN"
    ROLE_CHANGE = "ROLE_CHANGE"

    ACCOUNT_CREATE = "ACCOUNT_CREATE"
    ACCOUNT_UPDATE = "ACCOUNT_UPDATE"
    ACCOUNT_DELETE = "ACCOUNT_DELETE"

    JOURNAL_CREATE = "JOURNAL_CREATE"
    JOURNAL_UPDATE = "JOURNAL_UPDATE"
    JOURNAL_DELETE = "JOURNAL_DELETE"
    JOURNAL_POST = "JOURNAL_POST"
    JOURNAL_REVERSE = "JOURNAL_REVERSE"

    DATA_IMPORT = "DATA_IMPORT"


def log_activity(
    *,
    user,
    company,
    action: str,
    resource: str,
    resource_id="",
    outcome: str = ActivityLog.Outcome.SUCCESS,
    details: dict | None = None,
) -> ActivityLog:
    """
    Append an activity row.

    Args:
        user: Acting user (or None for system actions)
        company: Company the action touched (or None)
        action: One of the Action constants
        resource: Resource kind ("journal_entry", "account", ...)
        resource_id: Identifier of the resource, if any
        outcome: success / denied / failed
        details: Extra JSON-serializable context
    """
    entry = ActivityLog.objects.create(
        user=user if getattr(user, "pk", None) else None,
        company=company,
        action=action,
        resource=resource,
        resource_id=str(resource_id or ""),
        outcome=outcome,
        details=details or {},
    )
    logger.info(
        "activity %s %s",
        action,
        outcome,
        extra={
            "user_id": getattr(user, "pk", None),
            "company_id": getattr(company, "pk", None),
            "resource": resource,
            "resource_id": entry.resource_id,
        },
    )
    return entry
