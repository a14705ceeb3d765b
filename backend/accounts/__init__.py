# accounts/__init__.py
"""
Accounts app - Authentication, companies and role-based access.

This app provides:
- Company: Tenant/organization model
- User: Email login with an optional global role
- UserCompany: Membership carrying the per-company role
- ActivityLog: Audit trail of command outcomes
- ActorContext: Authorization context utilities

Company isolation is enforced at every layer through the ActorContext pattern.
"""
