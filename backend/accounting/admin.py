# accounting/admin.py
"""
Django admin configuration for ledger models.

IMPORTANT: The admin is for viewing only.
=========================================
All mutations MUST go through the command layer (accounting/commands.py),
which validates entries, checks capabilities and records activity.
Posted entries are immutable; the admin cannot be used to edit them.
"""

from django.contrib import admin
from django.utils.html import format_html

from .models import Account, CompanySequence, JournalEntry, JournalEntryLine


class ReadOnlyModelAdmin(admin.ModelAdmin):
    """
    Base admin class for read-only models.

    To modify these models, use the command layer (accounting/commands.py).
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ReadOnlyInline(admin.TabularInline):
    """Base inline class for read-only models."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class JournalEntryLineInline(ReadOnlyInline):
    model = JournalEntryLine
    extra = 0
    readonly_fields = ["line_no", "account", "description", "debit", "credit"]
    fields = ["line_no", "account", "description", "debit", "credit"]


# =============================================================================
# Account Admin
# =============================================================================

@admin.register(Account)
class AccountAdmin(ReadOnlyModelAdmin):
    """Chart of accounts (read-only)."""

    list_display = ["code", "name", "account_type", "sub_type", "is_active", "parent", "company"]
    list_filter = ["company", "account_type", "is_active"]
    search_fields = ["code", "name", "description"]
    list_select_related = ["company", "parent"]
    ordering = ["company", "code"]
    readonly_fields = [
        "company", "code", "name", "account_type", "sub_type", "parent",
        "description", "is_active", "created_at", "updated_at",
    ]


# =============================================================================
# Journal Entry Admin
# =============================================================================

@admin.register(JournalEntry)
class JournalEntryAdmin(ReadOnlyModelAdmin):
    """Journal entries (read-only)."""

    list_display = [
        "id", "entry_number", "date", "description_truncated",
        "status_colored", "total_amount", "company",
    ]
    list_filter = ["company", "is_posted", "date"]
    search_fields = ["entry_number", "description", "reference"]
    date_hierarchy = "date"
    list_select_related = ["company", "posted_by", "created_by"]
    ordering = ["-date", "-id"]

    fieldsets = (
        (None, {
            "fields": ("company", "entry_number", "date", "reference"),
        }),
        ("Content", {
            "fields": ("description", "total_amount"),
        }),
        ("Posting", {
            "fields": ("is_posted", "posted_at", "posted_by", "reverses_entry"),
        }),
        ("Audit", {
            "fields": ("created_at", "created_by", "updated_at"),
            "classes": ("collapse",),
        }),
    )
    readonly_fields = [
        "company", "entry_number", "date", "reference", "description", "total_amount",
        "is_posted", "posted_at", "posted_by", "reverses_entry",
        "created_at", "created_by", "updated_at",
    ]
    inlines = [JournalEntryLineInline]

    def description_truncated(self, obj):
        if len(obj.description) > 50:
            return f"{obj.description[:50]}..."
        return obj.description
    description_truncated.short_description = "Description"

    def status_colored(self, obj):
        color, label = ("#28a745", "Posted") if obj.is_posted else ("#007bff", "Draft")
        return format_html('<span style="color: {}; font-weight: bold;">{}</span>', color, label)
    status_colored.short_description = "Status"
    status_colored.admin_order_field = "is_posted"


@admin.register(CompanySequence)
class CompanySequenceAdmin(ReadOnlyModelAdmin):
    list_display = ["company", "name", "next_value", "updated_at"]
    list_filter = ["company"]
    readonly_fields = ["company", "name", "next_value", "updated_at"]
