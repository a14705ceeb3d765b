from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import ActivityLog, Company, User, UserCompany


class MembershipInline(admin.TabularInline):
    """Memberships are managed through the members API; shown read-only here."""
    model = UserCompany
    extra = 0
    fields = ("user", "company", "role", "is_active", "created_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    fieldsets = (
        (None, {"fields": ("email", "password", "name")}),
        ("Roles", {"fields": ("global_role",)}),
        ("Permissions", {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")}),
        ("Important dates", {"fields": ("last_login", "date_joined")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "name", "password1", "password2")}),
    )
    list_display = ("email", "name", "global_role", "is_active", "is_staff")
    list_filter = ("global_role", "is_active")
    search_fields = ("email", "name")
    ordering = ("email",)
    inlines = [MembershipInline]


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "currency", "fiscal_year_start", "is_active", "created_at")
    list_filter = ("is_active", "currency")
    search_fields = ("name", "code")
    inlines = [MembershipInline]

    def has_delete_permission(self, request, obj=None):
        # Deletion runs the company deletion policy; use the admin API.
        return False


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "action", "outcome", "resource", "resource_id", "user", "company")
    list_filter = ("outcome", "action")
    search_fields = ("user__email", "resource_id")
    date_hierarchy = "timestamp"
    readonly_fields = [f.name for f in ActivityLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
