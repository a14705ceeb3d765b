# accounts/urls.py
"""
URL configuration for auth, companies and memberships.

Endpoints:
- /auth/ - JWT token obtain and refresh
- /companies/ - Company list and creation
- /companies/<id>/members/ - Membership management
- /admin/ - Global administrator deletions
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    # Auth
    LoginView,
    # Companies
    CompanyListCreateView,
    # Members
    MemberListCreateView,
    MemberDetailView,
    # Global administration
    AdminCompanyDeleteView,
    AdminUserDeleteView,
)

app_name = "accounts"

urlpatterns = [
    # ==========================================================================
    # Authentication
    # ==========================================================================
    path("auth/token/", LoginView.as_view(), name="token-obtain"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),

    # ==========================================================================
    # Companies
    # ==========================================================================
    path("companies/", CompanyListCreateView.as_view(), name="company-list"),

    # ==========================================================================
    # Members
    # ==========================================================================
    path("companies/<int:company_id>/members/", MemberListCreateView.as_view(), name="member-list"),
    path("companies/<int:company_id>/members/<int:user_id>/", MemberDetailView.as_view(), name="member-detail"),

    # ==========================================================================
    # Global administration
    # ==========================================================================
    path("admin/companies/<int:pk>/", AdminCompanyDeleteView.as_view(), name="admin-company-delete"),
    path("admin/users/<int:pk>/", AdminUserDeleteView.as_view(), name="admin-user-delete"),
]
