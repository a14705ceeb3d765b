from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from django.shortcuts import get_object_or_404

from accounting.views import error_response
from accounts.permission_defaults import Capability

from .authz import actor_for, require, require_global_admin, resolve_actor
from .commands import (
    assign_role,
    create_company,
    create_user_with_membership,
    deactivate_membership,
    delete_company,
    delete_user,
)
from .models import Company, UserCompany
from .serializers import (
    CompanyCreateSerializer,
    CompanySerializer,
    EmailTokenObtainPairSerializer,
    MemberAddSerializer,
    MembershipSerializer,
)
from .throttles import LoginThrottle


class LoginView(generics.GenericAPIView):
    serializer_class = EmailTokenObtainPairSerializer
    permission_classes = [permissions.AllowAny]
    throttle_classes = [LoginThrottle]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(serializer.validated_data, status=status.HTTP_200_OK)


# =============================================================================
# Companies
# =============================================================================

class CompanyListCreateView(APIView):
    """
    GET /api/companies/ -> companies the user is an active member of
    POST /api/companies/ -> create a company; the caller becomes its administrator
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        memberships = UserCompany.objects.filter(
            user=request.user, is_active=True,
        ).select_related("company")
        roles = {m.company_id: m.role for m in memberships}

        if request.user.is_global_admin:
            companies = Company.objects.all()
        else:
            companies = Company.objects.filter(pk__in=roles.keys())

        serializer = CompanySerializer(companies, many=True, context={"roles": roles})
        return Response(serializer.data)

    def post(self, request):
        input_serializer = CompanyCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = create_company(request.user, **input_serializer.validated_data)
        if not result.success:
            return error_response(result)

        company = result.data["company"]
        serializer = CompanySerializer(company, context={"roles": {company.id: result.data["membership"].role}})
        return Response(serializer.data, status=status.HTTP_201_CREATED)


# =============================================================================
# Members
# =============================================================================

class MemberListCreateView(APIView):
    """
    GET /api/companies/<company_id>/members/ -> list memberships
    POST /api/companies/<company_id>/members/ -> add an existing or new user
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, company_id):
        actor = resolve_actor(request, company_id)
        require(actor, Capability.USERS_VIEW)

        memberships = UserCompany.objects.filter(company=actor.company).select_related("user").order_by("user__email")
        return Response(MembershipSerializer(memberships, many=True).data)

    def post(self, request, company_id):
        actor = resolve_actor(request, company_id)

        input_serializer = MemberAddSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        data = input_serializer.validated_data

        if data.get("user_id") is not None:
            result = assign_role(actor, data["user_id"], data["role"])
            membership = result.data if result.success else None
        else:
            result = create_user_with_membership(
                actor,
                email=data["email"],
                name=data.get("name", ""),
                password=data["password"],
                role=data["role"],
            )
            membership = result.data["membership"] if result.success else None

        if not result.success:
            return error_response(result)

        return Response(MembershipSerializer(membership).data, status=status.HTTP_201_CREATED)


class MemberDetailView(APIView):
    """
    PATCH /api/companies/<company_id>/members/<user_id>/ -> change role
    DELETE /api/companies/<company_id>/members/<user_id>/ -> deactivate membership
    """
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, company_id, user_id):
        actor = resolve_actor(request, company_id)

        role = request.data.get("role")
        if not role:
            return Response({"detail": "role is required."}, status=status.HTTP_400_BAD_REQUEST)

        result = assign_role(actor, user_id, role)
        if not result.success:
            return error_response(result)

        return Response(MembershipSerializer(result.data).data)

    def delete(self, request, company_id, user_id):
        actor = resolve_actor(request, company_id)

        result = deactivate_membership(actor, user_id)
        if not result.success:
            return error_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Global administration
# =============================================================================

class AdminCompanyDeleteView(APIView):
    """DELETE /api/admin/companies/<pk>/ (global administrators only)"""
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, pk):
        require_global_admin(request.user)

        company = get_object_or_404(Company, pk=pk)
        result = delete_company(actor_for(request.user, company))
        if not result.success:
            return error_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)


class AdminUserDeleteView(APIView):
    """DELETE /api/admin/users/<pk>/ (global administrators only)"""
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, pk):
        require_global_admin(request.user)

        result = delete_user(request.user, pk)
        if not result.success:
            return error_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)
