from django.contrib.auth import authenticate
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from .models import Company, Role, User, UserCompany


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ("id", "email", "name", "global_role", "is_active")
        read_only_fields = fields


class CompanySerializer(serializers.ModelSerializer):
    role = serializers.SerializerMethodField()

    class Meta:
        model = Company
        fields = ("id", "name", "code", "currency", "fiscal_year_start", "is_active", "created_at", "role")
        read_only_fields = fields

    def get_role(self, obj):
        roles = self.context.get("roles") or {}
        return roles.get(obj.id)


class CompanyCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    code = serializers.CharField(max_length=10)
    currency = serializers.CharField(max_length=3, required=False, default="USD")
    fiscal_year_start = serializers.IntegerField(min_value=1, max_value=12, required=False, default=1)

    def validate_code(self, value: str):
        return value.strip().upper()

    def validate_currency(self, value: str):
        return value.upper()


class MembershipSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = UserCompany
        fields = ("id", "user", "company", "role", "is_active", "created_at")
        read_only_fields = fields


class MemberAddSerializer(serializers.Serializer):
    """
    Either an existing user (user_id) or a new one (email, name, password).
    """

    user_id = serializers.IntegerField(required=False)
    email = serializers.EmailField(required=False)
    name = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    password = serializers.CharField(min_length=8, write_only=True, required=False)
    role = serializers.ChoiceField(choices=Role.choices, default=Role.ASSISTANT)

    def validate(self, attrs):
        if attrs.get("user_id") is None:
            if not attrs.get("email") or not attrs.get("password"):
                raise serializers.ValidationError("Provide user_id, or email and password for a new user.")
        return attrs


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    username_field = User.EMAIL_FIELD

    def validate(self, attrs):
        authenticate_kwargs = {
            self.username_field: attrs.get("email"),
            "password": attrs.get("password"),
        }
        user = authenticate(request=self.context.get("request"), **authenticate_kwargs)
        if not user:
            raise AuthenticationFailed("Invalid credentials")
        refresh = RefreshToken.for_user(user)
        return {"access": str(refresh.access_token), "refresh": str(refresh)}
