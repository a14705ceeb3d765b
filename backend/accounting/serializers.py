# accounting/serializers.py
"""
Serializers for the ledger API.

These serializers are used for:
1. Input shape validation (types, required fields)
2. Output formatting

Ledger rules (balance, accounts, amounts per line) are checked by the
validator inside the commands, so that the API and batch import report
the same error kinds.
"""

from decimal import Decimal

from django.conf import settings
from rest_framework import serializers

from accounting.money import MONEY_Q
from .models import Account, JournalEntry, JournalEntryLine


def _money_field(**kwargs):
    return serializers.DecimalField(max_digits=18, decimal_places=2, **kwargs)


# =============================================================================
# Account Serializers
# =============================================================================

class AccountSerializer(serializers.ModelSerializer):
    parent_code = serializers.CharField(source="parent.code", read_only=True, default=None)
    normal_balance = serializers.CharField(read_only=True)

    class Meta:
        model = Account
        fields = [
            "id", "company", "code", "name", "account_type", "sub_type",
            "normal_balance", "parent", "parent_code", "description",
            "is_active", "created_at", "updated_at",
        ]
        read_only_fields = fields


class AccountCreateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=20)
    name = serializers.CharField(max_length=255)
    account_type = serializers.CharField(max_length=20)
    sub_type = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    parent_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    description = serializers.CharField(required=False, allow_blank=True, default="")


class AccountUpdateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=20, required=False)
    name = serializers.CharField(max_length=255, required=False)
    account_type = serializers.CharField(max_length=20, required=False)
    sub_type = serializers.CharField(max_length=100, required=False, allow_blank=True)
    parent_id = serializers.IntegerField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True)
    is_active = serializers.BooleanField(required=False)


# =============================================================================
# Journal Entry Serializers
# =============================================================================

class JournalEntryLineSerializer(serializers.ModelSerializer):
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)

    class Meta:
        model = JournalEntryLine
        fields = [
            "id", "line_no", "account", "account_code", "account_name",
            "description", "debit", "credit",
        ]
        read_only_fields = fields


class JournalEntrySerializer(serializers.ModelSerializer):
    lines = JournalEntryLineSerializer(many=True, read_only=True)
    total_debit = serializers.SerializerMethodField()
    total_credit = serializers.SerializerMethodField()
    created_by_email = serializers.EmailField(source="created_by.email", read_only=True, default=None)
    reversal_entry_id = serializers.SerializerMethodField()

    class Meta:
        model = JournalEntry
        fields = [
            "id", "company", "entry_number", "date", "description", "reference",
            "total_amount", "total_debit", "total_credit",
            "is_posted", "posted_at", "posted_by",
            "reverses_entry", "reversal_entry_id",
            "created_by", "created_by_email", "created_at", "updated_at",
            "lines",
        ]
        read_only_fields = fields

    def get_total_debit(self, obj) -> str:
        total = sum((line.debit for line in obj.lines.all()), Decimal("0.00"))
        return str(total.quantize(MONEY_Q))

    def get_total_credit(self, obj) -> str:
        total = sum((line.credit for line in obj.lines.all()), Decimal("0.00"))
        return str(total.quantize(MONEY_Q))

    def get_reversal_entry_id(self, obj):
        reversal = getattr(obj, "reversal_entry", None) if obj.is_posted else None
        return reversal.id if reversal else None


class JournalLineInputSerializer(serializers.Serializer):
    account_id = serializers.IntegerField()
    debit = _money_field(required=False, default=Decimal("0.00"))
    credit = _money_field(required=False, default=Decimal("0.00"))
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class JournalEntryCreateSerializer(serializers.Serializer):
    date = serializers.DateField()
    description = serializers.CharField(max_length=255)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    total_amount = _money_field(required=False, allow_null=True, default=None)
    entry_number = serializers.CharField(max_length=50, required=False, allow_blank=True, default=None)
    lines = JournalLineInputSerializer(many=True, allow_empty=True)


class JournalEntryUpdateSerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    description = serializers.CharField(max_length=255, required=False)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True)
    total_amount = _money_field(required=False, allow_null=True)
    lines = JournalLineInputSerializer(many=True, required=False, allow_empty=True)


class JournalEntryReverseSerializer(serializers.Serializer):
    date = serializers.DateField(required=False, allow_null=True, default=None)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class JournalImportSerializer(serializers.Serializer):
    """
    Batch payload. Items are passed to the command as-is so that a bad
    item is reported per index instead of rejecting the whole batch.
    """
    post = serializers.BooleanField(required=False, default=False)
    entries = serializers.ListField(
        child=serializers.DictField(), allow_empty=False, max_length=settings.JOURNAL_IMPORT_MAX_ENTRIES,
    )


# =============================================================================
# Report query serializers
# =============================================================================

class AsOfDateQuerySerializer(serializers.Serializer):
    as_of_date = serializers.DateField(required=False, allow_null=True, default=None)


class DateRangeQuerySerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False, allow_null=True, default=None)
    date_to = serializers.DateField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        if attrs.get("date_from") and attrs.get("date_to") and attrs["date_from"] > attrs["date_to"]:
            raise serializers.ValidationError("date_from must be on or before date_to.")
        return attrs
