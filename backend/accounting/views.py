# accounting/views.py
"""
Thin views that delegate to the commands layer.

Views handle: HTTP parsing, authentication, response formatting.
Commands handle: business rules, validation, activity logging.

CRITICAL: All mutations (create, update, delete, post, reverse) MUST go
through commands. Views never call .save() on ledger models directly.

Every route carries the company id explicitly; resolve_actor() builds the
ActorContext for that company and refuses users without a role in it.
"""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from django.shortcuts import get_object_or_404

from accounts.authz import resolve_actor, require
from accounts.permission_defaults import Capability
from accounts.throttles import JournalImportThrottle
from .balances import account_balance, balance_sheet, profit_and_loss, trial_balance
from .errors import ErrorCategory, ErrorKind
from .models import Account, JournalEntry
from .money import money_str
from .serializers import (
    AccountSerializer,
    AccountCreateSerializer,
    AccountUpdateSerializer,
    AsOfDateQuerySerializer,
    DateRangeQuerySerializer,
    JournalEntrySerializer,
    JournalEntryCreateSerializer,
    JournalEntryUpdateSerializer,
    JournalEntryReverseSerializer,
    JournalImportSerializer,
)
from .commands import (
    # Account commands
    create_account,
    update_account,
    delete_account,
    # Journal entry commands
    create_journal_entry,
    update_journal_entry,
    delete_journal_entry,
    post_journal_entry,
    reverse_journal_entry,
    import_journal_entries,
)


_CATEGORY_STATUS = {
    ErrorCategory.STRUCTURAL: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.CONSISTENCY: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.STATE: status.HTTP_409_CONFLICT,
    ErrorCategory.AUTHORIZATION: status.HTTP_403_FORBIDDEN,
}


def error_status(error) -> int:
    if error.kind == ErrorKind.NOT_FOUND:
        return status.HTTP_404_NOT_FOUND
    if error.kind == ErrorKind.DUPLICATE:
        return status.HTTP_409_CONFLICT
    return _CATEGORY_STATUS.get(error.category, status.HTTP_400_BAD_REQUEST)


def error_response(result) -> Response:
    """Render a failed command Result as {"detail", "kind", "category", ...}."""
    return Response(result.error.to_dict(), status=error_status(result.error))


def _entries_queryset(actor):
    return JournalEntry.objects.filter(company=actor.company).select_related(
        "created_by", "reversal_entry",
    ).prefetch_related("lines", "lines__account")


def _entry_response(entry, status_code=status.HTTP_200_OK) -> Response:
    entry = JournalEntry.objects.select_related("created_by", "reversal_entry").prefetch_related(
        "lines", "lines__account"
    ).get(pk=entry.pk)
    return Response(JournalEntrySerializer(entry).data, status=status_code)


# =============================================================================
# Account Views
# =============================================================================

class AccountListCreateView(APIView):
    """
    GET /api/companies/<company_id>/accounts/ -> list the chart of accounts
    POST /api/companies/<company_id>/accounts/ -> create an account

    GET accepts ?account_type= and ?active=true|false filters.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, company_id):
        actor = resolve_actor(request, company_id)
        require(actor, Capability.ACCOUNTS_VIEW)

        accounts = Account.objects.filter(company=actor.company).select_related("parent")
        account_type = request.query_params.get("account_type")
        if account_type:
            accounts = accounts.filter(account_type=account_type.strip().lower())
        active = request.query_params.get("active")
        if active in ("true", "false"):
            accounts = accounts.filter(is_active=(active == "true"))

        serializer = AccountSerializer(accounts.order_by("code"), many=True)
        return Response(serializer.data)

    def post(self, request, company_id):
        actor = resolve_actor(request, company_id)
        # Permission check happens in command

        input_serializer = AccountCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = create_account(actor, **input_serializer.validated_data)
        if not result.success:
            return error_response(result)

        return Response(AccountSerializer(result.data).data, status=status.HTTP_201_CREATED)


class AccountDetailView(APIView):
    """
    GET /api/companies/<company_id>/accounts/<pk>/ -> retrieve account
    PATCH /api/companies/<company_id>/accounts/<pk>/ -> update account
    DELETE /api/companies/<company_id>/accounts/<pk>/ -> delete account
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, company_id, pk):
        actor = resolve_actor(request, company_id)
        require(actor, Capability.ACCOUNTS_VIEW)

        account = get_object_or_404(
            Account.objects.select_related("parent"), company=actor.company, pk=pk,
        )
        return Response(AccountSerializer(account).data)

    def patch(self, request, company_id, pk):
        actor = resolve_actor(request, company_id)

        input_serializer = AccountUpdateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = update_account(actor, pk, **input_serializer.validated_data)
        if not result.success:
            return error_response(result)

        return Response(AccountSerializer(result.data).data)

    def delete(self, request, company_id, pk):
        actor = resolve_actor(request, company_id)

        result = delete_account(actor, pk)
        if not result.success:
            return error_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)


class AccountBalanceView(APIView):
    """
    GET /api/companies/<company_id>/accounts/<pk>/balance/?as_of_date=YYYY-MM-DD

    Signed balance from posted lines, in the account's natural direction.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, company_id, pk):
        actor = resolve_actor(request, company_id)
        require(actor, Capability.ACCOUNTS_VIEW)

        query = AsOfDateQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        as_of_date = query.validated_data["as_of_date"]

        account = get_object_or_404(Account, company=actor.company, pk=pk)
        balance = account_balance(actor.company.id, account.id, as_of_date=as_of_date)
        return Response({
            "account_id": account.id,
            "code": account.code,
            "name": account.name,
            "account_type": account.account_type,
            "normal_balance": account.normal_balance,
            "as_of_date": as_of_date.isoformat() if as_of_date else None,
            "balance": money_str(balance),
        })


# =============================================================================
# Journal Entry Views
# =============================================================================

class JournalEntryListCreateView(APIView):
    """
    GET /api/companies/<company_id>/journal-entries/ -> list entries
    POST /api/companies/<company_id>/journal-entries/ -> create a draft entry

    GET accepts ?posted=true|false, ?date_from= and ?date_to= filters.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, company_id):
        actor = resolve_actor(request, company_id)
        require(actor, Capability.ACCOUNTING_VIEW)

        query = DateRangeQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        entries = _entries_queryset(actor)
        posted = request.query_params.get("posted")
        if posted == "true":
            entries = entries.posted()
        elif posted == "false":
            entries = entries.drafts()
        if query.validated_data["date_from"]:
            entries = entries.filter(date__gte=query.validated_data["date_from"])
        if query.validated_data["date_to"]:
            entries = entries.filter(date__lte=query.validated_data["date_to"])

        serializer = JournalEntrySerializer(entries.order_by("-date", "-id"), many=True)
        return Response(serializer.data)

    def post(self, request, company_id):
        actor = resolve_actor(request, company_id)

        input_serializer = JournalEntryCreateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        data = input_serializer.validated_data

        result = create_journal_entry(
            actor,
            date=data["date"],
            description=data["description"],
            lines=[dict(line) for line in data["lines"]],
            total_amount=data.get("total_amount"),
            reference=data.get("reference", ""),
            entry_number=data.get("entry_number") or None,
        )
        if not result.success:
            return error_response(result)

        return _entry_response(result.data, status.HTTP_201_CREATED)


class JournalEntryDetailView(APIView):
    """
    GET /api/companies/<company_id>/journal-entries/<pk>/ -> retrieve
    PATCH|PUT /api/companies/<company_id>/journal-entries/<pk>/ -> edit a draft
    DELETE /api/companies/<company_id>/journal-entries/<pk>/ -> delete a draft

    Posted entries answer 409 to PATCH and DELETE.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, company_id, pk):
        actor = resolve_actor(request, company_id)
        require(actor, Capability.ACCOUNTING_VIEW)

        entry = get_object_or_404(_entries_queryset(actor), pk=pk)
        return Response(JournalEntrySerializer(entry).data)

    def patch(self, request, company_id, pk):
        actor = resolve_actor(request, company_id)

        input_serializer = JournalEntryUpdateSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        data = dict(input_serializer.validated_data)
        if "lines" in data:
            data["lines"] = [dict(line) for line in data["lines"]]

        result = update_journal_entry(actor, pk, **data)
        if not result.success:
            return error_response(result)

        return _entry_response(result.data)

    def put(self, request, company_id, pk):
        return self.patch(request, company_id, pk)

    def delete(self, request, company_id, pk):
        actor = resolve_actor(request, company_id)

        result = delete_journal_entry(actor, pk)
        if not result.success:
            return error_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)


class JournalEntryPostView(APIView):
    """POST /api/companies/<company_id>/journal-entries/<pk>/post/"""
    permission_classes = [IsAuthenticated]

    def post(self, request, company_id, pk):
        actor = resolve_actor(request, company_id)

        result = post_journal_entry(actor, pk)
        if not result.success:
            return error_response(result)

        return _entry_response(result.data)


class JournalEntryReverseView(APIView):
    """
    POST /api/companies/<company_id>/journal-entries/<pk>/reverse/

    Body (optional): {"date": "YYYY-MM-DD", "description": "..."}
    Responds with the posted reversal entry.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, company_id, pk):
        actor = resolve_actor(request, company_id)

        input_serializer = JournalEntryReverseSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        result = reverse_journal_entry(
            actor,
            pk,
            date=input_serializer.validated_data["date"],
            description=input_serializer.validated_data["description"] or None,
        )
        if not result.success:
            return error_response(result)

        return _entry_response(result.data["reversal"], status.HTTP_201_CREATED)


class JournalEntryImportView(APIView):
    """
    POST /api/companies/<company_id>/journal-entries/import/

    Body: {"post": false, "entries": [{...}, ...]}

    Each entry is created (and posted when "post" is true) on its own.
    The response lists one result per submitted entry, in order. The
    status is 201 when everything was imported and 207 otherwise. A
    caller without the needed capabilities gets 403.
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [JournalImportThrottle]

    def post(self, request, company_id):
        actor = resolve_actor(request, company_id)

        input_serializer = JournalImportSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)

        batch = import_journal_entries(
            actor,
            input_serializer.validated_data["entries"],
            post=input_serializer.validated_data["post"],
        )
        if batch.results and all(r.kind == ErrorKind.PERMISSION_DENIED for r in batch.results):
            return error_response(batch.results[0])

        results = []
        for index, result in enumerate(batch.results):
            if result.success:
                results.append({
                    "index": index,
                    "success": True,
                    "id": result.data.id,
                    "entry_number": result.data.entry_number,
                    "is_posted": result.data.is_posted,
                })
            else:
                results.append({"index": index, "success": False, "error": result.error.to_dict()})

        return Response(
            {
                "imported": len(batch.succeeded),
                "failed": len(batch.failed),
                "results": results,
            },
            status=status.HTTP_201_CREATED if batch.all_ok else status.HTTP_207_MULTI_STATUS,
        )


# =============================================================================
# Report Views
# =============================================================================

class TrialBalanceView(APIView):
    """GET /api/companies/<company_id>/reports/trial-balance/?as_of_date=YYYY-MM-DD"""
    permission_classes = [IsAuthenticated]

    def get(self, request, company_id):
        actor = resolve_actor(request, company_id)
        require(actor, Capability.REPORTS_VIEW)

        query = AsOfDateQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        report = trial_balance(actor.company.id, as_of_date=query.validated_data["as_of_date"])
        return Response(report.to_dict())


class BalanceSheetView(APIView):
    """GET /api/companies/<company_id>/reports/balance-sheet/?as_of_date=YYYY-MM-DD"""
    permission_classes = [IsAuthenticated]

    def get(self, request, company_id):
        actor = resolve_actor(request, company_id)
        require(actor, Capability.REPORTS_VIEW)

        query = AsOfDateQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        report = balance_sheet(actor.company.id, as_of_date=query.validated_data["as_of_date"])
        return Response(report.to_dict())


class ProfitAndLossView(APIView):
    """GET /api/companies/<company_id>/reports/profit-and-loss/?date_from=&date_to="""
    permission_classes = [IsAuthenticated]

    def get(self, request, company_id):
        actor = resolve_actor(request, company_id)
        require(actor, Capability.REPORTS_VIEW)

        query = DateRangeQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        report = profit_and_loss(
            actor.company.id,
            date_from=query.validated_data["date_from"],
            date_to=query.validated_data["date_to"],
        )
        return Response(report.to_dict())
