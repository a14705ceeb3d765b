"""
Health check endpoints for operations monitoring.

Checks:
- Database connectivity (all configured databases)
- Ledger integrity (posted entries whose lines do not balance)

Endpoints:
- /api/health/        - Full health report
- /api/health/live    - Liveness probe (is the process running?)
- /api/health/ready   - Readiness probe (can we serve traffic?)
"""
import logging
import time
from typing import Dict, Any

from django.conf import settings
from django.db import DatabaseError, connections
from django.db.models import F, Sum
from django.http import JsonResponse
from django.views import View

logger = logging.getLogger(__name__)


class HealthCheck:
    """Health check implementation."""

    @staticmethod
    def check_database(alias: str = "default") -> Dict[str, Any]:
        """Check database connectivity."""
        start = time.time()
        try:
            conn = connections[alias]
            conn.ensure_connection()
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            return {
                "status": "healthy",
                "alias": alias,
                "duration_ms": round((time.time() - start) * 1000, 2),
            }
        except DatabaseError as e:
            logger.error("Database health check failed", extra={"alias": alias, "error": str(e)})
            return {
                "status": "unhealthy",
                "alias": alias,
                "error": str(e),
                "duration_ms": round((time.time() - start) * 1000, 2),
            }

    @staticmethod
    def check_all_databases() -> Dict[str, Any]:
        results = {}
        all_healthy = True

        for alias in settings.DATABASES.keys():
            result = HealthCheck.check_database(alias)
            results[alias] = result
            if result["status"] != "healthy":
                all_healthy = False

        return {
            "status": "healthy" if all_healthy else "degraded",
            "databases": results,
        }

    @staticmethod
    def check_ledger() -> Dict[str, Any]:
        """
        Count posted entries whose debit and credit totals differ.

        Any such entry means a write bypassed the validator; the report
        is unhealthy until it is investigated.
        """
        from accounting.models import JournalEntry

        try:
            unbalanced = (
                JournalEntry.objects.posted()
                .annotate(debits=Sum("lines__debit"), credits=Sum("lines__credit"))
                .exclude(debits=F("credits"))
                .values_list("company_id", "entry_number")
            )
            offenders = list(unbalanced[:10])
        except DatabaseError as e:
            return {"status": "error", "error": str(e)}

        if offenders:
            logger.critical("Unbalanced posted entries found", extra={"entries": offenders})
            return {
                "status": "unhealthy",
                "unbalanced_entries": [
                    {"company_id": company_id, "entry_number": number}
                    for company_id, number in offenders
                ],
            }
        return {"status": "healthy"}

    @staticmethod
    def get_full_health() -> Dict[str, Any]:
        """Get comprehensive health report."""
        checks = {
            "databases": HealthCheck.check_all_databases(),
            "ledger": HealthCheck.check_ledger(),
        }

        statuses = [c.get("status", "unknown") for c in checks.values()]
        if all(s == "healthy" for s in statuses):
            overall = "healthy"
        elif any(s == "unhealthy" for s in statuses):
            overall = "unhealthy"
        else:
            overall = "degraded"

        return {
            "status": overall,
            "checks": checks,
            "version": getattr(settings, "VERSION", "unknown"),
            "environment": "production" if not settings.DEBUG else "development",
        }


class LivenessView(View):
    """Returns 200 if the process is running. Touches nothing external."""

    def get(self, request):
        return JsonResponse({"status": "alive"})


class ReadinessView(View):
    """Returns 200 if the default database answers."""

    def get(self, request):
        db_check = HealthCheck.check_database("default")

        if db_check["status"] == "healthy":
            return JsonResponse({"status": "ready", "database": db_check})
        return JsonResponse({"status": "not_ready", "database": db_check}, status=503)


class FullHealthView(View):
    """
    Full health report for debugging and dashboards.

    Should be protected at network level in production.
    """

    def get(self, request):
        health = HealthCheck.get_full_health()

        status_code = 200 if health["status"] == "healthy" else 503
        return JsonResponse(health, status=status_code)
