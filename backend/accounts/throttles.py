# accounts/throttles.py
"""
Rate limiting classes for expensive or sensitive endpoints.

These throttles protect against:
- Brute force attacks (login)
- Oversized write bursts (journal import)
"""

from rest_framework.throttling import AnonRateThrottle, UserRateThrottle


class LoginThrottle(AnonRateThrottle):
    """
    Rate limit login attempts.

    Default: 10 attempts per minute per IP.
    Configured via settings.REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']['login']
    """
    scope = 'login'


class JournalImportThrottle(UserRateThrottle):
    """
    Rate limit batch journal imports per user.

    Default: 30 imports per hour.
    Configured via settings.REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']['journal_import']
    """
    scope = 'journal_import'
