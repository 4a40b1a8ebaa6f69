"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/account.py (to apply per-route limits with @limiter.limit()).

A single shared instance keeps one in-memory counter store for every route.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def credential_rate_limit() -> str:
    """Limit for endpoints that accept credentials (login, refresh).

    Resolved per request so tests can raise it through LOGIN_RATE_LIMIT.
    """
    return get_settings().login_rate_limit
