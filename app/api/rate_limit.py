"""
Per-client rate limiting for the routes that call upstream services.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

UPSTREAM_RATE_LIMIT = f"{settings.rate_limit_requests}/minute"
