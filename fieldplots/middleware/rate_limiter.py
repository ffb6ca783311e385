"""
Shared rate limiter.

Routers decorate their endpoints with ``limiter.limit(ANALYSIS_RATE_LIMIT)``;
the application registers the same instance on its state.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from fieldplots.config import settings

ANALYSIS_RATE_LIMIT = f"{settings.rate_limit_requests}/minute"

limiter = Limiter(key_func=get_remote_address)
