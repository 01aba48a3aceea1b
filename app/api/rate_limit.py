"""
Shared rate limiter.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings


limiter = Limiter(key_func=get_remote_address)


def write_limit() -> str:
    """Limit for endpoints that write to the dataset store, read per request."""
    return f"{settings.rate_limit_requests}/minute"
