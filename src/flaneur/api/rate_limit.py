"""Rate limiting configuration for the Flaneur API."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from flaneur.settings import settings


def client_ip(request: Request) -> str:
    """Visitor IP: first X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return get_remote_address(request) or "unknown"


# Single shared limiter instance - disabled in non-production environments
limiter = Limiter(
    key_func=client_ip,
    default_limits=["200/minute"],
    storage_uri="memory://",
    enabled=settings.env == "production",
)
