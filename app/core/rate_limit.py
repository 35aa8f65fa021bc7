"""
Rate limiting (slowapi).

Three shared buckets, keyed on the client address:
- general:   /users, /chat, /rooms, /ai, /faculty-messaging
- auth:      /auth
- link_code: /users/generate-link-code, /users/use-link-code

Limits come from settings.rate_limits and are read on every request.

The key is request.client.host. Behind a reverse proxy, run uvicorn with
--proxy-headers and --forwarded-allow-ips=<proxy ip> so that address is
the real client; X-Forwarded-For from anyone else is ignored.
"""

import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

MESSAGES = {
    "general": "Too many requests from this IP, please try again later.",
    "auth": "Too many authentication attempts, please try again later.",
    "link_code": "Too many link code attempts, please try again later.",
}

limiter = Limiter(key_func=get_remote_address)


def _limit_value(bucket: str):
    def provider() -> str:
        return f"{settings.rate_limits[bucket]} per {settings.rate_limit_window_seconds} second"
    return provider


def _rate_limit_disabled() -> bool:
    return not settings.rate_limit_enabled


def rate_limit(bucket: str):
    """Route decorator counting requests against the named shared bucket."""
    return limiter.shared_limit(
        _limit_value(bucket),
        scope=bucket,
        error_message=MESSAGES[bucket],
        exempt_when=_rate_limit_disabled,
    )


general_rate_limit = rate_limit("general")
auth_rate_limit = rate_limit("auth")
link_code_rate_limit = rate_limit("link_code")


def retry_after_seconds(request: Request) -> int:
    """Seconds until the window that rejected this request resets."""
    current = getattr(request.state, "view_rate_limit", None)
    if not current:
        return settings.rate_limit_window_seconds
    item, keys = current
    reset_at, _ = limiter.limiter.get_window_stats(item, *keys)
    return max(int(reset_at - time.time()) + 1, 1)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(
        "Rate limited request_id=%s path=%s client=%s",
        getattr(request.state, "request_id", "-"),
        request.url.path,
        get_remote_address(request),
    )
    return JSONResponse(
        status_code=429,
        content={"detail": exc.detail},
        headers={"Retry-After": str(retry_after_seconds(request))},
    )
