"""Rate limiting for the public (share link) endpoints."""

import logging
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from matchslot.core.config import settings

# Redis keeps limits shared across workers; in-memory when unavailable (dev/test)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)
BOOKING_LIMIT = f"{max(settings.RATE_LIMIT_BOOKING, 1)}/minute"


def _build_limiter() -> Limiter:
    if IS_TESTING:
        return Limiter(key_func=get_remote_address, storage_uri="memory://", enabled=False)
    try:
        import redis

        client = redis.from_url(REDIS_URL, socket_connect_timeout=1)
        client.ping()
        storage_uri = REDIS_URL
    except Exception as exc:
        logging.warning("Redis unavailable for rate limiting, using in-memory: %s", exc)
        storage_uri = "memory://"
    return Limiter(
        key_func=get_remote_address,
        storage_uri=storage_uri,
        default_limits=DEFAULT_LIMITS,
    )


limiter = _build_limiter()
