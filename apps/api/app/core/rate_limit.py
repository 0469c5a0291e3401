"""Rate limiting configuration for public endpoints."""

import logging
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings
from app.core.redis_client import get_redis_url

logger = logging.getLogger(__name__)

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)
WIDGET_LIMIT = f"{max(settings.RATE_LIMIT_WIDGET, 1)}/minute"


def _storage_uri() -> str:
    if IS_TESTING:
        return "memory://"
    url = get_redis_url()
    if not url:
        return "memory://"
    try:
        import redis

        r = redis.from_url(url, socket_connect_timeout=1)
        r.ping()
        return url
    except Exception as e:
        logger.warning(f"Redis unavailable for rate limiting, using in-memory: {e}")
        return "memory://"


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=_storage_uri(),
    default_limits=DEFAULT_LIMITS,
    enabled=not IS_TESTING,
)
