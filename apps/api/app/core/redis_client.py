"""Redis client helpers with connection pooling.

Redis backs the round-robin rotation cursor and the realtime ticket-event
backplane when several API processes run side by side. Without REDIS_URL the
app falls back to process-local state.
"""

from __future__ import annotations

from app.core.config import settings

REDIS_DISABLED_URL = "memory://"
DEFAULT_REDIS_MAX_CONNECTIONS = 20
DEFAULT_REDIS_CONNECT_TIMEOUT_SECONDS = 2.0
DEFAULT_REDIS_SOCKET_TIMEOUT_SECONDS = 2.0

_sync_client = None
_async_client = None


def get_redis_url() -> str | None:
    url = (settings.REDIS_URL or "").strip()
    if not url or url.lower() == REDIS_DISABLED_URL:
        return None
    return url


def get_sync_redis_client():
    url = get_redis_url()
    if not url:
        return None

    global _sync_client
    if _sync_client is None:
        import redis

        pool = redis.ConnectionPool.from_url(
            url,
            max_connections=DEFAULT_REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=DEFAULT_REDIS_CONNECT_TIMEOUT_SECONDS,
            socket_timeout=DEFAULT_REDIS_SOCKET_TIMEOUT_SECONDS,
            retry_on_timeout=True,
        )
        _sync_client = redis.Redis(connection_pool=pool)
    return _sync_client


def get_async_redis_client():
    url = get_redis_url()
    if not url:
        return None

    global _async_client
    if _async_client is None:
        import redis.asyncio as redis

        # Pub/sub listeners block on reads, so no socket timeout here.
        pool = redis.ConnectionPool.from_url(
            url,
            max_connections=DEFAULT_REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=DEFAULT_REDIS_CONNECT_TIMEOUT_SECONDS,
        )
        _async_client = redis.Redis(connection_pool=pool)
    return _async_client


def reset_clients() -> None:
    """Drop cached clients (used when settings change, e.g. in tests)."""
    global _sync_client, _async_client
    _sync_client = None
    _async_client = None
