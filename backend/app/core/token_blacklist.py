"""
Access token blacklist used on logout.

Redis-backed when REDIS_URL is configured, with an in-memory fallback for
development and single-instance deployments. Entries live only until the
blacklisted token would have expired anyway.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, Optional

logger = logging.getLogger("perftracker.token_blacklist")

_memory_blacklist: Dict[str, datetime] = {}
_last_cleanup: datetime = datetime.utcnow()
_cleanup_interval = timedelta(minutes=5)
_blacklist_lock = threading.Lock()

# Redis client (lazy-initialized)
_redis_client: Optional[object] = None
_redis_available: Optional[bool] = None

BLACKLIST_KEY_PREFIX = "perftracker:token:blacklist:"


def _get_redis_client():
    """Return the shared Redis client, or None when Redis is not configured."""
    global _redis_client, _redis_available

    if _redis_available is False:
        return None

    if _redis_client is not None:
        return _redis_client

    from app.core.config import settings

    if not settings.REDIS_URL:
        _redis_available = False
        logger.info("Redis URL not configured, using in-memory token blacklist")
        return None

    import redis.asyncio as aioredis

    redis_kwargs = {
        "decode_responses": True,
        "socket_connect_timeout": 5,
        "socket_timeout": 5,
    }
    if settings.REDIS_TLS_CA_CERT:
        import ssl
        redis_kwargs["ssl"] = ssl.create_default_context(cafile=settings.REDIS_TLS_CA_CERT)

    try:
        _redis_client = aioredis.from_url(settings.REDIS_URL, **redis_kwargs)
    except ValueError as e:
        logger.warning(f"Invalid REDIS_URL for token blacklist: {e}, using in-memory fallback")
        _redis_available = False
        return None

    _redis_available = True
    logger.info("Token blacklist using Redis backend")
    return _redis_client


def _cleanup_expired_tokens() -> None:
    """Drop expired in-memory entries, at most once per cleanup interval."""
    global _last_cleanup
    now = datetime.utcnow()

    if now - _last_cleanup < _cleanup_interval:
        return

    with _blacklist_lock:
        expired_tokens = [
            token for token, expiry in _memory_blacklist.items()
            if expiry < now
        ]
        for token in expired_tokens:
            _memory_blacklist.pop(token, None)

        if expired_tokens:
            logger.debug(f"Cleaned up {len(expired_tokens)} expired tokens from in-memory blacklist")

        _last_cleanup = now


async def blacklist_token_async(token: str, expires_at: datetime) -> None:
    """
    Blacklist an access token until ``expires_at``.

    Already expired tokens are ignored since they are rejected anyway.
    """
    now = datetime.utcnow()
    if expires_at <= now:
        return

    redis_client = _get_redis_client()

    if redis_client:
        ttl = int((expires_at - now).total_seconds())
        try:
            await redis_client.setex(f"{BLACKLIST_KEY_PREFIX}{token}", max(ttl, 1), "1")
            logger.debug(f"Token blacklisted in Redis until {expires_at.isoformat()}")
            return
        except Exception as e:
            logger.warning(f"Redis blacklist failed, falling back to memory: {e}")

    blacklist_token(token, expires_at)


def blacklist_token(token: str, expires_at: datetime) -> None:
    """In-memory variant of :func:`blacklist_token_async`."""
    if expires_at > datetime.utcnow():
        with _blacklist_lock:
            _memory_blacklist[token] = expires_at
        logger.debug(f"Token blacklisted in memory until {expires_at.isoformat()}")

    _cleanup_expired_tokens()


async def is_token_blacklisted_async(token: str) -> bool:
    redis_client = _get_redis_client()

    if redis_client:
        try:
            result = await redis_client.exists(f"{BLACKLIST_KEY_PREFIX}{token}")
            return bool(result)
        except Exception as e:
            logger.warning(f"Redis check failed, falling back to memory: {e}")

    return is_token_blacklisted(token)


def is_token_blacklisted(token: str) -> bool:
    with _blacklist_lock:
        expiry = _memory_blacklist.get(token)
        if expiry is None:
            return False

        if expiry < datetime.utcnow():
            _memory_blacklist.pop(token, None)
            return False

        return True


def clear_blacklist() -> None:
    """Clear the in-memory blacklist. Mainly for tests."""
    with _blacklist_lock:
        _memory_blacklist.clear()
    logger.warning("Token blacklist cleared from memory")
