"""
Failed login tracking for brute-force protection.

Attempts are counted per ``email::client_ip`` inside a sliding window. Reaching
LOGIN_MAX_ATTEMPTS locks the key for LOGIN_LOCKOUT_MINUTES. Redis is used when
REDIS_URL is set so that counts are shared between workers; otherwise state is
kept in process.
"""

import asyncio
import logging
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, Optional, Tuple

from app.core.config import settings

logger = logging.getLogger("perftracker.login_tracker")


def login_key(email: str, client_ip: Optional[str]) -> str:
    return f"{(email or '').strip().lower()}::{client_ip or 'unknown'}"


class LoginTrackerBackend:
    """Interface shared by the storage backends."""

    async def record_failed_attempt(self, key: str) -> int:
        """Record a failed attempt and return the count inside the window."""
        raise NotImplementedError

    async def is_locked(self, key: str) -> Tuple[bool, int]:
        """Return (locked, remaining_seconds)."""
        raise NotImplementedError

    async def set_locked(self, key: str, duration_seconds: int) -> None:
        raise NotImplementedError

    async def reset(self, key: str) -> None:
        raise NotImplementedError


class InMemoryLoginTracker(LoginTrackerBackend):
    """Process-local tracker. Counts are not shared between workers."""

    def __init__(self):
        self._attempts: Dict[str, Deque[datetime]] = {}
        self._locked_until: Dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    def _prune(self, key: str, now: datetime) -> None:
        cutoff = now - timedelta(minutes=settings.LOGIN_ATTEMPT_WINDOW_MINUTES)
        attempts = self._attempts.get(key)
        while attempts and attempts[0] < cutoff:
            attempts.popleft()

    async def record_failed_attempt(self, key: str) -> int:
        async with self._lock:
            now = datetime.utcnow()
            self._prune(key, now)
            attempts = self._attempts.setdefault(key, deque())
            attempts.append(now)
            return len(attempts)

    async def is_locked(self, key: str) -> Tuple[bool, int]:
        async with self._lock:
            locked_until = self._locked_until.get(key)
            if locked_until is None:
                return False, 0
            remaining = int((locked_until - datetime.utcnow()).total_seconds())
            if remaining > 0:
                return True, remaining
            self._locked_until.pop(key, None)
            return False, 0

    async def set_locked(self, key: str, duration_seconds: int) -> None:
        async with self._lock:
            self._locked_until[key] = datetime.utcnow() + timedelta(seconds=duration_seconds)

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._attempts.pop(key, None)
            self._locked_until.pop(key, None)


class RedisLoginTracker(LoginTrackerBackend):
    """
    Redis-backed tracker. Attempts use INCR with a window TTL and the lock
    is a separate key with the lockout TTL.
    """

    ATTEMPTS_PREFIX = "perftracker:login:attempts:"
    LOCK_PREFIX = "perftracker:login:locked:"

    def __init__(self, redis_url: str):
        self._url = redis_url
        self._redis = None
        self._connected = False

    async def connect(self) -> bool:
        if self._connected and self._redis is not None:
            return True

        import redis.asyncio as redis

        try:
            self._redis = redis.from_url(self._url, encoding="utf-8", decode_responses=True)
            await self._redis.ping()
        except Exception as e:
            logger.warning(f"Failed to connect to Redis for login tracking: {e}")
            self._connected = False
            return False

        self._connected = True
        logger.info("Redis login tracker connected")
        return True

    async def record_failed_attempt(self, key: str) -> int:
        attempts_key = f"{self.ATTEMPTS_PREFIX}{key}"
        pipe = self._redis.pipeline()
        pipe.incr(attempts_key)
        pipe.expire(attempts_key, settings.LOGIN_ATTEMPT_WINDOW_MINUTES * 60)
        results = await pipe.execute()
        return int(results[0])

    async def is_locked(self, key: str) -> Tuple[bool, int]:
        ttl = await self._redis.ttl(f"{self.LOCK_PREFIX}{key}")
        if ttl and ttl > 0:
            return True, int(ttl)
        return False, 0

    async def set_locked(self, key: str, duration_seconds: int) -> None:
        await self._redis.setex(f"{self.LOCK_PREFIX}{key}", duration_seconds, "locked")

    async def reset(self, key: str) -> None:
        await self._redis.delete(f"{self.ATTEMPTS_PREFIX}{key}", f"{self.LOCK_PREFIX}{key}")


class HybridLoginTracker:
    """
    Uses Redis when it is configured and reachable, the in-memory tracker
    otherwise. Redis errors on a single call fall through to memory.
    """

    def __init__(self, redis_url: Optional[str] = None):
        self._redis_url = redis_url or settings.REDIS_URL
        self._redis_tracker: Optional[RedisLoginTracker] = None
        self._memory_tracker = InMemoryLoginTracker()
        self._fallback_warned = False

    async def _backend(self) -> LoginTrackerBackend:
        if not self._redis_url:
            return self._memory_tracker

        if self._redis_tracker is None:
            self._redis_tracker = RedisLoginTracker(self._redis_url)

        if await self._redis_tracker.connect():
            return self._redis_tracker

        if not self._fallback_warned:
            logger.warning(
                "Redis unavailable for login tracking, using in-memory fallback. "
                "Failed attempts will not be shared between instances."
            )
            self._fallback_warned = True
        return self._memory_tracker

    async def _call(self, method: str, *args):
        backend = await self._backend()
        try:
            return await getattr(backend, method)(*args)
        except Exception as e:
            if backend is self._memory_tracker:
                raise
            logger.error(f"Redis login tracker {method} failed: {e}")
            return await getattr(self._memory_tracker, method)(*args)

    async def record_failed_attempt(self, key: str) -> int:
        return await self._call("record_failed_attempt", key)

    async def is_locked(self, key: str) -> Tuple[bool, int]:
        return await self._call("is_locked", key)

    async def set_locked(self, key: str, duration_seconds: int) -> None:
        await self._call("set_locked", key, duration_seconds)

    async def reset(self, key: str) -> None:
        await self._call("reset", key)

    async def register_failure(self, key: str) -> bool:
        """
        Count a failed login. Returns True when this attempt triggered a lockout.
        """
        attempts = await self.record_failed_attempt(key)
        if attempts >= settings.LOGIN_MAX_ATTEMPTS:
            await self.set_locked(key, settings.LOGIN_LOCKOUT_MINUTES * 60)
            logger.warning(f"Login locked for {key} after {attempts} failed attempts")
            return True
        return False


_login_tracker: Optional[HybridLoginTracker] = None


def get_login_tracker() -> HybridLoginTracker:
    """Process-wide tracker instance."""
    global _login_tracker
    if _login_tracker is None:
        _login_tracker = HybridLoginTracker()
    return _login_tracker
