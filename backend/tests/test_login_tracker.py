"""
Tests for app/core/login_tracker.py - failed login tracking and lockout.
"""
import pytest
from datetime import datetime, timedelta
from collections import deque
from unittest.mock import AsyncMock, MagicMock, patch
import asyncio


class TestLoginKey:

    def test_normalises_email_and_includes_ip(self):
        from app.core.login_tracker import login_key

        assert login_key("  Boss@Example.COM ", "10.0.0.1") == "boss@example.com::10.0.0.1"

    def test_missing_ip(self):
        from app.core.login_tracker import login_key

        assert login_key("a@b.com", None) == "a@b.com::unknown"


class TestInMemoryLoginTracker:
    """Test the in-memory login tracker."""

    @pytest.mark.asyncio
    async def test_record_failed_attempt_increments_count(self):
        from app.core.login_tracker import InMemoryLoginTracker

        tracker = InMemoryLoginTracker()
        key = "test_user::127.0.0.1"

        assert await tracker.record_failed_attempt(key) == 1
        assert await tracker.record_failed_attempt(key) == 2
        assert await tracker.record_failed_attempt(key) == 3

    @pytest.mark.asyncio
    async def test_reset_clears_attempts_and_lock(self):
        from app.core.login_tracker import InMemoryLoginTracker

        tracker = InMemoryLoginTracker()
        key = "reset_test::127.0.0.1"

        await tracker.record_failed_attempt(key)
        await tracker.set_locked(key, 600)
        await tracker.reset(key)

        assert await tracker.is_locked(key) == (False, 0)
        assert await tracker.record_failed_attempt(key) == 1

    @pytest.mark.asyncio
    async def test_set_locked_and_check(self):
        from app.core.login_tracker import InMemoryLoginTracker

        tracker = InMemoryLoginTracker()
        key = "locked_user::127.0.0.1"

        await tracker.set_locked(key, 60)
        is_locked, remaining = await tracker.is_locked(key)

        assert is_locked is True
        assert 0 < remaining <= 60

    @pytest.mark.asyncio
    async def test_expired_lock_is_cleared(self):
        from app.core.login_tracker import InMemoryLoginTracker

        tracker = InMemoryLoginTracker()
        key = "expired_lock::127.0.0.1"

        await tracker.set_locked(key, 0)
        await asyncio.sleep(0.01)

        is_locked, _ = await tracker.is_locked(key)
        assert is_locked is False

    @pytest.mark.asyncio
    async def test_prune_old_attempts(self):
        """Attempts outside the window no longer count."""
        from app.core import config
        from app.core.login_tracker import InMemoryLoginTracker

        tracker = InMemoryLoginTracker()
        key = "prune_test::127.0.0.1"
        old_time = datetime.utcnow() - timedelta(minutes=5)
        tracker._attempts[key] = deque([old_time, old_time])

        with patch.object(config.settings, "LOGIN_ATTEMPT_WINDOW_MINUTES", 1):
            count = await tracker.record_failed_attempt(key)

        assert count == 1


class TestRedisLoginTracker:
    """Test the Redis-backed login tracker."""

    @pytest.fixture
    def mock_redis(self):
        redis = MagicMock()
        pipeline = MagicMock()
        pipeline.execute = AsyncMock(return_value=[3, True])
        redis.pipeline.return_value = pipeline
        redis.ttl = AsyncMock(return_value=-2)
        redis.setex = AsyncMock()
        redis.delete = AsyncMock()
        return redis

    def _tracker(self, mock_redis):
        from app.core.login_tracker import RedisLoginTracker

        tracker = RedisLoginTracker("redis://localhost:6379/0")
        tracker._redis = mock_redis
        tracker._connected = True
        return tracker

    @pytest.mark.asyncio
    async def test_record_failed_attempt_uses_pipeline(self, mock_redis):
        tracker = self._tracker(mock_redis)

        count = await tracker.record_failed_attempt("redis_test::127.0.0.1")

        assert count == 3
        pipeline = mock_redis.pipeline.return_value
        pipeline.incr.assert_called_once_with("perftracker:login:attempts:redis_test::127.0.0.1")
        pipeline.expire.assert_called_once()

    @pytest.mark.asyncio
    async def test_is_locked_reads_ttl(self, mock_redis):
        tracker = self._tracker(mock_redis)

        assert await tracker.is_locked("k") == (False, 0)

        mock_redis.ttl.return_value = 300
        assert await tracker.is_locked("k") == (True, 300)

    @pytest.mark.asyncio
    async def test_set_locked_stores_with_expiry(self, mock_redis):
        tracker = self._tracker(mock_redis)

        await tracker.set_locked("k", 900)

        mock_redis.setex.assert_awaited_once_with("perftracker:login:locked:k", 900, "locked")

    @pytest.mark.asyncio
    async def test_reset_deletes_both_keys(self, mock_redis):
        tracker = self._tracker(mock_redis)

        await tracker.reset("k")

        mock_redis.delete.assert_awaited_once_with(
            "perftracker:login:attempts:k", "perftracker:login:locked:k"
        )


class TestHybridLoginTracker:
    """Redis when reachable, memory otherwise."""

    @pytest.mark.asyncio
    async def test_uses_memory_when_no_redis(self):
        from app.core import config
        from app.core.login_tracker import HybridLoginTracker

        with patch.object(config.settings, "REDIS_URL", None):
            tracker = HybridLoginTracker()

        assert await tracker.record_failed_attempt("memory::1.2.3.4") == 1

    @pytest.mark.asyncio
    async def test_falls_back_to_memory_on_redis_error(self):
        from app.core.login_tracker import HybridLoginTracker, RedisLoginTracker

        tracker = HybridLoginTracker(redis_url="redis://localhost:6379/0")
        redis_tracker = RedisLoginTracker("redis://localhost:6379/0")
        redis_tracker.connect = AsyncMock(return_value=True)
        redis_tracker.record_failed_attempt = AsyncMock(side_effect=Exception("Redis connection failed"))
        tracker._redis_tracker = redis_tracker

        count = await tracker.record_failed_attempt("fallback::1.2.3.4")

        assert count == 1

    @pytest.mark.asyncio
    async def test_falls_back_when_redis_unreachable(self):
        from app.core.login_tracker import HybridLoginTracker, RedisLoginTracker

        tracker = HybridLoginTracker(redis_url="redis://localhost:6379/0")
        redis_tracker = RedisLoginTracker("redis://localhost:6379/0")
        redis_tracker.connect = AsyncMock(return_value=False)
        tracker._redis_tracker = redis_tracker

        await tracker.set_locked("k", 60)

        assert (await tracker.is_locked("k"))[0] is True

    @pytest.mark.asyncio
    async def test_register_failure_locks_at_max_attempts(self):
        from app.core import config
        from app.core.login_tracker import HybridLoginTracker

        tracker = HybridLoginTracker()
        with patch.object(config.settings, "LOGIN_MAX_ATTEMPTS", 3):
            results = [await tracker.register_failure("k") for _ in range(3)]

        assert results == [False, False, True]
        assert (await tracker.is_locked("k"))[0] is True


class TestGetLoginTracker:

    def test_returns_same_instance(self):
        from app.core.login_tracker import get_login_tracker

        assert get_login_tracker() is get_login_tracker()
