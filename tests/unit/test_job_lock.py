"""Unit tests for the single-flight job guard."""

import pytest
from libs.common.job_lock import job_lock_name, single_flight
from redis.exceptions import LockError


class FakeLock:
    def __init__(self, store, name, timeout):
        self.store = store
        self.name = name
        self.timeout = timeout

    async def acquire(self):
        if self.name in self.store.held:
            return False
        self.store.held.add(self.name)
        return True

    async def release(self):
        if self.name not in self.store.held:
            raise LockError("Cannot release an unlocked lock")
        self.store.held.discard(self.name)


class FakeRedis:
    """Just enough of redis.asyncio.Redis.lock for the guard."""

    def __init__(self):
        self.held = set()
        self.locks = []

    def lock(self, name, timeout=None, blocking=True):
        assert blocking is False
        lock = FakeLock(self, name, timeout)
        self.locks.append(lock)
        return lock


@pytest.mark.asyncio
@pytest.mark.unit
async def test_second_run_skips_while_first_holds_lock():
    redis = FakeRedis()

    async with single_flight(redis, "fraud_sweep", ttl_seconds=60) as first:
        assert first is True
        async with single_flight(redis, "fraud_sweep", ttl_seconds=60) as second:
            assert second is False
        async with single_flight(redis, "payout_executor", ttl_seconds=60) as other:
            assert other is True

    assert redis.held == set()
    assert redis.locks[0].name == job_lock_name("fraud_sweep")
    assert redis.locks[0].timeout == 60


@pytest.mark.asyncio
@pytest.mark.unit
async def test_lock_released_when_job_raises():
    redis = FakeRedis()

    with pytest.raises(RuntimeError):
        async with single_flight(redis, "view_sync", ttl_seconds=60):
            raise RuntimeError("provider down")

    async with single_flight(redis, "view_sync", ttl_seconds=60) as acquired:
        assert acquired is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_expired_lock_does_not_fail_the_job():
    redis = FakeRedis()

    async with single_flight(redis, "metrics_reconciliation", ttl_seconds=1) as acquired:
        assert acquired is True
        # TTL ran out and the key vanished before the job finished
        redis.held.clear()
