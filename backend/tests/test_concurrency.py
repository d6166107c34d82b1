"""
Concurrency tests: the last-seat race and promotion/registration races.

The in-memory stores yield to the event loop on every call, so without the
per-event lock these interleavings would over-admit.
"""

import asyncio
from contextlib import asynccontextmanager

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from gather.domain import RegistrationCounts, RegistrationStatus
from gather.domain.errors import CapacityRaceConflict
from gather.services.interfaces.in_process_locks import InProcessEventLocks
from gather.services.interfaces.locks import EventLocks
from gather.services.lock_service import RedisEventLocks
from gather.services.registration_service import RegistrationService


class NoLocks(EventLocks):
    backend = "none"

    @asynccontextmanager
    async def hold(self, event_id: int):
        yield


class FlakyLocks(EventLocks):
    """Times out the first `failures` acquisitions, then behaves."""

    backend = "flaky"

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    @asynccontextmanager
    async def hold(self, event_id: int):
        self.calls += 1
        if self.calls <= self.failures:
            raise CapacityRaceConflict(event_id)
        yield


async def register_many(service, event_id: int, user_ids):
    return await asyncio.gather(*[
        service.register(event_id, user_id, f"user{user_id}@example.com", f"User {user_id}")
        for user_id in user_ids
    ])


@pytest.mark.asyncio
async def test_fifty_concurrent_requests_capacity_ten(service, ledger, notifier):
    """Exactly 10 confirmed, 40 waitlisted, no duplicates, no over-admission."""
    results = await register_many(service, 2, range(1, 51))

    statuses = [r.status for r in results]
    assert statuses.count(RegistrationStatus.CONFIRMED) == 10
    assert statuses.count(RegistrationStatus.WAITLIST) == 40
    assert len({r.id for r in results}) == 50
    assert len({r.user_id for r in results}) == 50
    assert await service.get_counts(2) == RegistrationCounts(confirmed=10, waitlist=40)

    waitlist = await ledger.list_waitlist_ordered(2)
    assert [r.queue_key for r in waitlist] == sorted(r.queue_key for r in waitlist)
    await notifier.drain()


@pytest.mark.asyncio
async def test_commit_time_recheck_catches_race_without_lock(catalog, ledger, notifier):
    """With no lock at all, the post-insert recount still refuses to over-admit."""
    service = RegistrationService(catalog, ledger, NoLocks(), notifier, max_attempts=1)

    results = await asyncio.gather(
        *[service.register(2, uid, f"user{uid}@example.com", f"User {uid}") for uid in range(1, 51)],
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, CapacityRaceConflict)]
    assert conflicts
    assert await ledger.count_by_status(2, RegistrationStatus.CONFIRMED) <= 10
    await notifier.drain()


@pytest.mark.asyncio
async def test_concurrent_duplicate_requests_admit_once(service, ledger, notifier):
    results = await asyncio.gather(
        *[service.register(2, 7, "user7@example.com", "User 7") for _ in range(5)],
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert await ledger.count_by_status(2, RegistrationStatus.CONFIRMED) == 1
    await notifier.drain()


@pytest.mark.asyncio
async def test_cancel_and_register_race_for_freed_slot(service, ledger, notifier):
    """A promotion and a fresh request never both claim the same slot."""
    first = await register_many(service, 1, [1, 2])
    await register_many(service, 1, [3])

    await asyncio.gather(
        service.cancel(first[0].id),
        *[service.register(1, uid, f"user{uid}@example.com", f"User {uid}") for uid in range(10, 20)],
    )

    assert await ledger.count_by_status(1, RegistrationStatus.CONFIRMED) == 2
    user3 = await service.get_user_registration(1, 3)
    assert user3.status is RegistrationStatus.CONFIRMED
    await notifier.drain()


@pytest.mark.asyncio
async def test_concurrent_cancellations_promote_fifo(service, ledger, notifier):
    confirmed = await register_many(service, 2, range(1, 11))
    for uid in range(100, 105):
        await service.register(2, uid, f"user{uid}@example.com", f"User {uid}")

    await asyncio.gather(*[service.cancel(r.id) for r in confirmed[:3]])

    assert await ledger.count_by_status(2, RegistrationStatus.CONFIRMED) == 10
    remaining = [r.user_id for r in await ledger.list_waitlist_ordered(2)]
    assert remaining == [103, 104]
    await notifier.drain()


@pytest.mark.asyncio
async def test_lock_timeout_raises_capacity_race_conflict(catalog, ledger, notifier):
    locks = InProcessEventLocks(timeout_seconds=0.01)
    service = RegistrationService(catalog, ledger, locks, notifier, max_attempts=2, backoff_base_seconds=0.001)

    async with locks.hold(1):
        with pytest.raises(CapacityRaceConflict):
            await service.register(1, 1, "user1@example.com", "User 1")

    assert await ledger.list_by_event(1) == []


@pytest.mark.asyncio
async def test_transient_conflict_is_retried(catalog, ledger, notifier):
    service = RegistrationService(catalog, ledger, FlakyLocks(failures=2), notifier, max_attempts=3,
                                  backoff_base_seconds=0.001)

    registration = await service.register(1, 1, "user1@example.com", "User 1")

    assert registration.status is RegistrationStatus.CONFIRMED
    assert service.locks.calls == 3
    await notifier.drain()


@pytest.mark.asyncio
async def test_conflict_after_retries_exhausted(catalog, ledger, notifier):
    service = RegistrationService(catalog, ledger, FlakyLocks(failures=5), notifier, max_attempts=3,
                                  backoff_base_seconds=0.001)

    with pytest.raises(CapacityRaceConflict):
        await service.register(1, 1, "user1@example.com", "User 1")

    assert service.locks.calls == 3
    assert await ledger.list_by_event(1) == []


class StubRedisLock:
    def __init__(self, acquired=True, error=None):
        self.acquired = acquired
        self.error = error
        self.released = False

    async def acquire(self):
        if self.error:
            raise self.error
        return self.acquired

    async def release(self):
        self.released = True


class StubRedis:
    def __init__(self, lock: StubRedisLock):
        self._lock = lock
        self.keys = []

    def lock(self, name, timeout=None, blocking_timeout=None):
        self.keys.append(name)
        return self._lock


@pytest.mark.asyncio
async def test_redis_lock_released_after_block():
    stub = StubRedisLock()
    client = StubRedis(stub)
    locks = RedisEventLocks(client=client)

    async with locks.hold(4):
        assert not stub.released

    assert stub.released
    assert client.keys == ["registration:event:4"]


@pytest.mark.asyncio
@pytest.mark.parametrize("stub,reason", [
    (StubRedisLock(acquired=False), "lock_timeout"),
    (StubRedisLock(error=RedisConnectionError("refused")), "lock_backend_unavailable"),
])
async def test_redis_lock_failures_raise_conflict(stub, reason):
    locks = RedisEventLocks(client=StubRedis(stub))

    with pytest.raises(CapacityRaceConflict) as exc_info:
        async with locks.hold(4):
            pass

    assert exc_info.value.reason == reason
    assert not stub.released
