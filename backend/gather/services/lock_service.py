"""
Distributed per-event lock using Redis.
Implements EventLocks for deployments with more than one API worker.

Failure mode:
  If Redis is unreachable the request fails closed with CapacityRaceConflict.
  The caller may retry; no registration is written without the lock.
"""

import time
from contextlib import asynccontextmanager

from redis.exceptions import LockError, RedisError

from gather.core.logging import get_logger
from gather.core.metrics import record_lock_timeout, record_lock_wait
from gather.domain.errors import CapacityRaceConflict
from gather.infrastructure.redis_client import get_redis
from gather.services.interfaces.locks import EventLocks

logger = get_logger(__name__)

LOCK_KEY_PREFIX = "registration:event"


class RedisEventLocks(EventLocks):
    """
    Redis-based per-event lock.

    ttl_seconds bounds how long a crashed holder can block an event;
    timeout_seconds bounds how long a request waits for the lock.
    """

    backend = "redis"

    def __init__(self, timeout_seconds: float = 5.0, ttl_seconds: float = 30.0, client=None):
        self.timeout_seconds = timeout_seconds
        self.ttl_seconds = ttl_seconds
        self.redis = client if client is not None else get_redis()

    @staticmethod
    def lock_key(event_id: int) -> str:
        return f"{LOCK_KEY_PREFIX}:{event_id}"

    @asynccontextmanager
    async def hold(self, event_id: int):
        lock = self.redis.lock(
            self.lock_key(event_id),
            timeout=self.ttl_seconds,
            blocking_timeout=self.timeout_seconds,
        )
        start = time.perf_counter()
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.error("event_lock_backend_error", event_id=event_id, error=str(e))
            raise CapacityRaceConflict(event_id, reason="lock_backend_unavailable") from e

        if not acquired:
            record_lock_timeout(self.backend)
            logger.warning("event_lock_timeout", event_id=event_id, backend=self.backend)
            raise CapacityRaceConflict(event_id, reason="lock_timeout")

        record_lock_wait(self.backend, time.perf_counter() - start)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # TTL elapsed while held; the key is already gone or owned by someone else
                logger.warning("event_lock_expired_before_release", event_id=event_id)
