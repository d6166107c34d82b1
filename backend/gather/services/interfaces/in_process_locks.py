"""
In-process lock strategy: one asyncio.Lock per event id.
"""

import asyncio
import time
from collections import defaultdict
from contextlib import asynccontextmanager

from gather.core.logging import get_logger
from gather.core.metrics import record_lock_timeout, record_lock_wait
from gather.domain.errors import CapacityRaceConflict
from gather.services.interfaces.locks import EventLocks

logger = get_logger(__name__)


class InProcessEventLocks(EventLocks):
    """
    asyncio.Lock keyed by event id.

    Use when:
    - A single API process owns the registration ledger
    - Tests and local development
    """

    backend = "memory"

    def __init__(self, timeout_seconds: float = 5.0):
        self.timeout_seconds = timeout_seconds
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, event_id: int):
        lock = self._locks[event_id]
        start = time.perf_counter()
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            record_lock_timeout(self.backend)
            logger.warning("event_lock_timeout", event_id=event_id, backend=self.backend)
            raise CapacityRaceConflict(event_id, reason="lock_timeout")
        record_lock_wait(self.backend, time.perf_counter() - start)
        try:
            yield
        finally:
            lock.release()
