"""
Per-event lock interface.
Allows swapping between process-local and distributed serialization.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager


class EventLocks(ABC):
    """
    Serializes registration decisions per event.

    Implementations:
    - InProcessEventLocks: asyncio.Lock per event, single-process deployments
    - RedisEventLocks: Redis lock per event, any number of workers
    """

    backend: str = "abstract"

    @abstractmethod
    def hold(self, event_id: int) -> AsyncContextManager[None]:
        """
        Hold the lock for one event for the duration of the block.

        Released on every exit path. Raises CapacityRaceConflict if the lock
        cannot be acquired within the configured timeout.
        """
        ...
