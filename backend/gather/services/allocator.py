"""
Capacity allocation: confirmed or waitlist for a new registration request.

The decision is only meaningful inside the event's critical section
(RegistrationService holds the per-event lock and the ledger's atomic()
block around the decision and the insert that follows).
"""

from datetime import datetime

from gather.core.logging import get_logger
from gather.domain import EventInfo, RegistrationStatus
from gather.domain.errors import InvalidEventError
from gather.stores.interfaces import EventLookup, RegistrationLedger

logger = get_logger(__name__)


def allocate(confirmed_count: int, capacity: int) -> RegistrationStatus:
    """Confirmed while a slot is free, waitlist otherwise."""
    if confirmed_count < capacity:
        return RegistrationStatus.CONFIRMED
    return RegistrationStatus.WAITLIST


class CapacityAllocator:

    def __init__(self, events: EventLookup, ledger: RegistrationLedger):
        self.events = events
        self.ledger = ledger

    async def load_event(self, event_id: int) -> EventInfo:
        """Fetch the event with a write lock, or raise InvalidEventError."""
        event = await self.events.get_event(event_id, for_update=True)
        if event is None:
            raise InvalidEventError(event_id)
        return event

    async def decide_for(self, event: EventInfo, requested_at: datetime | None = None) -> RegistrationStatus:
        confirmed = await self.ledger.count_by_status(event.id, RegistrationStatus.CONFIRMED)
        decision = allocate(confirmed, event.capacity)
        logger.debug(
            "capacity_decision",
            event_id=event.id,
            confirmed=confirmed,
            capacity=event.capacity,
            decision=decision.value,
            requested_at=requested_at.isoformat() if requested_at else None,
        )
        return decision

    async def decide_status(self, event_id: int, requested_at: datetime | None = None) -> RegistrationStatus:
        event = await self.load_event(event_id)
        return await self.decide_for(event, requested_at)
