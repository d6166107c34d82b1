"""
Waitlist promotion: move the earliest waitlisted registrant into a freed slot.

Capacity is re-checked on every call. After a capacity decrease the event
may hold more confirmed registrations than capacity; nobody is demoted and
nobody is promoted until attrition brings the count below capacity again.
"""

from gather.core.logging import get_logger
from gather.domain import Registration, RegistrationStatus
from gather.stores.interfaces import RegistrationLedger
from gather.services.allocator import CapacityAllocator

logger = get_logger(__name__)


class WaitlistPromoter:

    def __init__(self, allocator: CapacityAllocator, ledger: RegistrationLedger):
        self.allocator = allocator
        self.ledger = ledger

    async def promote_next(self, event_id: int) -> Registration | None:
        """Promote the head of the waitlist if a slot is free. None if no-op."""
        if await self.allocator.decide_status(event_id) is not RegistrationStatus.CONFIRMED:
            return None

        waitlist = await self.ledger.list_waitlist_ordered(event_id)
        if not waitlist:
            return None

        head = waitlist[0]
        promoted = await self.ledger.update_status(head.id, RegistrationStatus.CONFIRMED)
        logger.info(
            "waitlist_promoted",
            registration_id=promoted.id,
            event_id=event_id,
            user_id=promoted.user_id,
            remaining_waitlist=len(waitlist) - 1,
        )
        return promoted

    async def promote_available(self, event_id: int) -> list[Registration]:
        """Promote until the event is full or the waitlist is empty."""
        promoted = []
        while True:
            registration = await self.promote_next(event_id)
            if registration is None:
                return promoted
            promoted.append(registration)
