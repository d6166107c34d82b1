"""
Registration service: capacity-safe registration, cancellation and promotion.

CONCURRENCY STRATEGY: Per-event critical section
=================================================

Problem:
  Two users request the last slot of an event at the same time.
  Both count confirmed=capacity-1, both insert as confirmed.
  Result: Over-admission. The same race exists between a promotion after a
  cancellation and a fresh registration claiming the freed slot.

Solution:
  Every read-count-decide-write sequence for an event runs inside

    async with locks.hold(event_id):      # per-event mutual exclusion
        async with ledger.atomic():       # one transaction, commit before unlock
            ...

  - The lock is an asyncio.Lock per event (single process) or a Redis lock
    (many workers), chosen by LOCK_BACKEND.
  - SQL stores additionally read the event row FOR UPDATE in the same
    transaction, so two workers without a shared lock still serialize.
  - After inserting a confirmed row the confirmed count is re-read before
    commit. An overflow rolls the transaction back as CapacityRaceConflict.
  - Lock timeouts raise CapacityRaceConflict; the whole attempt is retried
    with exponential backoff up to REGISTRATION_MAX_ATTEMPTS times.

Notifications are scheduled only after the transaction committed and the
lock is released, and are never awaited here.
"""

import asyncio
import random
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, TypeVar

from gather.core.logging import get_logger
from gather.core.metrics import (
    lock_retries,
    record_cancellation,
    record_promotion,
    record_registration_attempt,
    registration_latency,
)
from gather.domain import EventInfo, Registration, RegistrationCounts, RegistrationStatus
from gather.domain.errors import (
    CapacityRaceConflict,
    DuplicateRegistrationError,
    EventHasActiveRegistrationsError,
    InvalidCapacityError,
    InvalidEventError,
    NotFoundError,
)
from gather.domain.notifications import (
    EventReminderMessage,
    RegistrationConfirmationMessage,
    WaitlistConfirmationMessage,
)
from gather.services.allocator import CapacityAllocator
from gather.services.interfaces.locks import EventLocks
from gather.services.notification_service import Notifier
from gather.services.promoter import WaitlistPromoter
from gather.stores.interfaces import EventLookup, RegistrationLedger

logger = get_logger(__name__)

T = TypeVar("T")

MAX_RETRY_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 0.01


class RegistrationService:

    def __init__(
        self,
        events: EventLookup,
        ledger: RegistrationLedger,
        locks: EventLocks,
        notifier: Notifier,
        max_attempts: int = MAX_RETRY_ATTEMPTS,
        backoff_base_seconds: float = BACKOFF_BASE_SECONDS,
    ):
        self.events = events
        self.ledger = ledger
        self.locks = locks
        self.notifier = notifier
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.allocator = CapacityAllocator(events, ledger)
        self.promoter = WaitlistPromoter(self.allocator, ledger)

    async def _run_exclusive(self, event_id: int, operation: Callable[[], Awaitable[T]]) -> T:
        """Run operation under the event lock inside one ledger transaction."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with self.locks.hold(event_id):
                    async with self.ledger.atomic():
                        return await operation()
            except CapacityRaceConflict as e:
                if attempt == self.max_attempts:
                    raise
                lock_retries.inc()
                logger.info(
                    "registration_retry",
                    event_id=event_id,
                    attempt=attempt,
                    reason=e.reason,
                )
                delay = self.backoff_base_seconds * (2 ** (attempt - 1))
                await asyncio.sleep(delay + random.uniform(0, self.backoff_base_seconds))
        raise CapacityRaceConflict(event_id, reason="retries_exhausted")

    async def _waitlist_position_of(self, registration: Registration) -> int | None:
        if registration.status is not RegistrationStatus.WAITLIST:
            return None
        waitlist = await self.ledger.list_waitlist_ordered(registration.event_id)
        for position, queued in enumerate(waitlist, start=1):
            if queued.id == registration.id:
                return position
        return None

    async def register(self, event_id: int, user_id: int, user_email: str, user_name: str) -> Registration:
        """
        Register a user for an event: confirmed if a slot is free, else waitlisted.

        Raises InvalidEventError, DuplicateRegistrationError (the user already
        holds a confirmed or waitlisted registration for this event) or
        CapacityRaceConflict (transient, retry).
        """
        requested_at = datetime.now(timezone.utc)
        start = time.perf_counter()

        async def attempt() -> tuple[EventInfo, Registration, int | None]:
            event = await self.allocator.load_event(event_id)
            existing = await self.ledger.find_by_event_and_user(event_id, user_id)
            if existing is not None and existing.status.is_active:
                raise DuplicateRegistrationError(event_id, user_id, existing.id)

            status = await self.allocator.decide_for(event, requested_at)
            registration = await self.ledger.insert(
                Registration(
                    event_id=event_id,
                    user_id=user_id,
                    user_email=user_email,
                    user_name=user_name,
                    status=status,
                )
            )

            if status is RegistrationStatus.CONFIRMED:
                confirmed = await self.ledger.count_by_status(event_id, RegistrationStatus.CONFIRMED)
                if confirmed > event.capacity:
                    logger.error(
                        "capacity_recheck_failed",
                        event_id=event_id,
                        confirmed=confirmed,
                        capacity=event.capacity,
                    )
                    raise CapacityRaceConflict(event_id, reason="capacity_recheck")
                return event, registration, None

            return event, registration, await self._waitlist_position_of(registration)

        try:
            event, registration, position = await self._run_exclusive(event_id, attempt)
        except DuplicateRegistrationError as e:
            record_registration_attempt("duplicate")
            logger.warning(
                "registration_duplicate",
                event_id=event_id,
                user_id=user_id,
                existing_registration_id=e.registration_id,
            )
            raise
        except InvalidEventError:
            record_registration_attempt("invalid_event")
            logger.warning("registration_invalid_event", event_id=event_id, user_id=user_id)
            raise
        except CapacityRaceConflict as e:
            record_registration_attempt("conflict")
            logger.warning("registration_conflict", event_id=event_id, user_id=user_id, reason=e.reason)
            raise

        registration_latency.observe(time.perf_counter() - start)
        record_registration_attempt(registration.status.value)
        logger.info(
            "registration_created",
            registration_id=registration.id,
            event_id=event_id,
            user_id=user_id,
            status=registration.status.value,
            waitlist_position=position,
        )

        if registration.status is RegistrationStatus.CONFIRMED:
            self.notifier.notify(RegistrationConfirmationMessage.build(registration, event))
        else:
            self.notifier.notify(WaitlistConfirmationMessage.build(registration, event, position))
        return registration

    async def cancel(self, registration_id: int) -> None:
        """
        Cancel a registration. A freed confirmed slot goes to the head of the
        waitlist, if anyone is waiting.

        Raises NotFoundError for an unknown id and InvalidStatusTransitionError
        if the registration is already cancelled.
        """
        registration = await self.ledger.get(registration_id)
        if registration is None:
            raise NotFoundError(registration_id)
        event_id = registration.event_id

        async def attempt() -> tuple[EventInfo, Registration, Registration | None]:
            event = await self.allocator.load_event(event_id)
            current = await self.ledger.get(registration_id)
            cancelled = await self.ledger.update_status(registration_id, RegistrationStatus.CANCELLED)
            promoted = None
            if current.status is RegistrationStatus.CONFIRMED:
                promoted = await self.promoter.promote_next(event_id)
            return event, current, promoted

        event, previous, promoted = await self._run_exclusive(event_id, attempt)

        record_cancellation(previous.status.value)
        logger.info(
            "registration_cancelled",
            registration_id=registration_id,
            event_id=event_id,
            user_id=previous.user_id,
            previous_status=previous.status.value,
            promoted_registration_id=promoted.id if promoted else None,
        )

        if promoted is not None:
            record_promotion()
            self.notifier.notify(RegistrationConfirmationMessage.build(promoted, event))

    async def update_capacity(self, event_id: int, capacity: int) -> tuple[EventInfo, list[Registration]]:
        """
        Change an event's capacity.

        An increase promotes waitlisted registrants into the new slots. A
        decrease below the confirmed count demotes nobody: the event stays
        over capacity until cancellations bring it back under.
        """
        if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity <= 0:
            raise InvalidCapacityError(capacity)

        async def attempt() -> tuple[EventInfo, EventInfo, list[Registration], int]:
            previous = await self.allocator.load_event(event_id)
            updated = await self.events.set_capacity(event_id, capacity)
            promoted = []
            if capacity > previous.capacity:
                promoted = await self.promoter.promote_available(event_id)
            confirmed = await self.ledger.count_by_status(event_id, RegistrationStatus.CONFIRMED)
            return previous, updated, promoted, confirmed

        previous, updated, promoted, confirmed = await self._run_exclusive(event_id, attempt)

        logger.info(
            "event_capacity_updated",
            event_id=event_id,
            previous_capacity=previous.capacity,
            capacity=capacity,
            promoted=len(promoted),
        )
        if confirmed > capacity:
            logger.warning(
                "event_over_capacity",
                event_id=event_id,
                confirmed=confirmed,
                capacity=capacity,
            )

        if promoted:
            record_promotion(len(promoted))
        for registration in promoted:
            self.notifier.notify(RegistrationConfirmationMessage.build(registration, updated))
        return updated, promoted

    async def delete_event(self, event_id: int) -> int:
        """
        Delete an event and its registration history.

        Refused with EventHasActiveRegistrationsError while anyone is confirmed
        or waitlisted; organizers cancel those first. Runs in the event's
        critical section so no registration can slip in between the check and
        the delete. Returns the number of cancelled registrations removed.
        """

        async def attempt() -> int:
            await self.allocator.load_event(event_id)
            active = sum([
                await self.ledger.count_by_status(event_id, RegistrationStatus.CONFIRMED),
                await self.ledger.count_by_status(event_id, RegistrationStatus.WAITLIST),
            ])
            if active:
                raise EventHasActiveRegistrationsError(event_id, active)
            purged = await self.ledger.purge_event(event_id)
            await self.events.delete_event(event_id)
            return purged

        try:
            purged = await self._run_exclusive(event_id, attempt)
        except EventHasActiveRegistrationsError as e:
            logger.warning("event_delete_refused", event_id=event_id, active=e.active)
            raise

        logger.info("event_deleted", event_id=event_id, purged_registrations=purged)
        return purged

    async def get_counts(self, event_id: int) -> RegistrationCounts:
        async def read() -> RegistrationCounts:
            await self.allocator.load_event(event_id)
            return RegistrationCounts(
                confirmed=await self.ledger.count_by_status(event_id, RegistrationStatus.CONFIRMED),
                waitlist=await self.ledger.count_by_status(event_id, RegistrationStatus.WAITLIST),
            )

        return await self._run_exclusive(event_id, read)

    async def get_user_registration(self, event_id: int, user_id: int) -> Registration | None:
        return await self.ledger.find_by_event_and_user(event_id, user_id)

    async def get_waitlist_position(self, event_id: int, user_id: int) -> int | None:
        """1-based position in the event's waitlist, None if not waitlisted."""

        async def read() -> int | None:
            registration = await self.ledger.find_by_event_and_user(event_id, user_id)
            if registration is None:
                return None
            return await self._waitlist_position_of(registration)

        return await self._run_exclusive(event_id, read)

    async def list_event_registrations(self, event_id: int) -> list[Registration]:
        event = await self.events.get_event(event_id)
        if event is None:
            raise InvalidEventError(event_id)
        return await self.ledger.list_by_event(event_id)

    async def list_user_registrations(self, user_id: int) -> list[Registration]:
        return await self.ledger.list_by_user(user_id)

    async def send_event_reminders(self, event_id: int) -> int:
        """Schedule an event_reminder for every confirmed registrant. Returns the count."""
        event = await self.events.get_event(event_id)
        if event is None:
            raise InvalidEventError(event_id)

        registrations = await self.ledger.list_by_event(event_id)
        sent = 0
        for registration in registrations:
            if registration.status is RegistrationStatus.CONFIRMED:
                self.notifier.notify(EventReminderMessage.build(registration, event))
                sent += 1

        logger.info("event_reminders_scheduled", event_id=event_id, count=sent)
        return sent
