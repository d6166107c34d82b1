"""In-process stores backed by dicts.

Every call yields to the event loop once, the way a networked store would,
so interleavings between concurrent registrations are real. Writes made
inside atomic() are journaled per task and undone if the block raises. The
catalog and the ledger share one UndoJournal, so a capacity change or an
event deletion rolls back together with the registration writes around it.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable

from gather.domain import EventInfo, Registration, RegistrationStatus
from gather.domain.errors import InvalidEventError, InvalidStatusTransitionError, NotFoundError
from gather.stores.interfaces import EventLookup, RegistrationLedger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UndoJournal:
    """Per-task list of undo steps, replayed in reverse when atomic() raises."""

    def __init__(self):
        self._journals: dict[asyncio.Task, list[Callable[[], None]]] = {}

    @asynccontextmanager
    async def atomic(self):
        task = asyncio.current_task()
        if task in self._journals:
            yield
            return
        undo: list[Callable[[], None]] = []
        self._journals[task] = undo
        try:
            yield
        except BaseException:
            for step in reversed(undo):
                step()
            raise
        finally:
            del self._journals[task]

    def record(self, step: Callable[[], None]) -> None:
        undo = self._journals.get(asyncio.current_task())
        if undo is not None:
            undo.append(step)


class InMemoryEventCatalog(EventLookup):

    def __init__(self, events: Iterable[EventInfo] = (), journal: UndoJournal | None = None):
        self._events: dict[int, EventInfo] = {event.id: event for event in events}
        self._journal = journal or UndoJournal()

    def add(self, event: EventInfo) -> None:
        self._events[event.id] = event

    async def get_event(self, event_id: int, for_update: bool = False) -> EventInfo | None:
        await asyncio.sleep(0)
        return self._events.get(event_id)

    async def set_capacity(self, event_id: int, capacity: int) -> EventInfo:
        await asyncio.sleep(0)
        event = self._events.get(event_id)
        if event is None:
            raise InvalidEventError(event_id)
        updated = replace(event, capacity=capacity)
        self._events[event_id] = updated

        def restore():
            self._events[event_id] = event

        self._journal.record(restore)
        return updated

    async def delete_event(self, event_id: int) -> None:
        await asyncio.sleep(0)
        event = self._events.pop(event_id, None)
        if event is None:
            raise InvalidEventError(event_id)

        def restore():
            self._events[event_id] = event

        self._journal.record(restore)


class InMemoryRegistrationLedger(RegistrationLedger):

    def __init__(self, clock: Callable[[], datetime] = _utcnow, journal: UndoJournal | None = None):
        self._clock = clock
        self._records: dict[int, Registration] = {}
        self._next_id = 1
        self._last_registered_at: datetime | None = None
        self.journal = journal or UndoJournal()

    def atomic(self):
        return self.journal.atomic()

    def _next_timestamp(self) -> datetime:
        now = self._clock()
        if self._last_registered_at is not None and now < self._last_registered_at:
            now = self._last_registered_at
        self._last_registered_at = now
        return now

    async def count_by_status(self, event_id: int, status: RegistrationStatus) -> int:
        await asyncio.sleep(0)
        return sum(
            1 for reg in self._records.values()
            if reg.event_id == event_id and reg.status is status
        )

    async def insert(self, registration: Registration) -> Registration:
        await asyncio.sleep(0)
        stored = replace(registration, id=self._next_id, registered_at=self._next_timestamp())
        self._next_id += 1
        self._records[stored.id] = stored
        self.journal.record(lambda: self._records.pop(stored.id, None))
        return stored

    async def get(self, registration_id: int) -> Registration | None:
        await asyncio.sleep(0)
        return self._records.get(registration_id)

    async def update_status(self, registration_id: int, new_status: RegistrationStatus) -> Registration:
        await asyncio.sleep(0)
        current = self._records.get(registration_id)
        if current is None:
            raise NotFoundError(registration_id)
        if not current.status.can_transition_to(new_status):
            raise InvalidStatusTransitionError(registration_id, current.status.value, new_status.value)
        updated = current.with_status(new_status)
        self._records[registration_id] = updated

        def restore():
            self._records[registration_id] = current

        self.journal.record(restore)
        return updated

    async def find_by_event_and_user(self, event_id: int, user_id: int) -> Registration | None:
        await asyncio.sleep(0)
        matches = [
            reg for reg in self._records.values()
            if reg.event_id == event_id and reg.user_id == user_id
        ]
        if not matches:
            return None
        active = [reg for reg in matches if reg.status.is_active]
        return (active or matches)[-1]

    async def list_waitlist_ordered(self, event_id: int) -> list[Registration]:
        await asyncio.sleep(0)
        waiting = [
            reg for reg in self._records.values()
            if reg.event_id == event_id and reg.status is RegistrationStatus.WAITLIST
        ]
        return sorted(waiting, key=lambda reg: reg.queue_key)

    async def list_by_event(self, event_id: int) -> list[Registration]:
        await asyncio.sleep(0)
        return sorted(
            (reg for reg in self._records.values() if reg.event_id == event_id),
            key=lambda reg: reg.id,
        )

    async def list_by_user(self, user_id: int) -> list[Registration]:
        await asyncio.sleep(0)
        return sorted(
            (reg for reg in self._records.values() if reg.user_id == user_id),
            key=lambda reg: reg.id,
            reverse=True,
        )

    async def purge_event(self, event_id: int) -> int:
        await asyncio.sleep(0)
        purged = {reg_id: reg for reg_id, reg in self._records.items() if reg.event_id == event_id}
        for reg_id in purged:
            del self._records[reg_id]
        self.journal.record(lambda: self._records.update(purged))
        return len(purged)
