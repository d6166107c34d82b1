"""Async SQLAlchemy implementation of the event lookup and registration ledger.

Both stores share one AsyncSession, so the event row lock taken by
get_event(for_update=True) and the registration writes belong to the same
transaction, committed or rolled back by the ledger's atomic() block.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import delete, select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gather.domain import EventInfo, Registration, RegistrationStatus
from gather.domain.errors import (
    DuplicateRegistrationError,
    InvalidEventError,
    InvalidStatusTransitionError,
    NotFoundError,
)
from gather.models.event import Event as EventRow
from gather.models.registration import Registration as RegistrationRow
from gather.stores.interfaces import EventLookup, RegistrationLedger


class SqlAlchemyEventCatalog(EventLookup):
    """PostgreSQL-backed event lookup."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _load(self, event_id: int, for_update: bool) -> EventRow | None:
        query = select(EventRow).where(EventRow.id == event_id).execution_options(populate_existing=True)
        if for_update:
            query = query.with_for_update()
        result = await self._session.execute(query)
        return result.scalar_one_or_none()

    async def get_event(self, event_id: int, for_update: bool = False) -> EventInfo | None:
        row = await self._load(event_id, for_update)
        return row.to_domain() if row else None

    async def set_capacity(self, event_id: int, capacity: int) -> EventInfo:
        row = await self._load(event_id, for_update=True)
        if row is None:
            raise InvalidEventError(event_id)
        row.capacity = capacity
        await self._session.flush()
        return row.to_domain()

    async def delete_event(self, event_id: int) -> None:
        result = await self._session.execute(delete(EventRow).where(EventRow.id == event_id))
        if result.rowcount == 0:
            raise InvalidEventError(event_id)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlAlchemyRegistrationLedger(RegistrationLedger):
    """PostgreSQL-backed registration ledger."""

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = _utcnow):
        self._session = session
        self._clock = clock
        self._depth = 0

    @asynccontextmanager
    async def atomic(self):
        if self._depth:
            yield
            return
        self._depth += 1
        try:
            yield
            await self._session.commit()
        except BaseException:
            await self._session.rollback()
            raise
        finally:
            self._depth -= 1

    async def count_by_status(self, event_id: int, status: RegistrationStatus) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(RegistrationRow)
            .where(
                RegistrationRow.event_id == event_id,
                RegistrationRow.status == status.value,
            )
        )
        return result.scalar_one()

    async def _next_timestamp(self, event_id: int) -> datetime:
        """Wall clock, clamped so registered_at never goes backwards within an event.

        Runs under the event lock, so the max cannot move before the insert.
        """
        now = self._clock()
        result = await self._session.execute(
            select(func.max(RegistrationRow.registered_at)).where(RegistrationRow.event_id == event_id)
        )
        latest = _as_utc(result.scalar_one_or_none())
        if latest is not None and now < latest:
            return latest
        return now

    async def insert(self, registration: Registration) -> Registration:
        row = RegistrationRow(
            event_id=registration.event_id,
            user_id=registration.user_id,
            user_email=registration.user_email,
            user_name=registration.user_name,
            status=registration.status.value,
            registered_at=await self._next_timestamp(registration.event_id),
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            # uq_active_registration: another request for the same user won the insert
            raise DuplicateRegistrationError(registration.event_id, registration.user_id, None) from exc
        await self._session.refresh(row)
        return row.to_domain()

    async def get(self, registration_id: int) -> Registration | None:
        row = await self._session.get(RegistrationRow, registration_id, populate_existing=True)
        return row.to_domain() if row else None

    async def update_status(self, registration_id: int, new_status: RegistrationStatus) -> Registration:
        row = await self._session.get(
            RegistrationRow,
            registration_id,
            with_for_update=True,
            populate_existing=True,
        )
        if row is None:
            raise NotFoundError(registration_id)
        current = RegistrationStatus(row.status)
        if not current.can_transition_to(new_status):
            raise InvalidStatusTransitionError(registration_id, current.value, new_status.value)
        row.status = new_status.value
        await self._session.flush()
        return row.to_domain()

    async def find_by_event_and_user(self, event_id: int, user_id: int) -> Registration | None:
        base = select(RegistrationRow).where(
            RegistrationRow.event_id == event_id,
            RegistrationRow.user_id == user_id,
        )
        result = await self._session.execute(
            base.where(RegistrationRow.status != RegistrationStatus.CANCELLED.value)
            .order_by(RegistrationRow.id.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        if row is None:
            result = await self._session.execute(base.order_by(RegistrationRow.id.desc()).limit(1))
            row = result.scalar_one_or_none()
        return row.to_domain() if row else None

    async def list_waitlist_ordered(self, event_id: int) -> list[Registration]:
        # Uses ix_registrations_event_status_queue
        result = await self._session.execute(
            select(RegistrationRow)
            .where(
                RegistrationRow.event_id == event_id,
                RegistrationRow.status == RegistrationStatus.WAITLIST.value,
            )
            .order_by(RegistrationRow.registered_at.asc(), RegistrationRow.id.asc())
        )
        return [row.to_domain() for row in result.scalars().all()]

    async def list_by_event(self, event_id: int) -> list[Registration]:
        result = await self._session.execute(
            select(RegistrationRow)
            .where(RegistrationRow.event_id == event_id)
            .order_by(RegistrationRow.id.asc())
        )
        return [row.to_domain() for row in result.scalars().all()]

    async def list_by_user(self, user_id: int) -> list[Registration]:
        result = await self._session.execute(
            select(RegistrationRow)
            .where(RegistrationRow.user_id == user_id)
            .order_by(RegistrationRow.id.desc())
        )
        return [row.to_domain() for row in result.scalars().all()]

    async def purge_event(self, event_id: int) -> int:
        result = await self._session.execute(
            delete(RegistrationRow).where(RegistrationRow.event_id == event_id)
        )
        return result.rowcount
