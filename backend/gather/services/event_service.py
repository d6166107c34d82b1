"""
Event service handling catalog CRUD operations.

Capacity is not edited here: it changes registration outcomes, so it goes
through RegistrationService.update_capacity under the event lock. Deletion
goes through RegistrationService.delete_event for the same reason.
"""

from datetime import date
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from gather.models.event import Event
from gather.schemas.event import EventCreate, EventUpdate
from gather.domain.errors import InvalidEventError
from gather.core.logging import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS = ("title", "date", "is_featured")


def _validate_schedule(event_date, start_time, end_time, check_date: bool = True) -> None:
    if check_date and event_date < date.today():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event date must not be in the past",
        )
    if start_time and end_time and end_time <= start_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event must end after it starts",
        )


async def create_event(db: AsyncSession, event_data: EventCreate) -> Event:
    """Create a new event."""
    _validate_schedule(event_data.date, event_data.start_time, event_data.end_time)

    event = Event(**event_data.model_dump())
    db.add(event)
    await db.commit()
    await db.refresh(event)

    logger.info("event_created", event_id=event.id, title=event.title, capacity=event.capacity)
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID."""
    result = await db.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()

    if not event:
        raise InvalidEventError(event_id)
    return event


async def update_event(db: AsyncSession, event_id: int, event_data: EventUpdate) -> Event:
    """Apply the fields present in event_data, except capacity."""
    changes = event_data.model_dump(exclude_unset=True, exclude={"capacity"})
    nulled = [field for field in REQUIRED_FIELDS if field in changes and changes[field] is None]
    if nulled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Fields cannot be null: {', '.join(nulled)}",
        )

    event = await get_event(db, event_id)
    if not changes:
        return event

    _validate_schedule(
        changes.get("date", event.date),
        changes.get("start_time", event.start_time),
        changes.get("end_time", event.end_time),
        check_date="date" in changes,
    )
    for field, value in changes.items():
        setattr(event, field, value)
    await db.commit()
    await db.refresh(event)

    logger.info("event_updated", event_id=event_id, fields=sorted(changes))
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
    category: str | None = None,
    featured_only: bool = False,
    organizer_id: int | None = None,
) -> tuple[list[Event], int]:
    """
    List events with pagination.
    Uses the ix_events_date index for date filtering and
    ix_events_category_date when filtering by category.
    """
    query = select(Event)

    if upcoming_only:
        query = query.where(Event.date >= date.today())
    if category:
        query = query.where(Event.category == category)
    if featured_only:
        query = query.where(Event.is_featured.is_(True))
    if organizer_id is not None:
        query = query.where(Event.organizer_id == organizer_id)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .order_by(Event.date.asc(), Event.start_time.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total
