"""
Event endpoints: catalog CRUD plus capacity edits and per-event registration views.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from gather.api.dependencies import get_registration_service
from gather.db.session import get_db
from gather.schemas.event import (
    CapacityUpdate,
    CapacityUpdateResponse,
    EventCreate,
    EventListResponse,
    EventResponse,
    EventUpdate,
    ReminderResponse,
)
from gather.schemas.registration import (
    RegistrationCountsResponse,
    RegistrationResponse,
    WaitlistPositionResponse,
)
from gather.services.event_service import create_event, get_event, list_events, update_event
from gather.services.registration_service import RegistrationService
from gather.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a new event."""
    return await create_event(db, event_data)


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(True),
    category: str | None = Query(None),
    featured_only: bool = Query(False),
    organizer_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """List events with pagination, optionally filtered by category, featured flag or organizer."""
    events, total = await list_events(db, page, page_size, upcoming_only, category, featured_only, organizer_id)
    return EventListResponse(
        events=[EventResponse.model_validate(e) for e in events],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID."""
    return await get_event(db, event_id)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    event_data: EventUpdate,
    db: AsyncSession = Depends(get_db),
    service: RegistrationService = Depends(get_registration_service),
):
    """
    Edit an event. Only the fields sent are changed.

    A capacity in the body is applied like PATCH /events/{id}/capacity,
    promoting waitlisted registrants when it grows.
    """
    event = await update_event(db, event_id, event_data)
    if event_data.capacity is not None and event_data.capacity != event.capacity:
        await service.update_capacity(event_id, event_data.capacity)
        event = await get_event(db, event_id)
    return event


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_endpoint(
    event_id: int,
    service: RegistrationService = Depends(get_registration_service),
):
    """
    Delete an event.

    Returns 409 (EVENT_HAS_ACTIVE_REGISTRATIONS) while anyone is confirmed or
    waitlisted. Cancelled registrations are removed with the event.
    """
    await service.delete_event(event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{event_id}/capacity", response_model=CapacityUpdateResponse)
async def update_capacity_endpoint(
    event_id: int,
    update: CapacityUpdate,
    service: RegistrationService = Depends(get_registration_service),
):
    """
    Change an event's capacity.

    Raising capacity promotes waitlisted registrants into the new slots, in
    waitlist order. Lowering it below the confirmed count demotes nobody.
    """
    event, promoted = await service.update_capacity(event_id, update.capacity)
    return CapacityUpdateResponse(
        event_id=event.id,
        capacity=event.capacity,
        promoted_registration_ids=[r.id for r in promoted],
    )


@router.get("/{event_id}/counts", response_model=RegistrationCountsResponse)
async def get_counts_endpoint(
    event_id: int,
    service: RegistrationService = Depends(get_registration_service),
):
    """Confirmed and waitlisted registration counts. Always read live."""
    counts = await service.get_counts(event_id)
    return RegistrationCountsResponse(event_id=event_id, confirmed=counts.confirmed, waitlist=counts.waitlist)


@router.get("/{event_id}/registrations", response_model=list[RegistrationResponse])
async def list_event_registrations_endpoint(
    event_id: int,
    service: RegistrationService = Depends(get_registration_service),
):
    return await service.list_event_registrations(event_id)


@router.get("/{event_id}/registrations/{user_id}", response_model=RegistrationResponse)
async def get_user_registration_endpoint(
    event_id: int,
    user_id: int,
    service: RegistrationService = Depends(get_registration_service),
):
    """The user's active registration for the event, else their most recent one."""
    registration = await service.get_user_registration(event_id, user_id)
    if registration is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Registration not found",
        )
    return registration


@router.get("/{event_id}/waitlist/{user_id}", response_model=WaitlistPositionResponse)
async def get_waitlist_position_endpoint(
    event_id: int,
    user_id: int,
    service: RegistrationService = Depends(get_registration_service),
):
    """1-based waitlist position; null when the user is not waitlisted."""
    position = await service.get_waitlist_position(event_id, user_id)
    return WaitlistPositionResponse(event_id=event_id, user_id=user_id, position=position)


@router.post("/{event_id}/reminders", response_model=ReminderResponse, status_code=status.HTTP_202_ACCEPTED)
async def send_reminders_endpoint(
    event_id: int,
    service: RegistrationService = Depends(get_registration_service),
):
    """Queue an event_reminder email for every confirmed registrant."""
    count = await service.send_event_reminders(event_id)
    return ReminderResponse(event_id=event_id, reminders_scheduled=count)
