"""
Registration endpoints with capacity-safe allocation.
"""

from fastapi import APIRouter, Depends, Response, status

from gather.api.dependencies import get_registration_service
from gather.schemas.registration import RegistrationCreate, RegistrationResponse
from gather.services.registration_service import RegistrationService
from gather.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Registrations"])


@router.post("/registrations/", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def create_registration(
    registration_data: RegistrationCreate,
    service: RegistrationService = Depends(get_registration_service),
):
    """
    Register for an event.

    The response status is `confirmed` if a slot was free, `waitlist`
    otherwise. Concurrent requests for the last slot are serialized per
    event; a 409 with code CAPACITY_RACE_CONFLICT is transient and safe
    to retry.
    """
    return await service.register(
        registration_data.event_id,
        registration_data.user_id,
        registration_data.user_email,
        registration_data.user_name,
    )


@router.delete("/registrations/{registration_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_registration(
    registration_id: int,
    service: RegistrationService = Depends(get_registration_service),
):
    """Cancel a registration; the freed slot goes to the head of the waitlist."""
    await service.cancel(registration_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/users/{user_id}/registrations", response_model=list[RegistrationResponse])
async def list_user_registrations(
    user_id: int,
    service: RegistrationService = Depends(get_registration_service),
):
    """All registrations of a user, newest first, cancelled ones included."""
    return await service.list_user_registrations(user_id)
