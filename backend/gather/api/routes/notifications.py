"""
Notification endpoints for messages not triggered by a registration decision.
"""

from fastapi import APIRouter, Depends, status

from gather.domain.notifications import WelcomeMessage
from gather.schemas.notification import NotificationAccepted, WelcomeRequest
from gather.services.notification_service import Notifier
from gather.services.strategy_factory import get_notifier

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post("/welcome", response_model=NotificationAccepted, status_code=status.HTTP_202_ACCEPTED)
async def send_welcome(
    request: WelcomeRequest,
    notifier: Notifier = Depends(get_notifier),
):
    """Queue the welcome email for a newly signed-up user."""
    message = WelcomeMessage(user_email=request.user_email, user_name=request.user_name)
    notifier.notify(message)
    return NotificationAccepted(kind=message.kind, to=message.user_email)
