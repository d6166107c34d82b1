"""
Pydantic schemas for notification requests.
"""

from pydantic import BaseModel, EmailStr, Field


class WelcomeRequest(BaseModel):
    user_email: EmailStr
    user_name: str = Field(..., min_length=1, max_length=255)


class NotificationAccepted(BaseModel):
    kind: str
    to: str
    queued: bool = True
