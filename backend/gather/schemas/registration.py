"""
Pydantic schemas for registration-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from gather.domain.models import RegistrationStatus


class RegistrationCreate(BaseModel):
    event_id: int
    user_id: int
    user_email: EmailStr
    user_name: str = Field(..., min_length=1, max_length=255)


class RegistrationResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    user_email: str
    user_name: str
    status: RegistrationStatus
    registered_at: datetime

    model_config = {"from_attributes": True}


class RegistrationCountsResponse(BaseModel):
    event_id: int
    confirmed: int
    waitlist: int


class WaitlistPositionResponse(BaseModel):
    event_id: int
    user_id: int
    position: Optional[int]
