"""
Pydantic schemas for event-related request/response validation.
"""

import datetime as dt
from typing import Optional
from pydantic import BaseModel, Field


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    date: dt.date
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    location: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=50)
    is_featured: bool = False
    organizer_id: Optional[int] = None
    capacity: int = Field(..., gt=0, le=100000)


class EventUpdate(BaseModel):
    """Partial edit. Only fields present in the request body are applied."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    location: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=50)
    is_featured: Optional[bool] = None
    capacity: Optional[int] = Field(None, gt=0, le=100000)


class CapacityUpdate(BaseModel):
    capacity: int = Field(..., gt=0, le=100000)


class EventResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    date: dt.date
    start_time: Optional[dt.time]
    end_time: Optional[dt.time]
    location: Optional[str]
    category: Optional[str]
    is_featured: bool
    organizer_id: Optional[int]
    capacity: int
    created_at: dt.datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int


class CapacityUpdateResponse(BaseModel):
    event_id: int
    capacity: int
    promoted_registration_ids: list[int]


class ReminderResponse(BaseModel):
    event_id: int
    reminders_scheduled: int
