from gather.schemas.event import EventCreate, EventUpdate, EventResponse, EventListResponse, CapacityUpdate
from gather.schemas.registration import RegistrationCreate, RegistrationResponse
from gather.schemas.notification import WelcomeRequest

__all__ = [
    "EventCreate", "EventUpdate", "EventResponse", "EventListResponse", "CapacityUpdate",
    "RegistrationCreate", "RegistrationResponse",
    "WelcomeRequest",
]
