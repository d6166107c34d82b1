"""Notification messages emitted by the registration core.

One frozen dataclass per message kind. `NotificationMessage` is the union
dispatchers accept; `kind` is the tag the email edge function switches on.
`to_payload()` produces its request body: {"type", "to", "data"}.
"""

from dataclasses import dataclass
from typing import ClassVar, Union

from gather.domain.models import EventInfo, Registration


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class EventDetails:
    """Event fields every event-bound message carries."""

    event_id: int
    event_title: str
    event_date: str | None
    event_start_time: str | None
    event_end_time: str | None
    event_location: str | None

    @classmethod
    def from_event(cls, event: EventInfo) -> "EventDetails":
        return cls(
            event_id=event.id,
            event_title=event.title,
            event_date=_iso(event.date),
            event_start_time=_iso(event.start_time),
            event_end_time=_iso(event.end_time),
            event_location=event.location,
        )

    def as_data(self) -> dict:
        return {
            "eventId": self.event_id,
            "eventTitle": self.event_title,
            "eventDate": self.event_date,
            "eventStartTime": self.event_start_time,
            "eventEndTime": self.event_end_time,
            "eventLocation": self.event_location,
        }


@dataclass(frozen=True)
class WelcomeMessage:
    kind: ClassVar[str] = "welcome"

    user_email: str
    user_name: str

    def to_payload(self) -> dict:
        return {
            "type": self.kind,
            "to": self.user_email,
            "data": {"userName": self.user_name},
        }


@dataclass(frozen=True)
class RegistrationConfirmationMessage:
    kind: ClassVar[str] = "registration_confirmation"

    user_email: str
    user_name: str
    event: EventDetails
    registration_id: int
    status: str

    @classmethod
    def build(cls, registration: Registration, event: EventInfo) -> "RegistrationConfirmationMessage":
        return cls(
            user_email=registration.user_email,
            user_name=registration.user_name,
            event=EventDetails.from_event(event),
            registration_id=registration.id,
            status=registration.status.value,
        )

    def to_payload(self) -> dict:
        return {
            "type": self.kind,
            "to": self.user_email,
            "data": {
                "userName": self.user_name,
                **self.event.as_data(),
                "registrationId": self.registration_id,
                "status": self.status,
            },
        }


@dataclass(frozen=True)
class EventReminderMessage:
    kind: ClassVar[str] = "event_reminder"

    user_email: str
    user_name: str
    event: EventDetails

    @classmethod
    def build(cls, registration: Registration, event: EventInfo) -> "EventReminderMessage":
        return cls(
            user_email=registration.user_email,
            user_name=registration.user_name,
            event=EventDetails.from_event(event),
        )

    def to_payload(self) -> dict:
        return {
            "type": self.kind,
            "to": self.user_email,
            "data": {"userName": self.user_name, **self.event.as_data()},
        }


@dataclass(frozen=True)
class WaitlistConfirmationMessage:
    kind: ClassVar[str] = "waitlist_confirmation"

    user_email: str
    user_name: str
    event: EventDetails
    registration_id: int
    status: str
    position: int

    @classmethod
    def build(
        cls, registration: Registration, event: EventInfo, position: int
    ) -> "WaitlistConfirmationMessage":
        return cls(
            user_email=registration.user_email,
            user_name=registration.user_name,
            event=EventDetails.from_event(event),
            registration_id=registration.id,
            status=registration.status.value,
            position=position,
        )

    def to_payload(self) -> dict:
        return {
            "type": self.kind,
            "to": self.user_email,
            "data": {
                "userName": self.user_name,
                **self.event.as_data(),
                "registrationId": self.registration_id,
                "status": self.status,
                "waitlistPosition": self.position,
            },
        }


NotificationMessage = Union[
    WelcomeMessage,
    RegistrationConfirmationMessage,
    EventReminderMessage,
    WaitlistConfirmationMessage,
]
