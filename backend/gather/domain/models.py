"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
SQLAlchemy ORM models are in gather/models (persistence layer).
"""

from dataclasses import dataclass, replace
import datetime as dt
from datetime import datetime, time
from enum import Enum


class RegistrationStatus(str, Enum):
    CONFIRMED = "confirmed"
    WAITLIST = "waitlist"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self is not RegistrationStatus.CANCELLED

    def can_transition_to(self, new_status: "RegistrationStatus") -> bool:
        return new_status in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS = {
    RegistrationStatus.WAITLIST: frozenset({RegistrationStatus.CONFIRMED, RegistrationStatus.CANCELLED}),
    RegistrationStatus.CONFIRMED: frozenset({RegistrationStatus.CANCELLED}),
    RegistrationStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class EventInfo:
    """Read-only view of an event as the registration core sees it."""

    id: int
    title: str
    capacity: int
    date: dt.date | None = None
    start_time: time | None = None
    end_time: time | None = None
    location: str | None = None
    category: str | None = None
    is_featured: bool = False
    organizer_id: int | None = None


@dataclass(frozen=True)
class Registration:
    """Domain representation of a Registration.

    `id` and `registered_at` are None until the ledger assigns them on insert.
    """

    event_id: int
    user_id: int
    user_email: str
    user_name: str
    status: RegistrationStatus
    id: int | None = None
    registered_at: datetime | None = None

    @property
    def queue_key(self) -> tuple[datetime, int]:
        """Waitlist ordering key: registration time, then id."""
        return (self.registered_at, self.id)

    def with_status(self, status: RegistrationStatus) -> "Registration":
        return replace(self, status=status)


@dataclass(frozen=True)
class RegistrationCounts:
    confirmed: int
    waitlist: int
