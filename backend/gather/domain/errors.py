"""Domain error codes for the registration core."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_EVENT = "INVALID_EVENT"
    INVALID_CAPACITY = "INVALID_CAPACITY"
    REGISTRATION_NOT_FOUND = "REGISTRATION_NOT_FOUND"
    DUPLICATE_REGISTRATION = "DUPLICATE_REGISTRATION"
    CAPACITY_RACE_CONFLICT = "CAPACITY_RACE_CONFLICT"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    EVENT_HAS_ACTIVE_REGISTRATIONS = "EVENT_HAS_ACTIVE_REGISTRATIONS"
    NOTIFICATION_DISPATCH_FAILED = "NOTIFICATION_DISPATCH_FAILED"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class InvalidEventError(DomainError):
    """Raised when a registration targets an event that does not exist."""

    def __init__(self, event_id: int) -> None:
        super().__init__(
            code=ErrorCode.INVALID_EVENT,
            message="Event not found",
        )
        object.__setattr__(self, "event_id", event_id)


class InvalidCapacityError(DomainError):
    """Raised when an event capacity is not a positive integer."""

    def __init__(self, capacity: int) -> None:
        super().__init__(
            code=ErrorCode.INVALID_CAPACITY,
            message="Capacity must be a positive integer",
        )
        object.__setattr__(self, "capacity", capacity)


class NotFoundError(DomainError):
    """Raised when a registration id is unknown."""

    def __init__(self, registration_id: int) -> None:
        super().__init__(
            code=ErrorCode.REGISTRATION_NOT_FOUND,
            message="Registration not found",
        )
        object.__setattr__(self, "registration_id", registration_id)


class DuplicateRegistrationError(DomainError):
    """Raised when the user already holds an active registration for the event."""

    def __init__(self, event_id: int, user_id: int, registration_id: int | None = None) -> None:
        super().__init__(
            code=ErrorCode.DUPLICATE_REGISTRATION,
            message="You are already registered for this event",
        )
        object.__setattr__(self, "event_id", event_id)
        object.__setattr__(self, "user_id", user_id)
        object.__setattr__(self, "registration_id", registration_id)


class CapacityRaceConflict(DomainError):
    """Transient: the per-event critical section could not be completed. Retry."""

    def __init__(self, event_id: int, reason: str = "lock_timeout") -> None:
        super().__init__(
            code=ErrorCode.CAPACITY_RACE_CONFLICT,
            message="Registration failed due to high demand. Please try again.",
        )
        object.__setattr__(self, "event_id", event_id)
        object.__setattr__(self, "reason", reason)


class InvalidStatusTransitionError(DomainError):
    """Raised on a status change outside waitlist->confirmed, *->cancelled."""

    def __init__(self, registration_id: int, current: str, requested: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_STATUS_TRANSITION,
            message=f"Registration cannot move from {current} to {requested}",
        )
        object.__setattr__(self, "registration_id", registration_id)
        object.__setattr__(self, "current", current)
        object.__setattr__(self, "requested", requested)


class EventHasActiveRegistrationsError(DomainError):
    """Raised when deleting an event that still has confirmed or waitlisted registrants."""

    def __init__(self, event_id: int, active: int) -> None:
        super().__init__(
            code=ErrorCode.EVENT_HAS_ACTIVE_REGISTRATIONS,
            message=f"Event still has {active} active registrations",
        )
        object.__setattr__(self, "event_id", event_id)
        object.__setattr__(self, "active", active)


class NotificationDispatchError(DomainError):
    """Raised by dispatchers. Never propagated past the Notifier."""

    def __init__(self, kind: str, reason: str) -> None:
        super().__init__(
            code=ErrorCode.NOTIFICATION_DISPATCH_FAILED,
            message=f"Failed to dispatch {kind} notification: {reason}",
        )
        object.__setattr__(self, "kind", kind)
