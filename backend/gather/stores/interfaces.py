"""Store interfaces (repository pattern).

The registration core depends only on these two interfaces; both are injected.
Stores must be swappable and return domain models.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager

from gather.domain import EventInfo, Registration, RegistrationStatus


class EventLookup(ABC):
    """Interface for the event catalog, as far as the registration core needs it."""

    @abstractmethod
    async def get_event(self, event_id: int, for_update: bool = False) -> EventInfo | None:
        """Return an event by ID, or None if not found.

        for_update asks the store to hold a write lock on the event until the
        surrounding atomic() block ends, where the store supports it.
        """
        ...

    @abstractmethod
    async def set_capacity(self, event_id: int, capacity: int) -> EventInfo:
        """Change an event's capacity. Raises InvalidEventError if unknown."""
        ...

    @abstractmethod
    async def delete_event(self, event_id: int) -> None:
        """Remove an event. Raises InvalidEventError if unknown."""
        ...


class RegistrationLedger(ABC):
    """Interface for registration persistence operations."""

    @abstractmethod
    def atomic(self) -> AsyncContextManager[None]:
        """Unit of work: writes inside commit together or roll back on error.

        Nested blocks join the outermost one.
        """
        ...

    @abstractmethod
    async def count_by_status(self, event_id: int, status: RegistrationStatus) -> int:
        """Count registrations for an event with the given status."""
        ...

    @abstractmethod
    async def insert(self, registration: Registration) -> Registration:
        """Persist a new registration, assigning its id and registered_at."""
        ...

    @abstractmethod
    async def get(self, registration_id: int) -> Registration | None:
        ...

    @abstractmethod
    async def update_status(self, registration_id: int, new_status: RegistrationStatus) -> Registration:
        """Change a registration's status.

        Raises NotFoundError for an unknown id and InvalidStatusTransitionError
        for a transition the status lifecycle forbids.
        """
        ...

    @abstractmethod
    async def find_by_event_and_user(self, event_id: int, user_id: int) -> Registration | None:
        """Return the user's active registration, else their most recent one."""
        ...

    @abstractmethod
    async def list_waitlist_ordered(self, event_id: int) -> list[Registration]:
        """Return waitlisted registrations ordered by (registered_at, id) ascending."""
        ...

    @abstractmethod
    async def list_by_event(self, event_id: int) -> list[Registration]:
        """Return all registrations for an event ordered by id."""
        ...

    @abstractmethod
    async def list_by_user(self, user_id: int) -> list[Registration]:
        """Return all registrations of a user, newest first."""
        ...

    @abstractmethod
    async def purge_event(self, event_id: int) -> int:
        """Delete every registration of an event. Returns how many were removed."""
        ...
