from gather.domain.models import EventInfo, Registration, RegistrationCounts, RegistrationStatus

__all__ = [
    "EventInfo",
    "Registration",
    "RegistrationCounts",
    "RegistrationStatus",
]
