from gather.models.event import Event
from gather.models.registration import Registration

__all__ = ["Event", "Registration"]
