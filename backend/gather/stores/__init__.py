"""
Store layer: the event lookup and registration ledger the core depends on.
"""

from .interfaces import EventLookup, RegistrationLedger
from .memory import InMemoryEventCatalog, InMemoryRegistrationLedger

__all__ = [
    "EventLookup",
    "RegistrationLedger",
    "InMemoryEventCatalog",
    "InMemoryRegistrationLedger",
]
