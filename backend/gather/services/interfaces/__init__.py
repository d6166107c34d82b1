"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .locks import EventLocks
from .in_process_locks import InProcessEventLocks

__all__ = ['EventLocks', 'InProcessEventLocks']
