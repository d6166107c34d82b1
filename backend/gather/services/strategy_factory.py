"""
Lock and notification strategy factory.
Configures which per-event lock and which dispatcher the service uses.
"""

from gather.core.config import Settings, get_settings
from gather.services.interfaces.locks import EventLocks
from gather.services.interfaces.in_process_locks import InProcessEventLocks
from gather.services.notification_service import (
    LoggingDispatcher,
    NotificationDispatcher,
    Notifier,
    WebhookDispatcher,
)


def build_event_locks(settings: Settings) -> EventLocks:
    """
    Get configured lock strategy.

    Strategy selection via LOCK_BACKEND:
    - memory: InProcessEventLocks (single API process)
    - redis: RedisEventLocks (multiple workers)
    """
    if settings.LOCK_BACKEND == 'redis':
        from gather.services.lock_service import RedisEventLocks

        return RedisEventLocks(
            timeout_seconds=settings.REGISTRATION_LOCK_TIMEOUT_SECONDS,
            ttl_seconds=settings.REGISTRATION_LOCK_TTL_SECONDS,
        )
    return InProcessEventLocks(timeout_seconds=settings.REGISTRATION_LOCK_TIMEOUT_SECONDS)


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    """NOTIFICATION_BACKEND: log (default) or webhook."""
    if settings.NOTIFICATION_BACKEND == 'webhook':
        return WebhookDispatcher(
            settings.NOTIFICATION_WEBHOOK_URL,
            timeout_seconds=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )
    return LoggingDispatcher()


# Singleton instances
_locks: EventLocks = None
_notifier: Notifier = None


def get_event_locks() -> EventLocks:
    """Get lock strategy singleton."""
    global _locks
    if _locks is None:
        _locks = build_event_locks(get_settings())
    return _locks


def get_notifier() -> Notifier:
    """Get notifier singleton."""
    global _notifier
    if _notifier is None:
        _notifier = Notifier(build_dispatcher(get_settings()))
    return _notifier


async def shutdown_notifier() -> None:
    """Flush pending notifications and release the dispatcher's HTTP client."""
    global _notifier
    if _notifier is None:
        return
    await _notifier.drain()
    if isinstance(_notifier.dispatcher, WebhookDispatcher):
        await _notifier.dispatcher.close()
    _notifier = None
