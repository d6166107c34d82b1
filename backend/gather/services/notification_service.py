"""
Notification dispatch for registration outcomes.

DELIVERY CONTRACT
=================

The registration core never waits on email. It hands a message to the
Notifier, which schedules the send as a background task and returns at once.

  - A failed send is logged and counted, never raised to the caller of
    register()/cancel(). The registration decision already committed.
  - No retries here. Redelivery, if any, is the dispatcher's concern
    (the email edge function behind the webhook).
  - drain() awaits outstanding sends; called on shutdown and in tests.

Dispatchers:
  - LoggingDispatcher: development default, logs the payload
  - WebhookDispatcher: POSTs {"type", "to", "data"} to the email edge function
"""

import asyncio
from abc import ABC, abstractmethod

import httpx

from gather.core.logging import get_logger
from gather.core.metrics import notifications_in_flight, record_notification
from gather.domain.errors import NotificationDispatchError
from gather.domain.notifications import NotificationMessage

logger = get_logger(__name__)


class NotificationDispatcher(ABC):

    @abstractmethod
    async def send(self, message: NotificationMessage) -> None:
        """Deliver one message. Raises NotificationDispatchError on failure."""
        ...


class LoggingDispatcher(NotificationDispatcher):
    """Writes the payload to the log instead of sending it."""

    async def send(self, message: NotificationMessage) -> None:
        payload = message.to_payload()
        logger.info("notification_logged", kind=message.kind, to=payload["to"], data=payload["data"])


class WebhookDispatcher(NotificationDispatcher):
    """Posts the payload to the send-notification-email edge function."""

    def __init__(self, url: str, timeout_seconds: float = 10.0, client: httpx.AsyncClient | None = None):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def send(self, message: NotificationMessage) -> None:
        try:
            response = await self._client.post(self.url, json=message.to_payload())
        except httpx.HTTPError as e:
            raise NotificationDispatchError(message.kind, str(e)) from e

        if response.is_error:
            raise NotificationDispatchError(message.kind, f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("success") is False:
            raise NotificationDispatchError(message.kind, body.get("error", "rejected"))

    async def close(self) -> None:
        await self._client.aclose()


class Notifier:
    """Fire-and-forget front for a NotificationDispatcher."""

    def __init__(self, dispatcher: NotificationDispatcher):
        self.dispatcher = dispatcher
        self._pending: set[asyncio.Task] = set()

    def notify(self, message: NotificationMessage) -> asyncio.Task:
        """Schedule a send and return immediately."""
        task = asyncio.create_task(self._deliver(message))
        self._pending.add(task)
        notifications_in_flight.inc()
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        notifications_in_flight.dec()

    async def _deliver(self, message: NotificationMessage) -> bool:
        try:
            await self.dispatcher.send(message)
        except NotificationDispatchError as e:
            record_notification(message.kind, sent=False)
            logger.warning("notification_failed", kind=message.kind, to=message.user_email, error=e.message)
            return False
        except Exception as e:
            record_notification(message.kind, sent=False)
            logger.error(
                "notification_failed",
                kind=message.kind,
                to=message.user_email,
                error=str(e),
                exc_info=True,
            )
            return False

        record_notification(message.kind, sent=True)
        logger.info("notification_sent", kind=message.kind, to=message.user_email)
        return True

    async def drain(self) -> None:
        """Wait for every scheduled send to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def pending(self) -> int:
        return len(self._pending)
