"""
Tests for notification messages, the webhook dispatcher and the Notifier.
"""

import json
from datetime import date, time

import httpx
import pytest

from gather.domain import Registration, RegistrationStatus
from gather.domain.errors import NotificationDispatchError
from gather.domain.notifications import (
    EventReminderMessage,
    RegistrationConfirmationMessage,
    WaitlistConfirmationMessage,
    WelcomeMessage,
)
from gather.services.notification_service import LoggingDispatcher, Notifier, WebhookDispatcher

from conftest import FailingDispatcher, RecordingDispatcher, make_event


@pytest.fixture
def event():
    return make_event(7, capacity=50, date=date(2026, 11, 14), start_time=time(9, 0), end_time=time(17, 30),
                      location="Pier 9")


@pytest.fixture
def registration():
    return Registration(
        id=42,
        event_id=7,
        user_id=3,
        user_email="ada@example.com",
        user_name="Ada",
        status=RegistrationStatus.WAITLIST,
    )


def test_registration_confirmation_payload(event, registration):
    confirmed = registration.with_status(RegistrationStatus.CONFIRMED)
    payload = RegistrationConfirmationMessage.build(confirmed, event).to_payload()

    assert payload["type"] == "registration_confirmation"
    assert payload["to"] == "ada@example.com"
    assert payload["data"] == {
        "userName": "Ada",
        "eventId": 7,
        "eventTitle": "Event 7",
        "eventDate": "2026-11-14",
        "eventStartTime": "09:00:00",
        "eventEndTime": "17:30:00",
        "eventLocation": "Pier 9",
        "registrationId": 42,
        "status": "confirmed",
    }


def test_waitlist_confirmation_payload(event, registration):
    payload = WaitlistConfirmationMessage.build(registration, event, position=4).to_payload()

    assert payload["type"] == "waitlist_confirmation"
    assert payload["data"]["status"] == "waitlist"
    assert payload["data"]["waitlistPosition"] == 4
    assert payload["data"]["registrationId"] == 42


def test_reminder_and_welcome_payloads(event, registration):
    reminder = EventReminderMessage.build(registration, event).to_payload()
    assert reminder["type"] == "event_reminder"
    assert "registrationId" not in reminder["data"]
    assert reminder["data"]["eventTitle"] == "Event 7"

    welcome = WelcomeMessage(user_email="new@example.com", user_name="Newcomer").to_payload()
    assert welcome == {"type": "welcome", "to": "new@example.com", "data": {"userName": "Newcomer"}}


def test_event_without_schedule_serializes_nulls(registration):
    bare = make_event(8, date=None, start_time=None, end_time=None, location=None)
    data = EventReminderMessage.build(registration, bare).to_payload()["data"]
    assert data["eventDate"] is None
    assert data["eventStartTime"] is None
    assert data["eventLocation"] is None


@pytest.mark.asyncio
async def test_webhook_dispatcher_posts_payload():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "messageId": "abc"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    dispatcher = WebhookDispatcher("https://edge.example.com/send", client=client)

    await dispatcher.send(WelcomeMessage(user_email="new@example.com", user_name="Newcomer"))
    await dispatcher.close()

    assert seen == [{"type": "welcome", "to": "new@example.com", "data": {"userName": "Newcomer"}}]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"success": False, "error": "Failed to send email"}),
        httpx.Response(400, json={"success": False, "error": "Invalid email format"}),
        httpx.Response(200, json={"success": False, "error": "Email service not configured"}),
    ],
)
async def test_webhook_dispatcher_raises_on_rejection(response):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response))
    dispatcher = WebhookDispatcher("https://edge.example.com/send", client=client)

    with pytest.raises(NotificationDispatchError):
        await dispatcher.send(WelcomeMessage(user_email="new@example.com", user_name="Newcomer"))
    await dispatcher.close()


@pytest.mark.asyncio
async def test_webhook_dispatcher_wraps_transport_errors():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    dispatcher = WebhookDispatcher("https://edge.example.com/send", client=client)

    with pytest.raises(NotificationDispatchError) as exc_info:
        await dispatcher.send(WelcomeMessage(user_email="new@example.com", user_name="Newcomer"))
    assert exc_info.value.kind == "welcome"
    await dispatcher.close()


@pytest.mark.asyncio
async def test_notifier_returns_before_delivery_and_drains():
    recorder = RecordingDispatcher()
    notifier = Notifier(recorder)

    notifier.notify(WelcomeMessage(user_email="a@example.com", user_name="A"))
    notifier.notify(WelcomeMessage(user_email="b@example.com", user_name="B"))
    assert notifier.pending == 2
    assert recorder.sent == []

    await notifier.drain()

    assert notifier.pending == 0
    assert [m.user_email for m in recorder.sent] == ["a@example.com", "b@example.com"]


@pytest.mark.asyncio
async def test_notifier_swallows_failures_without_retry():
    failing = FailingDispatcher()
    notifier = Notifier(failing)

    task = notifier.notify(WelcomeMessage(user_email="a@example.com", user_name="A"))
    await notifier.drain()

    assert task.result() is False
    assert failing.attempts == 1


@pytest.mark.asyncio
async def test_logging_dispatcher_accepts_every_kind(event, registration):
    dispatcher = LoggingDispatcher()
    await dispatcher.send(WelcomeMessage(user_email="a@example.com", user_name="A"))
    await dispatcher.send(EventReminderMessage.build(registration, event))
    await dispatcher.send(WaitlistConfirmationMessage.build(registration, event, position=1))
