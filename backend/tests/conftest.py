"""
Pytest fixtures for the registration core and the HTTP API.

Service-level tests run against the in-memory stores. API tests run the
FastAPI app against an in-memory SQLite database (aiosqlite, StaticPool)
with tables created and dropped per test for isolation.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date, time, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from gather.main import app
from gather.db.base import Base
from gather.db.session import get_db
from gather.domain import EventInfo
from gather.domain.errors import NotificationDispatchError
from gather.models.event import Event
from gather.services.interfaces.in_process_locks import InProcessEventLocks
from gather.services.notification_service import NotificationDispatcher, Notifier
from gather.services.registration_service import RegistrationService
from gather.services.strategy_factory import get_event_locks, get_notifier
from gather.stores.memory import InMemoryEventCatalog, InMemoryRegistrationLedger

TEST_DATABASE_URL = "sqlite+aiosqlite://"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


class RecordingDispatcher(NotificationDispatcher):
    """Collects every message it is asked to send."""

    def __init__(self):
        self.sent = []

    async def send(self, message) -> None:
        self.sent.append(message)

    def kinds(self) -> list[str]:
        return [m.kind for m in self.sent]


class FailingDispatcher(NotificationDispatcher):
    def __init__(self, error: Exception | None = None):
        self.error = error or NotificationDispatchError("registration_confirmation", "smtp down")
        self.attempts = 0

    async def send(self, message) -> None:
        self.attempts += 1
        raise self.error


def make_event(event_id: int = 1, capacity: int = 2, **overrides) -> EventInfo:
    fields = dict(
        id=event_id,
        title=f"Event {event_id}",
        capacity=capacity,
        date=date.today() + timedelta(days=30),
        start_time=time(18, 0),
        end_time=time(21, 0),
        location="Main Hall",
        category="music",
    )
    fields.update(overrides)
    return EventInfo(**fields)


@pytest.fixture
def ledger() -> InMemoryRegistrationLedger:
    return InMemoryRegistrationLedger()


@pytest.fixture
def catalog(ledger) -> InMemoryEventCatalog:
    """Event 1 with 2 slots, event 2 with 10. Writes roll back with the ledger."""
    return InMemoryEventCatalog(
        [make_event(1, capacity=2), make_event(2, capacity=10)],
        journal=ledger.journal,
    )


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def notifier(dispatcher) -> Notifier:
    return Notifier(dispatcher)


@pytest.fixture
def service(catalog, ledger, notifier) -> RegistrationService:
    return RegistrationService(
        events=catalog,
        ledger=ledger,
        locks=InProcessEventLocks(timeout_seconds=5.0),
        notifier=notifier,
        backoff_base_seconds=0.001,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, notifier: Notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB, lock and notifier dependencies overridden."""

    async def override_get_db():
        yield db_session

    locks = InProcessEventLocks(timeout_seconds=5.0)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_locks] = lambda: locks
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await notifier.drain()
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession) -> int:
    """Create a test event with 2 slots and return its id.

    A failed registration rolls the shared session back, which expires ORM
    instances; tests hold on to the id only.
    """
    event = Event(
        title="Test Concert",
        description="A test event",
        date=date.today() + timedelta(days=30),
        start_time=time(19, 30),
        end_time=time(22, 0),
        location="Test Venue",
        category="music",
        capacity=2,
        organizer_id=1,
    )
    db_session.add(event)
    await db_session.commit()
    await db_session.refresh(event)
    return event.id
