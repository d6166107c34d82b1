"""
Tests for the capacity allocator and waitlist promoter.
"""

from datetime import datetime, timezone

import pytest

from gather.domain import Registration, RegistrationStatus
from gather.domain.errors import InvalidEventError
from gather.services.allocator import CapacityAllocator, allocate
from gather.services.promoter import WaitlistPromoter
from gather.stores.memory import InMemoryRegistrationLedger


def new_registration(event_id: int, user_id: int, status: RegistrationStatus) -> Registration:
    return Registration(
        event_id=event_id,
        user_id=user_id,
        user_email=f"user{user_id}@example.com",
        user_name=f"User {user_id}",
        status=status,
    )


@pytest.mark.parametrize(
    "confirmed, capacity, expected",
    [
        (0, 1, RegistrationStatus.CONFIRMED),
        (9, 10, RegistrationStatus.CONFIRMED),
        (10, 10, RegistrationStatus.WAITLIST),
        (12, 10, RegistrationStatus.WAITLIST),  # over capacity after a decrease
    ],
)
def test_allocate(confirmed, capacity, expected):
    assert allocate(confirmed, capacity) is expected


@pytest.mark.asyncio
async def test_decide_status_unknown_event(catalog, ledger):
    allocator = CapacityAllocator(catalog, ledger)
    with pytest.raises(InvalidEventError):
        await allocator.decide_status(999, datetime.now(timezone.utc))


@pytest.mark.asyncio
async def test_decide_status_ignores_cancelled(catalog, ledger):
    """Cancelled registrations do not occupy a slot."""
    allocator = CapacityAllocator(catalog, ledger)
    first = await ledger.insert(new_registration(1, 1, RegistrationStatus.CONFIRMED))
    await ledger.insert(new_registration(1, 2, RegistrationStatus.CONFIRMED))
    assert await allocator.decide_status(1) is RegistrationStatus.WAITLIST

    await ledger.update_status(first.id, RegistrationStatus.CANCELLED)
    assert await allocator.decide_status(1) is RegistrationStatus.CONFIRMED


@pytest.mark.asyncio
async def test_promote_next_picks_earliest_waitlisted(catalog, ledger):
    allocator = CapacityAllocator(catalog, ledger)
    promoter = WaitlistPromoter(allocator, ledger)

    a = await ledger.insert(new_registration(1, 1, RegistrationStatus.CONFIRMED))
    await ledger.insert(new_registration(1, 2, RegistrationStatus.CONFIRMED))
    w1 = await ledger.insert(new_registration(1, 3, RegistrationStatus.WAITLIST))
    w2 = await ledger.insert(new_registration(1, 4, RegistrationStatus.WAITLIST))

    # Full: no promotion
    assert await promoter.promote_next(1) is None

    await ledger.update_status(a.id, RegistrationStatus.CANCELLED)
    promoted = await promoter.promote_next(1)

    assert promoted.id == w1.id
    assert promoted.status is RegistrationStatus.CONFIRMED
    assert [r.id for r in await ledger.list_waitlist_ordered(1)] == [w2.id]


@pytest.mark.asyncio
async def test_promote_next_breaks_timestamp_ties_by_id(catalog):
    """Same registered_at: the lower id was inserted first and goes first."""
    frozen = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    ledger = InMemoryRegistrationLedger(clock=lambda: frozen)
    promoter = WaitlistPromoter(CapacityAllocator(catalog, ledger), ledger)

    w1 = await ledger.insert(new_registration(1, 10, RegistrationStatus.WAITLIST))
    await ledger.insert(new_registration(1, 11, RegistrationStatus.WAITLIST))

    promoted = await promoter.promote_next(1)
    assert promoted.id == w1.id


@pytest.mark.asyncio
async def test_promote_next_empty_waitlist(catalog, ledger):
    promoter = WaitlistPromoter(CapacityAllocator(catalog, ledger), ledger)
    assert await promoter.promote_next(1) is None


@pytest.mark.asyncio
async def test_promote_available_fills_free_slots_only(catalog, ledger):
    """Event 2 has capacity 10: eight waitlisted, three already confirmed."""
    promoter = WaitlistPromoter(CapacityAllocator(catalog, ledger), ledger)
    for user_id in range(3):
        await ledger.insert(new_registration(2, user_id, RegistrationStatus.CONFIRMED))
    waiting = [
        await ledger.insert(new_registration(2, 100 + i, RegistrationStatus.WAITLIST))
        for i in range(8)
    ]

    promoted = await promoter.promote_available(2)

    assert [r.id for r in promoted] == [r.id for r in waiting[:7]]
    assert await ledger.count_by_status(2, RegistrationStatus.CONFIRMED) == 10
    assert await ledger.count_by_status(2, RegistrationStatus.WAITLIST) == 1


@pytest.mark.asyncio
async def test_promoter_does_not_promote_when_over_capacity(catalog, ledger):
    """After a capacity decrease below the confirmed count, promotion waits."""
    promoter = WaitlistPromoter(CapacityAllocator(catalog, ledger), ledger)
    confirmed = [
        await ledger.insert(new_registration(1, user_id, RegistrationStatus.CONFIRMED))
        for user_id in range(2)
    ]
    await ledger.insert(new_registration(1, 50, RegistrationStatus.WAITLIST))
    await catalog.set_capacity(1, 1)

    await ledger.update_status(confirmed[0].id, RegistrationStatus.CANCELLED)
    # confirmed == capacity == 1: still no free slot
    assert await promoter.promote_next(1) is None
    assert await ledger.count_by_status(1, RegistrationStatus.WAITLIST) == 1
