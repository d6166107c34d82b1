"""
FastAPI dependencies wiring the registration core to a request's DB session.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gather.core.config import get_settings
from gather.db.session import get_db
from gather.services.interfaces.locks import EventLocks
from gather.services.notification_service import Notifier
from gather.services.registration_service import RegistrationService
from gather.services.strategy_factory import get_event_locks, get_notifier
from gather.stores.sqlalchemy_store import SqlAlchemyEventCatalog, SqlAlchemyRegistrationLedger


def get_registration_service(
    db: AsyncSession = Depends(get_db),
    locks: EventLocks = Depends(get_event_locks),
    notifier: Notifier = Depends(get_notifier),
) -> RegistrationService:
    return RegistrationService(
        events=SqlAlchemyEventCatalog(db),
        ledger=SqlAlchemyRegistrationLedger(db),
        locks=locks,
        notifier=notifier,
        max_attempts=get_settings().REGISTRATION_MAX_ATTEMPTS,
    )
