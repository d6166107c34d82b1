"""
Registration model: one user's claim on an event, confirmed or waitlisted.

Key design decisions:
- Partial unique index on (event_id, user_id) for non-cancelled rows: one
  active registration per user per event, re-registration after cancel allowed
- Status field allows cancellation without deleting records
- Composite index (event_id, status, registered_at, id) serves both the
  per-status counts and the FIFO waitlist scan
"""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint, text
from sqlalchemy.orm import relationship

from gather.db.base import Base, TimestampMixin
from gather.domain.models import Registration as RegistrationRecord, RegistrationStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Registration(Base, TimestampMixin):
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    user_email = Column(String(255), nullable=False)
    user_name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False)  # confirmed, waitlist, cancelled
    registered_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    event = relationship("Event", back_populates="registrations", lazy="raise")

    __table_args__ = (
        Index(
            "uq_active_registration",
            "event_id",
            "user_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        Index("ix_registrations_event_status_queue", "event_id", "status", "registered_at", "id"),
        CheckConstraint(
            "status IN ('confirmed', 'waitlist', 'cancelled')",
            name="check_registration_status",
        ),
    )

    def to_domain(self) -> RegistrationRecord:
        registered_at = self.registered_at
        # SQLite hands back naive datetimes
        if registered_at is not None and registered_at.tzinfo is None:
            registered_at = registered_at.replace(tzinfo=timezone.utc)
        return RegistrationRecord(
            id=self.id,
            event_id=self.event_id,
            user_id=self.user_id,
            user_email=self.user_email,
            user_name=self.user_name,
            status=RegistrationStatus(self.status),
            registered_at=registered_at,
        )

    def __repr__(self) -> str:
        return f"<Registration(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
