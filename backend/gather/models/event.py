"""
Event model as stored by the catalog.

Key design decisions:
- `capacity` is the only column the registration core writes (organizer edits)
- Confirmed/waitlist counts are NOT denormalized here; they are always
  counted from the registrations table inside the event's critical section
- Index on `date` for range queries (upcoming events, events this week)
"""

from sqlalchemy import Column, Integer, String, Date, Time, Boolean, Index, CheckConstraint
from sqlalchemy.orm import relationship

from gather.db.base import Base, TimestampMixin
from gather.domain.models import EventInfo


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    location = Column(String(255), nullable=True)
    category = Column(String(50), nullable=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    organizer_id = Column(Integer, nullable=True, index=True)
    capacity = Column(Integer, nullable=False)

    registrations = relationship("Registration", back_populates="event", lazy="raise")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_capacity_positive"),
        Index("ix_events_date", "date"),
        Index("ix_events_category_date", "category", "date"),
    )

    def to_domain(self) -> EventInfo:
        return EventInfo(
            id=self.id,
            title=self.title,
            capacity=self.capacity,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            location=self.location,
            category=self.category,
            is_featured=self.is_featured,
            organizer_id=self.organizer_id,
        )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, capacity={self.capacity})>"
