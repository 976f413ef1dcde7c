from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from consultation.models.base import Base, utcnow


class BookingStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    DONE = "done"


# A booking in one of these states owns its slot's is_booked flag
SLOT_HOLDING_STATUSES = (BookingStatus.APPROVED.value, BookingStatus.DONE.value)

ACTIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.APPROVED.value)


class ConsultationBooking(Base):
    __tablename__ = "consultation_bookings"

    id = Column(Integer, primary_key=True, index=True)

    # Nulled when a free slot is deleted under a pending request
    slot_id = Column(
        Integer,
        ForeignKey("consultation_slots.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    requester_id = Column(String(64), nullable=False, index=True)

    # Snapshot of the slot owner when the request was made. Reassigning the
    # slot later does not rewrite who owned historical bookings.
    instructor_id = Column(String(64), nullable=False, index=True)

    notes = Column(Text, nullable=False, default="")
    meeting_link = Column(String(1024), nullable=False, default="")

    # Store status as a simple string; BookingStatus is still used in Python
    status = Column(
        String(16),
        nullable=False,
        default=BookingStatus.PENDING.value,
        index=True,
    )

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    # One-directional: slots never point back at their bookings
    slot = relationship("ConsultationSlot")

    __table_args__ = (
        # One live request per requester per slot
        Index(
            "uq_booking_active_requester",
            "slot_id",
            "requester_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'approved')"),
            postgresql_where=text("status IN ('pending', 'approved')"),
        ),
        # One approved booking per slot
        Index(
            "uq_booking_approved_slot",
            "slot_id",
            unique=True,
            sqlite_where=text("status = 'approved'"),
            postgresql_where=text("status = 'approved'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ConsultationBooking(id={self.id}, slot={self.slot_id}, "
            f"requester={self.requester_id}, status={self.status})>"
        )
