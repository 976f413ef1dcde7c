from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
)

from consultation.models.base import Base, utcnow

DEFAULT_TOPIC = "General"


class ConsultationSlot(Base):
    __tablename__ = "consultation_slots"

    id = Column(Integer, primary_key=True, index=True)

    # Owning instructor (user id from the identity service)
    instructor_id = Column(String(64), nullable=False, index=True)

    starts_at = Column(DateTime, nullable=False, index=True)
    ends_at = Column(DateTime, nullable=False)

    topic = Column(String(255), nullable=False, default=DEFAULT_TOPIC)

    # Flipped only through a conditional UPDATE, see booking_engine
    is_booked = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        # Generation is idempotent on (owner, start)
        UniqueConstraint("instructor_id", "starts_at", name="uq_slot_owner_start"),
        CheckConstraint("ends_at > starts_at", name="ck_slot_interval"),
    )

    def __repr__(self) -> str:
        return (
            f"<ConsultationSlot(id={self.id}, instructor={self.instructor_id}, "
            f"starts_at={self.starts_at}, booked={self.is_booked})>"
        )
