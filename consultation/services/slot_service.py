# consultation/services/slot_service.py
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from consultation.errors import Forbidden, InvalidRange, NotFound, SlotBooked, SlotConflict
from consultation.models.base import utcnow
from consultation.models.consultation_booking import BookingStatus, ConsultationBooking
from consultation.models.consultation_slot import ConsultationSlot
from consultation.models.user import UserRole
from consultation.services.identity import Principal, require_role
from consultation.services.instructor_directory import InstructorDirectory
from consultation.services.scheduling_service import as_utc

logger = logging.getLogger(__name__)


def _get_owned_slot(db: Session, slot_id: int, principal: Principal) -> ConsultationSlot:
    require_role(principal, UserRole.INSTRUCTOR, UserRole.ADMIN)
    slot = db.get(ConsultationSlot, slot_id)
    if slot is None:
        raise NotFound("Slot not found", {"slot_id": slot_id})
    if not principal.is_admin and slot.instructor_id != principal.id:
        raise Forbidden("Forbidden", {"slot_id": slot_id})
    return slot


def _to_storage(moment: datetime) -> datetime:
    return as_utc(moment).replace(tzinfo=None)


def update_slot(
    db: Session,
    *,
    slot_id: int,
    principal: Principal,
    directory: InstructorDirectory,
    instructor_id: Optional[str] = None,
    starts_at: Optional[datetime] = None,
    ends_at: Optional[datetime] = None,
    topic: Optional[str] = None,
    is_booked: Optional[bool] = None,
) -> ConsultationSlot:
    """
    Edit a single slot. Only admins may hand the slot to another
    instructor. Existing bookings keep their instructor snapshot.
    """
    slot = _get_owned_slot(db, slot_id, principal)

    if instructor_id:
        if not principal.is_admin:
            raise Forbidden("Forbidden: cannot reassign instructor")
        slot.instructor_id = directory.require_instructor(instructor_id).id

    new_start = _to_storage(starts_at) if starts_at else slot.starts_at
    new_end = _to_storage(ends_at) if ends_at else slot.ends_at
    if new_end <= new_start:
        db.rollback()
        raise InvalidRange("Slot must end after it starts")
    slot.starts_at = new_start
    slot.ends_at = new_end

    if topic:
        slot.topic = topic
    if is_booked is not None:
        slot.is_booked = is_booked

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SlotConflict("Instructor already has a slot starting at that time")
    db.refresh(slot)

    logger.info("Slot %s updated by %s", slot.id, principal.id)
    return slot


def delete_slot(db: Session, *, slot_id: int, principal: Principal) -> None:
    """
    Delete a free slot. The is_booked check and the delete are one
    statement, so a slot approved a moment ago is never removed.
    Pending requests on it are cancelled.

    Bookings are detached before the delete: once the row is gone the
    foreign key has already nulled their slot_id.
    """
    _get_owned_slot(db, slot_id, principal)

    cancelled = db.execute(
        update(ConsultationBooking)
        .where(
            ConsultationBooking.slot_id == slot_id,
            ConsultationBooking.status == BookingStatus.PENDING.value,
        )
        .values(status=BookingStatus.CANCELLED.value, updated_at=utcnow())
    ).rowcount
    db.execute(
        update(ConsultationBooking)
        .where(ConsultationBooking.slot_id == slot_id)
        .values(slot_id=None)
    )

    result = db.execute(
        delete(ConsultationSlot).where(
            ConsultationSlot.id == slot_id,
            ConsultationSlot.is_booked.is_(False),
        )
    )
    if result.rowcount != 1:
        db.rollback()
        raise SlotBooked("Cannot delete a booked slot", {"slot_id": slot_id})
    db.commit()

    logger.info(
        "Slot %s deleted by %s; %d pending request(s) cancelled",
        slot_id,
        principal.id,
        cancelled or 0,
    )


@dataclass
class OrphanRepairResult:
    fixed: int
    total_slots: int
    instructor_id: Optional[str] = None
    instructor_name: Optional[str] = None


def reassign_orphaned_slots(
    db: Session,
    *,
    directory: InstructorDirectory,
    instructor_email: str,
) -> OrphanRepairResult:
    """
    Hand every slot whose owner is not a known instructor to the
    instructor registered under `instructor_email`.
    """
    instructor = directory.find_instructor_by_email(instructor_email)
    if instructor is None:
        known = ", ".join(
            f"{i.name} <{i.email}>" for i in directory.list_instructors()
        )
        raise NotFound(
            f"No instructor found with email: {instructor_email}. "
            f"Available instructors: {known or 'none'}"
        )

    instructor_ids = [i.id for i in directory.list_instructors()]
    total = db.query(ConsultationSlot).count()

    try:
        result = db.execute(
            update(ConsultationSlot)
            .where(ConsultationSlot.instructor_id.not_in(instructor_ids))
            .values(instructor_id=instructor.id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        fixed = result.rowcount or 0
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SlotConflict(
            "Orphaned slots overlap slots the instructor already has at the same start time"
        )

    logger.info(
        "Reassigned %d orphaned slot(s) to %s (%s)", fixed, instructor.name, instructor.id
    )
    return OrphanRepairResult(
        fixed=fixed,
        total_slots=total,
        instructor_id=instructor.id,
        instructor_name=instructor.name,
    )
