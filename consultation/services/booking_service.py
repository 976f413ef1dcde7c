# consultation/services/booking_service.py
"""
Booking state machine.

    pending -> approved
    pending -> rejected

Everything else is terminal here; only the admin override can move a
booking out of approved / rejected / cancelled / done.

The "one approved booking per slot" rule is enforced by claiming the slot
with a single conditional UPDATE (is_booked false -> true) inside the same
transaction that writes the booking. If any later step fails the
transaction is rolled back, which also releases the slot.
"""

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from consultation.errors import (
    AlreadyBooked,
    DuplicateRequest,
    Forbidden,
    InvalidInput,
    InvalidState,
    NotFound,
    SchedulingError,
    SlotConflict,
)
from consultation.models.base import utcnow
from consultation.models.consultation_booking import (
    ACTIVE_STATUSES,
    SLOT_HOLDING_STATUSES,
    BookingStatus,
    ConsultationBooking,
)
from consultation.models.consultation_slot import ConsultationSlot
from consultation.models.user import UserRole
from consultation.services.identity import Principal, require_role
from consultation.services.instructor_directory import InstructorDirectory
from consultation.services.notifications import (
    Notification,
    NotificationSink,
    NotificationType,
    emit,
)

logger = logging.getLogger(__name__)


class ReviewAction:
    APPROVE = "approve"
    REJECT = "reject"


def claim_slot(db: Session, slot_id: int) -> bool:
    """Atomically flip is_booked false -> true. False if already booked (or gone)."""
    result = db.execute(
        update(ConsultationSlot)
        .where(
            ConsultationSlot.id == slot_id,
            ConsultationSlot.is_booked.is_(False),
        )
        .values(is_booked=True, updated_at=utcnow())
    )
    return result.rowcount == 1


def release_slot(db: Session, slot_id: int) -> None:
    db.execute(
        update(ConsultationSlot)
        .where(ConsultationSlot.id == slot_id)
        .values(is_booked=False, updated_at=utcnow())
    )


def reject_pending_siblings(db: Session, slot_id: int, booking_id: int) -> int:
    """Cascade: every other pending request on the slot becomes rejected."""
    result = db.execute(
        update(ConsultationBooking)
        .where(
            ConsultationBooking.slot_id == slot_id,
            ConsultationBooking.id != booking_id,
            ConsultationBooking.status == BookingStatus.PENDING.value,
        )
        .values(status=BookingStatus.REJECTED.value, updated_at=utcnow())
    )
    return result.rowcount or 0


def _get_booking(db: Session, booking_id: int) -> ConsultationBooking:
    booking = db.get(ConsultationBooking, booking_id)
    if booking is None:
        raise NotFound("Booking not found", {"booking_id": booking_id})
    return booking


def _active_request_for(
    db: Session, slot_id: int, requester_id: str
) -> Optional[ConsultationBooking]:
    return (
        db.query(ConsultationBooking)
        .filter(
            ConsultationBooking.slot_id == slot_id,
            ConsultationBooking.requester_id == requester_id,
            ConsultationBooking.status.in_(ACTIVE_STATUSES),
        )
        .first()
    )


def request_booking(
    db: Session,
    *,
    slot_id: int,
    principal: Principal,
    notes: str = "",
    sink: Optional[NotificationSink] = None,
) -> ConsultationBooking:
    """
    Create a pending booking for `slot_id` on behalf of the caller.

    The slot is not touched until an instructor approves the request.
    """
    slot = db.get(ConsultationSlot, slot_id)
    if slot is None:
        raise NotFound("Slot not found", {"slot_id": slot_id})
    if slot.is_booked:
        raise AlreadyBooked("Slot already booked", {"slot_id": slot_id})

    existing = _active_request_for(db, slot.id, principal.id)
    if existing:
        raise DuplicateRequest(
            "You already have a booking for this slot",
            {"booking_id": existing.id},
        )

    booking = ConsultationBooking(
        slot_id=slot.id,
        requester_id=principal.id,
        instructor_id=slot.instructor_id,
        notes=notes or "",
        meeting_link="",
        status=BookingStatus.PENDING.value,
    )
    db.add(booking)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against the same requester's parallel submit
        db.rollback()
        raise DuplicateRequest("You already have a booking for this slot")
    db.refresh(booking)

    logger.info(
        "Booking %s requested by %s for slot %s", booking.id, principal.id, slot.id
    )

    requester_name = principal.name or principal.id
    emit(
        sink,
        Notification(
            recipient_id=booking.instructor_id,
            type=NotificationType.BOOKING_REQUEST,
            text=f"New booking requested by {requester_name}",
            payload={"booking_id": booking.id},
        ),
    )
    emit(
        sink,
        Notification(
            recipient_id=booking.requester_id,
            type=NotificationType.BOOKING,
            text="Your booking request was submitted",
            payload={"booking_id": booking.id},
        ),
    )
    return booking


def reviewer_id_for(booking: ConsultationBooking) -> str:
    """
    The instructor who decides on a booking: the slot's current owner.

    booking.instructor_id records the owner at request time and only
    stands in once the slot has been deleted.
    """
    if booking.slot is not None:
        return booking.slot.instructor_id
    return booking.instructor_id


def _load_for_review(
    db: Session, booking_id: int, principal: Principal
) -> ConsultationBooking:
    require_role(principal, UserRole.INSTRUCTOR, UserRole.ADMIN)
    booking = _get_booking(db, booking_id)
    if not principal.is_admin and reviewer_id_for(booking) != principal.id:
        raise Forbidden("Forbidden", {"booking_id": booking_id})
    if booking.status != BookingStatus.PENDING.value:
        raise InvalidState("Booking is not pending", {"status": booking.status})
    return booking


def approve_booking(
    db: Session,
    *,
    booking_id: int,
    principal: Principal,
    meeting_link: str = "",
    sink: Optional[NotificationSink] = None,
) -> ConsultationBooking:
    booking = _load_for_review(db, booking_id, principal)
    slot_id = booking.slot_id

    try:
        if not claim_slot(db, slot_id):
            if db.get(ConsultationSlot, slot_id) is None:
                raise NotFound("Slot not found", {"slot_id": slot_id})
            raise AlreadyBooked("Slot already booked", {"slot_id": slot_id})

        rejected = reject_pending_siblings(db, slot_id, booking.id)

        result = db.execute(
            update(ConsultationBooking)
            .where(
                ConsultationBooking.id == booking.id,
                ConsultationBooking.status == BookingStatus.PENDING.value,
            )
            .values(
                status=BookingStatus.APPROVED.value,
                meeting_link=meeting_link or "",
                updated_at=utcnow(),
            )
        )
        if result.rowcount != 1:
            raise InvalidState("Booking is not pending")

        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise AlreadyBooked("Slot already booked", {"slot_id": slot_id})

    db.refresh(booking)
    logger.info(
        "Booking %s approved by %s; slot %s booked, %d sibling(s) rejected",
        booking.id,
        principal.id,
        slot_id,
        rejected,
    )

    emit(
        sink,
        Notification(
            recipient_id=booking.requester_id,
            type=NotificationType.BOOKING_STATUS,
            text="Your booking was approved",
            payload={"booking_id": booking.id},
        ),
    )
    return booking


def reject_booking(
    db: Session,
    *,
    booking_id: int,
    principal: Principal,
    sink: Optional[NotificationSink] = None,
) -> ConsultationBooking:
    booking = _load_for_review(db, booking_id, principal)

    result = db.execute(
        update(ConsultationBooking)
        .where(
            ConsultationBooking.id == booking.id,
            ConsultationBooking.status == BookingStatus.PENDING.value,
        )
        .values(status=BookingStatus.REJECTED.value, updated_at=utcnow())
    )
    if result.rowcount != 1:
        db.rollback()
        raise InvalidState("Booking is not pending")
    db.commit()
    db.refresh(booking)

    logger.info("Booking %s rejected by %s", booking.id, principal.id)

    emit(
        sink,
        Notification(
            recipient_id=booking.requester_id,
            type=NotificationType.BOOKING_STATUS,
            text="Your booking was rejected",
            payload={"booking_id": booking.id},
        ),
    )
    return booking


def review_booking(
    db: Session,
    *,
    booking_id: int,
    principal: Principal,
    action: str,
    meeting_link: str = "",
    sink: Optional[NotificationSink] = None,
) -> ConsultationBooking:
    if action == ReviewAction.APPROVE:
        return approve_booking(
            db,
            booking_id=booking_id,
            principal=principal,
            meeting_link=meeting_link,
            sink=sink,
        )
    if action == ReviewAction.REJECT:
        return reject_booking(db, booking_id=booking_id, principal=principal, sink=sink)
    raise InvalidInput(f"Unknown action: {action}")


def admin_update_booking(
    db: Session,
    *,
    booking_id: int,
    principal: Principal,
    directory: InstructorDirectory,
    status: Optional[str] = None,
    slot_id: Optional[int] = None,
    instructor_id: Optional[str] = None,
    meeting_link: Optional[str] = None,
    sink: Optional[NotificationSink] = None,
) -> ConsultationBooking:
    """
    Admin correction of a booking. Applied in this order:

    1. slot move: new slot must exist and be free; the old slot is freed
       if this booking was holding it; instructor follows the new slot.
    2. instructor override (booking only, slot owner untouched).
    3. meeting link.
    4. status: entering approved/done claims the (possibly new) slot and
       rejects its other pending requests; leaving approved/done for any
       other status frees the slot.
    """
    if not principal.is_admin:
        raise Forbidden("Forbidden")

    booking = _get_booking(db, booking_id)

    if status is not None:
        try:
            new_status = BookingStatus(status).value
        except ValueError:
            raise InvalidInput(f"Unknown status: {status}")
    else:
        new_status = booking.status

    holds_slot = booking.status in SLOT_HOLDING_STATUSES
    will_hold = new_status in SLOT_HOLDING_STATUSES
    booking_slot_id = slot_id if slot_id is not None else booking.slot_id

    try:
        if slot_id is not None and slot_id != booking.slot_id:
            new_slot = db.get(ConsultationSlot, slot_id)
            if new_slot is None:
                raise NotFound("Slot not found", {"slot_id": slot_id})
            if new_slot.is_booked:
                raise SlotConflict("Slot already booked", {"slot_id": slot_id})
            if new_status in ACTIVE_STATUSES:
                clash = _active_request_for(db, new_slot.id, booking.requester_id)
                if clash is not None:
                    raise DuplicateRequest(
                        "Requester already has a booking for this slot",
                        {"booking_id": clash.id, "slot_id": slot_id},
                    )

            if holds_slot and booking.slot_id is not None:
                release_slot(db, booking.slot_id)
            holds_slot = False

            booking.slot_id = new_slot.id
            booking.instructor_id = new_slot.instructor_id

        if instructor_id:
            booking.instructor_id = directory.require_instructor(instructor_id).id

        if meeting_link is not None:
            booking.meeting_link = meeting_link

        if will_hold and not holds_slot:
            if booking.slot_id is None:
                raise InvalidState("Booking has no slot to hold")
            if not claim_slot(db, booking.slot_id):
                raise SlotConflict("Slot already booked", {"slot_id": booking.slot_id})
            reject_pending_siblings(db, booking.slot_id, booking.id)
        elif holds_slot and not will_hold and booking.slot_id is not None:
            release_slot(db, booking.slot_id)

        booking.status = new_status
        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except IntegrityError:
        # Lost a race on one of the slot's uniqueness rules
        db.rollback()
        raise SlotConflict(
            "Booking conflicts with another booking on this slot",
            {"slot_id": booking_slot_id},
        )

    db.refresh(booking)
    logger.info(
        "Booking %s updated by admin %s (status=%s, slot=%s, instructor=%s)",
        booking.id,
        principal.id,
        booking.status,
        booking.slot_id,
        booking.instructor_id,
    )

    emit(
        sink,
        Notification(
            recipient_id=booking.requester_id,
            type=NotificationType.BOOKING_UPDATE,
            text="Your booking was updated by admin",
            payload={"booking_id": booking.id},
        ),
    )
    return booking
