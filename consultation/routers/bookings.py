# consultation/routers/bookings.py
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from consultation.db.session import get_db
from consultation.schemas.bookings import (
    BookingAdminUpdatePayload,
    BookingCreatePayload,
    BookingReviewPayload,
)
from consultation.schemas.serializers import booking_to_dict
from consultation.services.booking_service import (
    admin_update_booking,
    request_booking,
    review_booking,
)
from consultation.services.identity import Principal, get_current_principal
from consultation.services.instructor_directory import InstructorDirectory
from consultation.services.notifications import NotificationSink, get_notification_sink
from consultation.services.query_service import list_bookings

router = APIRouter()


@router.get("")
def get_bookings(
    instructor: bool = False,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Dict[str, Any]:
    bookings = list_bookings(db, principal=principal, instructor_view=instructor)
    people = InstructorDirectory(db).users_by_id(
        uid for b in bookings for uid in (b.requester_id, b.instructor_id)
    )
    return {
        "bookings": [booking_to_dict(b, include_slot=True, people=people) for b in bookings]
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreatePayload,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    sink: NotificationSink = Depends(get_notification_sink),
) -> Dict[str, Any]:
    booking = request_booking(
        db,
        slot_id=payload.slot_id,
        principal=principal,
        notes=payload.notes,
        sink=sink,
    )
    return {"booking": booking_to_dict(booking)}


@router.patch("/{booking_id}/review")
def review(
    booking_id: int,
    payload: BookingReviewPayload,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    sink: NotificationSink = Depends(get_notification_sink),
) -> Dict[str, Any]:
    """
    Instructor (or admin) decision on a pending booking.

    Approving books the slot and rejects every other pending request on it.
    """
    booking = review_booking(
        db,
        booking_id=booking_id,
        principal=principal,
        action=payload.action,
        meeting_link=payload.meeting_link,
        sink=sink,
    )
    return {"booking": booking_to_dict(booking)}


@router.patch("/{booking_id}")
def admin_update(
    booking_id: int,
    payload: BookingAdminUpdatePayload,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    sink: NotificationSink = Depends(get_notification_sink),
) -> Dict[str, Any]:
    booking = admin_update_booking(
        db,
        booking_id=booking_id,
        principal=principal,
        directory=InstructorDirectory(db),
        status=payload.status,
        slot_id=payload.slot_id,
        instructor_id=payload.instructor_id,
        meeting_link=payload.meeting_link,
        sink=sink,
    )
    return {"booking": booking_to_dict(booking)}
