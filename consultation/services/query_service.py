# consultation/services/query_service.py
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from consultation.config import get_settings
from consultation.errors import Unauthenticated
from consultation.models.base import utcnow
from consultation.models.consultation_booking import ConsultationBooking
from consultation.models.consultation_slot import ConsultationSlot
from consultation.models.user import User
from consultation.services.identity import Principal
from consultation.services.instructor_directory import InstructorDirectory


def list_slots(
    db: Session,
    *,
    principal: Optional[Principal] = None,
    mine: bool = False,
    instructor_id: Optional[str] = None,
    available: bool = False,
    now: Optional[datetime] = None,
) -> List[ConsultationSlot]:
    """
    Slots ordered by start time.

    - mine: the caller's own slots (needs an authenticated caller)
    - instructor_id: one instructor's slots (ignored when mine is set)
    - available: unbooked slots that have not started yet
    """
    query = db.query(ConsultationSlot)

    if mine:
        if principal is None:
            raise Unauthenticated("Unauthenticated")
        query = query.filter(ConsultationSlot.instructor_id == principal.id)
    elif instructor_id:
        query = query.filter(ConsultationSlot.instructor_id == instructor_id)

    if available:
        query = query.filter(
            ConsultationSlot.is_booked.is_(False),
            ConsultationSlot.starts_at >= (now or utcnow()),
        )

    return (
        query.order_by(ConsultationSlot.starts_at.asc())
        .limit(get_settings().SLOT_LIST_LIMIT)
        .all()
    )


@dataclass
class InstructorAvailability:
    instructor: User
    available_slots: List[ConsultationSlot]


def available_slots_by_instructor(
    db: Session,
    *,
    directory: InstructorDirectory,
    now: Optional[datetime] = None,
) -> List[InstructorAvailability]:
    """Every instructor with a preview of their upcoming free slots."""
    cutoff = now or utcnow()
    limit = get_settings().INSTRUCTOR_PREVIEW_LIMIT

    result: List[InstructorAvailability] = []
    for instructor in directory.list_instructors():
        slots = (
            db.query(ConsultationSlot)
            .filter(
                ConsultationSlot.instructor_id == instructor.id,
                ConsultationSlot.is_booked.is_(False),
                ConsultationSlot.starts_at >= cutoff,
            )
            .order_by(ConsultationSlot.starts_at.asc())
            .limit(limit)
            .all()
        )
        result.append(InstructorAvailability(instructor=instructor, available_slots=slots))
    return result


def list_bookings(
    db: Session,
    *,
    principal: Principal,
    instructor_view: bool = False,
) -> List[ConsultationBooking]:
    """
    Role-scoped bookings, newest first:
    admins see everything, instructors (or callers asking for the
    instructor view) see bookings on slots they own now plus bookings
    originally made with them, users see their own.
    """
    query = db.query(ConsultationBooking)
    if principal.is_admin:
        pass
    elif principal.is_instructor or instructor_view:
        query = query.outerjoin(
            ConsultationSlot, ConsultationBooking.slot_id == ConsultationSlot.id
        ).filter(
            or_(
                ConsultationSlot.instructor_id == principal.id,
                ConsultationBooking.instructor_id == principal.id,
            )
        )
    else:
        query = query.filter(ConsultationBooking.requester_id == principal.id)

    return query.order_by(
        ConsultationBooking.created_at.desc(), ConsultationBooking.id.desc()
    ).all()
