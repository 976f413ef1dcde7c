# consultation/routers/slots.py
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from consultation.db.session import get_db
from consultation.errors import Forbidden
from consultation.schemas.serializers import instructor_to_dict, slot_to_dict
from consultation.schemas.slots import (
    OrphanRepairPayload,
    SlotGenerationPayload,
    SlotUpdatePayload,
)
from consultation.services.clock import get_now
from consultation.services.identity import (
    Principal,
    get_current_principal,
    get_optional_principal,
)
from consultation.services.instructor_directory import InstructorDirectory
from consultation.services.query_service import available_slots_by_instructor, list_slots
from consultation.services.scheduling_service import generate_slots
from consultation.services.slot_service import (
    delete_slot,
    reassign_orphaned_slots,
    update_slot,
)

router = APIRouter()


@router.get("")
def get_slots(
    mine: bool = False,
    instructor_id: Optional[str] = None,
    available: bool = False,
    db: Session = Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    slots = list_slots(
        db,
        principal=principal,
        mine=mine,
        instructor_id=instructor_id,
        available=available,
        now=now,
    )
    people = InstructorDirectory(db).users_by_id(s.instructor_id for s in slots)
    return {"slots": [slot_to_dict(s, people) for s in slots]}


@router.get("/instructors")
def get_instructor_availability(
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    """
    All instructors, each with a preview of their upcoming free slots.
    """
    entries = available_slots_by_instructor(db, directory=InstructorDirectory(db), now=now)
    return {
        "instructors": [
            {
                "instructor": instructor_to_dict(e.instructor),
                "available_slots": [slot_to_dict(s) for s in e.available_slots],
            }
            for e in entries
        ]
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_slots(
    payload: SlotGenerationPayload,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    now: datetime = Depends(get_now),
) -> Dict[str, Any]:
    """
    Generate 30-minute slots for a date range or a number of weeks.

    Re-submitting the same request creates nothing new and returns count 0.
    """
    result = generate_slots(
        db,
        principal=principal,
        directory=InstructorDirectory(db),
        start_date=payload.start_date,
        end_date=payload.end_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        weekdays=payload.days,
        weeks=payload.weeks,
        topic=payload.topic,
        instructor_id=payload.instructor_id,
        now=now,
    )
    return {"slots": [slot_to_dict(s) for s in result.slots], "count": result.count}


@router.put("/{slot_id}")
def edit_slot(
    slot_id: int,
    payload: SlotUpdatePayload,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Dict[str, Any]:
    slot = update_slot(
        db,
        slot_id=slot_id,
        principal=principal,
        directory=InstructorDirectory(db),
        instructor_id=payload.instructor_id,
        starts_at=payload.starts_at,
        ends_at=payload.ends_at,
        topic=payload.topic,
        is_booked=payload.is_booked,
    )
    return {"slot": slot_to_dict(slot)}


@router.delete("/{slot_id}")
def remove_slot(
    slot_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Dict[str, Any]:
    delete_slot(db, slot_id=slot_id, principal=principal)
    return {"ok": True}


@router.post("/reassign-orphaned")
def reassign_orphans(
    payload: OrphanRepairPayload,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Dict[str, Any]:
    """
    Maintenance: move slots owned by non-instructors to one instructor.
    """
    if not principal.is_admin:
        raise Forbidden("Forbidden")
    result = reassign_orphaned_slots(
        db,
        directory=InstructorDirectory(db),
        instructor_email=payload.instructor_email,
    )
    return {
        "fixed": result.fixed,
        "total_slots": result.total_slots,
        "instructor_id": result.instructor_id,
        "instructor_name": result.instructor_name,
    }
