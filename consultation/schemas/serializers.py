# consultation/schemas/serializers.py
from typing import Any, Dict, Mapping, Optional

from consultation.models.consultation_booking import ConsultationBooking
from consultation.models.consultation_slot import ConsultationSlot
from consultation.models.user import User

People = Mapping[str, User]


def person_to_dict(user_id: str, people: People) -> Dict[str, Any]:
    # Accounts removed from the directory still show up by id
    u = people.get(user_id)
    return {
        "id": user_id,
        "name": u.name if u else None,
        "email": u.email if u else None,
    }


def slot_to_dict(s: ConsultationSlot, people: Optional[People] = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": s.id,
        "instructor_id": s.instructor_id,
        "starts_at": s.starts_at.isoformat(),
        "ends_at": s.ends_at.isoformat(),
        "topic": s.topic,
        "is_booked": s.is_booked,
    }
    if people is not None:
        data["instructor"] = person_to_dict(s.instructor_id, people)
    return data


def booking_to_dict(
    b: ConsultationBooking,
    include_slot: bool = False,
    people: Optional[People] = None,
) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": b.id,
        "slot_id": b.slot_id,
        "requester_id": b.requester_id,
        "instructor_id": b.instructor_id,
        "notes": b.notes,
        "meeting_link": b.meeting_link,
        "status": b.status,
        "created_at": b.created_at.isoformat(),
        "updated_at": b.updated_at.isoformat(),
    }
    if include_slot:
        slot: Optional[ConsultationSlot] = b.slot
        data["slot"] = slot_to_dict(slot) if slot is not None else None
    if people is not None:
        data["requester"] = person_to_dict(b.requester_id, people)
        data["instructor"] = person_to_dict(b.instructor_id, people)
    return data


def instructor_to_dict(u: User) -> Dict[str, Any]:
    return {"id": u.id, "name": u.name, "email": u.email}
