# consultation/schemas/bookings.py
from typing import Literal, Optional

from pydantic import BaseModel

BookingStatusCode = Literal["pending", "approved", "rejected", "cancelled", "done"]


class BookingCreatePayload(BaseModel):
    slot_id: int
    notes: str = ""


class BookingReviewPayload(BaseModel):
    action: Literal["approve", "reject"]
    meeting_link: str = ""


class BookingAdminUpdatePayload(BaseModel):
    status: Optional[BookingStatusCode] = None
    slot_id: Optional[int] = None
    instructor_id: Optional[str] = None
    meeting_link: Optional[str] = None
