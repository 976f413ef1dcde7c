# consultation/schemas/slots.py
from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SlotGenerationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Only admins may set this to someone other than themselves
    instructor_id: Optional[str] = None
    start_date: date = Field(alias="date")
    end_date: Optional[date] = None
    start_time: time
    end_time: time
    topic: str = "General"
    # 0=Sunday .. 6=Saturday; empty means every day
    days: Optional[List[int]] = None
    weeks: int = Field(default=1, ge=1, le=12)

    @field_validator("days")
    def validate_days(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is not None and any(d < 0 or d > 6 for d in v):
            raise ValueError("days must be between 0 (Sunday) and 6 (Saturday)")
        return v


class SlotUpdatePayload(BaseModel):
    instructor_id: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    topic: Optional[str] = None
    is_booked: Optional[bool] = None


class OrphanRepairPayload(BaseModel):
    instructor_email: str
