# consultation/services/scheduling_service.py
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Iterable, Iterator, List, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from consultation.config import get_settings
from consultation.errors import Forbidden, InvalidInput, InvalidRange
from consultation.models.base import utcnow
from consultation.models.consultation_slot import DEFAULT_TOPIC, ConsultationSlot
from consultation.models.user import UserRole
from consultation.services.identity import Principal, require_role
from consultation.services.instructor_directory import InstructorDirectory

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    slots: List[ConsultationSlot]

    @property
    def count(self) -> int:
        return len(self.slots)


def weekday_index(day: date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def occurrence_date(base: date, weekday: int, week_offset: int) -> date:
    """
    First date on or after `base` that falls on `weekday` (0=Sunday),
    shifted forward by `week_offset` whole weeks.
    """
    days_ahead = (weekday - weekday_index(base)) % 7
    return base + timedelta(days=days_ahead + 7 * week_offset)


def iter_range_days(
    start_date: date,
    end_date: date,
    weekdays: Sequence[int],
) -> Iterator[date]:
    """Every day in [start_date, end_date] whose weekday is selected (all if none)."""
    current = start_date
    while current <= end_date:
        if not weekdays or weekday_index(current) in weekdays:
            yield current
        current += timedelta(days=1)


def iter_weekly_days(
    start_date: date,
    weekdays: Sequence[int],
    weeks: int,
) -> Iterator[date]:
    """`weeks` repetitions of each selected weekday, starting from start_date's week."""
    selected = list(weekdays) or [weekday_index(start_date)]
    for week in range(weeks):
        for weekday in selected:
            yield occurrence_date(start_date, weekday, week)


def slice_window(start: time, end: time, minutes: int) -> List[int]:
    """
    Minute-of-day offsets of each full increment inside [start, end).
    A trailing partial increment is dropped.
    """
    start_minutes = start.hour * 60 + start.minute
    end_minutes = end.hour * 60 + end.minute
    if end_minutes <= start_minutes:
        raise InvalidRange("End time must be after start time")

    offsets: List[int] = []
    current = start_minutes
    while current + minutes <= end_minutes:
        offsets.append(current)
        current += minutes
    return offsets


def as_utc(moment: datetime) -> datetime:
    """Aware UTC datetime; naive input is taken to already be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def local_to_utc(day: date, minute_of_day: int, tz: ZoneInfo) -> datetime:
    local = datetime.combine(
        day, time(minute_of_day // 60, minute_of_day % 60), tzinfo=tz
    )
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def _insert_slot_ignoring_duplicate(db: Session, values: dict) -> Optional[int]:
    """
    INSERT that silently skips an existing (instructor_id, starts_at) row.
    Returns the new id, or None when the row already existed.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(ConsultationSlot).values(**values).on_conflict_do_nothing(
            index_elements=["instructor_id", "starts_at"]
        )
    elif dialect == "sqlite":
        stmt = sqlite_insert(ConsultationSlot).values(**values).on_conflict_do_nothing(
            index_elements=["instructor_id", "starts_at"]
        )
    else:
        stmt = insert(ConsultationSlot).values(**values)
    result = db.execute(stmt.returning(ConsultationSlot.id))
    return result.scalar_one_or_none()


def resolve_owner(
    principal: Principal,
    directory: InstructorDirectory,
    instructor_id: Optional[str],
) -> str:
    """
    Instructors generate for themselves; only admins may name another
    instructor, who must exist in the directory.
    """
    require_role(principal, UserRole.INSTRUCTOR, UserRole.ADMIN)
    if not instructor_id or instructor_id == principal.id:
        return principal.id
    if not principal.is_admin:
        raise Forbidden("Only admins can create slots for another instructor")
    return directory.require_instructor(instructor_id).id


def generate_slots(
    db: Session,
    *,
    principal: Principal,
    directory: InstructorDirectory,
    start_date: date,
    start_time: time,
    end_time: time,
    end_date: Optional[date] = None,
    weekdays: Optional[Iterable[int]] = None,
    weeks: int = 1,
    topic: Optional[str] = None,
    instructor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> GenerationResult:
    """
    Materialize 30-minute consultation slots for one instructor.

    - With `end_date`: every selected weekday between the two dates.
    - Without it: `weeks` repetitions of the selected weekdays
      (the start date's own weekday if none are selected).
    - Days before today (in the scheduling time zone) are skipped.
    - Re-running the same request creates nothing new.
    """
    settings = get_settings()
    owner_id = resolve_owner(principal, directory, instructor_id)

    selected = sorted(set(weekdays or []))
    if any(d < 0 or d > 6 for d in selected):
        raise InvalidInput("Weekdays must be between 0 (Sunday) and 6 (Saturday)")
    if not 1 <= weeks <= settings.MAX_REPEAT_WEEKS:
        raise InvalidInput(f"weeks must be between 1 and {settings.MAX_REPEAT_WEEKS}")
    if end_date is not None and end_date < start_date:
        raise InvalidRange("End date must not be before start date")

    duration = settings.SLOT_DURATION_MINUTES
    offsets = slice_window(start_time, end_time, duration)

    tz = ZoneInfo(settings.SCHEDULING_TIMEZONE)
    now_utc = as_utc(now or utcnow())
    today = now_utc.astimezone(tz).date()

    if end_date is not None:
        days: Iterable[date] = iter_range_days(start_date, end_date, selected)
    else:
        days = iter_weekly_days(start_date, selected, weeks)

    created_ids: List[int] = []
    for day in days:
        if day < today:
            continue
        for offset in offsets:
            starts_at = local_to_utc(day, offset, tz)
            existing = (
                db.query(ConsultationSlot.id)
                .filter_by(instructor_id=owner_id, starts_at=starts_at)
                .first()
            )
            if existing:
                continue
            slot_id = _insert_slot_ignoring_duplicate(
                db,
                {
                    "instructor_id": owner_id,
                    "starts_at": starts_at,
                    "ends_at": starts_at + timedelta(minutes=duration),
                    "topic": topic or DEFAULT_TOPIC,
                    "is_booked": False,
                },
            )
            if slot_id is not None:
                created_ids.append(slot_id)

    db.commit()

    slots: List[ConsultationSlot] = []
    if created_ids:
        slots = (
            db.query(ConsultationSlot)
            .filter(ConsultationSlot.id.in_(created_ids))
            .order_by(ConsultationSlot.starts_at.asc())
            .all()
        )

    logger.info(
        "Generated %d slot(s) for instructor %s (requested by %s)",
        len(slots),
        owner_id,
        principal.id,
    )
    return GenerationResult(slots=slots)
