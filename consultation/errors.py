# consultation/errors.py
"""
Scheduling failures.

Every error carries a stable ``kind`` (the class name) and a human readable
message. Services raise them; the API layer renders them through the
handler registered in ``consultation.main``.
"""

from typing import Any, Dict, Optional


class SchedulingError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code: int = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def kind(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class InvalidInput(SchedulingError):
    status_code = 400


class InvalidRange(InvalidInput):
    """Time window or date range is empty or inverted."""


class Unauthenticated(SchedulingError):
    status_code = 401


class Forbidden(SchedulingError):
    status_code = 403


class NotFound(SchedulingError):
    status_code = 404


class Conflict(SchedulingError):
    status_code = 409


class AlreadyBooked(Conflict):
    pass


class DuplicateRequest(Conflict):
    pass


class SlotConflict(Conflict):
    pass


class SlotBooked(Conflict):
    """A booked slot cannot be deleted."""


class InvalidState(SchedulingError):
    status_code = 400
