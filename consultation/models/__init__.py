from consultation.models.base import Base  # noqa: F401

from consultation.models.user import User, UserRole  # noqa: F401
from consultation.models.consultation_slot import ConsultationSlot  # noqa: F401
from consultation.models.consultation_booking import (  # noqa: F401
    BookingStatus,
    ConsultationBooking,
)
