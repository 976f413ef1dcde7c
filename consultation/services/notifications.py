# consultation/services/notifications.py
"""
Outbound notifications for booking events.

Delivery is fire-and-forget: ``emit`` logs and swallows every sink
failure so that a broken SMS provider never undoes a booking.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

from fastapi import Depends
from sqlalchemy.orm import Session

from consultation.config import get_settings
from consultation.db.session import get_db
from consultation.services.instructor_directory import InstructorDirectory
from consultation.services.twilio_client import TwilioClient, get_twilio_client, sms_configured

logger = logging.getLogger(__name__)


class NotificationType:
    BOOKING_REQUEST = "booking_request"
    BOOKING = "booking"
    BOOKING_STATUS = "booking_status"
    BOOKING_UPDATE = "booking_update"


@dataclass
class Notification:
    recipient_id: str
    type: str
    text: str
    payload: Dict[str, Any] = field(default_factory=dict)


class NotificationSink(Protocol):
    def send(self, notification: Notification) -> None:
        ...


class LoggingNotificationSink:
    """Default sink: records the event in the application log only."""

    def send(self, notification: Notification) -> None:
        logger.info(
            "notification %s -> %s: %s %s",
            notification.type,
            notification.recipient_id,
            notification.text,
            notification.payload,
        )


class SmsNotificationSink:
    """Texts the recipient through Twilio when they have a phone on file."""

    def __init__(
        self,
        twilio_client: TwilioClient,
        phone_lookup: Callable[[str], Optional[str]],
    ):
        self._twilio = twilio_client
        self._phone_lookup = phone_lookup

    def send(self, notification: Notification) -> None:
        phone = self._phone_lookup(notification.recipient_id)
        if not phone:
            logger.debug(
                "No phone for %s, skipping %s SMS",
                notification.recipient_id,
                notification.type,
            )
            return
        sid = self._twilio.send_sms(to_number=phone, body=notification.text)
        logger.info("Sent %s SMS to %s (sid=%s)", notification.type, notification.recipient_id, sid)


def emit(sink: Optional[NotificationSink], notification: Notification) -> bool:
    """Deliver one notification; returns False when delivery failed."""
    if sink is None:
        return False
    try:
        sink.send(notification)
    except Exception:
        logger.exception(
            "Failed to deliver %s notification to %s",
            notification.type,
            notification.recipient_id,
        )
        return False
    return True


def get_notification_sink(db: Session = Depends(get_db)) -> NotificationSink:
    """
    FastAPI dependency choosing the sink for this request.
    SMS when Twilio is configured and enabled, the log otherwise.
    """
    if sms_configured(get_settings()):
        return SmsNotificationSink(
            twilio_client=get_twilio_client(),
            phone_lookup=InstructorDirectory(db).phone_for,
        )
    return LoggingNotificationSink()
