# consultation/services/twilio_client.py
from twilio.rest import Client as TwilioSDKClient

from consultation.config import Settings, get_settings


class TwilioClient:
    """
    Thin wrapper around the Twilio Python SDK.

    This makes it easy to:
    - centralize config (account SID, auth token, sender number)
    - mock in tests by replacing this class with a fake.
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
    ):
        self._client = TwilioSDKClient(account_sid, auth_token)
        self._from_number = from_number

    def send_sms(self, to_number: str, body: str) -> str:
        """
        Send a text message via Twilio and return the Message SID.
        """
        message = self._client.messages.create(
            to=to_number,
            from_=self._from_number,
            body=body,
        )
        return message.sid


def sms_configured(settings: Settings) -> bool:
    return bool(
        settings.ENABLE_SMS_NOTIFICATIONS
        and settings.TWILIO_ACCOUNT_SID
        and settings.TWILIO_AUTH_TOKEN
        and settings.TWILIO_PHONE_NUMBER
    )


def get_twilio_client() -> TwilioClient:
    """
    Build a configured TwilioClient.
    Raises RuntimeError if configuration is incomplete.
    """
    settings = get_settings()

    missing: list[str] = []
    if not settings.TWILIO_ACCOUNT_SID:
        missing.append("TWILIO_ACCOUNT_SID")
    if not settings.TWILIO_AUTH_TOKEN:
        missing.append("TWILIO_AUTH_TOKEN")
    if not settings.TWILIO_PHONE_NUMBER:
        missing.append("TWILIO_PHONE_NUMBER")

    if missing:
        raise RuntimeError(f"Twilio not configured, missing: {', '.join(missing)}")

    return TwilioClient(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        from_number=settings.TWILIO_PHONE_NUMBER,
    )
