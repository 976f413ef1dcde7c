# consultation/config.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    ENV: str = "dev"
    APP_NAME: str = "Consultation Scheduling"
    LOG_LEVEL: str = "INFO"

    # DB URL – SQLite file by default
    DATABASE_URL: str = "sqlite:///./consultation.db"

    # Wall-clock times submitted by instructors are read in this zone
    SCHEDULING_TIMEZONE: str = "UTC"
    SLOT_DURATION_MINUTES: int = 30
    MAX_REPEAT_WEEKS: int = 12

    # Query caps
    SLOT_LIST_LIMIT: int = 100
    INSTRUCTOR_PREVIEW_LIMIT: int = 20

    # Twilio SMS (optional). Without it notifications only go to the log.
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None  # our Twilio sender ID
    ENABLE_SMS_NOTIFICATIONS: bool = False  # gate so tests never text anyone

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

_settings: Optional[Settings] = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
