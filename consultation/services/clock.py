# consultation/services/clock.py
from datetime import datetime

from consultation.models.base import utcnow


def get_now() -> datetime:
    """FastAPI dependency for the current time (naive UTC); tests override it."""
    return utcnow()
