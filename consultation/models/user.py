from sqlalchemy import Column, DateTime, String

from consultation.models.base import Base, utcnow


class UserRole:
    USER = "user"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class User(Base):
    """
    Directory projection of a platform account.

    Accounts are owned by the identity service; scheduling only reads this
    table to validate instructors and to find a phone number for SMS.
    """

    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(32), nullable=False, default=UserRole.USER, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
