# consultation/services/instructor_directory.py
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from consultation.errors import NotFound
from consultation.models.user import User, UserRole


class InstructorDirectory:
    """
    Read-only lookups against the platform's user directory.

    Scheduling never creates or edits accounts; it only needs to know
    who the instructors are and how to reach a user.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_instructor(self, instructor_id: str) -> Optional[User]:
        return (
            self.db.query(User)
            .filter(User.id == instructor_id, User.role == UserRole.INSTRUCTOR)
            .first()
        )

    def require_instructor(self, instructor_id: str) -> User:
        instructor = self.get_instructor(instructor_id)
        if instructor is None:
            raise NotFound("Instructor not found", {"instructor_id": instructor_id})
        return instructor

    def find_instructor_by_email(self, email: str) -> Optional[User]:
        return (
            self.db.query(User)
            .filter(User.email == email, User.role == UserRole.INSTRUCTOR)
            .first()
        )

    def list_instructors(self) -> List[User]:
        return (
            self.db.query(User)
            .filter(User.role == UserRole.INSTRUCTOR)
            .order_by(User.name.asc())
            .all()
        )

    def users_by_id(self, user_ids: Iterable[str]) -> Dict[str, User]:
        """Batch lookup for response enrichment; unknown ids are left out."""
        wanted = {uid for uid in user_ids if uid}
        if not wanted:
            return {}
        users = self.db.query(User).filter(User.id.in_(wanted)).all()
        return {u.id: u for u in users}

    def phone_for(self, user_id: str) -> Optional[str]:
        user = self.db.get(User, user_id)
        return user.phone if user and user.phone else None
