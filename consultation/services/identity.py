# consultation/services/identity.py
from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from consultation.errors import Forbidden, Unauthenticated
from consultation.models.user import UserRole

KNOWN_ROLES = {UserRole.USER, UserRole.INSTRUCTOR, UserRole.ADMIN}


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, as resolved by the identity service."""

    id: str
    role: str
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_instructor(self) -> bool:
        return self.role == UserRole.INSTRUCTOR


def require_role(principal: Principal, *roles: str) -> None:
    if principal.role not in roles:
        raise Forbidden("Forbidden", {"role": principal.role})


def get_optional_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
) -> Optional[Principal]:
    """
    FastAPI dependency resolving the caller from gateway headers.

    The upstream gateway authenticates the session and forwards
    X-User-Id / X-User-Role / X-User-Name. Anonymous requests yield None.
    """
    if not x_user_id:
        return None
    role = (x_user_role or UserRole.USER).lower()
    if role not in KNOWN_ROLES:
        raise Unauthenticated(f"Unknown role: {role}")
    return Principal(id=x_user_id, role=role, name=x_user_name or "")


def get_current_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
) -> Principal:
    principal = get_optional_principal(x_user_id, x_user_role, x_user_name)
    if principal is None:
        raise Unauthenticated("Unauthenticated")
    return principal
