# Overview: Resolves the acting user's identity and role from an opaque session token.

"""
Identity context

The ledgers never look at tokens or user rows. They receive an Identity
whose role has already been validated into the closed Role enum here, at
the authentication boundary. A token that does not resolve to an active
user with a known role is rejected with UnauthenticatedError.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from ..errors import UnauthenticatedError
from . import session_service


class Role(str, enum.Enum):
    ADMIN = "admin"
    STAFF = "staff"

    @classmethod
    def parse(cls, value) -> "Role":
        """Raises ValueError for anything outside the enum."""
        if isinstance(value, Role):
            return value
        return cls(str(value).strip().lower())


@dataclass(frozen=True)
class Identity:
    actor_id: int
    role: Role
    username: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role is Role.STAFF

    def to_dict(self) -> dict:
        return {"id": self.actor_id, "username": self.username, "role": self.role.value}


def bearer_token(auth_header: Optional[str]) -> Optional[str]:
    """Extract the token from an 'Authorization: Bearer <token>' header value."""
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def resolve_identity(token: Optional[str]) -> Identity:
    if not token:
        raise UnauthenticatedError("Authentication required")

    context = session_service.validate_session(token)
    if not context:
        raise UnauthenticatedError("Invalid or expired token")

    try:
        role = Role.parse(context.user.role)
    except ValueError:
        raise UnauthenticatedError("Invalid session: unrecognised role")

    return Identity(actor_id=context.user.id, role=role, username=context.user.username)
