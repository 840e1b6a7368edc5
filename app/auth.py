from dataclasses import dataclass
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import PermissionDenied
from app.models import Role, User

# roles each manager role may act on when managing user accounts
_USER_SCOPES = {
    Role.SUPER_ADMIN: set(Role.ALL),
    Role.ADMIN: {Role.USER, Role.STAFF},
    Role.STAFF: {Role.USER},
}


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as resolved by the identity layer."""

    user_id: int
    role: str

    @property
    def can_manage_bookings(self) -> bool:
        return self.role in (Role.STAFF, Role.ADMIN, Role.SUPER_ADMIN)

    @property
    def can_manage_sessions(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN)

    @property
    def can_manage_levels(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN)

    def can_manage_users(self, scope: str) -> bool:
        return scope in _USER_SCOPES.get(self.role, ())

    def require(self, allowed: bool, action: str):
        if not allowed:
            raise PermissionDenied(f"Role '{self.role}' may not {action}")


def get_current_actor(
    x_user_id: int | None = Header(default=None),
    db: Session = Depends(get_db),
) -> Actor:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header.")
    user = db.get(User, x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user.")
    return Actor(user_id=user.id, role=user.role)
