from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from facility_booking.database import get_db
from facility_booking.models.user import User, UserRole
from facility_booking.utils.security import verify_access_token
from facility_booking.utils.exceptions import (
    UnauthorizedException, ForbiddenException, AccountInactiveException,
)

bearer_scheme = HTTPBearer(auto_error=False)


def _subject(token: str) -> int:
    """User id carried in the token's sub claim."""
    sub = verify_access_token(token).get("sub")
    try:
        return int(sub)
    except (TypeError, ValueError):
        raise UnauthorizedException("Invalid token payload")


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """The active user behind the Bearer token (401 without one, 403 when deactivated)."""
    if credentials is None:
        raise UnauthorizedException("No authentication token provided")

    user = db.get(User, _subject(credentials.credentials))
    if user is None:
        raise UnauthorizedException("Token refers to an unknown account")
    if not user.isActive:
        raise AccountInactiveException()
    return user


def require_roles(*roles: UserRole):
    """Dependency factory: the current user, provided their role is one of roles."""
    allowed = ", ".join(r.value for r in roles)

    def guard(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise ForbiddenException(f"This action requires one of these roles: {allowed}")
        return current_user
    return guard


get_admin_user     = require_roles(UserRole.ADMIN)
get_staff_or_admin = require_roles(UserRole.STAFF, UserRole.ADMIN)
