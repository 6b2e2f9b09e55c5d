from sqlalchemy.orm import Session

from facility_booking.models.user import User
from facility_booking.schemas.auth import LoginRequest
from facility_booking.utils.security import verify_password, create_access_token
from facility_booking.utils.exceptions import InvalidCredentialsException, AccountInactiveException
from facility_booking.config import settings


def serialize_user(user: User) -> dict:
    return {
        "id":       user.id,
        "fullName": user.fullName,
        "email":    user.email,
        "role":     user.role.value,
        "isActive": user.isActive,
    }


class AuthService:

    # ─── Login ────────────────────────────────────────────────────────────────
    def login(self, db: Session, data: LoginRequest) -> dict:
        user = db.query(User).filter(User.email == data.email).first()

        if not user or not verify_password(data.password, user.password):
            raise InvalidCredentialsException()

        if not user.isActive:
            raise AccountInactiveException()

        return {
            "accessToken": create_access_token(user.id, user.role.value),
            "tokenType":   "Bearer",
            "expiresIn":   settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "user":        serialize_user(user),
        }


auth_service = AuthService()
