from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from facility_booking.database import get_db
from facility_booking.dependencies import get_current_user
from facility_booking.models.user import User
from facility_booking.schemas.auth import LoginRequest
from facility_booking.schemas.common import success_response
from facility_booking.services.auth_service import auth_service, serialize_user

router = APIRouter(prefix="/auth")


# ─── POST /auth/login ─────────────────────────────────────────────────────────
@router.post("/login", status_code=status.HTTP_200_OK, summary="Login and receive an access token")
def login(data: LoginRequest, db: Session = Depends(get_db)):
    return success_response("Login successful", auth_service.login(db, data))


# ─── GET /auth/me ─────────────────────────────────────────────────────────────
@router.get("/me", summary="Current user profile")
def me(current_user: User = Depends(get_current_user)):
    return success_response("Profile retrieved", serialize_user(current_user))
