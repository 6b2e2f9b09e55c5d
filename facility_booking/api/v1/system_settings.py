from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from facility_booking.database import get_db
from facility_booking.dependencies import get_current_user, get_admin_user
from facility_booking.models.user import User
from facility_booking.schemas.system_setting import SystemSettingUpdate
from facility_booking.schemas.common import success_response
from facility_booking.services.system_setting_service import system_setting_service

router = APIRouter(prefix="/system-settings")


@router.get("", summary="Get booking policy settings")
def get_settings(
    db: Session = Depends(get_db),
    _:  User    = Depends(get_current_user),
):
    return success_response("System settings retrieved", system_setting_service.get_settings(db))


@router.patch("", summary="Update booking policy settings (Admin)")
def update_settings(
    body:         SystemSettingUpdate,
    db:           Session = Depends(get_db),
    current_user: User    = Depends(get_admin_user),
):
    return success_response("System settings updated",
                            system_setting_service.update_settings(db, body, current_user))
