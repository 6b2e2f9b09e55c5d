from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from facility_booking.database import get_db
from facility_booking.dependencies import get_staff_or_admin
from facility_booking.models.user import User
from facility_booking.schemas.check_in import ScanRequest
from facility_booking.schemas.common import success_response
from facility_booking.services.check_in_service import check_in_service

router = APIRouter(prefix="/check-in")


@router.post("/scan", summary="Process a QR scan or manual code (Staff / Admin)")
def scan(
    body: ScanRequest,
    db:   Session = Depends(get_db),
    current_user: User = Depends(get_staff_or_admin),
):
    result = check_in_service.scan(db, body, current_user)
    message = "Checked in successfully" if result["action"] == "checkin" else "Checked out successfully"
    return success_response(message, result)


@router.get("/booking/{code}", summary="Look up a reservation by check-in code (Staff / Admin)")
def get_by_code(
    code: str,
    db:   Session = Depends(get_db),
    _:    User    = Depends(get_staff_or_admin),
):
    return success_response("Reservation retrieved", check_in_service.get_by_code(db, code))
