import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from facility_booking.config import settings
from facility_booking.models.reservation import Reservation, ReservationStatus
from facility_booking.models.user import User
from facility_booking.schemas.check_in import ScanRequest
from facility_booking.services.reservation_service import compare_and_set, serialize_reservation
from facility_booking.utils.audit import log_action
from facility_booking.utils.qr import parse_qr_payload
from facility_booking.utils.timeutil import as_utc, isoformat, utcnow
from facility_booking.utils.exceptions import (
    NotFoundException, CheckInNotAllowedException, InvalidCheckInCodeException,
)

logger = logging.getLogger(__name__)

SCANNABLE_FROM = {
    "checkin":  frozenset({ReservationStatus.APPROVED}),
    "checkout": frozenset({ReservationStatus.CHECKED_IN}),
}


def check_in_window(r: Reservation) -> tuple[datetime, datetime]:
    """Scans are accepted from shortly before the start until a grace period after the end."""
    opens  = as_utc(r.startTime) - timedelta(minutes=settings.CHECKIN_OPEN_MINUTES_BEFORE_START)
    closes = as_utc(r.endTime)   + timedelta(minutes=settings.CHECKOUT_GRACE_MINUTES_AFTER_END)
    return opens, closes


class CheckInService:

    def scan(self, db: Session, data: ScanRequest, current_user: User, now: datetime | None = None) -> dict:
        """
        First scan of an APPROVED reservation checks it in, the next one checks it out.
        """
        reservation_id = None
        if data.qrData:
            try:
                reservation_id, code = parse_qr_payload(data.qrData)
            except ValueError as exc:
                raise InvalidCheckInCodeException(str(exc))
        else:
            code = data.manualCode.strip().upper()

        q = db.query(Reservation).filter(Reservation.checkInCode == code)
        if reservation_id is not None:
            q = q.filter(Reservation.id == reservation_id)
        r = q.first()
        if not r:
            raise NotFoundException("Reservation for this check-in code")

        if r.status not in (ReservationStatus.APPROVED, ReservationStatus.CHECKED_IN):
            raise CheckInNotAllowedException("Booking is not approved for check-in")

        now = as_utc(now) or utcnow()
        opens, closes = check_in_window(r)
        if now < opens:
            raise CheckInNotAllowedException(
                f"Check-in is only allowed {settings.CHECKIN_OPEN_MINUTES_BEFORE_START} "
                f"minutes before booking start time"
            )
        if now > closes:
            raise CheckInNotAllowedException("Booking has expired. Check-in no longer allowed.")

        if r.status == ReservationStatus.APPROVED:
            action = "checkin"
            written = compare_and_set(db, r, SCANNABLE_FROM[action],
                                      status=ReservationStatus.CHECKED_IN, checkInAt=now)
        else:
            action = "checkout"
            written = compare_and_set(db, r, SCANNABLE_FROM[action],
                                      status=ReservationStatus.CHECKED_OUT, checkOutAt=now)
        if not written:
            raise CheckInNotAllowedException("Booking is not approved for check-in")

        log_action(db, r.id, current_user.id, f"QR_{action.upper()}")
        db.commit()
        db.refresh(r)
        logger.info(f"Reservation #{r.id} {action} by user #{current_user.id}")

        return {
            "action":      action,
            "reservation": serialize_reservation(r),
            "timestamp":   isoformat(now),
        }

    def get_by_code(self, db: Session, code: str) -> dict:
        r = db.query(Reservation).filter(Reservation.checkInCode == code.strip().upper()).first()
        if not r:
            raise NotFoundException("Reservation")
        return serialize_reservation(r)


check_in_service = CheckInService()
