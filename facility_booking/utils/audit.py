from sqlalchemy.orm import Session
from facility_booking.models.audit_log import AuditLog
from facility_booking.utils.timeutil import utcnow


def log_action(
    db: Session,
    reservation_id: int,
    actor_id: int | None,
    action: str,
) -> None:
    """
    Append an entry to a reservation's audit trail.

    Args:
        db:             Active DB session (not committed here, the caller commits)
        reservation_id: Reservation the action applies to (must be flushed)
        actor_id:       ID of user performing the action (None = system action)
        action:         BOOKING_CREATED, BOOKING_APPROVED, QR_CHECKIN, SYSTEM_EXPIRED, ...

    Usage:
        log_action(db, reservation.id, current_user.id, "BOOKING_APPROVED")
        db.commit()
    """
    entry = AuditLog(
        reservationId=reservation_id,
        actorId=actor_id,
        action=action,
        createdAt=utcnow(),
    )
    db.add(entry)
    # The caller commits this together with the status change
