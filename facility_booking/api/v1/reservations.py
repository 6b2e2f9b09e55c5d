from datetime import datetime
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from facility_booking.database import get_db
from facility_booking.dependencies import get_current_user, get_admin_user
from facility_booking.models.user import User
from facility_booking.schemas.reservation import (
    ReservationCreateRequest, RescheduleRequest, ApproveRequest, RejectRequest, CancelRequest,
)
from facility_booking.schemas.common import success_response, paginated_response
from facility_booking.services.reservation_service import reservation_service

router = APIRouter(prefix="/reservations")


@router.get("", summary="List reservations (own, or all for admins)")
def list_reservations(
    page:         int                = Query(1, ge=1),
    limit:        int                = Query(20, ge=1, le=100),
    status:       Optional[str]      = Query(None),
    resourceId:   Optional[int]      = Query(None),
    startDate:    Optional[datetime] = Query(None),
    endDate:      Optional[datetime] = Query(None),
    isExternal:   Optional[bool]     = Query(None),
    all:          bool               = Query(False, description="Admin only"),
    db:           Session            = Depends(get_db),
    current_user: User               = Depends(get_current_user),
):
    data, total = reservation_service.list_reservations(
        db, current_user, page, limit,
        status, resourceId, startDate, endDate, isExternal, all,
    )
    return paginated_response("Reservations retrieved successfully", data, total, page, limit)


@router.get("/availability", summary="Conflict check and decision preview (no booking made)")
def check_availability(
    resourceIds: list[int] = Query(...),
    startTime:   datetime  = Query(...),
    endTime:     datetime  = Query(...),
    isExternal:  bool      = Query(False),
    db:          Session   = Depends(get_db),
    _:           User      = Depends(get_current_user),
):
    data = reservation_service.check_availability(db, resourceIds, startTime, endTime, isExternal)
    return success_response("Availability checked", data)


@router.post("/expire", summary="Expire unused reservations past their end (Admin / scheduler)")
def expire_stale(
    db: Session = Depends(get_db),
    _:  User    = Depends(get_admin_user),
):
    closed = reservation_service.expire_stale(db)
    return success_response(
        f"{closed['expired']} reservations expired, {closed['checkedOut']} checked out", closed,
    )


@router.get("/{reservation_id}", summary="Get reservation detail")
def get_reservation(
    reservation_id: int,
    db:             Session = Depends(get_db),
    current_user:   User    = Depends(get_current_user),
):
    return success_response("Reservation retrieved",
                            reservation_service.get_reservation(db, reservation_id, current_user))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create reservation")
def create_reservation(
    body: ReservationCreateRequest,
    db:   Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    data = reservation_service.create_reservation(db, body, current_user)
    message = ("Reservation created and approved automatically" if data["status"] == "APPROVED"
               else "Reservation created and awaiting admin approval")
    return success_response(message, data)


@router.patch("/{reservation_id}/cancel", summary="Cancel reservation (owner or Admin)")
def cancel_reservation(
    reservation_id: int,
    body:           CancelRequest = CancelRequest(),
    db:             Session       = Depends(get_db),
    current_user:   User          = Depends(get_current_user),
):
    return success_response("Reservation cancelled",
                            reservation_service.cancel_reservation(db, reservation_id, body, current_user))


@router.patch("/{reservation_id}/approve", summary="Approve reservation (Admin)")
def approve_reservation(
    reservation_id: int,
    body:           ApproveRequest = ApproveRequest(),
    db:             Session        = Depends(get_db),
    current_user:   User           = Depends(get_admin_user),
):
    return success_response("Reservation approved successfully",
                            reservation_service.approve_reservation(db, reservation_id, body, current_user))


@router.patch("/{reservation_id}/reject", summary="Reject reservation (Admin)")
def reject_reservation(
    reservation_id: int,
    body:           RejectRequest,
    db:             Session = Depends(get_db),
    current_user:   User    = Depends(get_admin_user),
):
    return success_response("Reservation rejected",
                            reservation_service.reject_reservation(db, reservation_id, body, current_user))


@router.patch("/{reservation_id}/reschedule", summary="Move reservation to a new time window (Admin)")
def reschedule_reservation(
    reservation_id: int,
    body:           RescheduleRequest,
    db:             Session = Depends(get_db),
    current_user:   User    = Depends(get_admin_user),
):
    return success_response("Reservation rescheduled",
                            reservation_service.reschedule_reservation(db, reservation_id, body, current_user))


@router.get("/{reservation_id}/audit", summary="Get audit trail (Admin)")
def get_audit_log(
    reservation_id: int,
    db:             Session = Depends(get_db),
    _:              User    = Depends(get_admin_user),
):
    return success_response("Audit trail retrieved", reservation_service.get_audit_log(db, reservation_id))
