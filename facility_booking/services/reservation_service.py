import logging
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from facility_booking.config import settings
from facility_booking.engine import (
    AdmissionEngine, Decision, SqlResourceCatalog, SqlReservationStore, has_conflict,
)
from facility_booking.models.reservation import (
    Reservation, ReservationStatus, ApprovalType, reservation_resources,
    NON_BLOCKING_STATUSES, PENDING_STATUSES,
)
from facility_booking.models.resource import Resource
from facility_booking.models.system_setting import SystemSetting
from facility_booking.models.audit_log import AuditLog
from facility_booking.models.user import User, UserRole
from facility_booking.schemas.reservation import (
    ReservationCreateRequest, RescheduleRequest, ApproveRequest, RejectRequest, CancelRequest,
)
from facility_booking.services.system_setting_service import system_setting_service
from facility_booking.utils.audit import log_action
from facility_booking.utils.notifications import send_reservation_status_email, notify_admins_pending
from facility_booking.utils.qr import build_qr_payload
from facility_booking.utils.security import generate_checkin_code
from facility_booking.utils.timeutil import as_utc, isoformat, utcnow
from facility_booking.utils.exceptions import (
    NotFoundException, BookingConflictException, ResourceUnavailableException,
    InvalidDateRangeException, EmptyResourceSetException, InvalidDurationException,
    BookingLimitExceededException, ExternalBookingNotAllowedException,
    InvalidTransitionException, ForbiddenException, is_checkin_code_collision,
)

logger = logging.getLogger(__name__)

# Not yet used and not yet closed: may still be cancelled, moved in time or expired
OPEN_STATUSES = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.PENDING_ADMIN,
    ReservationStatus.APPROVED,
})

RESCHEDULABLE_STATUSES = OPEN_STATUSES
CANCELLABLE_STATUSES   = OPEN_STATUSES
EXPIRABLE_STATUSES     = OPEN_STATUSES


class RaceLostError(Exception):
    """A concurrent writer committed an overlapping reservation first."""


def compare_and_set(db: Session, r: Reservation, allowed: frozenset, **values) -> bool:
    """
    Write values to the reservation row only while its stored status is one of allowed.

    The status is tested by the UPDATE itself, so a transition decided on a stale
    copy of the row cannot overwrite a status another request already committed.
    On a lost race the transaction is rolled back, r is reloaded and False returned.
    """
    result = db.execute(
        update(Reservation)
        .where(Reservation.id == r.id, Reservation.status.in_(sorted(allowed, key=lambda s: s.value)))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        db.refresh(r)
        logger.info(f"Reservation #{r.id} changed concurrently, now {r.status.value}")
        return False
    for key, value in values.items():
        setattr(r, key, value)
    return True


def serialize_reservation(r: Reservation) -> dict:
    return {
        "id":     r.id,
        "status": r.status.value,
        "user": {
            "id":       r.user.id,
            "fullName": r.user.fullName,
            "email":    r.user.email,
        },
        "resources": [{
            "id":       res.id,
            "name":     res.name,
            "type":     res.type.value,
            "location": res.location,
        } for res in r.resources],
        "startTime":   isoformat(r.startTime),
        "endTime":     isoformat(r.endTime),
        "purpose":     r.purpose,
        "isExternal":  r.isExternal,
        "externalOrg": r.externalOrg,
        "approval": {
            "type":  r.approvalType.value if r.approvalType else None,
            "by":    {"id": r.approved_by.id, "fullName": r.approved_by.fullName} if r.approved_by else None,
            "at":    isoformat(r.approvedAt),
            "notes": r.approvalNotes,
        } if (r.approvalType or r.approvalNotes) else None,
        "checkInCode": r.checkInCode,
        "qrPayload":   build_qr_payload(r.id, r.checkInCode, r.resource_ids),
        "checkInAt":   isoformat(r.checkInAt),
        "checkOutAt":  isoformat(r.checkOutAt),
        "createdAt":   isoformat(r.createdAt),
        "updatedAt":   isoformat(r.updatedAt),
    }


def _validate_interval(resource_ids: list[int], start: datetime, end: datetime) -> None:
    if not resource_ids:
        raise EmptyResourceSetException()
    if as_utc(end) <= as_utc(start):
        raise InvalidDateRangeException()


def _check_durations(resources: list[Resource], start: datetime, end: datetime) -> None:
    minutes = (as_utc(end) - as_utc(start)).total_seconds() / 60
    for res in resources:
        if minutes < res.minBookingMinutes or minutes > res.maxBookingMinutes:
            raise InvalidDurationException(res.name, res.minBookingMinutes, res.maxBookingMinutes)


class ReservationService:

    # ─── Queries ─────────────────────────────────────────────────────────────
    def list_reservations(
        self, db: Session, current_user: User,
        page: int, limit: int,
        status: str | None, resource_id: int | None,
        start_date: datetime | None, end_date: datetime | None,
        is_external: bool | None, show_all: bool,
    ) -> tuple[list[dict], int]:
        q = db.query(Reservation)

        # Admin with all=true sees everything, everyone else their own
        if not (current_user.is_admin and show_all):
            q = q.filter(Reservation.userId == current_user.id)

        if status:      q = q.filter(Reservation.status == status)
        if resource_id:
            q = q.join(reservation_resources, reservation_resources.c.reservationId == Reservation.id)\
                 .filter(reservation_resources.c.resourceId == resource_id)
        if is_external is not None:
            q = q.filter(Reservation.isExternal.is_(is_external))
        if start_date:  q = q.filter(Reservation.startTime >= as_utc(start_date))
        if end_date:    q = q.filter(Reservation.startTime <= as_utc(end_date))

        total = q.count()
        items = q.order_by(Reservation.createdAt.desc(), Reservation.id.desc())\
                 .offset((page - 1) * limit).limit(limit).all()
        return [serialize_reservation(r) for r in items], total

    def get_reservation(self, db: Session, reservation_id: int, current_user: User) -> dict:
        r = self._get(db, reservation_id)
        if not current_user.is_admin and r.userId != current_user.id:
            raise ForbiddenException("You can only view your own reservations")
        return serialize_reservation(r)

    def check_availability(
        self, db: Session, resource_ids: list[int], start: datetime, end: datetime, is_external: bool,
    ) -> dict:
        """Dry run of the admission decision; nothing is written."""
        resource_ids = list(dict.fromkeys(resource_ids))
        _validate_interval(resource_ids, start, end)
        start, end = as_utc(start), as_utc(end)

        catalog, store = SqlResourceCatalog(db), SqlReservationStore(db)
        resources = catalog.get_many(resource_ids)
        if len(resources) != len(resource_ids):
            raise NotFoundException("Resource")

        engine = AdmissionEngine(catalog, store, system_setting_service.admission_policy(db))
        verdict = engine.evaluate(resources, start, end, is_external)
        types = {res.type for res in resources}
        return {
            "resourceIds":    resource_ids,
            "startTime":      start.isoformat(),
            "endTime":        end.isoformat(),
            "hasConflict":    has_conflict(store, resource_ids, start, end),
            "decision":       verdict.decision.value,
            "reasons":        verdict.reasons,
            "saturatedTypes": sorted(t.value for t in types if engine.is_type_saturated(t, start, end)),
        }

    # ─── Creation ────────────────────────────────────────────────────────────
    def create_reservation(self, db: Session, data: ReservationCreateRequest, current_user: User) -> dict:
        """
        Admit and persist a reservation.

        The resource rows are write-locked before the decision is taken, and the
        insert is re-verified before commit. A lost race is retried once as a
        fresh lock + decide + insert cycle, then surfaced as a conflict. A
        duplicate check-in code gets one retry with a newly minted code.
        """
        _validate_interval(data.resourceIds, data.startTime, data.endTime)

        for attempt in (1, 2):
            try:
                r = self._admit_and_insert(db, data, current_user)
                db.commit()
                break
            except (OperationalError, RaceLostError) as exc:
                db.rollback()
                if attempt == 2:
                    logger.warning(f"Booking race lost twice for resources {data.resourceIds}: {exc}")
                    raise BookingConflictException()
                logger.warning(f"Booking race lost for resources {data.resourceIds}, retrying: {exc}")
            except IntegrityError as exc:
                db.rollback()
                if attempt == 2 or not is_checkin_code_collision(exc):
                    raise
                logger.warning("Check-in code already taken, retrying with a fresh one")
            except Exception:
                db.rollback()
                raise

        db.refresh(r)
        names = [res.name for res in r.resources]
        if r.status == ReservationStatus.PENDING_ADMIN:
            notify_admins_pending(r.id, names)
        send_reservation_status_email(r.user.email, r.user.fullName, r.id, names, r.status.value)
        return serialize_reservation(r)

    def _admit_and_insert(self, db: Session, data: ReservationCreateRequest, current_user: User) -> Reservation:
        start, end = as_utc(data.startTime), as_utc(data.endTime)
        catalog, store = SqlResourceCatalog(db), SqlReservationStore(db)

        store.lock_resources(data.resourceIds)
        resources = catalog.get_many(data.resourceIds)
        if len(resources) != len(set(data.resourceIds)):
            raise NotFoundException("Resource")

        is_external = data.isExternal or current_user.role == UserRole.EXTERNAL
        policy_row = system_setting_service.current(db)
        _check_durations(resources, start, end)
        if is_external:
            self._check_external_rules(resources, start, policy_row)
        self._check_daily_limit(db, current_user, start, policy_row)

        engine = AdmissionEngine(catalog, store, system_setting_service.admission_policy(db))
        decision = engine.decide(resources, start, end, is_external)
        if decision == Decision.REJECT_INACTIVE:
            raise ResourceUnavailableException()
        if decision == Decision.REJECT_CONFLICT:
            raise BookingConflictException()

        auto = decision == Decision.AUTO_APPROVE
        now = utcnow()
        r = Reservation(
            userId=current_user.id,
            startTime=start,
            endTime=end,
            purpose=data.purpose,
            isExternal=is_external,
            externalOrg=data.externalOrg,
            status=ReservationStatus.APPROVED if auto else ReservationStatus.PENDING_ADMIN,
            approvalType=ApprovalType.AUTO if auto else None,
            approvedAt=now if auto else None,
            checkInCode=generate_checkin_code(),
        )
        r.resources = resources
        db.add(r)
        db.flush()

        if store.exists_overlapping(r.resource_ids, start, end, exclude_reservation_id=r.id):
            raise RaceLostError(f"overlap detected after insert of reservation #{r.id}")

        log_action(db, r.id, current_user.id, "BOOKING_CREATED")
        if auto:
            log_action(db, r.id, None, "BOOKING_AUTO_APPROVED")
        logger.info(f"Reservation #{r.id} by user #{current_user.id} on {r.resource_ids}: {decision.value}")
        return r

    def _check_external_rules(self, resources: list[Resource], start: datetime, s: SystemSetting) -> None:
        if not s.externalBookingsEnabled:
            raise ExternalBookingNotAllowedException("External bookings are currently disabled")
        closed = [res.name for res in resources if not res.externalBookingEnabled]
        if closed:
            raise ExternalBookingNotAllowedException(
                f"Not open to external bookings: {', '.join(closed)}"
            )
        if start > utcnow() + timedelta(days=s.allowedExternalWindowDays):
            raise ExternalBookingNotAllowedException(
                f"External bookings can be made at most {s.allowedExternalWindowDays} days ahead"
            )

    def _check_daily_limit(self, db: Session, user: User, start: datetime, s: SystemSetting) -> None:
        limit = s.dailyBookingLimitPerUser
        if not limit:
            return
        day_start = start.replace(hour=0, minute=0, second=0, microsecond=0)
        count = db.query(Reservation).filter(
            Reservation.userId == user.id,
            Reservation.status.notin_(list(NON_BLOCKING_STATUSES)),
            Reservation.startTime >= day_start,
            Reservation.startTime <  day_start + timedelta(days=1),
        ).count()
        if count >= limit:
            raise BookingLimitExceededException(limit)

    # ─── Admin transitions ───────────────────────────────────────────────────
    def approve_reservation(self, db: Session, reservation_id: int, data: ApproveRequest, current_user: User) -> dict:
        r = self._get(db, reservation_id)
        if r.status not in PENDING_STATUSES:
            raise InvalidTransitionException(r.status.value, "approve")

        # Re-check conflict against everything else holding these resources
        store = SqlReservationStore(db)
        store.lock_resources(r.resource_ids)
        if has_conflict(store, r.resource_ids, r.startTime, r.endTime, exclude_reservation_id=r.id):
            db.rollback()
            raise BookingConflictException()

        if not compare_and_set(
            db, r, PENDING_STATUSES,
            status=ReservationStatus.APPROVED,
            approvalType=ApprovalType.MANUAL,
            approvedById=current_user.id,
            approvedAt=utcnow(),
            approvalNotes=data.notes,
        ):
            raise InvalidTransitionException(r.status.value, "approve")
        log_action(db, r.id, current_user.id, "BOOKING_APPROVED")
        db.commit()
        db.refresh(r)

        send_reservation_status_email(r.user.email, r.user.fullName, r.id,
                                      [res.name for res in r.resources], "APPROVED", data.notes)
        return serialize_reservation(r)

    def reject_reservation(self, db: Session, reservation_id: int, data: RejectRequest, current_user: User) -> dict:
        r = self._get(db, reservation_id)
        if r.status not in PENDING_STATUSES:
            raise InvalidTransitionException(r.status.value, "reject")

        if not compare_and_set(
            db, r, PENDING_STATUSES,
            status=ReservationStatus.REJECTED,
            approvalType=ApprovalType.MANUAL,
            approvedById=current_user.id,
            approvedAt=utcnow(),
            approvalNotes=data.notes,
        ):
            raise InvalidTransitionException(r.status.value, "reject")
        log_action(db, r.id, current_user.id, "BOOKING_REJECTED")
        db.commit()
        db.refresh(r)

        send_reservation_status_email(r.user.email, r.user.fullName, r.id,
                                      [res.name for res in r.resources], "REJECTED", data.notes)
        return serialize_reservation(r)

    def cancel_reservation(self, db: Session, reservation_id: int, data: CancelRequest, current_user: User) -> dict:
        r = self._get(db, reservation_id)
        if not current_user.is_admin and r.userId != current_user.id:
            raise ForbiddenException("You can only cancel your own reservations")
        if r.status not in CANCELLABLE_STATUSES:
            raise InvalidTransitionException(r.status.value, "cancel")

        values = {"status": ReservationStatus.CANCELLED}
        if data.notes:
            values["approvalNotes"] = data.notes
        if not compare_and_set(db, r, CANCELLABLE_STATUSES, **values):
            raise InvalidTransitionException(r.status.value, "cancel")
        log_action(db, r.id, current_user.id, "BOOKING_CANCELLED")
        db.commit()
        db.refresh(r)
        return serialize_reservation(r)

    def reschedule_reservation(
        self, db: Session, reservation_id: int, data: RescheduleRequest, current_user: User,
    ) -> dict:
        r = self._get(db, reservation_id)
        if r.status not in RESCHEDULABLE_STATUSES:
            raise InvalidTransitionException(r.status.value, "reschedule")
        _validate_interval(r.resource_ids, data.startTime, data.endTime)
        start, end = as_utc(data.startTime), as_utc(data.endTime)

        store = SqlReservationStore(db)
        store.lock_resources(r.resource_ids)
        try:
            if any(not res.is_available for res in r.resources):
                raise ResourceUnavailableException()
            _check_durations(r.resources, start, end)
            if has_conflict(store, r.resource_ids, start, end, exclude_reservation_id=r.id):
                raise BookingConflictException()
        except Exception:
            db.rollback()
            raise

        values = {"startTime": start, "endTime": end}
        if data.notes:
            values["approvalNotes"] = data.notes
        if not compare_and_set(db, r, RESCHEDULABLE_STATUSES, **values):
            raise InvalidTransitionException(r.status.value, "reschedule")
        log_action(db, r.id, current_user.id, "BOOKING_RESCHEDULED")
        db.commit()
        db.refresh(r)
        return serialize_reservation(r)

    def get_audit_log(self, db: Session, reservation_id: int) -> list[dict]:
        self._get(db, reservation_id)
        entries = db.query(AuditLog).filter(AuditLog.reservationId == reservation_id)\
                    .order_by(AuditLog.id.asc()).all()
        return [{
            "id":     e.id,
            "action": e.action,
            "by":     {"id": e.actor.id, "fullName": e.actor.fullName} if e.actor else None,
            "at":     isoformat(e.createdAt),
        } for e in entries]

    # ─── Scheduler helper (called by cron / background task) ─────────────────
    def expire_stale(self, db: Session, now: datetime | None = None) -> dict:
        """
        Close out reservations whose time has passed.

        Open reservations never used before end + overdue grace become EXPIRED.
        Check-ins nobody scanned out before end + checkout grace become CHECKED_OUT,
        since the scanner no longer accepts them after that point.
        """
        now = as_utc(now) or utcnow()
        grace = system_setting_service.current(db).overdueGraceMinutes
        expire_before   = now - timedelta(minutes=grace)
        checkout_before = now - timedelta(minutes=settings.CHECKOUT_GRACE_MINUTES_AFTER_END)

        stale = db.query(Reservation).filter(
            Reservation.status.in_(list(EXPIRABLE_STATUSES)),
            Reservation.endTime < expire_before,
        ).all()
        expired = 0
        for r in stale:
            if compare_and_set(db, r, EXPIRABLE_STATUSES, status=ReservationStatus.EXPIRED):
                log_action(db, r.id, None, "SYSTEM_EXPIRED")
                db.commit()
                expired += 1

        forgotten = db.query(Reservation).filter(
            Reservation.status == ReservationStatus.CHECKED_IN,
            Reservation.endTime < checkout_before,
        ).all()
        checked_out = 0
        for r in forgotten:
            if compare_and_set(db, r, frozenset({ReservationStatus.CHECKED_IN}),
                               status=ReservationStatus.CHECKED_OUT, checkOutAt=now):
                log_action(db, r.id, None, "SYSTEM_CHECKOUT")
                db.commit()
                checked_out += 1

        if expired or checked_out:
            logger.info(f"Expired {expired} stale reservations, closed {checked_out} open check-ins")
        return {"expired": expired, "checkedOut": checked_out}

    @staticmethod
    def _get(db: Session, reservation_id: int) -> Reservation:
        r = db.query(Reservation).filter(Reservation.id == reservation_id).first()
        if not r:
            raise NotFoundException("Reservation")
        return r


reservation_service = ReservationService()
