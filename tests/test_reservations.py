import json
import re
from datetime import timedelta

import pytest

from facility_booking.models.reservation import Reservation, ReservationStatus
from facility_booking.models.resource import ResourceType
from facility_booking.models.user import UserRole
from facility_booking.services import reservation_service as reservation_service_module
from facility_booking.utils.timeutil import utcnow
from tests.helpers import auth_headers, book, client, slot

API = "/api/v1/reservations"


def error_code(response):
    return response.json()["error"]["code"]


# ─── Creation and admission ──────────────────────────────────────────────────
def test_create_auto_approves_free_resource(student, make_resource):
    room = make_resource(name="Seminar Room A")
    start, end = slot()

    res = book(student, [room.id], start, end, purpose="Thesis defence rehearsal")

    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    data = body["data"]
    assert data["status"] == "APPROVED"
    assert data["approval"]["type"] == "AUTO"
    assert data["user"]["id"] == student.id
    assert [r["id"] for r in data["resources"]] == [room.id]
    assert re.fullmatch(r"[A-Z0-9]{8}", data["checkInCode"])

    payload = json.loads(data["qrPayload"])
    assert payload == {
        "bookingId": data["id"], "checkInCode": data["checkInCode"],
        "facilities": [room.id], "type": "FACILITY_ACCESS",
    }


def test_conference_room_overlap_and_touching_boundary(student, make_user, make_resource):
    room = make_resource(type=ResourceType.CONFERENCE_ROOM)
    other = make_user(UserRole.STAFF)
    ten, eleven = slot(hour=10)
    half_past, half_past_eleven = slot(hour=10, minute=30)
    _, noon = slot(hour=11)

    assert book(student, [room.id], ten, eleven).status_code == 201

    clash = book(other, [room.id], half_past, half_past_eleven)
    assert clash.status_code == 409
    assert error_code(clash) == "BOOKING_CONFLICT"
    assert clash.json()["message"] == "Resource is already booked for the requested time range"

    touching = book(other, [room.id], eleven, noon)
    assert touching.status_code == 201
    assert touching.json()["data"]["status"] == "APPROVED"


def test_multi_resource_request_is_atomic(student, staff, make_resource):
    room = make_resource()
    projector = make_resource(type=ResourceType.PROJECTOR)
    start, end = slot()

    assert book(student, [projector.id], start, end).status_code == 201
    res = book(staff, [room.id, projector.id], start, end)
    assert res.status_code == 409

    staff_list = client.get(f"{API}?all=true", headers=auth_headers(staff))
    assert staff_list.json()["meta"]["total"] == 0


def test_duplicate_ids_collapse_to_one(student, make_resource):
    room = make_resource()
    start, end = slot()
    res = book(student, [room.id, room.id], start, end)
    assert res.status_code == 201
    assert len(res.json()["data"]["resources"]) == 1


def test_restricted_resource_waits_for_admin(student, make_resource):
    lab = make_resource(type=ResourceType.LAB, isRestricted=True)
    start, end = slot()

    res = book(student, [lab.id], start, end)
    assert res.status_code == 201
    assert res.json()["data"]["status"] == "PENDING_ADMIN"
    assert res.json()["data"]["approval"] is None

    # A pending request still holds the slot
    assert book(student, [lab.id], start, end).status_code == 409


@pytest.mark.parametrize("flags", [{"active": False}, {"maintenanceMode": True}])
def test_unbookable_resource_is_refused(student, make_resource, flags):
    room = make_resource(**flags)
    res = book(student, [room.id], *slot())
    assert res.status_code == 400
    assert error_code(res) == "RESOURCE_UNAVAILABLE"


def test_unknown_resource_is_not_found(student):
    res = book(student, [9999], *slot())
    assert res.status_code == 404


def test_request_validation(student, make_resource):
    room = make_resource()
    start, end = slot()

    assert book(student, [], start, end).status_code == 422
    inverted = book(student, [room.id], end, start)
    assert inverted.status_code == 422
    assert error_code(inverted) == "VALIDATION_ERROR"
    assert book(student, [room.id], start, start).status_code == 422


def test_duration_bounds_are_enforced(student, make_resource):
    room = make_resource(minBookingMinutes=30, maxBookingMinutes=120)

    short = book(student, [room.id], *slot(minutes=15))
    assert short.status_code == 400
    assert error_code(short) == "INVALID_DURATION"

    long = book(student, [room.id], *slot(minutes=180))
    assert error_code(long) == "INVALID_DURATION"

    assert book(student, [room.id], *slot(minutes=120)).status_code == 201


def test_unauthenticated_request_is_rejected(make_resource):
    room = make_resource()
    start, end = slot()
    res = client.post(API, json={"resourceIds": [room.id], "startTime": start, "endTime": end})
    assert res.status_code == 401
    assert error_code(res) == "UNAUTHORIZED"


def test_taken_check_in_code_is_reminted(monkeypatch, db, student, make_resource):
    room, other_room = make_resource(), make_resource()
    taken = book(student, [room.id], *slot()).json()["data"]["checkInCode"]

    codes = iter([taken, "FRESH123"])
    monkeypatch.setattr(reservation_service_module, "generate_checkin_code", lambda: next(codes))

    res = book(student, [other_room.id], *slot())
    assert res.status_code == 201
    assert res.json()["data"]["checkInCode"] == "FRESH123"
    assert db.query(Reservation).count() == 2


def test_check_in_code_that_keeps_colliding(monkeypatch, db, student, make_resource):
    room, other_room = make_resource(), make_resource()
    taken = book(student, [room.id], *slot()).json()["data"]["checkInCode"]
    monkeypatch.setattr(reservation_service_module, "generate_checkin_code", lambda: taken)

    res = book(student, [other_room.id], *slot())
    assert res.status_code == 503
    assert error_code(res) == "CHECKIN_CODE_COLLISION"
    assert db.query(Reservation).count() == 1


# ─── External bookings and policy settings ───────────────────────────────────
def test_external_booking_rules(student, make_resource):
    closed = make_resource(type=ResourceType.HALL)
    hall = make_resource(type=ResourceType.HALL, externalBookingEnabled=True)
    start, end = slot()

    missing_org = book(student, [hall.id], start, end, isExternal=True)
    assert missing_org.status_code == 422

    refused = book(student, [closed.id], start, end, isExternal=True, externalOrg="Chess Club")
    assert refused.status_code == 400
    assert error_code(refused) == "EXTERNAL_NOT_ALLOWED"

    too_far = book(student, [hall.id], *slot(days=200), isExternal=True, externalOrg="Chess Club")
    assert error_code(too_far) == "EXTERNAL_NOT_ALLOWED"

    res = book(student, [hall.id], start, end, isExternal=True, externalOrg="Chess Club")
    assert res.status_code == 201
    assert res.json()["data"]["status"] == "PENDING_ADMIN"
    assert res.json()["data"]["isExternal"] is True


def test_external_role_is_always_treated_as_external(make_user, make_resource):
    guest = make_user(UserRole.EXTERNAL)
    hall = make_resource(type=ResourceType.HALL, externalBookingEnabled=True)

    res = book(guest, [hall.id], *slot())
    assert res.status_code == 201
    assert res.json()["data"]["isExternal"] is True
    assert res.json()["data"]["status"] == "PENDING_ADMIN"


def test_disabled_external_bookings(student, admin, make_resource):
    hall = make_resource(type=ResourceType.HALL, externalBookingEnabled=True)
    client.patch("/api/v1/system-settings", headers=auth_headers(admin),
                 json={"externalBookingsEnabled": False})

    res = book(student, [hall.id], *slot(), isExternal=True, externalOrg="Chess Club")
    assert error_code(res) == "EXTERNAL_NOT_ALLOWED"


def test_daily_limit(student, admin, make_resource):
    room = make_resource()
    client.patch("/api/v1/system-settings", headers=auth_headers(admin),
                 json={"dailyBookingLimitPerUser": 1})

    assert book(student, [room.id], *slot(hour=9)).status_code == 201
    res = book(student, [room.id], *slot(hour=14))
    assert res.status_code == 400
    assert error_code(res) == "BOOKING_LIMIT_EXCEEDED"

    # Another day is fine
    assert book(student, [room.id], *slot(days=8, hour=14)).status_code == 201


def test_restricted_types_and_auto_approval_switch(student, admin, make_resource):
    bus = make_resource(type=ResourceType.BUS, capacity=40)
    room = make_resource()
    client.patch("/api/v1/system-settings", headers=auth_headers(admin),
                 json={"restrictedTypes": ["BUS"]})

    assert book(student, [bus.id], *slot()).json()["data"]["status"] == "PENDING_ADMIN"
    assert book(student, [room.id], *slot()).json()["data"]["status"] == "APPROVED"

    client.patch("/api/v1/system-settings", headers=auth_headers(admin),
                 json={"autoApprovalEnabled": False})
    assert book(student, [room.id], *slot(hour=15)).json()["data"]["status"] == "PENDING_ADMIN"


# ─── Admin transitions ───────────────────────────────────────────────────────
@pytest.fixture
def pending(student, make_resource):
    lab = make_resource(type=ResourceType.LAB, isRestricted=True)
    return book(student, [lab.id], *slot()).json()["data"]


def test_admin_approves_pending_request(admin, pending):
    res = client.patch(f"{API}/{pending['id']}/approve", headers=auth_headers(admin),
                       json={"notes": "Bring your lab coat"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["status"] == "APPROVED"
    assert data["approval"]["type"] == "MANUAL"
    assert data["approval"]["by"]["id"] == admin.id
    assert data["approval"]["notes"] == "Bring your lab coat"

    again = client.patch(f"{API}/{pending['id']}/approve", headers=auth_headers(admin), json={})
    assert again.status_code == 400
    assert error_code(again) == "INVALID_STATUS_TRANSITION"


def test_only_admins_approve(student, pending):
    res = client.patch(f"{API}/{pending['id']}/approve", headers=auth_headers(student), json={})
    assert res.status_code == 403


def test_reject_requires_notes_and_frees_the_slot(student, admin, pending):
    no_notes = client.patch(f"{API}/{pending['id']}/reject", headers=auth_headers(admin),
                            json={"notes": "  "})
    assert no_notes.status_code == 422

    res = client.patch(f"{API}/{pending['id']}/reject", headers=auth_headers(admin),
                       json={"notes": "Lab closed for inspection"})
    assert res.json()["data"]["status"] == "REJECTED"

    resource_id = pending["resources"][0]["id"]
    rebook = book(student, [resource_id], pending["startTime"], pending["endTime"])
    assert rebook.status_code == 201

    cancel = client.patch(f"{API}/{pending['id']}/cancel", headers=auth_headers(student), json={})
    assert cancel.status_code == 400


def test_cancel_own_reservation(student, make_user, make_resource):
    room = make_resource()
    start, end = slot()
    created = book(student, [room.id], start, end).json()["data"]

    stranger = make_user(UserRole.STUDENT)
    forbidden = client.patch(f"{API}/{created['id']}/cancel", headers=auth_headers(stranger), json={})
    assert forbidden.status_code == 403

    res = client.patch(f"{API}/{created['id']}/cancel", headers=auth_headers(student),
                       json={"notes": "Meeting moved online"})
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "CANCELLED"

    # The interval is free again
    assert book(stranger, [room.id], start, end).status_code == 201
    assert client.patch(f"{API}/{created['id']}/cancel",
                        headers=auth_headers(student), json={}).status_code == 400


def test_cancel_is_refused_once_checked_in(student, db, make_resource):
    room = make_resource()
    created = book(student, [room.id], *slot()).json()["data"]
    r = db.get(Reservation, created["id"])
    r.status = ReservationStatus.CHECKED_IN
    db.commit()

    res = client.patch(f"{API}/{created['id']}/cancel", headers=auth_headers(student), json={})
    assert res.status_code == 400
    assert error_code(res) == "INVALID_STATUS_TRANSITION"


def test_reschedule_excludes_itself(student, staff, admin, make_resource):
    room = make_resource()
    created = book(student, [room.id], *slot(hour=10)).json()["data"]
    book(staff, [room.id], *slot(hour=13))

    # Overlaps its own current window only
    start, end = slot(hour=10, minute=30)
    res = client.patch(f"{API}/{created['id']}/reschedule", headers=auth_headers(admin),
                       json={"startTime": start, "endTime": end})
    assert res.status_code == 200
    assert res.json()["data"]["startTime"].startswith(start[:16])

    clash = client.patch(f"{API}/{created['id']}/reschedule", headers=auth_headers(admin),
                         json={"startTime": slot(hour=12, minute=30)[0], "endTime": slot(hour=13, minute=30)[0]})
    assert clash.status_code == 409


def test_get_reservation_is_owner_or_admin(student, staff, admin, make_resource):
    room = make_resource()
    created = book(student, [room.id], *slot()).json()["data"]

    assert client.get(f"{API}/{created['id']}", headers=auth_headers(student)).status_code == 200
    assert client.get(f"{API}/{created['id']}", headers=auth_headers(admin)).status_code == 200
    assert client.get(f"{API}/{created['id']}", headers=auth_headers(staff)).status_code == 403
    assert client.get(f"{API}/424242", headers=auth_headers(admin)).status_code == 404


# ─── Listing, availability, audit, expiry ────────────────────────────────────
def test_list_own_and_all(student, staff, admin, make_resource):
    room = make_resource()
    book(student, [room.id], *slot(hour=9))
    book(student, [room.id], *slot(hour=11))
    book(staff, [room.id], *slot(hour=14))

    own = client.get(f"{API}?limit=1", headers=auth_headers(student)).json()
    assert own["meta"] == {"page": 1, "limit": 1, "total": 2, "totalPages": 2, "hasNext": True, "hasPrev": False}

    ignored = client.get(f"{API}?all=true", headers=auth_headers(student)).json()
    assert ignored["meta"]["total"] == 2

    everything = client.get(f"{API}?all=true&resourceId={room.id}", headers=auth_headers(admin)).json()
    assert everything["meta"]["total"] == 3

    approved = client.get(f"{API}?all=true&status=APPROVED", headers=auth_headers(admin)).json()
    assert approved["meta"]["total"] == 3


def test_availability_preview_writes_nothing(student, admin, make_resource):
    room = make_resource()
    start, end = slot()
    book(student, [room.id], start, end)
    free_start, free_end = slot(hour=14)

    busy = client.get(f"{API}/availability", headers=auth_headers(student),
                      params={"resourceIds": [room.id], "startTime": start, "endTime": end}).json()["data"]
    assert busy["hasConflict"] is True
    assert busy["decision"] == "REJECT_CONFLICT"
    assert busy["saturatedTypes"] == ["CONFERENCE_ROOM"]

    free = client.get(f"{API}/availability", headers=auth_headers(student),
                      params={"resourceIds": [room.id], "startTime": free_start, "endTime": free_end}).json()["data"]
    assert free["hasConflict"] is False
    assert free["decision"] == "AUTO_APPROVE"
    assert free["reasons"] == []

    external = client.get(f"{API}/availability", headers=auth_headers(student),
                          params={"resourceIds": [room.id], "startTime": free_start,
                                  "endTime": free_end, "isExternal": True}).json()["data"]
    assert external["decision"] == "REQUIRES_ADMIN_APPROVAL"
    assert external["reasons"] == ["external requester"]

    listing = client.get(f"{API}?all=true", headers=auth_headers(admin)).json()
    assert listing["meta"]["total"] == 1


def test_audit_trail(student, admin, make_resource):
    room = make_resource()
    created = book(student, [room.id], *slot()).json()["data"]
    client.patch(f"{API}/{created['id']}/cancel", headers=auth_headers(student), json={})

    res = client.get(f"{API}/{created['id']}/audit", headers=auth_headers(admin))
    entries = res.json()["data"]
    assert [e["action"] for e in entries] == ["BOOKING_CREATED", "BOOKING_AUTO_APPROVED", "BOOKING_CANCELLED"]
    assert entries[0]["by"]["id"] == student.id
    assert entries[1]["by"] is None

    assert client.get(f"{API}/{created['id']}/audit", headers=auth_headers(student)).status_code == 403


def test_expire_stale_reservations(student, admin, db, make_resource):
    room = make_resource()
    now = utcnow()
    stale = Reservation(userId=student.id, startTime=now - timedelta(hours=3),
                        endTime=now - timedelta(hours=2), status=ReservationStatus.APPROVED,
                        checkInCode="STALE001")
    used = Reservation(userId=student.id, startTime=now - timedelta(hours=3),
                       endTime=now - timedelta(hours=2), status=ReservationStatus.CHECKED_OUT,
                       checkInCode="USED0001")
    recent = Reservation(userId=student.id, startTime=now - timedelta(hours=1),
                         endTime=now - timedelta(minutes=2), status=ReservationStatus.PENDING_ADMIN,
                         checkInCode="RECENT01")
    forgotten = Reservation(userId=student.id, startTime=now - timedelta(hours=3),
                            endTime=now - timedelta(hours=2), status=ReservationStatus.CHECKED_IN,
                            checkInCode="INSIDE01", checkInAt=now - timedelta(hours=3))
    running = Reservation(userId=student.id, startTime=now - timedelta(hours=1),
                          endTime=now - timedelta(minutes=10), status=ReservationStatus.CHECKED_IN,
                          checkInCode="INSIDE02", checkInAt=now - timedelta(hours=1))
    for r in (stale, used, recent, forgotten, running):
        r.resources = [room]
        db.add(r)
    db.commit()

    res = client.post(f"{API}/expire", headers=auth_headers(admin))
    assert res.status_code == 200
    assert res.json()["data"] == {"expired": 1, "checkedOut": 1}

    db.expire_all()
    assert db.get(Reservation, stale.id).status == ReservationStatus.EXPIRED
    assert db.get(Reservation, used.id).status == ReservationStatus.CHECKED_OUT
    # Still inside the 5 minute grace
    assert db.get(Reservation, recent.id).status == ReservationStatus.PENDING_ADMIN
    # Nobody scanned out and the scanner window is closed
    assert db.get(Reservation, forgotten.id).status == ReservationStatus.CHECKED_OUT
    assert db.get(Reservation, forgotten.id).checkOutAt is not None
    # Still inside the checkout grace, a scan can close it
    assert db.get(Reservation, running.id).status == ReservationStatus.CHECKED_IN

    trail = client.get(f"{API}/{stale.id}/audit", headers=auth_headers(admin)).json()["data"]
    assert [e["action"] for e in trail] == ["SYSTEM_EXPIRED"]
    trail = client.get(f"{API}/{forgotten.id}/audit", headers=auth_headers(admin)).json()["data"]
    assert [e["action"] for e in trail] == ["SYSTEM_CHECKOUT"]

    assert client.post(f"{API}/expire", headers=auth_headers(student)).status_code == 403
