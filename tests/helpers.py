from datetime import timedelta

from fastapi.testclient import TestClient

from facility_booking.main import app
from facility_booking.utils.security import create_access_token
from facility_booking.utils.timeutil import utcnow

client = TestClient(app)


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role.value)}"}


def slot(days=7, hour=10, minute=0, minutes=60):
    """An ISO (start, end) pair on a day in the near future."""
    start = (utcnow() + timedelta(days=days)).replace(hour=hour, minute=minute, second=0, microsecond=0)
    return start.isoformat(), (start + timedelta(minutes=minutes)).isoformat()


def book(user, resource_ids, start, end, **extra):
    return client.post("/api/v1/reservations", headers=auth_headers(user), json={
        "resourceIds": resource_ids, "startTime": start, "endTime": end, **extra,
    })
