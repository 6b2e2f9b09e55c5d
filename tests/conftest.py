import os

# Settings are read at import time, so point them at the test database first
if not os.path.exists("./out"):
    os.makedirs("./out")
os.environ["DATABASE_URL"] = "sqlite:///./out/test_facility_booking.db"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["APP_ENV"] = "test"

import pytest
from sqlalchemy import text

import facility_booking.models  # noqa: F401
from facility_booking.database import Base, SessionLocal, engine
from facility_booking.models.resource import Resource, ResourceType
from facility_booking.models.user import User, UserRole

Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_db():
    """Clear all data from all tables after each test"""
    yield
    with engine.connect() as conn:
        trans = conn.begin()
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        trans.commit()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _next_number():
    _next_number.count = getattr(_next_number, "count", 0) + 1
    return _next_number.count


@pytest.fixture
def make_user(db):
    def factory(role=UserRole.STUDENT, password="not-used", **fields):
        n = _next_number()
        user = User(
            fullName=fields.pop("fullName", f"{role.value.title()} {n}"),
            email=fields.pop("email", f"{role.value.lower()}{n}@campus.edu"),
            password=password,
            role=role,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return factory


@pytest.fixture
def student(make_user):
    return make_user(UserRole.STUDENT)


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture
def staff(make_user):
    return make_user(UserRole.STAFF)


@pytest.fixture
def make_resource(db):
    def factory(**fields):
        n = _next_number()
        resource = Resource(
            name=fields.pop("name", f"Resource {n}"),
            type=fields.pop("type", ResourceType.CONFERENCE_ROOM),
            location=fields.pop("location", "Main Building"),
            capacity=fields.pop("capacity", 12),
            **fields,
        )
        db.add(resource)
        db.commit()
        db.refresh(resource)
        return resource
    return factory
