import os

# Must be set before the application modules are imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

import pytest
from fastapi.testclient import TestClient

from medibook.main import app
from medibook.core.config import settings
from medibook.core.database import Base, SessionLocal, engine, get_redis
from medibook.core.security import UserRole, create_access_token, get_password_hash
from medibook.models.doctor import Doctor
from medibook.models.user import User


PASSWORD_HASH = get_password_hash("Password123")


class FakeRedis:
    """In-memory stand-in for the two redis commands the rate limiter uses."""

    def __init__(self):
        self.data = {}
        self.expiries = {}

    def incr(self, key):
        self.data[key] = int(self.data.get(key, 0)) + 1
        return self.data[key]

    def expire(self, key, seconds):
        self.expiries[key] = seconds
        return True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture(scope="function")
def test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(test_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(test_db, fake_redis):
    app.dependency_overrides[get_redis] = lambda: fake_redis
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def multi_role(monkeypatch):
    """Let doctors and admins through the auth gate."""
    monkeypatch.setattr(settings, "PATIENT_ONLY_ACCESS", False)


@pytest.fixture
def make_user(db_session):
    """Insert a user directly and return (user, token)."""
    counter = {"n": 0}

    def _make_user(role=UserRole.PATIENT, name=None, **fields):
        counter["n"] += 1
        user = User(
            name=name or f"{role.value.title()} {counter['n']}",
            email=fields.pop("email", f"{role.value}{counter['n']}@example.com"),
            password_hash=PASSWORD_HASH,
            role=role,
            phone=fields.pop("phone", f"555-010{counter['n']}"),
            address=fields.pop("address", f"{counter['n']} Main Street"),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user, create_access_token(user.id)

    return _make_user


@pytest.fixture
def make_doctor(db_session, make_user):
    """Insert a doctor-role user with a profile and return (doctor, user, token)."""

    def _make_doctor(specialization="Cardiology", fees=100.0, **user_fields):
        user, token = make_user(UserRole.DOCTOR, **user_fields)
        doctor = Doctor(
            user_id=user.id,
            specialization=specialization,
            fees=fees,
            timings=["09:00 AM", "10:00 AM", "11:00 AM"],
        )
        db_session.add(doctor)
        db_session.commit()
        db_session.refresh(doctor)
        return doctor, user, token

    return _make_doctor


@pytest.fixture
def booking(make_doctor):
    """Default appointment payload for a fresh doctor."""
    doctor, _, _ = make_doctor()
    return {
        "doctor": doctor.id,
        "date": "2026-11-02",
        "time": "10:00 AM",
        "reason": "Annual check-up",
    }
