import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

# settings are read at import time by repairhub.db.session
_SCRATCH = tempfile.mkdtemp(prefix="repairhub-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_SCRATCH}/default.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("NOTIFICATION_SINK", "log")

from sqlalchemy.orm import sessionmaker  # noqa: E402

# FORCE model registration
import repairhub.models  # noqa: E402,F401

from repairhub.core.config import get_settings  # noqa: E402
from repairhub.db.base import Base  # noqa: E402
from repairhub.db.session import build_engine  # noqa: E402
from repairhub.models.enums import RequestStatus, UserRole  # noqa: E402
from repairhub.models.repair_request import RepairRequest  # noqa: E402
from repairhub.models.technician_profile import TechnicianProfile  # noqa: E402
from repairhub.models.user import User  # noqa: E402

settings = get_settings()

# Karachi, roughly
BASE_LAT = 24.8607
BASE_LNG = 67.0011


@pytest.fixture(scope="function")
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'test.db'}", settings)
    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------------------------------------------------------------------
# notification sinks
# ---------------------------------------------------------------------

class RecordingSink:
    def __init__(self):
        self.events = []

    def emit(self, user_id, type, title, message, data):
        self.events.append(
            {"user_id": user_id, "type": type, "title": title, "message": message, "data": data}
        )

    def of_type(self, type):
        return [e for e in self.events if e["type"] == type]


class FailingSink:
    def __init__(self):
        self.calls = 0

    def emit(self, user_id, type, title, message, data):
        self.calls += 1
        raise RuntimeError("push gateway unavailable")


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def failing_sink():
    return FailingSink()


# ---------------------------------------------------------------------
# data factory
# ---------------------------------------------------------------------

class Factory:
    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _next(self):
        self._seq += 1
        return self._seq

    def user(self, role=UserRole.customer, *, active=True, lat=None, lng=None, name=None):
        n = self._next()
        u = User(
            id=uuid.uuid4(),
            name=name or f"{role.value}-{n}",
            email=f"{role.value}{n}-{uuid.uuid4().hex[:6]}@example.com",
            phone=f"0300{n:07d}",
            role=role.value,
            is_active=active,
            latitude=lat,
            longitude=lng,
        )
        self.db.add(u)
        self.db.commit()
        return u

    def customer(self, **kw):
        return self.user(UserRole.customer, **kw)

    def admin(self, **kw):
        return self.user(UserRole.admin, **kw)

    def technician(
        self,
        *,
        approved=True,
        active=True,
        profile=True,
        lat=BASE_LAT,
        lng=BASE_LNG,
        radius_km=10,
        rating=0.0,
    ):
        u = self.user(UserRole.technician, active=active, lat=lat, lng=lng)
        if profile:
            self.db.add(
                TechnicianProfile(
                    user_id=u.id,
                    experience_years=3,
                    specializations=["screen_repair"],
                    service_radius_km=radius_km,
                    rating_average=rating,
                    is_approved=approved,
                )
            )
            self.db.commit()
        return u

    def request(
        self,
        customer,
        *,
        status=RequestStatus.open,
        lat=BASE_LAT,
        lng=BASE_LNG,
        issue_type="screen",
        created_at=None,
        title="Cracked screen",
    ):
        now = created_at or datetime.now(timezone.utc)
        r = RepairRequest(
            customer_id=customer.id,
            title=title,
            description="Screen cracked after a drop, touch still works.",
            device_info={"brand": "Samsung", "model": "A52"},
            issue_type=issue_type,
            images=[],
            urgency="medium",
            budget_min=Decimal("1000"),
            budget_max=Decimal("5000"),
            latitude=lat,
            longitude=lng,
            address="Clifton, Karachi",
            status=status.value,
            expires_at=now + timedelta(days=7),
            created_at=now,
            updated_at=now,
        )
        self.db.add(r)
        self.db.commit()
        return r


@pytest.fixture
def factory(db):
    return Factory(db)


def bid_fields(amount="500", estimate="2 days", **extra):
    fields = {
        "amount": amount,
        "estimatedTime": estimate,
        "description": "Replace the screen with an original part.",
    }
    fields.update(extra)
    return fields


@pytest.fixture
def make_bid_fields():
    return bid_fields
