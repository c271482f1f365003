import os
import tempfile

# Point the app at a throwaway SQLite file before anything imports parkeasy
_DB_DIR = tempfile.mkdtemp(prefix="parkeasy-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "parkeasy.db")
os.environ["ADMIN_PASSWORD"] = ""
os.environ["RESERVATION_RETRY_BACKOFF_MS"] = "1"

import pytest
from fastapi.testclient import TestClient

from parkeasy.auth import create_access_token
from parkeasy.database import SessionLocal, engine
from parkeasy.main import app
from parkeasy.models import RESERVATION_ACTIVE, Base, ParkingSpot, Reservation, User


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(name: str = None, is_admin: bool = False) -> User:
        counter["n"] += 1
        name = name or f"user{counter['n']}"
        # Password hashing is exercised by the auth tests; a placeholder keeps these fast
        user = User(name=name, email=f"{name.lower()}@parkeasy.io", password="not-a-hash", is_admin=is_admin)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_spot(db):
    def _make_spot(owner: User, location: str = "12 Harbour Street", is_available: bool = True) -> ParkingSpot:
        spot = ParkingSpot(location=location, user_id=owner.id, is_available=is_available)
        db.add(spot)
        db.commit()
        db.refresh(spot)
        return spot

    return _make_spot


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}


def spot_state(spot_id: int):
    """(is_available, [(user_id, status), ...]) read through a fresh session."""
    session = SessionLocal()
    try:
        spot = session.get(ParkingSpot, spot_id)
        rows = (
            session.query(Reservation.user_id, Reservation.status)
            .filter(Reservation.parking_spot_id == spot_id)
            .order_by(Reservation.id)
            .all()
        )
        return (spot.is_available if spot else None), [tuple(r) for r in rows]
    finally:
        session.close()


def assert_availability_invariant():
    session = SessionLocal()
    try:
        for spot in session.query(ParkingSpot).all():
            active = (
                session.query(Reservation)
                .filter(Reservation.parking_spot_id == spot.id, Reservation.status == RESERVATION_ACTIVE)
                .count()
            )
            assert active <= 1
            assert spot.is_available == (active == 0)
    finally:
        session.close()
