"""
Shared fixtures for the vaccination engine tests.

Every test gets its own SQLite database file (a file rather than :memory:
so that several sessions, and threads, can share it), a controllable clock
and a notification sink that records what the services publish.
"""
from __future__ import annotations

import base64
import itertools
import json
from datetime import date, datetime, timedelta
from typing import List, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from app.core.database import Base, build_engine
from app.models.user import User
from app.models.vaccination import BatchStatus, UserRole, Vaccine, VaccineBatch
from app.services.vaccination import build_services
from app.services.vaccination.notifications import NotificationEvent, NotificationType

START = datetime(2026, 3, 2, 9, 0, 0)


class FakeClock:
    """Callable clock returning naive UTC datetimes, moved by hand"""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> datetime:
        self.now = self.now + timedelta(days=days, hours=hours)
        return self.now

    def today(self) -> date:
        return self.now.date()


class RecordingSink:
    def __init__(self):
        self.events: List[NotificationEvent] = []

    def publish(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def of_type(self, kind: NotificationType) -> List[NotificationEvent]:
        return [e for e in self.events if e.type == kind]


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'vaccination.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def services(db, sink, clock):
    return build_services(db, notifier=sink, clock=clock)


# ============ FACTORIES ============
_sequence = itertools.count(1)


@pytest.fixture
def make_user(db):
    def _make_user(role: UserRole = UserRole.EMPLOYEE, name: Optional[str] = None, is_active: bool = True) -> User:
        n = next(_sequence)
        user = User(
            name=name or f"{role.value.title()} {n}",
            email=f"user{n}@example.com",
            cpf=f"{n:011d}",
            role=role,
            coren=f"COREN-{n}" if role == UserRole.NURSE else None,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def patient(make_user):
    return make_user(UserRole.EMPLOYEE, name="Ana Souza")


@pytest.fixture
def nurse(make_user):
    return make_user(UserRole.NURSE, name="Carla Lima")


@pytest.fixture
def manager(make_user):
    return make_user(UserRole.MANAGER, name="Marcos Dias")


@pytest.fixture
def make_vaccine(db):
    def _make_vaccine(
        name: Optional[str] = None,
        doses_required: int = 1,
        interval_days: Optional[int] = None,
        is_obligatory: bool = False,
        min_stock_level: Optional[int] = None,
        manufacturer: str = "Butantan",
    ) -> Vaccine:
        vaccine = Vaccine(
            name=name or f"Vaccine {next(_sequence)}",
            manufacturer=manufacturer,
            doses_required=doses_required,
            interval_days=interval_days,
            is_obligatory=is_obligatory,
            min_stock_level=min_stock_level,
        )
        db.add(vaccine)
        db.commit()
        db.refresh(vaccine)
        return vaccine
    return _make_vaccine


@pytest.fixture
def make_batch(db, clock):
    def _make_batch(
        vaccine: Vaccine,
        quantity: int = 10,
        expiration_date: Optional[date] = None,
        status: BatchStatus = BatchStatus.AVAILABLE,
        batch_number: Optional[str] = None,
    ) -> VaccineBatch:
        batch = VaccineBatch(
            vaccine_id=vaccine.id,
            batch_number=batch_number or f"LOT-{next(_sequence):05d}",
            initial_quantity=quantity,
            current_quantity=quantity,
            expiration_date=expiration_date or clock.today() + timedelta(days=365),
            received_date=clock.today() - timedelta(days=1),
            status=status,
        )
        db.add(batch)
        db.commit()
        db.refresh(batch)
        return batch
    return _make_batch


# ============ API ============
def _bearer(user_id: int) -> dict:
    def segment(data: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()

    token = f"{segment({'alg': 'none', 'typ': 'JWT'})}.{segment({'sub': str(user_id)})}.signature"
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Authorization header with an unsigned token carrying ``sub``"""
    return _bearer


@pytest.fixture
def client(session_factory, sink, clock):
    from fastapi import Depends
    from fastapi.testclient import TestClient

    from app.core.database import get_db
    from app.main import app
    from app.services.vaccination import get_services

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _get_services(db=Depends(get_db)):
        return build_services(db, notifier=sink, clock=clock)

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_services] = _get_services
    # No context manager: the lifespan would warm up the production pool
    yield TestClient(app)
    app.dependency_overrides.clear()
