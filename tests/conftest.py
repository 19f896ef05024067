# tests/conftest.py

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from reservation_engine.application.reservation_service import ReservationService
from reservation_engine.config import Settings
from reservation_engine.context import EngineContext
from reservation_engine.domain import tokens
from reservation_engine.infrastructure.collaborators.email import LoggingEmailSender
from reservation_engine.infrastructure.collaborators.interfaces import AlertSink
from reservation_engine.infrastructure.collaborators.secrets import StaticSecretProvider
from reservation_engine.infrastructure.collaborators.templates import FileTemplateSource
from reservation_engine.infrastructure.db.models import Performance, Schedule
from reservation_engine.infrastructure.db.session import (
    Base,
    build_engine,
    build_session_factory,
)
from reservation_engine.main import create_app

SECRET = "test-signing-secret"
ADMIN_SECRET = "admin-uuid-1234"
PERFORMANCE_ID = "perf-1"

# 2026-03-01 10:00 in Asia/Tokyo
START = datetime(2026, 3, 1, 1, 0, tzinfo=timezone.utc)


class FakeClock:

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingAlertSink(AlertSink):

    def __init__(self):
        self.alerts: list[dict] = []

    def notify(self, message, type="INFO", severity="LOW", service=""):
        self.alerts.append(
            {"message": message, "type": type, "severity": severity, "service": service}
        )


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        stage="test",
        confirmation_url="https://api.example.com/reservations/confirm",
        frontend_url="https://tickets.example.com",
        allowed_origins=("https://tickets.example.com",),
        time_zone="Asia/Tokyo",
    )


@pytest.fixture
def context(settings, clock):
    engine = build_engine(settings)
    Base.metadata.create_all(bind=engine)

    ctx = EngineContext(
        settings=settings,
        engine=engine,
        session_factory=build_session_factory(engine),
        secret_provider=StaticSecretProvider(SECRET),
        email_sender=LoggingEmailSender(),
        template_source=FileTemplateSource(),
        alert_sink=RecordingAlertSink(),
        clock=clock,
    )
    yield ctx
    engine.dispose()


@pytest.fixture
def db(context):
    session = context.session_factory()
    yield session
    session.close()


@pytest.fixture
def performance(db):
    performance = Performance(
        id=PERFORMANCE_ID,
        title="Spring Play",
        reservation_start_time="2026-02-01T10:00:00+09:00",
        max_reservations=2,
        admin_secret=ADMIN_SECRET,
        survey_url="https://example.com/survey",
    )
    db.add(performance)
    db.add_all(
        [
            Schedule(id="sched-1", performance_id=PERFORMANCE_ID, date="2026-03-10", time="19:00", total_seats=10),
            Schedule(id="sched-2", performance_id=PERFORMANCE_ID, date="2026-03-11", time="19:00", total_seats=10),
            Schedule(id="sched-3", performance_id=PERFORMANCE_ID, date="2026-03-12", time="14:00", total_seats=10),
        ]
    )
    db.commit()
    return performance


@pytest.fixture
def service(db, context):
    return ReservationService(db, context)


@pytest.fixture
def reserve(service, performance):
    """Admit a reservation with sensible defaults; returns the reservation id."""

    def _reserve(schedule_id="sched-1", email="alice@example.com", seats=2, name="Alice", notes="wheelchair"):
        result = service.create_reservation(
            performance_id=PERFORMANCE_ID,
            schedule_id=schedule_id,
            name=name,
            email=email,
            reserved_seats=seats,
            notes=notes,
        )
        return result.reservation_id

    return _reserve


@pytest.fixture
def confirm_token():
    def _token(reservation_id, email="alice@example.com"):
        return tokens.confirmation_token(reservation_id, email, SECRET)

    return _token


@pytest.fixture
def cancel_token():
    def _token(reservation_id):
        return tokens.cancellation_token(reservation_id, SECRET)

    return _token


@pytest.fixture
def client(context):
    app = create_app(context=context)
    return TestClient(app)
