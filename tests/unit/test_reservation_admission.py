# tests/unit/test_reservation_admission.py

import re

import pytest
from sqlalchemy import func, select

from reservation_engine.application.inventory import InventoryReader
from reservation_engine.application.reservation_service import ReservationService
from reservation_engine.domain.exceptions import (
    DuplicateScheduleError,
    ErrorCode,
    InsufficientSeatsError,
    InvalidInputError,
    PerformanceCapReachedError,
    PerformanceNotFoundError,
    ReservationsNotOpenError,
    ScheduleNotFoundError,
)
from reservation_engine.domain.state_machine import ReservationStatus
from reservation_engine.infrastructure.collaborators.secrets import EnvSecretProvider
from reservation_engine.infrastructure.db.models import Reservation, Schedule


def _count_reservations(db) -> int:
    return db.execute(select(func.count(Reservation.id))).scalar_one()


def test_create_reservation_holds_seats(db, reserve, context):
    reservation_id = reserve(seats=3)

    reservation = db.get(Reservation, reservation_id)
    assert reservation.status == ReservationStatus.TENTATIVE
    assert reservation.reserved_seats == 3
    assert re.fullmatch(r"RES\d{13}[0-9a-z]{6}", reservation_id)
    assert re.fullmatch(r"[0-9A-Z]{8}", reservation.confirmation_code)

    schedule = db.get(Schedule, "sched-1")
    db.refresh(schedule)
    assert schedule.committed_seats == 3
    assert InventoryReader(db).available_seats(schedule) == 7


def test_create_reservation_sends_confirmation_link(reserve, context, confirm_token):
    reservation_id = reserve()

    [email] = context.email_sender.sent_emails
    assert email["to"] == "alice@example.com"
    assert "Spring Play" in email["body"]
    assert (
        f"https://api.example.com/reservations/confirm?id={reservation_id}"
        f"&token={confirm_token(reservation_id)}"
    ) in email["body"]


def test_full_schedule_rejects_next_seat(reserve):
    reserve(seats=10)

    with pytest.raises(InsufficientSeatsError) as exc_info:
        reserve(email="bob@example.com", seats=1)

    assert exc_info.value.code == ErrorCode.INSUFFICIENT_SEATS


def test_duplicate_schedule_rejected(reserve):
    reserve(schedule_id="sched-1")

    with pytest.raises(DuplicateScheduleError) as exc_info:
        reserve(schedule_id="sched-1", seats=1)

    assert exc_info.value.code == ErrorCode.DUPLICATE_SCHEDULE


def test_third_schedule_hits_requester_cap(reserve):
    reserve(schedule_id="sched-1", seats=1)
    reserve(schedule_id="sched-2", seats=1)

    with pytest.raises(PerformanceCapReachedError) as exc_info:
        reserve(schedule_id="sched-3", seats=1)

    assert exc_info.value.code == ErrorCode.PERFORMANCE_CAP_REACHED


def test_terminal_reservations_do_not_count_towards_cap(db, reserve, service, cancel_token):
    first = reserve(schedule_id="sched-1", seats=1)
    reserve(schedule_id="sched-2", seats=1)
    service.cancel_reservation(first, cancel_token(first))

    assert reserve(schedule_id="sched-3", seats=1)


@pytest.mark.parametrize(
    "overrides",
    [
        {"performance_id": ""},
        {"schedule_id": None},
        {"name": ""},
        {"email": None},
        {"reserved_seats": 0},
        {"reserved_seats": -2},
        {"reserved_seats": True},
        {"reserved_seats": "2"},
    ],
)
def test_invalid_input_rejected_before_any_read(service, db, overrides):
    payload = {
        "performance_id": "perf-1",
        "schedule_id": "sched-1",
        "name": "Alice",
        "email": "alice@example.com",
        "reserved_seats": 1,
    }
    payload.update(overrides)

    with pytest.raises(InvalidInputError):
        service.create_reservation(**payload)

    assert _count_reservations(db) == 0


def test_unknown_performance_and_schedule(service, performance):
    with pytest.raises(PerformanceNotFoundError):
        service.create_reservation("nope", "sched-1", "Alice", "alice@example.com", 1)

    with pytest.raises(ScheduleNotFoundError):
        service.create_reservation("perf-1", "nope", "Alice", "alice@example.com", 1)


def test_reservations_not_open_yet(db, service, performance):
    performance.reservation_start_time = "2026-03-05T10:00:00+09:00"
    db.commit()

    with pytest.raises(ReservationsNotOpenError) as exc_info:
        service.create_reservation("perf-1", "sched-1", "Alice", "alice@example.com", 1)

    assert exc_info.value.status_code == 403
    assert exc_info.value.reservation_start_time == "2026-03-05T10:00:00+09:00"


def test_naive_start_time_is_read_in_local_zone(db, service, performance, clock):
    # 10:30 Tokyo is 01:30 UTC, half an hour after the fixed clock.
    performance.reservation_start_time = "2026-03-01T10:30:00"
    db.commit()

    with pytest.raises(ReservationsNotOpenError):
        service.create_reservation("perf-1", "sched-1", "Alice", "alice@example.com", 1)

    clock.advance(minutes=30)
    assert service.create_reservation("perf-1", "sched-1", "Alice", "alice@example.com", 1)


def test_seat_counter_refuses_oversell_even_when_records_look_free(db, service, performance):
    # A concurrent admission already moved the counter but its record is
    # not visible to this read yet.
    schedule = db.get(Schedule, "sched-1")
    schedule.committed_seats = 9
    db.commit()

    with pytest.raises(InsufficientSeatsError):
        service.create_reservation("perf-1", "sched-1", "Alice", "alice@example.com", 2)

    assert _count_reservations(db) == 0
    db.refresh(schedule)
    assert schedule.committed_seats == 9


def test_missing_secret_fails_before_write(db, context, performance, monkeypatch):
    monkeypatch.delenv("RESERVATION_SECRET", raising=False)
    context.secret_provider = EnvSecretProvider("no-such-stage-for-tests")

    with pytest.raises(RuntimeError):
        ReservationService(db, context).create_reservation(
            "perf-1", "sched-1", "Alice", "alice@example.com", 1
        )

    assert _count_reservations(db) == 0


def test_email_failure_does_not_undo_reservation(db, service, context, performance):
    def broken_send(to, subject, body):
        raise ConnectionError("smtp down")

    context.email_sender.send = broken_send

    result = service.create_reservation("perf-1", "sched-1", "Alice", "alice@example.com", 1)

    assert db.get(Reservation, result.reservation_id) is not None
    [alert] = context.alert_sink.alerts
    assert alert["type"] == "ERROR"
    assert alert["severity"] == "HIGH"
