# tests/unit/test_capacity_guard.py

import pytest

from reservation_engine.application.capacity_guard import PerformanceUpdate, ScheduleUpdate
from reservation_engine.application.performance_service import PerformanceService
from reservation_engine.domain.exceptions import (
    CapacityGuardError,
    ErrorCode,
    ForbiddenError,
    ScheduleNotFoundError,
)
from reservation_engine.infrastructure.db.models import Performance, Reservation, Schedule

ADMIN = "admin-uuid-1234"


@pytest.fixture
def admin(db, context, performance):
    return PerformanceService(db, context)


def _schedule(db, schedule_id="sched-1") -> Schedule:
    db.expire_all()
    return db.get(Schedule, schedule_id)


def _assert_rejected(admin, update, code):
    with pytest.raises(CapacityGuardError) as exc_info:
        admin.update_performance("perf-1", ADMIN, update)
    assert exc_info.value.code == code


def test_raise_total_seats(db, admin):
    view = admin.update_performance(
        "perf-1",
        ADMIN,
        PerformanceUpdate(schedules=[ScheduleUpdate(id="sched-1", total_seats=20)]),
    )

    assert _schedule(db).total_seats == 20
    assert {s.id: s.total_seats for s in view.schedules}["sched-1"] == 20


def test_total_seats_cannot_decrease(db, admin):
    _assert_rejected(
        admin,
        PerformanceUpdate(schedules=[ScheduleUpdate(id="sched-1", total_seats=9)]),
        ErrorCode.TOTAL_SEATS_DECREASE,
    )
    assert _schedule(db).total_seats == 10


def test_total_seats_cannot_drop_below_reserved(db, admin):
    # Legacy data: more seats held than the configured total.
    schedule = _schedule(db)
    schedule.total_seats = 5
    db.add(
        Reservation(
            id="RES1700000000000legacy",
            performance_id="perf-1",
            schedule_id="sched-1",
            name="Legacy",
            email="legacy@example.com",
            reserved_seats=8,
            notes="",
            confirmation_code="LEGACY01",
            created_at=admin.clock(),
            updated_at=admin.clock(),
        )
    )
    db.commit()

    _assert_rejected(
        admin,
        PerformanceUpdate(schedules=[ScheduleUpdate(id="sched-1", total_seats=6)]),
        ErrorCode.TOTAL_SEATS_BELOW_RESERVED,
    )


def test_total_seats_capped_by_venue(admin):
    _assert_rejected(
        admin,
        PerformanceUpdate(schedules=[ScheduleUpdate(id="sched-1", total_seats=49)]),
        ErrorCode.INVALID_TOTAL_SEATS,
    )


@pytest.mark.parametrize("bad", ["20", 12.5, True])
def test_total_seats_must_be_integer(admin, bad):
    _assert_rejected(
        admin,
        PerformanceUpdate(schedules=[ScheduleUpdate(id="sched-1", total_seats=bad)]),
        ErrorCode.INVALID_TOTAL_SEATS,
    )


def test_max_reservations_range(admin):
    _assert_rejected(admin, PerformanceUpdate(max_reservations=4), ErrorCode.MAX_RESERVATIONS_OUT_OF_RANGE)
    _assert_rejected(admin, PerformanceUpdate(max_reservations=-1), ErrorCode.MAX_RESERVATIONS_OUT_OF_RANGE)


def test_max_reservations_cannot_decrease(db, admin):
    _assert_rejected(admin, PerformanceUpdate(max_reservations=1), ErrorCode.MAX_RESERVATIONS_DECREASE)

    admin.update_performance("perf-1", ADMIN, PerformanceUpdate(max_reservations=3))
    db.expire_all()
    assert db.get(Performance, "perf-1").max_reservations == 3


def test_reservation_start_time_must_parse(db, admin):
    _assert_rejected(
        admin,
        PerformanceUpdate(reservation_start_time="next tuesday"),
        ErrorCode.INVALID_DATETIME,
    )

    # No ordering constraint against now.
    admin.update_performance(
        "perf-1",
        ADMIN,
        PerformanceUpdate(reservation_start_time="2020-01-01T00:00:00Z"),
    )
    db.expire_all()
    assert db.get(Performance, "perf-1").reservation_start_time == "2020-01-01T00:00:00Z"


def test_entry_url_frozen_after_reminders(db, admin, reserve):
    admin.update_performance(
        "perf-1",
        ADMIN,
        PerformanceUpdate(schedules=[ScheduleUpdate(id="sched-1", entry_url="https://stream.example.com/a")]),
    )
    reservation_id = reserve()
    reservation = db.get(Reservation, reservation_id)
    reservation.reminder_email_sent = True
    db.commit()

    _assert_rejected(
        admin,
        PerformanceUpdate(schedules=[ScheduleUpdate(id="sched-1", entry_url="https://stream.example.com/b")]),
        ErrorCode.ENTRY_URL_FROZEN,
    )
    # Resubmitting the unchanged value is not a change.
    admin.update_performance(
        "perf-1",
        ADMIN,
        PerformanceUpdate(schedules=[ScheduleUpdate(id="sched-1", entry_url="https://stream.example.com/a")]),
    )


def test_rejected_update_applies_nothing(db, admin):
    _assert_rejected(
        admin,
        PerformanceUpdate(
            max_reservations=3,
            schedules=[
                ScheduleUpdate(id="sched-1", total_seats=30),
                ScheduleUpdate(id="sched-2", total_seats=5),
            ],
        ),
        ErrorCode.TOTAL_SEATS_DECREASE,
    )

    db.expire_all()
    assert db.get(Performance, "perf-1").max_reservations == 2
    assert db.get(Schedule, "sched-1").total_seats == 10


def test_foreign_schedule_rejected(db, admin):
    db.add(Performance(id="perf-2", title="Other", admin_secret="other"))
    db.add(Schedule(id="other-sched", performance_id="perf-2", date="2026-04-01", time="19:00", total_seats=5))
    db.commit()

    with pytest.raises(ScheduleNotFoundError):
        admin.update_performance(
            "perf-1",
            ADMIN,
            PerformanceUpdate(schedules=[ScheduleUpdate(id="other-sched", total_seats=10)]),
        )


def test_wrong_admin_secret(admin):
    with pytest.raises(ForbiddenError):
        admin.update_performance("perf-1", "guess", PerformanceUpdate(max_reservations=3))
    with pytest.raises(ForbiddenError):
        admin.get_admin_performance("perf-1", None)
