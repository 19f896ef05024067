# tests/unit/test_jobs.py

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from reservation_engine.application.inventory import InventoryReader
from reservation_engine.config import Settings
from reservation_engine.domain.state_machine import HOLDING_STATUSES
from reservation_engine.infrastructure.db.models import Reservation, Schedule
from reservation_engine.infrastructure.repositories.schedule_repository import ScheduleRepository
from reservation_engine.jobs import reconcile_inventory, send_reminders, send_surveys
from reservation_engine.jobs.runner import JobRunner, ScheduledJob, default_jobs


@pytest.fixture
def confirmed(db, service, reserve, confirm_token):
    """A confirmed two-seat reservation on sched-1."""
    reservation_id = reserve(seats=2)
    service.confirm_reservation(reservation_id, confirm_token(reservation_id))
    return reservation_id


def _sent_subjects(context):
    return [email["subject"] for email in context.email_sender.sent_emails]


def _set_entry_url(db, schedule_id, url):
    db.get(Schedule, schedule_id).entry_url = url
    db.commit()


def test_reminder_sent_once_for_tomorrow(db, context, confirmed, clock):
    _set_entry_url(db, "sched-1", "https://stream.example.com/live")
    # 2026-03-09 12:00 in Tokyo; sched-1 is on 2026-03-10.
    clock.now = datetime(2026, 3, 9, 3, 0, tzinfo=timezone.utc)

    summary = send_reminders.run(db, context)

    assert summary.sent == 1
    assert summary.errors == 0
    db.expire_all()
    assert db.get(Reservation, confirmed).reminder_email_sent is True
    reminder = context.email_sender.sent_emails[-1]
    assert "https://stream.example.com/live" in reminder["body"]

    assert send_reminders.run(db, context).sent == 0


def test_reminder_skips_schedules_without_entry_url(db, context, confirmed, clock):
    clock.now = datetime(2026, 3, 9, 3, 0, tzinfo=timezone.utc)

    assert send_reminders.run(db, context).sent == 0


def test_reminder_ignores_schedules_further_out(db, context, confirmed, clock):
    _set_entry_url(db, "sched-1", "https://stream.example.com/live")
    clock.now = datetime(2026, 3, 7, 3, 0, tzinfo=timezone.utc)

    assert send_reminders.run(db, context).sent == 0


def test_reminder_skips_tentative(db, context, reserve, clock):
    reserve(seats=1)
    _set_entry_url(db, "sched-1", "https://stream.example.com/live")
    clock.now = datetime(2026, 3, 9, 3, 0, tzinfo=timezone.utc)

    assert send_reminders.run(db, context).sent == 0


def test_failed_send_leaves_flag_for_retry(db, context, confirmed, clock, monkeypatch):
    _set_entry_url(db, "sched-1", "https://stream.example.com/live")
    clock.now = datetime(2026, 3, 9, 3, 0, tzinfo=timezone.utc)

    def refuse(to, subject, body):
        raise ConnectionError("smtp down")

    monkeypatch.setattr(context.email_sender, "send", refuse)

    summary = send_reminders.run(db, context)

    assert summary.sent == 0
    assert summary.errors == 1
    db.expire_all()
    assert db.get(Reservation, confirmed).reminder_email_sent is False
    assert context.alert_sink.alerts[-1]["severity"] == "MEDIUM"


def test_survey_after_the_show(db, context, confirmed, clock):
    # sched-1 starts 2026-03-10 19:00 Tokyo; this is 21:00 Tokyo.
    clock.now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    summary = send_surveys.run(db, context)

    assert summary.sent == 1
    assert "https://example.com/survey" in context.email_sender.sent_emails[-1]["body"]
    db.expire_all()
    assert db.get(Reservation, confirmed).survey_email_sent is True


def test_survey_waits_until_the_show_starts(db, context, confirmed, clock):
    clock.now = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)

    assert send_surveys.run(db, context).sent == 0


def test_survey_requires_survey_url(db, context, confirmed, performance, clock):
    performance.survey_url = None
    db.commit()
    clock.now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    assert send_surveys.run(db, context).sent == 0


def test_survey_outside_sending_hours(db, context, confirmed, clock):
    context.settings = replace(context.settings, sending_start_hour=9, sending_end_hour=20)
    clock.now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    assert send_surveys.run(db, context) is None
    assert "Thank you for coming" not in _sent_subjects(context)


@pytest.mark.parametrize(
    "hour, expected",
    [(8, False), (9, True), (19, True), (20, False)],
)
def test_within_sending_hours(hour, expected):
    assert send_surveys.within_sending_hours(hour, 9, 20) is expected


def test_reconcile_repairs_drifted_counter(db, context, reserve):
    reserve(seats=3)
    schedule = db.get(Schedule, "sched-1")
    schedule.committed_seats = 9
    db.commit()

    assert reconcile_inventory.run(db, context) == 1

    db.expire_all()
    assert db.get(Schedule, "sched-1").committed_seats == 3
    assert context.alert_sink.alerts[-1]["service"] == "reconcile_inventory"
    assert reconcile_inventory.run(db, context) == 0


def test_repair_leaves_counter_alone_when_it_moves_mid_pass(db, reserve, monkeypatch):
    reserve(seats=3)
    schedule = db.get(Schedule, "sched-1")
    schedule.committed_seats = 9
    db.commit()

    inventory = InventoryReader(db)
    count_holding = inventory.reserved_seats

    def count_then_admit(schedule_id, statuses=HOLDING_STATUSES):
        total = count_holding(schedule_id, statuses)
        # An admission claims a seat after the records were summed.
        assert ScheduleRepository(db).try_commit_seats(schedule_id, 1)
        return total

    monkeypatch.setattr(inventory, "reserved_seats", count_then_admit)

    assert inventory.reconcile_committed_seats("sched-1") is False
    db.commit()

    db.expire_all()
    assert db.get(Schedule, "sched-1").committed_seats == 10


def test_runner_isolates_failing_jobs(context):
    calls = []

    def broken(db, ctx):
        raise RuntimeError("boom")

    def healthy(db, ctx):
        calls.append(ctx)
        return 7

    runner = JobRunner(
        context,
        jobs=[
            ScheduledJob("broken", broken, 60),
            ScheduledJob("healthy", healthy, 60),
        ],
    )

    assert runner.run_once() == {"broken": None, "healthy": 7}
    assert calls == [context]


def test_default_jobs_use_their_own_intervals(context, monkeypatch):
    monkeypatch.setenv("RECONCILE_INTERVAL_SECONDS", "900")
    monkeypatch.setenv("ATTENDEE_BATCH_INTERVAL_SECONDS", "7200")
    context.settings = replace(
        context.settings,
        reconcile_interval_seconds=Settings.from_env().reconcile_interval_seconds,
        attendee_batch_interval_seconds=7200,
    )

    intervals = {job.name: job.interval_seconds for job in default_jobs(context)}

    assert intervals["reconcile_inventory"] == 900
    assert intervals["materialize_attendees"] == 7200
    assert intervals["expire_reservations"] == 300
