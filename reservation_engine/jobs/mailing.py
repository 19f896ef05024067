# reservation_engine/jobs/mailing.py

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from reservation_engine.context import EngineContext
from reservation_engine.domain.state_machine import CONFIRMED_STATUSES
from reservation_engine.infrastructure.db.models import Performance, Reservation, Schedule
from reservation_engine.infrastructure.repositories.reservation_repository import (
    ReservationRepository,
)
from reservation_engine.infrastructure.repositories.schedule_repository import (
    PerformanceRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class MailingSummary:
    sent: int = 0
    errors: int = 0


def mail_confirmed_reservations(
    db: Session,
    context: EngineContext,
    schedules: list[Schedule],
    already_sent: Callable[[Reservation], bool],
    send: Callable[[Reservation, Performance, Schedule], None],
    mark_sent: Callable[[str], None],
    service: str,
) -> MailingSummary:
    """
    Send one email per confirmed reservation of the given schedules and
    flag it afterwards. A failed send is counted and skipped; the flag
    stays unset so the next run retries it.
    """
    summary = MailingSummary()
    reservation_repository = ReservationRepository(db)
    performances = PerformanceRepository(db).list_by_ids(
        {schedule.performance_id for schedule in schedules}
    )

    for schedule in schedules:
        performance = performances.get(schedule.performance_id)
        if performance is None:
            logger.warning("Schedule %s has no performance; skipping.", schedule.id)
            continue

        for reservation in reservation_repository.list_for_schedule(schedule.id, CONFIRMED_STATUSES):
            if already_sent(reservation):
                continue
            try:
                send(reservation, performance, schedule)
                mark_sent(reservation.id)
                db.commit()
                summary.sent += 1
            except Exception:
                db.rollback()
                summary.errors += 1
                logger.exception("Failed to send %s email for %s", service, reservation.id)

    context.alert_sink.notify(
        f"Sent {summary.sent} email(s), {summary.errors} error(s)",
        type="INFO",
        severity="MEDIUM" if summary.errors else "LOW",
        service=service,
    )
    return summary
