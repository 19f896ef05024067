# reservation_engine/jobs/send_reminders.py

import logging
from datetime import timedelta
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from reservation_engine.application.mailer import ReservationMailer
from reservation_engine.context import EngineContext
from reservation_engine.infrastructure.repositories.reservation_repository import (
    ReservationRepository,
)
from reservation_engine.infrastructure.repositories.schedule_repository import (
    ScheduleRepository,
)
from reservation_engine.jobs.mailing import MailingSummary, mail_confirmed_reservations

logger = logging.getLogger(__name__)


def run(db: Session, context: EngineContext) -> MailingSummary:
    """Entry instructions for schedules taking place today or tomorrow."""
    today = context.clock().astimezone(ZoneInfo(context.settings.time_zone)).date()
    dates = [today.isoformat(), (today + timedelta(days=1)).isoformat()]

    schedules = [
        schedule
        for schedule in ScheduleRepository(db).list_on_dates(dates)
        if schedule.entry_url
    ]
    logger.info("Reminder pass over %s schedules on %s", len(schedules), dates)

    mailer = ReservationMailer(context)
    return mail_confirmed_reservations(
        db,
        context,
        schedules,
        already_sent=lambda reservation: reservation.reminder_email_sent,
        send=mailer.send_reminder,
        mark_sent=ReservationRepository(db).mark_reminder_sent,
        service="send_reminders",
    )
