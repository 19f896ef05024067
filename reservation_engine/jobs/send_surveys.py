# reservation_engine/jobs/send_surveys.py

import logging
from datetime import timedelta
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from reservation_engine.application.mailer import ReservationMailer
from reservation_engine.context import EngineContext
from reservation_engine.domain.clock import schedule_start
from reservation_engine.infrastructure.repositories.reservation_repository import (
    ReservationRepository,
)
from reservation_engine.infrastructure.repositories.schedule_repository import (
    PerformanceRepository,
    ScheduleRepository,
)
from reservation_engine.jobs.mailing import MailingSummary, mail_confirmed_reservations

logger = logging.getLogger(__name__)


def within_sending_hours(hour: int, start_hour: int, end_hour: int) -> bool:
    return start_hour <= hour < end_hour


def run(db: Session, context: EngineContext) -> MailingSummary | None:
    """
    Post-show survey for schedules that already started yesterday or
    today. Returns None when called outside the sending hours.
    """
    settings = context.settings
    zone = ZoneInfo(settings.time_zone)
    now = context.clock()
    local_now = now.astimezone(zone)

    if not within_sending_hours(
        local_now.hour,
        settings.sending_start_hour,
        settings.sending_end_hour,
    ):
        logger.info(
            "Outside of sending hours (%s:00-%s:00); skipping survey pass.",
            settings.sending_start_hour,
            settings.sending_end_hour,
        )
        return None

    today = local_now.date()
    dates = [(today - timedelta(days=1)).isoformat(), today.isoformat()]

    candidates = ScheduleRepository(db).list_on_dates(dates)
    performances = PerformanceRepository(db).list_by_ids(
        {schedule.performance_id for schedule in candidates}
    )
    schedules = [
        schedule
        for schedule in candidates
        if schedule_start(schedule.date, schedule.time, zone) <= now
        and performances.get(schedule.performance_id) is not None
        and performances[schedule.performance_id].survey_url
    ]
    logger.info("Survey pass over %s schedules on %s", len(schedules), dates)

    mailer = ReservationMailer(context)
    return mail_confirmed_reservations(
        db,
        context,
        schedules,
        already_sent=lambda reservation: reservation.survey_email_sent,
        send=mailer.send_survey,
        mark_sent=ReservationRepository(db).mark_survey_sent,
        service="send_surveys",
    )
