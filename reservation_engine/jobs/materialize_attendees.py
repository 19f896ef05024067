# reservation_engine/jobs/materialize_attendees.py

import logging

from sqlalchemy.orm import Session

from reservation_engine.application.attendee_service import AttendeeService
from reservation_engine.context import EngineContext

logger = logging.getLogger(__name__)


def run(db: Session, context: EngineContext) -> int:
    """Catch-up pass: build missing rosters for confirmed reservations."""
    created = AttendeeService(db, context).materialize_confirmed_backlog()

    logger.info("Attendee backlog pass created %s attendees", created)
    if created > 0:
        context.alert_sink.notify(
            f"Backlog pass created {created} attendee record(s)",
            type="INFO",
            severity="LOW",
            service="materialize_attendees",
        )
    return created
