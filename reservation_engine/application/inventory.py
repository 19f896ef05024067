import logging
from typing import Iterable

from sqlalchemy.exc import OperationalError, TimeoutError as SQLAlchemyTimeoutError
from sqlalchemy.orm import Session

from reservation_engine.domain.exceptions import StorageUnavailableError
from reservation_engine.domain.state_machine import HOLDING_STATUSES, ReservationStatus
from reservation_engine.infrastructure.db.models import Schedule
from reservation_engine.infrastructure.repositories.reservation_repository import (
    ReservationRepository,
)
from reservation_engine.infrastructure.repositories.schedule_repository import (
    ScheduleRepository,
)

logger = logging.getLogger(__name__)


class InventoryReader:
    """
    Seat accounting derived from the reservation records themselves.

    Admission and the capacity guard count tentative holds too
    (HOLDING_STATUSES); confirmation and attendee mailings only
    count confirmed seats (CONFIRMED_STATUSES).
    """

    def __init__(self, db: Session):
        self.reservation_repository = ReservationRepository(db)
        self.schedule_repository = ScheduleRepository(db)

    def reserved_seats(
        self,
        schedule_id: str,
        statuses: Iterable[ReservationStatus] = HOLDING_STATUSES,
    ) -> int:
        try:
            return self.reservation_repository.sum_reserved_seats(schedule_id, statuses)
        except (OperationalError, SQLAlchemyTimeoutError) as exc:
            raise StorageUnavailableError(
                f"Could not read reservations for schedule {schedule_id}"
            ) from exc

    def available_seats(
        self,
        schedule: Schedule,
        statuses: Iterable[ReservationStatus] = HOLDING_STATUSES,
    ) -> int:
        return schedule.total_seats - self.reserved_seats(schedule.id, statuses)

    def reconcile_committed_seats(self, schedule_id: str) -> bool:
        """
        Reset the schedule's committed counter to the sum of its holding
        reservations. Returns True when the counter was corrected.

        The schedule row stays locked from the counter read until the
        caller commits, so admissions and releases wait for the repair
        instead of being overwritten by it.
        """
        schedule = self.schedule_repository.lock(schedule_id)
        if schedule is None:
            return False

        counter = schedule.committed_seats
        actual = self.reserved_seats(schedule_id, HOLDING_STATUSES)
        if counter == actual:
            return False

        logger.warning(
            "Committed seats drift on schedule %s: counter=%s records=%s",
            schedule_id,
            counter,
            actual,
        )
        if not self.schedule_repository.set_committed_seats(schedule_id, actual, expected=counter):
            logger.warning(
                "Committed seats on schedule %s changed during repair; leaving it for the next pass.",
                schedule_id,
            )
            return False
        return True
