from sqlalchemy.orm import Session

from reservation_engine.config import ReservationPolicy
from reservation_engine.domain.exceptions import (
    DuplicateScheduleError,
    PerformanceCapReachedError,
)
from reservation_engine.domain.state_machine import HOLDING_STATUSES
from reservation_engine.infrastructure.repositories.reservation_repository import (
    ReservationRepository,
)


class DuplicateReservationPolicy:
    """Per-requester limits applied before a new hold is admitted."""

    def __init__(self, db: Session, policy: ReservationPolicy):
        self.reservation_repository = ReservationRepository(db)
        self.policy = policy

    def check(self, performance_id: str, schedule_id: str, email: str) -> None:
        """
        Raises DuplicateScheduleError when the requester already holds
        this schedule, PerformanceCapReachedError when they already hold
        the maximum number of schedules of the performance.
        """
        active = self.reservation_repository.list_for_requester(
            performance_id,
            email,
            HOLDING_STATUSES,
        )

        if any(item.schedule_id == schedule_id for item in active):
            raise DuplicateScheduleError()

        if len(active) >= self.policy.max_reservations_per_requester:
            raise PerformanceCapReachedError()
