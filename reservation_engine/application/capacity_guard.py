import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from reservation_engine.application.inventory import InventoryReader
from reservation_engine.config import ReservationPolicy
from reservation_engine.domain.clock import parse_datetime
from reservation_engine.domain.exceptions import (
    CapacityGuardError,
    ErrorCode,
    ScheduleNotFoundError,
)
from reservation_engine.infrastructure.db.models import Performance, Schedule
from reservation_engine.infrastructure.repositories.reservation_repository import (
    ReservationRepository,
)
from reservation_engine.infrastructure.repositories.schedule_repository import (
    ScheduleRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleUpdate:
    id: str
    total_seats: int | None = None
    entry_url: str | None = None


@dataclass(frozen=True)
class PerformanceUpdate:
    """Fields left as None are not touched."""

    reservation_start_time: str | None = None
    max_reservations: int | None = None
    schedules: list[ScheduleUpdate] = field(default_factory=list)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class CapacityGuard:
    """
    Validates administrative edits so they never invalidate seats
    already handed out. Everything is checked before anything is
    written: an update is applied completely or not at all.
    """

    def __init__(self, db: Session, policy: ReservationPolicy):
        self.db = db
        self.policy = policy
        self.inventory = InventoryReader(db)
        self.reservation_repository = ReservationRepository(db)
        self.schedule_repository = ScheduleRepository(db)

    def validate(
        self,
        performance: Performance,
        update: PerformanceUpdate,
    ) -> dict[str, Schedule]:
        """
        Raise CapacityGuardError (or ScheduleNotFoundError) on the first
        violated rule. Returns the schedules targeted by the update.
        """
        schedules = self.schedule_repository.list_for_performance(performance.id)

        if update.max_reservations is not None:
            self._validate_max_reservations(performance, update.max_reservations, len(schedules))

        if update.reservation_start_time is not None:
            try:
                parse_datetime(update.reservation_start_time)
            except (TypeError, ValueError) as exc:
                raise CapacityGuardError(
                    ErrorCode.INVALID_DATETIME,
                    "Invalid reservationStartTime format",
                ) from exc

        by_id = {schedule.id: schedule for schedule in schedules}
        targeted: dict[str, Schedule] = {}

        for item in update.schedules:
            schedule = by_id.get(item.id)
            if schedule is None:
                raise ScheduleNotFoundError(item.id)

            if item.total_seats is not None:
                self._validate_total_seats(schedule, item.total_seats)

            if item.entry_url is not None and item.entry_url != schedule.entry_url:
                if self.reservation_repository.any_reminder_sent(schedule.id):
                    raise CapacityGuardError(
                        ErrorCode.ENTRY_URL_FROZEN,
                        "Cannot change entryUrl because reminder emails "
                        f"have been sent for schedule {schedule.id}",
                    )

            targeted[schedule.id] = schedule

        return targeted

    def _validate_max_reservations(
        self,
        performance: Performance,
        value,
        schedule_count: int,
    ) -> None:
        if not _is_int(value) or value < 0 or value > schedule_count:
            raise CapacityGuardError(
                ErrorCode.MAX_RESERVATIONS_OUT_OF_RANGE,
                "maxReservations out of range",
            )

        if value < (performance.max_reservations or 0):
            raise CapacityGuardError(
                ErrorCode.MAX_RESERVATIONS_DECREASE,
                f"maxReservations cannot decrease below {performance.max_reservations}",
            )

    def _validate_total_seats(self, schedule: Schedule, value) -> None:
        if not _is_int(value) or value < 0:
            raise CapacityGuardError(ErrorCode.INVALID_TOTAL_SEATS, "Invalid totalSeats type")

        if value > self.policy.venue_capacity:
            raise CapacityGuardError(
                ErrorCode.INVALID_TOTAL_SEATS,
                f"totalSeats exceeds {self.policy.venue_capacity}",
            )

        if value < schedule.total_seats:
            raise CapacityGuardError(
                ErrorCode.TOTAL_SEATS_DECREASE,
                f"totalSeats({value}) is less than current total({schedule.total_seats})",
            )

        reserved = self.inventory.reserved_seats(schedule.id)
        if value < reserved:
            raise CapacityGuardError(
                ErrorCode.TOTAL_SEATS_BELOW_RESERVED,
                f"totalSeats({value}) is less than reserved({reserved})",
            )

    def apply(self, performance: Performance, update: PerformanceUpdate) -> None:
        """Validate, then write every change in the caller's transaction."""
        targeted = self.validate(performance, update)

        if update.reservation_start_time is not None:
            performance.reservation_start_time = update.reservation_start_time
        if update.max_reservations is not None:
            performance.max_reservations = update.max_reservations

        for item in update.schedules:
            schedule = targeted[item.id]
            if item.total_seats is not None:
                schedule.total_seats = item.total_seats
            if item.entry_url is not None:
                schedule.entry_url = item.entry_url

        self.db.flush()

        logger.info(
            "Performance %s updated (%s schedules touched)",
            performance.id,
            len(update.schedules),
        )
