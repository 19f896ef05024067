import logging
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from reservation_engine.application.admin_auth import require_admin
from reservation_engine.application.capacity_guard import CapacityGuard, PerformanceUpdate
from reservation_engine.application.inventory import InventoryReader
from reservation_engine.context import EngineContext
from reservation_engine.domain.clock import parse_datetime, schedule_start
from reservation_engine.domain.exceptions import PerformanceNotFoundError
from reservation_engine.infrastructure.db.models import Performance
from reservation_engine.infrastructure.repositories.schedule_repository import (
    PerformanceRepository,
    ScheduleRepository,
)

logger = logging.getLogger(__name__)

NOT_STARTED = "not_started"
CLOSED = "closed"
OPEN = "open"


@dataclass(frozen=True)
class PublicScheduleView:
    id: str
    date: str
    time: str
    remaining_seats: int


@dataclass(frozen=True)
class PublicPerformanceView:
    id: str
    title: str
    reservation_status: str
    reservation_start_time: str | None = None
    max_reservations: int | None = None
    schedules: list[PublicScheduleView] | None = None
    message: str | None = None


@dataclass(frozen=True)
class AdminScheduleView:
    id: str
    date: str
    time: str
    total_seats: int
    reserved_seats: int
    entry_url: str | None


@dataclass(frozen=True)
class AdminPerformanceView:
    id: str
    title: str
    reservation_start_time: str | None
    max_reservations: int
    survey_url: str | None
    schedules: list[AdminScheduleView] = field(default_factory=list)


class PerformanceService:
    """Read models for the booking page and the admin console."""

    def __init__(self, db: Session, context: EngineContext):
        self.db = db
        self.settings = context.settings
        self.clock = context.clock
        self.zone = ZoneInfo(self.settings.time_zone)
        self.performance_repository = PerformanceRepository(db)
        self.schedule_repository = ScheduleRepository(db)
        self.inventory = InventoryReader(db)

    def get_public_performance(self, performance_id: str) -> PublicPerformanceView:
        performance = self.performance_repository.get_by_id(performance_id)
        if performance is None:
            raise PerformanceNotFoundError(performance_id)

        now = self.clock()

        if not self._is_open(performance, now):
            return PublicPerformanceView(
                id=performance.id,
                title=performance.title,
                reservation_status=NOT_STARTED,
                reservation_start_time=performance.reservation_start_time,
            )

        cutoff = self.settings.policy.booking_cutoff
        schedules = []
        for schedule in self.schedule_repository.list_for_performance(performance.id):
            starts_at = schedule_start(schedule.date, schedule.time, self.zone)
            if now >= starts_at - cutoff:
                continue

            schedules.append(
                PublicScheduleView(
                    id=schedule.id,
                    date=schedule.date,
                    time=schedule.time,
                    remaining_seats=max(0, self.inventory.available_seats(schedule)),
                )
            )

        if not schedules:
            return PublicPerformanceView(
                id=performance.id,
                title=performance.title,
                reservation_status=CLOSED,
                message=(
                    "All performances are within one hour of start time "
                    "or have already begun."
                ),
            )

        return PublicPerformanceView(
            id=performance.id,
            title=performance.title,
            reservation_status=OPEN,
            schedules=schedules,
            max_reservations=performance.max_reservations or 0,
        )

    def _is_open(self, performance: Performance, now: datetime) -> bool:
        if not performance.reservation_start_time:
            return True
        try:
            opens_at = parse_datetime(performance.reservation_start_time, self.zone)
        except ValueError:
            logger.warning(
                "Unparseable reservation_start_time on performance %s",
                performance.id,
            )
            return True
        return now >= opens_at

    def get_admin_performance(
        self,
        performance_id: str,
        admin_secret: str | None,
    ) -> AdminPerformanceView:
        performance = require_admin(self.db, performance_id, admin_secret)

        schedules = [
            AdminScheduleView(
                id=schedule.id,
                date=schedule.date,
                time=schedule.time,
                total_seats=schedule.total_seats,
                reserved_seats=self.inventory.reserved_seats(schedule.id),
                entry_url=schedule.entry_url,
            )
            for schedule in self.schedule_repository.list_for_performance(performance.id)
        ]

        return AdminPerformanceView(
            id=performance.id,
            title=performance.title,
            reservation_start_time=performance.reservation_start_time,
            max_reservations=performance.max_reservations or 0,
            survey_url=performance.survey_url,
            schedules=schedules,
        )

    def update_performance(
        self,
        performance_id: str,
        admin_secret: str | None,
        update: PerformanceUpdate,
    ) -> AdminPerformanceView:
        performance = require_admin(self.db, performance_id, admin_secret)

        guard = CapacityGuard(self.db, self.settings.policy)
        try:
            guard.apply(performance, update)
        except Exception:
            self.db.rollback()
            raise
        self.db.commit()

        return self.get_admin_performance(performance_id, admin_secret)
