# reservation_engine/infrastructure/repositories/schedule_repository.py

import logging
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from reservation_engine.infrastructure.db.models import Performance, Schedule

logger = logging.getLogger(__name__)


class ScheduleRepository:

    def __init__(self, db: Session):
        self.db = db

    def get(self, performance_id: str, schedule_id: str) -> Schedule | None:
        stmt = (
            select(Schedule)
            .where(Schedule.performance_id == performance_id)
            .where(Schedule.id == schedule_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_id(self, schedule_id: str) -> Schedule | None:
        stmt = select(Schedule).where(Schedule.id == schedule_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_performance(self, performance_id: str) -> list[Schedule]:
        stmt = (
            select(Schedule)
            .where(Schedule.performance_id == performance_id)
            .order_by(Schedule.date, Schedule.time)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_on_dates(self, dates: Iterable[str]) -> list[Schedule]:
        stmt = (
            select(Schedule)
            .where(Schedule.date.in_(list(dates)))
            .order_by(Schedule.date, Schedule.time)
        )
        return list(self.db.execute(stmt).scalars().all())

    def try_commit_seats(self, schedule_id: str, seats: int) -> bool:
        """
        Atomic "reserve N of capacity C": increments the committed
        counter only if the result stays within total_seats.
        """
        stmt = (
            update(Schedule)
            .where(Schedule.id == schedule_id)
            .where(Schedule.committed_seats + seats <= Schedule.total_seats)
            .values(committed_seats=Schedule.committed_seats + seats)
            .execution_options(synchronize_session="fetch")
        )
        return self.db.execute(stmt).rowcount == 1

    def release_seats(self, schedule_id: str, seats: int) -> None:
        stmt = (
            update(Schedule)
            .where(Schedule.id == schedule_id)
            .where(Schedule.committed_seats >= seats)
            .values(committed_seats=Schedule.committed_seats - seats)
            .execution_options(synchronize_session="fetch")
        )
        if self.db.execute(stmt).rowcount == 1:
            return

        logger.warning(
            "Committed seat counter for schedule %s below %s; clamping to zero.",
            schedule_id,
            seats,
        )
        self.set_committed_seats(schedule_id, 0)

    def lock(self, schedule_id: str) -> Schedule | None:
        """
        SELECT ... FOR UPDATE on the schedule row, refreshing any
        copy already held by the session.
        """
        stmt = (
            select(Schedule)
            .where(Schedule.id == schedule_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def set_committed_seats(
        self,
        schedule_id: str,
        committed_seats: int,
        expected: int | None = None,
    ) -> bool:
        """
        Overwrite the committed counter. With ``expected`` the write only
        applies while the counter still holds that value.
        """
        stmt = (
            update(Schedule)
            .where(Schedule.id == schedule_id)
            .values(committed_seats=committed_seats)
            .execution_options(synchronize_session="fetch")
        )
        if expected is not None:
            stmt = stmt.where(Schedule.committed_seats == expected)
        return self.db.execute(stmt).rowcount == 1


class PerformanceRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, performance_id: str) -> Performance | None:
        stmt = select(Performance).where(Performance.id == performance_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_by_ids(self, performance_ids: Iterable[str]) -> dict[str, Performance]:
        stmt = select(Performance).where(Performance.id.in_(list(performance_ids)))
        return {item.id: item for item in self.db.execute(stmt).scalars().all()}
