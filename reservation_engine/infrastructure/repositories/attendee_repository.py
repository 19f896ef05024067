# reservation_engine/infrastructure/repositories/attendee_repository.py

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from reservation_engine.infrastructure.db.models import Attendee


class AttendeeRepository:

    def __init__(self, db: Session, batch_size: int = 25):
        self.db = db
        self.batch_size = batch_size

    def get_by_id(self, attendee_id: str) -> Attendee | None:
        stmt = select(Attendee).where(Attendee.id == attendee_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def exists_for_reservation(self, reservation_id: str) -> bool:
        stmt = (
            select(Attendee.id)
            .where(Attendee.reservation_id == reservation_id)
            .limit(1)
        )
        return self.db.execute(stmt).first() is not None

    def list_for_schedule(self, performance_id: str, schedule_id: str) -> list[Attendee]:
        stmt = (
            select(Attendee)
            .where(Attendee.performance_id == performance_id)
            .where(Attendee.schedule_id == schedule_id)
            .order_by(Attendee.created_at, Attendee.reservation_id, Attendee.name)
        )
        return list(self.db.execute(stmt).scalars().all())

    def add_in_batches(self, attendees: list[Attendee]) -> None:
        for start in range(0, len(attendees), self.batch_size):
            self.db.add_all(attendees[start:start + self.batch_size])
            self.db.flush()

    def delete_for_reservation(self, reservation_id: str) -> int:
        """
        Paginated bulk delete, one chunk of ``batch_size`` keys at a time.
        Returns the number of rows removed.
        """
        deleted = 0
        while True:
            stmt = (
                select(Attendee.id)
                .where(Attendee.reservation_id == reservation_id)
                .limit(self.batch_size)
            )
            ids = list(self.db.execute(stmt).scalars().all())
            if not ids:
                return deleted

            self.db.execute(
                delete(Attendee)
                .where(Attendee.id.in_(ids))
                .execution_options(synchronize_session="fetch")
            )
            deleted += len(ids)

    def set_checked_in(self, attendee_id: str, checked_in: bool) -> None:
        stmt = (
            update(Attendee)
            .where(Attendee.id == attendee_id)
            .values(checked_in=checked_in)
            .execution_options(synchronize_session="fetch")
        )
        self.db.execute(stmt)
