# reservation_engine/infrastructure/repositories/reservation_repository.py

from datetime import datetime
from typing import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from reservation_engine.domain.exceptions import ReservationConflictError
from reservation_engine.domain.state_machine import ReservationStatus
from reservation_engine.infrastructure.db.models import Reservation


class ReservationRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        reservation_id: str,
    ) -> Reservation | None:

        stmt = select(Reservation).where(Reservation.id == reservation_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_if_absent(self, reservation: Reservation) -> Reservation:
        """
        Insert a new reservation; refuse to overwrite an existing id.
        """
        if self.get_by_id(reservation.id) is not None:
            raise ReservationConflictError(
                f"Reservation {reservation.id} already exists"
            )

        self.db.add(reservation)
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ReservationConflictError(
                f"Reservation {reservation.id} already exists"
            ) from exc
        return reservation

    def sum_reserved_seats(
        self,
        schedule_id: str,
        statuses: Iterable[ReservationStatus],
    ) -> int:
        stmt = (
            select(func.coalesce(func.sum(Reservation.reserved_seats), 0))
            .where(Reservation.schedule_id == schedule_id)
            .where(Reservation.status.in_(list(statuses)))
        )
        return int(self.db.execute(stmt).scalar_one())

    def list_for_requester(
        self,
        performance_id: str,
        email: str,
        statuses: Iterable[ReservationStatus],
    ) -> list[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.performance_id == performance_id)
            .where(Reservation.email == email)
            .where(Reservation.status.in_(list(statuses)))
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_schedule(
        self,
        schedule_id: str,
        statuses: Iterable[ReservationStatus],
    ) -> list[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.schedule_id == schedule_id)
            .where(Reservation.status.in_(list(statuses)))
            .order_by(Reservation.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_by_status(self, status: ReservationStatus) -> list[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.status == status)
            .order_by(Reservation.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_stale_tentative(self, created_before: datetime) -> list[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.status == ReservationStatus.TENTATIVE)
            .where(Reservation.created_at < created_before)
            .order_by(Reservation.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def any_reminder_sent(self, schedule_id: str) -> bool:
        stmt = (
            select(Reservation.id)
            .where(Reservation.schedule_id == schedule_id)
            .where(Reservation.reminder_email_sent.is_(True))
            .limit(1)
        )
        return self.db.execute(stmt).first() is not None

    def transition_status(
        self,
        reservation_id: str,
        expected: ReservationStatus,
        new_status: ReservationStatus,
        updated_at: datetime,
    ) -> bool:
        """
        Conditional write: only applies while the stored status
        still equals ``expected``. Returns False when it lost.
        """
        stmt = (
            update(Reservation)
            .where(Reservation.id == reservation_id)
            .where(Reservation.status == expected)
            .values(status=new_status, updated_at=updated_at)
            .execution_options(synchronize_session="fetch")
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1

    def mark_reminder_sent(self, reservation_id: str) -> None:
        stmt = (
            update(Reservation)
            .where(Reservation.id == reservation_id)
            .values(reminder_email_sent=True)
            .execution_options(synchronize_session="fetch")
        )
        self.db.execute(stmt)

    def mark_survey_sent(self, reservation_id: str) -> None:
        stmt = (
            update(Reservation)
            .where(Reservation.id == reservation_id)
            .values(survey_email_sent=True)
            .execution_options(synchronize_session="fetch")
        )
        self.db.execute(stmt)
