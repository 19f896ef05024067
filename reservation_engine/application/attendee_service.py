import logging
from datetime import datetime

from sqlalchemy.orm import Session

from reservation_engine.application.admin_auth import require_admin
from reservation_engine.config import ReservationPolicy
from reservation_engine.context import EngineContext
from reservation_engine.domain.exceptions import (
    AttendeeNotFoundError,
    ScheduleNotFoundError,
)
from reservation_engine.domain.state_machine import ReservationStatus
from reservation_engine.infrastructure.db.models import Attendee, Reservation
from reservation_engine.infrastructure.repositories.attendee_repository import (
    AttendeeRepository,
)
from reservation_engine.infrastructure.repositories.reservation_repository import (
    ReservationRepository,
)
from reservation_engine.infrastructure.repositories.schedule_repository import (
    ScheduleRepository,
)

logger = logging.getLogger(__name__)


def build_attendees(
    reservation: Reservation,
    policy: ReservationPolicy,
    created_at: datetime,
) -> list[Attendee]:
    """
    Expand a reservation into one attendee per seat. The first
    attendee is the requester and carries the notes; the rest are
    companions with empty notes.
    """
    attendees = []
    for index in range(reservation.reserved_seats):
        if index == 0:
            name = reservation.name
            notes = reservation.notes or ""
        else:
            name = policy.companion_name_format.format(name=reservation.name, index=index)
            notes = ""

        attendees.append(
            Attendee(
                reservation_id=reservation.id,
                performance_id=reservation.performance_id,
                schedule_id=reservation.schedule_id,
                name=name,
                checked_in=False,
                notes=notes,
                created_at=created_at,
            )
        )
    return attendees


class AttendeeService:

    def __init__(self, db: Session, context: EngineContext):
        self.db = db
        self.policy = context.settings.policy
        self.clock = context.clock
        self.attendee_repository = AttendeeRepository(db, self.policy.write_batch_size)
        self.reservation_repository = ReservationRepository(db)
        self.schedule_repository = ScheduleRepository(db)

    def materialize(self, reservation: Reservation) -> int:
        """
        Create the attendee roster of a confirmed reservation.

        Idempotent: when any attendee already references the
        reservation nothing is written. Returns the number created.
        Does not commit; runs inside the caller's transaction.
        """
        if self.attendee_repository.exists_for_reservation(reservation.id):
            logger.info("Attendees already exist for reservation %s; skipping.", reservation.id)
            return 0

        attendees = build_attendees(reservation, self.policy, self.clock())
        self.attendee_repository.add_in_batches(attendees)

        logger.info(
            "Created %s attendees for reservation %s",
            len(attendees),
            reservation.id,
        )
        return len(attendees)

    def materialize_confirmed_backlog(self) -> int:
        """
        Batch reconciliation: make sure every confirmed reservation
        has its roster. Commits per reservation so one failure does
        not discard the others.
        """
        created = 0
        reservations = self.reservation_repository.list_by_status(ReservationStatus.CONFIRMED)

        for reservation in reservations:
            try:
                created += self.materialize(reservation)
                self.db.commit()
            except Exception:
                self.db.rollback()
                logger.exception(
                    "Failed to materialize attendees for reservation %s",
                    reservation.id,
                )

        return created

    def list_attendees(
        self,
        performance_id: str,
        schedule_id: str,
        admin_secret: str | None,
    ) -> list[Attendee]:
        require_admin(self.db, performance_id, admin_secret)

        if self.schedule_repository.get(performance_id, schedule_id) is None:
            raise ScheduleNotFoundError(schedule_id)

        return self.attendee_repository.list_for_schedule(performance_id, schedule_id)

    def set_checked_in(
        self,
        attendee_id: str,
        admin_secret: str | None,
        checked_in: bool,
    ) -> Attendee:
        attendee = self.attendee_repository.get_by_id(attendee_id)
        if attendee is None:
            raise AttendeeNotFoundError(attendee_id)

        require_admin(self.db, attendee.performance_id, admin_secret)

        self.attendee_repository.set_checked_in(attendee_id, checked_in)
        self.db.flush()
        self.db.refresh(attendee)

        logger.info("Attendee %s checked_in=%s", attendee_id, checked_in)
        return attendee
