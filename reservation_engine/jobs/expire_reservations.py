# reservation_engine/jobs/expire_reservations.py

import logging

from sqlalchemy.exc import OperationalError, TimeoutError as SQLAlchemyTimeoutError
from sqlalchemy.orm import Session

from reservation_engine.context import EngineContext
from reservation_engine.domain.state_machine import ReservationStateMachine, ReservationStatus
from reservation_engine.infrastructure.db.models import Reservation
from reservation_engine.infrastructure.repositories.reservation_repository import (
    ReservationRepository,
)
from reservation_engine.infrastructure.repositories.schedule_repository import (
    ScheduleRepository,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "expire_reservations"


class ExpirationReaper:
    """
    Reclaims tentative holds older than the expiration window.

    Each candidate is expired in its own transaction with a write that
    only applies while the reservation is still tentative, so a sweep
    never overrides a confirmation or cancellation that landed first.
    """

    def __init__(self, db: Session, context: EngineContext):
        self.db = db
        self.context = context
        self.window = context.settings.policy.expiration_window
        self.reservation_repository = ReservationRepository(db)
        self.schedule_repository = ScheduleRepository(db)

    def find_candidates(self) -> list[Reservation]:
        cutoff = self.context.clock() - self.window
        return self.reservation_repository.list_stale_tentative(created_before=cutoff)

    def expire(self, reservation: Reservation) -> bool:
        """Returns True when this call moved the reservation to expired."""
        ReservationStateMachine.validate_transition(
            ReservationStatus.TENTATIVE,
            ReservationStatus.EXPIRED,
        )

        applied = self.reservation_repository.transition_status(
            reservation.id,
            expected=ReservationStatus.TENTATIVE,
            new_status=ReservationStatus.EXPIRED,
            updated_at=self.context.clock(),
        )
        if not applied:
            self.db.rollback()
            logger.info(
                "Reservation %s changed state before expiry; skipping.",
                reservation.id,
            )
            return False

        self.schedule_repository.release_seats(
            reservation.schedule_id,
            reservation.reserved_seats,
        )
        self.db.commit()

        logger.info(
            "Expired reservation %s (%s seats released on schedule %s)",
            reservation.id,
            reservation.reserved_seats,
            reservation.schedule_id,
        )
        return True

    def run(self) -> int:
        try:
            candidates = self.find_candidates()
            expired = sum(1 for reservation in candidates if self.expire(reservation))
        except (OperationalError, SQLAlchemyTimeoutError):
            self.db.rollback()
            logger.exception("Expiration sweep failed")
            self.context.alert_sink.notify(
                "Expiration sweep failed: storage unavailable",
                type="ERROR",
                severity="HIGH",
                service=SERVICE_NAME,
            )
            raise

        logger.info("Expiration sweep: %s candidates, %s expired", len(candidates), expired)

        if expired > 0:
            self.context.alert_sink.notify(
                f"{expired} reservation(s) expired",
                type="INFO",
                severity="LOW",
                service=SERVICE_NAME,
            )
        return expired


def run(db: Session, context: EngineContext) -> int:
    return ExpirationReaper(db, context).run()
