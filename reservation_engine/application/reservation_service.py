import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from reservation_engine.application.attendee_service import AttendeeService
from reservation_engine.application.inventory import InventoryReader
from reservation_engine.application.mailer import ReservationMailer
from reservation_engine.application.reservation_policy import DuplicateReservationPolicy
from reservation_engine.context import EngineContext
from reservation_engine.domain import tokens
from reservation_engine.domain.clock import parse_datetime
from reservation_engine.domain.exceptions import (
    InsufficientSeatsError,
    InvalidInputError,
    InvalidTokenError,
    PerformanceNotFoundError,
    ReservationConflictError,
    ReservationNotActiveError,
    ReservationsNotOpenError,
    ScheduleNotFoundError,
)
from reservation_engine.domain.state_machine import (
    CONFIRMED_STATUSES,
    ReservationStateMachine,
    ReservationStatus,
)
from reservation_engine.infrastructure.db.models import Performance, Reservation
from reservation_engine.infrastructure.repositories.attendee_repository import (
    AttendeeRepository,
)
from reservation_engine.infrastructure.repositories.reservation_repository import (
    ReservationRepository,
)
from reservation_engine.infrastructure.repositories.schedule_repository import (
    PerformanceRepository,
    ScheduleRepository,
)

logger = logging.getLogger(__name__)

_BASE36_LOWER = string.digits + string.ascii_lowercase
_BASE36_UPPER = string.digits + string.ascii_uppercase

CANCEL_RETRY_ATTEMPTS = 3


class ConfirmationResult(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not-found"
    EXPIRED = "expired"
    INVALID = "invalid"
    ALREADY_CONFIRMED = "already-confirmed"
    NO_SEATS = "no-seats"
    ERROR = "error"


@dataclass(frozen=True)
class AdmissionResult:
    reservation_id: str
    confirmation_code: str


@dataclass(frozen=True)
class ConfirmationOutcome:
    result: ConfirmationResult
    performance_id: str | None = None


@dataclass(frozen=True)
class CancellationOutcome:
    reservation_id: str
    already_canceled: bool = False
    attendees_deleted: int = 0


def generate_reservation_id(now_millis: int) -> str:
    suffix = "".join(secrets.choice(_BASE36_LOWER) for _ in range(6))
    return f"RES{now_millis}{suffix}"


def generate_confirmation_code() -> str:
    return "".join(secrets.choice(_BASE36_UPPER) for _ in range(8))


class ReservationService:
    """
    Application service coordinating the reservation lifecycle:
    admission, confirmation handshake and cancellation.

    The signing secret is resolved once per service instance, i.e.
    once per request, so a rotated secret is picked up without a
    restart.
    """

    def __init__(self, db: Session, context: EngineContext):
        self.db = db
        self.context = context
        self.settings = context.settings
        self.clock = context.clock
        self.alert_sink = context.alert_sink

        self.reservation_repository = ReservationRepository(db)
        self.schedule_repository = ScheduleRepository(db)
        self.performance_repository = PerformanceRepository(db)
        self.attendee_repository = AttendeeRepository(
            db,
            self.settings.policy.write_batch_size,
        )
        self.inventory = InventoryReader(db)
        self.policy = DuplicateReservationPolicy(db, self.settings.policy)
        self.attendee_service = AttendeeService(db, context)
        self.mailer = ReservationMailer(context)

        self._secret: str | None = None

    @property
    def secret(self) -> str:
        if self._secret is None:
            self._secret = self.context.secret_provider.get_secret()
        return self._secret

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def create_reservation(
        self,
        performance_id: str,
        schedule_id: str,
        name: str,
        email: str,
        reserved_seats: int,
        notes: str | None = None,
    ) -> AdmissionResult:
        if (
            not performance_id
            or not schedule_id
            or not name
            or not email
            or isinstance(reserved_seats, bool)
            or not isinstance(reserved_seats, int)
            or reserved_seats <= 0
        ):
            raise InvalidInputError()

        # Resolved before any write so a missing secret cannot leave
        # an unconfirmable hold behind.
        secret = self.secret
        now = self.clock()

        performance = self.performance_repository.get_by_id(performance_id)
        if performance is None:
            raise PerformanceNotFoundError(performance_id)

        self._ensure_open(performance, now)

        self.policy.check(performance_id, schedule_id, email)

        schedule = self.schedule_repository.get(performance_id, schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(schedule_id)

        if self.inventory.available_seats(schedule) < reserved_seats:
            raise InsufficientSeatsError()

        if not self.schedule_repository.try_commit_seats(schedule_id, reserved_seats):
            self.db.rollback()
            logger.warning(
                "Seat counter rejected %s seats on schedule %s",
                reserved_seats,
                schedule_id,
            )
            raise InsufficientSeatsError()

        reservation = Reservation(
            id=generate_reservation_id(int(now.timestamp() * 1000)),
            performance_id=performance_id,
            schedule_id=schedule_id,
            name=name,
            email=email,
            reserved_seats=reserved_seats,
            notes=notes or "",
            status=ReservationStatus.TENTATIVE,
            confirmation_code=generate_confirmation_code(),
            reminder_email_sent=False,
            survey_email_sent=False,
            created_at=now,
            updated_at=now,
        )

        try:
            self.reservation_repository.create_if_absent(reservation)
        except ReservationConflictError:
            self.db.rollback()
            raise

        self.db.commit()

        logger.info(
            "Reservation %s created for schedule %s (%s seats)",
            reservation.id,
            schedule_id,
            reserved_seats,
        )

        confirmation_link = tokens.build_link(
            self.settings.confirmation_url,
            reservation.id,
            tokens.confirmation_token(reservation.id, email, secret),
        )
        try:
            self.mailer.send_confirmation_request(
                reservation,
                performance,
                schedule,
                confirmation_link,
            )
        except Exception:
            logger.exception("Failed to send confirmation request for %s", reservation.id)
            self.alert_sink.notify(
                f"Failed to send confirmation request email for reservation {reservation.id}",
                type="ERROR",
                severity="HIGH",
                service="create_reservation",
            )

        return AdmissionResult(
            reservation_id=reservation.id,
            confirmation_code=reservation.confirmation_code,
        )

    def _ensure_open(self, performance: Performance, now: datetime) -> None:
        start_time = performance.reservation_start_time
        if not start_time:
            return

        try:
            opens_at = parse_datetime(start_time, ZoneInfo(self.settings.time_zone))
        except ValueError:
            logger.warning(
                "Unparseable reservation_start_time %r on performance %s; treating as open.",
                start_time,
                performance.id,
            )
            return

        if now < opens_at:
            raise ReservationsNotOpenError(start_time)

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def confirm_reservation(self, reservation_id: str, token: str) -> ConfirmationOutcome:
        """
        Verify the emailed token and move the hold to confirmed.
        Never raises: every failure becomes a ConfirmationResult.
        """
        try:
            return self._confirm(reservation_id, token)
        except Exception:
            self.db.rollback()
            logger.exception("Unexpected error confirming reservation %s", reservation_id)
            self.alert_sink.notify(
                f"Unexpected error confirming reservation {reservation_id}",
                type="ERROR",
                severity="HIGH",
                service="confirm_reservation",
            )
            return ConfirmationOutcome(ConfirmationResult.ERROR)

    def _confirm(self, reservation_id: str, token: str) -> ConfirmationOutcome:
        if not reservation_id or not token:
            return ConfirmationOutcome(ConfirmationResult.INVALID)

        reservation = self.reservation_repository.get_by_id(reservation_id)
        if reservation is None:
            return ConfirmationOutcome(ConfirmationResult.NOT_FOUND)

        performance_id = reservation.performance_id

        if reservation.status == ReservationStatus.EXPIRED:
            return ConfirmationOutcome(ConfirmationResult.EXPIRED, performance_id)

        if not tokens.verify_confirmation_token(
            token,
            reservation.id,
            reservation.email,
            self.secret,
        ):
            logger.warning("Invalid confirmation token for reservation %s", reservation_id)
            return ConfirmationOutcome(ConfirmationResult.INVALID, performance_id)

        if reservation.status == ReservationStatus.CONFIRMED:
            return ConfirmationOutcome(ConfirmationResult.ALREADY_CONFIRMED, performance_id)

        if not ReservationStateMachine.can_transition(
            reservation.status,
            ReservationStatus.CONFIRMED,
        ):
            return ConfirmationOutcome(ConfirmationResult.INVALID, performance_id)

        schedule = self.schedule_repository.get_by_id(reservation.schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(reservation.schedule_id)

        confirmed = self.inventory.reserved_seats(schedule.id, CONFIRMED_STATUSES)
        if confirmed + reservation.reserved_seats > schedule.total_seats:
            logger.warning(
                "No confirmed capacity left for reservation %s on schedule %s",
                reservation_id,
                schedule.id,
            )
            return ConfirmationOutcome(ConfirmationResult.NO_SEATS, performance_id)

        applied = self.reservation_repository.transition_status(
            reservation.id,
            expected=ReservationStatus.TENTATIVE,
            new_status=ReservationStatus.CONFIRMED,
            updated_at=self.clock(),
        )
        if not applied:
            self.db.rollback()
            self.db.refresh(reservation)
            logger.warning(
                "Lost confirmation race for reservation %s (now %s)",
                reservation_id,
                reservation.status.value,
            )
            return ConfirmationOutcome(self._result_after_lost_race(reservation), performance_id)

        self.attendee_service.materialize(reservation)
        self.db.commit()

        logger.info("Reservation %s confirmed", reservation_id)

        performance = self.performance_repository.get_by_id(performance_id)
        cancel_url = tokens.build_link(
            f"{self.settings.frontend_url}/reservations/cancel",
            reservation.id,
            tokens.cancellation_token(reservation.id, self.secret),
        )
        try:
            self.mailer.send_confirmed(reservation, performance, schedule, cancel_url)
        except Exception:
            logger.exception("Failed to send confirmed email for %s", reservation_id)
            self.alert_sink.notify(
                f"Failed to send confirmed email for reservation {reservation_id}",
                type="ERROR",
                severity="HIGH",
                service="confirm_reservation",
            )
        else:
            self.alert_sink.notify(
                f"Reservation {reservation_id} confirmed "
                f"({reservation.reserved_seats} seats, schedule {schedule.id})",
                type="INFO",
                severity="LOW",
                service="confirm_reservation",
            )

        return ConfirmationOutcome(ConfirmationResult.SUCCESS, performance_id)

    @staticmethod
    def _result_after_lost_race(reservation: Reservation) -> ConfirmationResult:
        if reservation.status == ReservationStatus.EXPIRED:
            return ConfirmationResult.EXPIRED
        if reservation.status == ReservationStatus.CONFIRMED:
            return ConfirmationResult.ALREADY_CONFIRMED
        return ConfirmationResult.INVALID

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel_reservation(self, reservation_id: str, token: str) -> CancellationOutcome:
        if not reservation_id or not token:
            raise InvalidInputError("Missing reservation id or token")

        reservation = self.reservation_repository.get_by_id(reservation_id)
        if reservation is None or not tokens.verify_cancellation_token(
            token,
            reservation_id,
            self.secret,
        ):
            logger.warning("Rejected cancellation for reservation %s", reservation_id)
            raise InvalidTokenError()

        for _ in range(CANCEL_RETRY_ATTEMPTS):
            status = reservation.status

            if status == ReservationStatus.CANCELED:
                logger.info("Reservation %s already canceled", reservation_id)
                return CancellationOutcome(reservation_id, already_canceled=True)

            if status == ReservationStatus.EXPIRED:
                raise ReservationNotActiveError(status.value)

            ReservationStateMachine.validate_transition(status, ReservationStatus.CANCELED)

            applied = self.reservation_repository.transition_status(
                reservation_id,
                expected=status,
                new_status=ReservationStatus.CANCELED,
                updated_at=self.clock(),
            )
            if applied:
                break

            # Status moved underneath us (e.g. confirmed or expired); re-read.
            self.db.rollback()
            self.db.refresh(reservation)
            logger.warning(
                "Cancellation of %s raced with a status change to %s; retrying.",
                reservation_id,
                reservation.status.value,
            )
        else:
            raise ReservationConflictError(
                f"Could not cancel reservation {reservation_id}: status kept changing"
            )

        self.schedule_repository.release_seats(
            reservation.schedule_id,
            reservation.reserved_seats,
        )
        deleted = self.attendee_repository.delete_for_reservation(reservation_id)
        self.db.commit()

        logger.info(
            "Reservation %s canceled; %s attendees removed",
            reservation_id,
            deleted,
        )
        return CancellationOutcome(reservation_id, attendees_deleted=deleted)
