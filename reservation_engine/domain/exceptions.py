from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes returned to callers."""

    INSUFFICIENT_SEATS = "E001"
    INVALID_INPUT = "E002"
    RESERVATIONS_NOT_OPEN = "E003"
    DUPLICATE_SCHEDULE = "E004"
    PERFORMANCE_CAP_REACHED = "E005"
    RESERVATION_NOT_ACTIVE = "E006"
    MAX_RESERVATIONS_OUT_OF_RANGE = "E101"
    INVALID_TOTAL_SEATS = "E102"
    TOTAL_SEATS_BELOW_RESERVED = "E103"
    ENTRY_URL_FROZEN = "E104"
    INVALID_DATETIME = "E105"
    TOTAL_SEATS_DECREASE = "E106"
    MAX_RESERVATIONS_DECREASE = "E107"
    FORBIDDEN = "E403"
    INTERNAL = "E999"


class ReservationEngineError(Exception):
    """
    Base exception for all errors raised
    inside the reservation engine.
    """


class DomainError(ReservationEngineError):
    """
    Expected business-rule rejection.
    Carries a stable code, a user-safe message and the HTTP status
    the API layer answers with.
    """

    status_code = 400

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code.value}: {message}")


class InvalidInputError(DomainError):
    def __init__(self, message: str = "Missing required fields or invalid seat count"):
        super().__init__(ErrorCode.INVALID_INPUT, message)


class NotFoundError(DomainError):
    status_code = 404

    def __init__(self, message: str):
        super().__init__(ErrorCode.INVALID_INPUT, message)


class PerformanceNotFoundError(NotFoundError):
    def __init__(self, performance_id: str):
        self.performance_id = performance_id
        super().__init__("Performance not found")


class ScheduleNotFoundError(NotFoundError):
    def __init__(self, schedule_id: str):
        self.schedule_id = schedule_id
        super().__init__("Schedule not found")


class AttendeeNotFoundError(NotFoundError):
    def __init__(self, attendee_id: str):
        self.attendee_id = attendee_id
        super().__init__("Attendee not found")


class ReservationsNotOpenError(DomainError):
    status_code = 403

    def __init__(self, reservation_start_time: str):
        self.reservation_start_time = reservation_start_time
        super().__init__(ErrorCode.RESERVATIONS_NOT_OPEN, "Reservations are not yet open")


class InsufficientSeatsError(DomainError):
    """Raised when a schedule cannot hold the requested seats."""

    def __init__(self) -> None:
        super().__init__(ErrorCode.INSUFFICIENT_SEATS, "Not enough available seats")


class DuplicateScheduleError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            ErrorCode.DUPLICATE_SCHEDULE,
            "A reservation already exists for this schedule and email address",
        )


class PerformanceCapReachedError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            ErrorCode.PERFORMANCE_CAP_REACHED,
            "Maximum number of reservations reached for this performance",
        )


class InvalidTokenError(DomainError):
    """Token mismatch or unknown reservation. Deliberately generic."""

    def __init__(self) -> None:
        super().__init__(ErrorCode.INVALID_INPUT, "Invalid request")


class ReservationNotActiveError(DomainError):
    def __init__(self, status: str):
        self.status = status
        super().__init__(ErrorCode.RESERVATION_NOT_ACTIVE, "Reservation is no longer active")


class ForbiddenError(DomainError):
    status_code = 403

    def __init__(self) -> None:
        super().__init__(ErrorCode.FORBIDDEN, "Forbidden")


class CapacityGuardError(DomainError):
    """Rejected administrative update."""


class InvalidStateTransitionError(ReservationEngineError):
    """
    Raised when an illegal reservation state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class ReservationConflictError(ReservationEngineError):
    """Raised when a create-if-absent write finds the key already taken."""


class StorageUnavailableError(ReservationEngineError):
    """Raised when the store cannot be reached. Safe to retry."""
