# reservation_engine/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from reservation_engine.domain.exceptions import InvalidStateTransitionError


class ReservationStatus(str, Enum):
    TENTATIVE = "tentative"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"
    EXPIRED = "expired"


# Statuses whose seats count against a schedule's capacity.
HOLDING_STATUSES = frozenset({ReservationStatus.TENTATIVE, ReservationStatus.CONFIRMED})
CONFIRMED_STATUSES = frozenset({ReservationStatus.CONFIRMED})


class ReservationStateMachine:
    """
    Central lifecycle controller for reservation transitions.
    Defines the legal state transitions.
    """

    _ALLOWED_TRANSITIONS: Dict[ReservationStatus, Set[ReservationStatus]] = {
        ReservationStatus.TENTATIVE: {
            ReservationStatus.CONFIRMED,
            ReservationStatus.EXPIRED,
            ReservationStatus.CANCELED,
        },
        ReservationStatus.CONFIRMED: {
            ReservationStatus.CANCELED,
        },
        ReservationStatus.CANCELED: set(),
        ReservationStatus.EXPIRED: set(),
    }

    @classmethod
    def can_transition(
        cls,
        from_status: ReservationStatus,
        to_status: ReservationStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: ReservationStatus,
        to_status: ReservationStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status: ReservationStatus) -> bool:
        """
        Returns True if no further transitions leave this state.
        """
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def is_holding(cls, status: ReservationStatus) -> bool:
        cls._ensure_valid_status(status)
        return status in HOLDING_STATUSES

    @classmethod
    def get_allowed_transitions(
        cls, status: ReservationStatus
    ) -> Set[ReservationStatus]:
        cls._ensure_valid_status(status)
        return cls._ALLOWED_TRANSITIONS.get(status, set())

    @staticmethod
    def _ensure_valid_status(status: ReservationStatus) -> None:
        if not isinstance(status, ReservationStatus):
            raise TypeError(
                f"Expected ReservationStatus, got {type(status)}"
            )
