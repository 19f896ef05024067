from typing import Any

from pydantic import BaseModel, ConfigDict, StrictBool
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(CamelModel):
    error_code: str
    error_message: str


class ReservationRequest(CamelModel):
    # Everything optional: missing or malformed fields are reported
    # as E002 by the service, not as a framework 422.
    performance_id: str | None = None
    schedule_id: str | None = None
    name: str | None = None
    email: str | None = None
    reserved_seats: Any = None
    notes: str | None = None


class ReservationResponse(CamelModel):
    message: str
    reservation_id: str
    confirmation_code: str


class CancelRequest(CamelModel):
    id: str | None = None
    token: str | None = None


class CancelResponse(CamelModel):
    message: str
    reservation_id: str
    already_canceled: bool
    attendees_deleted: int


class PublicScheduleResponse(CamelModel):
    id: str
    date: str
    time: str
    remaining_seats: int


class PublicPerformanceResponse(CamelModel):
    id: str
    title: str
    reservation_status: str
    reservation_start_time: str | None = None
    max_reservations: int | None = None
    schedules: list[PublicScheduleResponse] | None = None
    message: str | None = None


class AdminScheduleResponse(CamelModel):
    id: str
    date: str
    time: str
    total_seats: int
    reserved_seats: int
    entry_url: str | None = None


class AdminPerformanceResponse(CamelModel):
    id: str
    title: str
    reservation_start_time: str | None = None
    max_reservations: int
    survey_url: str | None = None
    schedules: list[AdminScheduleResponse]


class ScheduleUpdateRequest(CamelModel):
    id: str
    # Type checks happen in the capacity guard so they map to E102.
    total_seats: Any = None
    entry_url: str | None = None


class PerformanceUpdateRequest(CamelModel):
    reservation_start_time: str | None = None
    max_reservations: Any = None
    schedules: list[ScheduleUpdateRequest] = []


class AttendeeResponse(CamelModel):
    id: str
    reservation_id: str
    performance_id: str
    schedule_id: str
    name: str
    checked_in: bool
    notes: str


class CheckInRequest(CamelModel):
    checked_in: StrictBool


class CheckInResponse(CamelModel):
    message: str
    attendee_id: str
    checked_in: bool
