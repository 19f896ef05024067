from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from reservation_engine.api.dependencies import get_context, get_db
from reservation_engine.api.schemas.schemas import (
    AdminPerformanceResponse,
    AttendeeResponse,
    CheckInRequest,
    CheckInResponse,
    PerformanceUpdateRequest,
)
from reservation_engine.application.attendee_service import AttendeeService
from reservation_engine.application.capacity_guard import PerformanceUpdate, ScheduleUpdate
from reservation_engine.application.performance_service import PerformanceService
from reservation_engine.context import EngineContext

router = APIRouter(prefix="/admin")


@router.get(
    "/performances/{performance_id}",
    response_model=AdminPerformanceResponse,
    response_model_by_alias=True,
)
def get_performance_details(
    performance_id: str,
    uuid: str | None = None,
    db: Session = Depends(get_db),
    context: EngineContext = Depends(get_context),
):
    view = PerformanceService(db, context).get_admin_performance(performance_id, uuid)
    return AdminPerformanceResponse.model_validate(view, from_attributes=True)


@router.put(
    "/performances/{performance_id}",
    response_model=AdminPerformanceResponse,
    response_model_by_alias=True,
)
def update_performance(
    performance_id: str,
    request: PerformanceUpdateRequest,
    uuid: str | None = None,
    db: Session = Depends(get_db),
    context: EngineContext = Depends(get_context),
):
    update = PerformanceUpdate(
        reservation_start_time=request.reservation_start_time,
        max_reservations=request.max_reservations,
        schedules=[
            ScheduleUpdate(
                id=item.id,
                total_seats=item.total_seats,
                entry_url=item.entry_url,
            )
            for item in request.schedules
        ],
    )
    view = PerformanceService(db, context).update_performance(performance_id, uuid, update)
    return AdminPerformanceResponse.model_validate(view, from_attributes=True)


@router.get(
    "/performances/{performance_id}/schedules/{schedule_id}/attendees",
    response_model=list[AttendeeResponse],
    response_model_by_alias=True,
)
def list_attendees(
    performance_id: str,
    schedule_id: str,
    uuid: str | None = None,
    db: Session = Depends(get_db),
    context: EngineContext = Depends(get_context),
):
    attendees = AttendeeService(db, context).list_attendees(performance_id, schedule_id, uuid)
    return [AttendeeResponse.model_validate(item, from_attributes=True) for item in attendees]


@router.patch(
    "/attendees/{attendee_id}",
    response_model=CheckInResponse,
    response_model_by_alias=True,
)
def update_check_in(
    attendee_id: str,
    request: CheckInRequest,
    uuid: str | None = None,
    db: Session = Depends(get_db),
    context: EngineContext = Depends(get_context),
):
    attendee = AttendeeService(db, context).set_checked_in(attendee_id, uuid, request.checked_in)
    return CheckInResponse(
        message="Checkin status updated",
        attendee_id=attendee.id,
        checked_in=attendee.checked_in,
    )
