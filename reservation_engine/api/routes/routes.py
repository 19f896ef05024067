import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from reservation_engine.api.dependencies import get_context, get_db
from reservation_engine.api.schemas.schemas import (
    CancelRequest,
    CancelResponse,
    PublicPerformanceResponse,
    ReservationRequest,
    ReservationResponse,
)
from reservation_engine.application.performance_service import PerformanceService
from reservation_engine.application.reservation_service import (
    ConfirmationOutcome,
    ReservationService,
)
from reservation_engine.context import EngineContext

router = APIRouter()
logger = logging.getLogger(__name__)


def result_redirect_url(frontend_url: str, outcome: ConfirmationOutcome) -> str:
    params = {"status": outcome.result.value}
    if outcome.performance_id:
        params["performanceId"] = outcome.performance_id
    return f"{frontend_url}/reservations/result?{urlencode(params)}"


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get(
    "/performances/{performance_id}",
    response_model=PublicPerformanceResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
def get_performance(
    performance_id: str,
    db: Session = Depends(get_db),
    context: EngineContext = Depends(get_context),
):
    view = PerformanceService(db, context).get_public_performance(performance_id)
    return PublicPerformanceResponse.model_validate(view, from_attributes=True)


@router.post(
    "/reservations",
    response_model=ReservationResponse,
    response_model_by_alias=True,
)
def create_reservation(
    request: ReservationRequest,
    db: Session = Depends(get_db),
    context: EngineContext = Depends(get_context),
):
    result = ReservationService(db, context).create_reservation(
        performance_id=request.performance_id,
        schedule_id=request.schedule_id,
        name=request.name,
        email=request.email,
        reserved_seats=request.reserved_seats,
        notes=request.notes,
    )
    return ReservationResponse(
        message="Reservation created successfully",
        reservation_id=result.reservation_id,
        confirmation_code=result.confirmation_code,
    )


@router.get("/reservations/confirm")
def confirm_reservation(
    id: str | None = None,
    token: str | None = None,
    db: Session = Depends(get_db),
    context: EngineContext = Depends(get_context),
):
    outcome = ReservationService(db, context).confirm_reservation(id, token)
    logger.info("Confirmation of %s finished with %s", id, outcome.result.value)
    return RedirectResponse(
        url=result_redirect_url(context.settings.frontend_url, outcome),
        status_code=status.HTTP_302_FOUND,
    )


@router.post(
    "/reservations/cancel",
    response_model=CancelResponse,
    response_model_by_alias=True,
)
def cancel_reservation(
    request: CancelRequest,
    db: Session = Depends(get_db),
    context: EngineContext = Depends(get_context),
):
    outcome = ReservationService(db, context).cancel_reservation(request.id, request.token)
    return CancelResponse(
        message="SUCCESS",
        reservation_id=outcome.reservation_id,
        already_canceled=outcome.already_canceled,
        attendees_deleted=outcome.attendees_deleted,
    )
