import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, TimeoutError as SQLAlchemyTimeoutError

from reservation_engine.api.routes import admin
from reservation_engine.api.routes.routes import router
from reservation_engine.config import Settings
from reservation_engine.context import EngineContext
from reservation_engine.domain.exceptions import (
    DomainError,
    ErrorCode,
    ReservationsNotOpenError,
    StorageUnavailableError,
)
from reservation_engine.infrastructure.db.session import Base, wait_for_db

logger = logging.getLogger(__name__)


def _error_body(code: ErrorCode, message: str) -> dict:
    return {"errorCode": code.value, "errorMessage": message}


def _is_db_degraded(exc: Exception) -> bool:
    return isinstance(exc, (OperationalError, SQLAlchemyTimeoutError, StorageUnavailableError))


def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(DomainError)
    def handle_domain_error(request: Request, exc: DomainError):
        body = _error_body(exc.code, exc.message)
        if isinstance(exc, ReservationsNotOpenError):
            body["reservationStartTime"] = exc.reservation_start_time
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    def handle_validation_error(request: Request, exc: RequestValidationError):
        logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(ErrorCode.INVALID_INPUT, "Invalid request"),
        )

    @app.exception_handler(Exception)
    def handle_unexpected_error(request: Request, exc: Exception):
        context: EngineContext = request.app.state.context
        degraded = _is_db_degraded(exc)

        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        context.alert_sink.notify(
            f"{type(exc).__name__} on {request.method} {request.url.path}",
            type="ERROR",
            severity="HIGH",
            service="api",
        )

        return JSONResponse(
            status_code=(
                status.HTTP_503_SERVICE_UNAVAILABLE
                if degraded
                else status.HTTP_500_INTERNAL_SERVER_ERROR
            ),
            content=_error_body(ErrorCode.INTERNAL, "Internal server error"),
        )


def create_app(
    settings: Settings | None = None,
    context: EngineContext | None = None,
) -> FastAPI:
    if context is None:
        settings = settings or Settings.from_env()
        context = EngineContext.from_settings(settings)
    settings = context.settings

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        wait_for_db(
            context.engine,
            settings.db_connect_max_retries,
            settings.db_connect_retry_delay,
        )
        Base.metadata.create_all(bind=context.engine)
        yield
        context.engine.dispose()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(router)
    app.include_router(admin.router)
    return app
