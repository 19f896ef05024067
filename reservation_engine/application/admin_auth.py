import hmac
import logging

from sqlalchemy.orm import Session

from reservation_engine.domain.exceptions import ForbiddenError, PerformanceNotFoundError
from reservation_engine.infrastructure.db.models import Performance
from reservation_engine.infrastructure.repositories.schedule_repository import (
    PerformanceRepository,
)

logger = logging.getLogger(__name__)


def require_admin(db: Session, performance_id: str, admin_secret: str | None) -> Performance:
    """Load the performance and check the caller's admin secret."""
    performance = PerformanceRepository(db).get_by_id(performance_id)

    if performance is None:
        raise PerformanceNotFoundError(performance_id)

    if not admin_secret or not hmac.compare_digest(
        performance.admin_secret.encode("utf-8"),
        admin_secret.encode("utf-8"),
    ):
        logger.warning("Rejected admin request for performance %s", performance_id)
        raise ForbiddenError()

    return performance
