# reservation_engine/jobs/reconcile_inventory.py

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from reservation_engine.application.inventory import InventoryReader
from reservation_engine.context import EngineContext
from reservation_engine.infrastructure.db.models import Schedule

logger = logging.getLogger(__name__)


def run(db: Session, context: EngineContext) -> int:
    """
    Repair pass over every schedule's committed seat counter, one
    transaction per schedule. Returns the number of schedules whose
    counter had drifted.
    """
    inventory = InventoryReader(db)
    schedule_ids = list(db.execute(select(Schedule.id)).scalars().all())
    drifted = 0

    for schedule_id in schedule_ids:
        if inventory.reconcile_committed_seats(schedule_id):
            drifted += 1
        db.commit()

    logger.info("Inventory reconcile: %s schedules, %s corrected", len(schedule_ids), drifted)

    if drifted:
        context.alert_sink.notify(
            f"Committed seat counter corrected on {drifted} schedule(s)",
            type="WARNING",
            severity="MEDIUM",
            service="reconcile_inventory",
        )
    return drifted
