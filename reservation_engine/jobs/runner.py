# reservation_engine/jobs/runner.py

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy.orm import Session

from reservation_engine.context import EngineContext
from reservation_engine.infrastructure.db.session import session_scope
from reservation_engine.jobs import (
    expire_reservations,
    materialize_attendees,
    reconcile_inventory,
    send_reminders,
    send_surveys,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledJob:
    name: str
    func: Callable[[Session, EngineContext], Any]
    interval_seconds: float


def default_jobs(context: EngineContext) -> list[ScheduledJob]:
    settings = context.settings
    return [
        ScheduledJob(
            "expire_reservations",
            expire_reservations.run,
            settings.expiry_check_interval_seconds,
        ),
        ScheduledJob(
            "materialize_attendees",
            materialize_attendees.run,
            settings.attendee_batch_interval_seconds,
        ),
        ScheduledJob(
            "reconcile_inventory",
            reconcile_inventory.run,
            settings.reconcile_interval_seconds,
        ),
        ScheduledJob("send_reminders", send_reminders.run, settings.reminder_interval_seconds),
        ScheduledJob("send_surveys", send_surveys.run, settings.survey_interval_seconds),
    ]


class JobRunner:
    """
    Runs each job on its own interval in a daemon thread. Every run
    gets a fresh session; nothing is shared between runs.
    """

    def __init__(self, context: EngineContext, jobs: list[ScheduledJob] | None = None):
        self.context = context
        self.jobs = jobs if jobs is not None else default_jobs(context)
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    def run_job(self, job: ScheduledJob) -> Any:
        with session_scope(self.context.session_factory) as db:
            result = job.func(db, self.context)
        logger.info("Job %s finished: %s", job.name, result)
        return result

    def run_once(self) -> dict[str, Any]:
        results = {}
        for job in self.jobs:
            try:
                results[job.name] = self.run_job(job)
            except Exception:
                logger.exception("Job %s failed", job.name)
                results[job.name] = None
        return results

    def _loop(self, job: ScheduledJob) -> None:
        while not self._stop.is_set():
            try:
                self.run_job(job)
            except Exception:
                logger.exception("Job %s failed; retrying in %ss", job.name, job.interval_seconds)
            self._stop.wait(job.interval_seconds)

    def start(self) -> None:
        if self._threads:
            logger.warning("Job runner already running")
            return

        self._stop.clear()
        for job in self.jobs:
            thread = threading.Thread(target=self._loop, args=(job,), name=job.name, daemon=True)
            thread.start()
            self._threads.append(thread)
            logger.info("Started job %s (interval: %ss)", job.name, job.interval_seconds)

    def stop(self, timeout: float | None = 10.0) -> None:
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info("Job runner stopped")

    def wait(self) -> None:
        self._stop.wait()
