from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import select

from reservation_engine.config import Settings
from reservation_engine.infrastructure.db.models import Performance, Schedule
from reservation_engine.infrastructure.db.session import (
    Base,
    build_engine,
    build_session_factory,
)

DEMO_PERFORMANCE_ID = "demo-spring-play"
DEMO_ADMIN_SECRET = "demo-admin-secret"


def _local_day(zone: ZoneInfo, days_from_now: int) -> str:
    return (datetime.now(zone) + timedelta(days=days_from_now)).strftime("%Y-%m-%d")


def seed_performance(db, settings: Settings) -> None:
    zone = ZoneInfo(settings.time_zone)

    performance = db.execute(
        select(Performance).where(Performance.id == DEMO_PERFORMANCE_ID)
    ).scalar_one_or_none()
    if performance is None:
        performance = Performance(
            id=DEMO_PERFORMANCE_ID,
            title="Spring Play 2026",
            admin_secret=DEMO_ADMIN_SECRET,
        )
        db.add(performance)

    performance.reservation_start_time = datetime.now(zone).replace(microsecond=0).isoformat()
    performance.max_reservations = 2
    performance.survey_url = "https://example.com/survey"

    schedule_defs = [
        {"id": "demo-day1-matinee", "date": _local_day(zone, 1), "time": "14:00", "total_seats": 40},
        {"id": "demo-day1-evening", "date": _local_day(zone, 1), "time": "19:00", "total_seats": 48},
        {"id": "demo-day2-evening", "date": _local_day(zone, 2), "time": "19:00", "total_seats": 48},
    ]

    for item in schedule_defs:
        existing = db.execute(
            select(Schedule).where(Schedule.id == item["id"])
        ).scalar_one_or_none()
        if existing:
            existing.date = item["date"]
            existing.time = item["time"]
            existing.total_seats = max(existing.total_seats, item["total_seats"])
            continue

        db.add(
            Schedule(
                id=item["id"],
                performance_id=DEMO_PERFORMANCE_ID,
                date=item["date"],
                time=item["time"],
                total_seats=item["total_seats"],
                committed_seats=0,
            )
        )


def main() -> None:
    settings = Settings.from_env()
    engine = build_engine(settings)
    Base.metadata.create_all(bind=engine)

    db = build_session_factory(engine)()
    try:
        seed_performance(db, settings)
        db.commit()
        print(
            f"Seed complete: performance {DEMO_PERFORMANCE_ID} "
            f"(admin uuid {DEMO_ADMIN_SECRET}) with 3 schedules."
        )
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
