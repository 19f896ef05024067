import argparse
import logging

from reservation_engine.config import Settings
from reservation_engine.context import EngineContext
from reservation_engine.infrastructure.db.session import Base, wait_for_db
from reservation_engine.jobs.runner import JobRunner

logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the reservation engine's periodic jobs.")
    parser.add_argument("--once", action="store_true", help="run every job a single time and exit")
    args = parser.parse_args()

    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    context = EngineContext.from_settings(settings)
    wait_for_db(context.engine, settings.db_connect_max_retries, settings.db_connect_retry_delay)
    Base.metadata.create_all(bind=context.engine)

    runner = JobRunner(context)
    if args.once:
        for name, result in runner.run_once().items():
            print(f"{name}: {result}")
        return

    runner.start()
    try:
        runner.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping jobs.")
    finally:
        runner.stop()


if __name__ == "__main__":
    main()
