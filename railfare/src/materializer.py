import logging
from railfare.src.db import sessionMaker
from railfare.src.constants import BATCH_DEADLINE, BATCH_MAX_WORKERS
from railfare.src.route_distance import BatchResult, RouteDistanceEngine

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Materializer")


def materializeAllDistances(engine: RouteDistanceEngine) -> BatchResult:
    result = engine.materializeAll(deadline=BATCH_DEADLINE)
    for error in result.errors:
        logger.warning(f"Train {error['train_id']}: {error['reason']}")
    logger.info(
        f"{result.status.name}: {result.processed} trains processed, "
        f"{result.totalDistances} distances saved, {result.skipped} skipped"
    )
    return result


def main():
    try:
        engine = RouteDistanceEngine(sessionMaker, maxWorkers=BATCH_MAX_WORKERS)
        materializeAllDistances(engine)
    except Exception as e:
        logger.exception("materializer.py failed")


if __name__ == "__main__":
    main()
