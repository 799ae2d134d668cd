"""
Route distance engine.

Derives travelled distances from the ordered stops of a train and
materializes them into the `route_distance` cache, either for one train or
for every active train at once.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from decimal import Decimal
from itertools import combinations
from threading import Lock
from typing import Dict, List, Optional, Sequence, Tuple
from sqlalchemy import delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from railfare.src import exceptions, getters
from railfare.src.constants import BATCH_MAX_WORKERS, MIN_STOPS_IN_ROUTE
from railfare.src.db import RouteDistance, Train, TrainStop
from railfare.src.enums import BatchStatus
from railfare.src.functions import roundAmount

logger = logging.getLogger("RouteDistance")

StationPair = Tuple[int, int, Decimal]


def pairwiseDistances(stops: Sequence[TrainStop]) -> List[StationPair]:
    """
    Compute the distance of every unordered pair of stops.

    Args:
        stops (Sequence[TrainStop]): Route of one train in stop order.

    Returns:
        List[StationPair]: `(from_station_id, to_station_id, distance_km)` for
        each pair, with `from` before `to` on the route. n stops give
        n * (n - 1) / 2 pairs.
    """
    return [
        (
            first.station_id,
            second.station_id,
            roundAmount(abs(second.distance_from_origin - first.distance_from_origin)),
        )
        for first, second in combinations(stops, 2)
    ]


@dataclass
class BatchResult:
    """Thread-safe accumulator of one batch run."""

    processed: int = 0
    totalDistances: int = 0
    errors: List[Dict] = field(default_factory=list)
    skipped: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def addSuccess(self, saved: int) -> None:
        with self._lock:
            self.processed += 1
            self.totalDistances += saved

    def addError(self, trainId: int, reason: str) -> None:
        with self._lock:
            self.processed += 1
            self.errors.append({"train_id": trainId, "reason": reason})

    @property
    def status(self) -> BatchStatus:
        if self.errors:
            return BatchStatus.COMPLETED_WITH_ERRORS
        return BatchStatus.SUCCESS


class RouteDistanceEngine:
    def __init__(self, sessionMaker: sessionmaker, maxWorkers: int = BATCH_MAX_WORKERS):
        self.sessionMaker = sessionMaker
        self.maxWorkers = maxWorkers

    # ------------------------------------------------------------------
    # Single pair
    # ------------------------------------------------------------------
    @staticmethod
    def distanceBetween(
        session: Session, trainId: int, fromStationId: int, toStationId: int
    ) -> Decimal:
        """
        Derive the distance between two stations from the route of a train.

        Raises:
            exceptions.NotFound: If the train does not exist.
            exceptions.RouteNotFound: If the train has no stops.
            exceptions.StopNotOnRoute: If a station is not on the route.
        """
        if getters.train(session, trainId) is None:
            raise exceptions.NotFound(Train, trainId)
        stops = getters.stops(session, trainId)
        if not stops:
            raise exceptions.RouteNotFound(trainId)

        distanceFromOrigin = {stop.station_id: stop.distance_from_origin for stop in stops}
        for stationId in (fromStationId, toStationId):
            if stationId not in distanceFromOrigin:
                raise exceptions.StopNotOnRoute(stationId, trainId)
        return roundAmount(
            abs(distanceFromOrigin[toStationId] - distanceFromOrigin[fromStationId])
        )

    def routeDistance(
        self, session: Session, trainId: int, fromStationId: int, toStationId: int
    ) -> Decimal:
        """Read the materialized distance, deriving it from the route on a miss."""
        distance = getters.cachedDistance(session, trainId, fromStationId, toStationId)
        if distance is not None:
            return roundAmount(distance)
        logger.warning(
            f"Distance {fromStationId} -> {toStationId} of train {trainId} "
            "is not materialized, deriving it from the route"
        )
        return self.distanceBetween(session, trainId, fromStationId, toStationId)

    # ------------------------------------------------------------------
    # One train
    # ------------------------------------------------------------------
    def materializeForTrain(self, trainId: int) -> Dict[str, int]:
        """
        Replace the cached distances of one train in a single transaction.

        Returns:
            dict: `calculated` station pairs and `saved` rows, both directions
            of each pair are saved.

        Raises:
            exceptions.NotFound: If the train does not exist.
            exceptions.InsufficientStops: If the route has fewer than 2 stops.
        """
        with self.sessionMaker() as session:
            with session.begin():
                return self._replaceDistances(session, trainId)

    @staticmethod
    def _replaceDistances(session: Session, trainId: int) -> Dict[str, int]:
        if getters.train(session, trainId) is None:
            raise exceptions.NotFound(Train, trainId)
        stops = getters.stops(session, trainId)
        if len(stops) < MIN_STOPS_IN_ROUTE:
            raise exceptions.InsufficientStops(trainId, len(stops))

        pairs = pairwiseDistances(stops)
        session.execute(delete(RouteDistance).where(RouteDistance.train_id == trainId))
        rows = []
        for fromStationId, toStationId, distanceKm in pairs:
            rows.append(
                RouteDistance(
                    train_id=trainId,
                    from_station_id=fromStationId,
                    to_station_id=toStationId,
                    distance_km=distanceKm,
                )
            )
            rows.append(
                RouteDistance(
                    train_id=trainId,
                    from_station_id=toStationId,
                    to_station_id=fromStationId,
                    distance_km=distanceKm,
                )
            )
        session.add_all(rows)
        session.flush()
        logger.debug(f"Train {trainId}: {len(pairs)} pairs, {len(rows)} rows")
        return {"calculated": len(pairs), "saved": len(rows)}

    # ------------------------------------------------------------------
    # All trains
    # ------------------------------------------------------------------
    def materializeAll(self, deadline: Optional[float] = None) -> BatchResult:
        """
        Materialize the distances of every active train.

        One task per train runs on a bounded thread pool. A failing train is
        rolled back and recorded in `errors`, its siblings keep going.

        Args:
            deadline (float | None): Seconds after which trains that have not
                started yet are dropped. Trains already running still finish
                and are reported.

        Returns:
            BatchResult: processed trains, written rows, per-train errors and
            the number of trains skipped because of the deadline.
        """
        with self.sessionMaker() as session:
            trainIds = getters.activeTrainIds(session)
        logger.info(f"Starting distance materialization for {len(trainIds)} trains")

        result = BatchResult()
        executor = ThreadPoolExecutor(
            max_workers=self.maxWorkers, thread_name_prefix="route-distance"
        )
        try:
            futures = [
                executor.submit(self._materializeInto, trainId, result)
                for trainId in trainIds
            ]
            _, notDone = wait(futures, timeout=deadline)
            if notDone:
                logger.warning(
                    f"Deadline of {deadline}s reached with {len(notDone)} trains pending"
                )
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        result.skipped = len(trainIds) - result.processed
        logger.info(
            f"Materialization complete: {result.processed}/{len(trainIds)} trains, "
            f"{result.totalDistances} distances, {len(result.errors)} errors"
        )
        return result

    def _materializeInto(self, trainId: int, result: BatchResult) -> None:
        try:
            saved = self.materializeForTrain(trainId)["saved"]
        except exceptions.APIException as e:
            logger.warning(f"Train {trainId} skipped: {e.detail}")
            result.addError(trainId, e.detail)
        except Exception as e:
            logger.exception(f"Train {trainId} failed")
            result.addError(trainId, str(e))
        else:
            result.addSuccess(saved)
